"""Exception taxonomy for the operation engine."""
from __future__ import annotations


class OpsEngineError(Exception):
    """Base class for recoverable engine failures."""


class UnknownOperation(OpsEngineError):
    """Raised when a request names an operation outside the supported set."""

    def __init__(self, operation: object) -> None:
        super().__init__(f"Unknown operation: {operation}")
        self.operation = operation


class InvalidRequest(OpsEngineError):
    """Raised when a request is missing a target or a required option."""


class ExternalCommandFailure(OpsEngineError):
    """Raised when an external command cannot produce usable output."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"{reason}: {command}")
        self.command = command
        self.reason = reason


class CommandTimeout(ExternalCommandFailure):
    def __init__(self, command: str, timeout: float) -> None:
        super().__init__(command, f"Timed out after {timeout:g}s")
        self.timeout = timeout


class CommandFailed(ExternalCommandFailure):
    def __init__(self, command: str, returncode: int | None, stderr: str = "") -> None:
        detail = stderr.strip() or f"exit status {returncode}"
        super().__init__(command, f"Command failed ({detail})")
        self.returncode = returncode
        self.stderr = stderr


class ParseFailure(OpsEngineError):
    """Raised when external command output does not have the expected shape."""


class PlatformUnsupported(OpsEngineError):
    """Raised when a feature has no implementation on the current platform."""

    def __init__(self, feature: str, platform: str) -> None:
        super().__init__(f"{feature} not implemented for platform '{platform}'")
        self.feature = feature
        self.platform = platform


__all__ = [
    "CommandFailed",
    "CommandTimeout",
    "ExternalCommandFailure",
    "InvalidRequest",
    "OpsEngineError",
    "ParseFailure",
    "PlatformUnsupported",
    "UnknownOperation",
]
