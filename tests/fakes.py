from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Callable, Iterable

from opsengine.errors import CommandFailed
from opsengine.models import OperationResult
from opsengine.telemetry import HostFacts


class FakeRunner:
    """Scripted stand-in for CommandRunner keyed by command substrings.

    A response may be a string, an exception instance (raised), a callable
    returning either, or an iterator yielding either.
    """

    def __init__(self, responses: dict[str, Any] | None = None, *, launch_error: Exception | None = None) -> None:
        self.responses = dict(responses or {})
        self.launch_error = launch_error
        self.calls: list[tuple[str, float]] = []
        self.launched: list[str] = []

    async def run(self, command: str, timeout: float) -> str:
        self.calls.append((command, timeout))
        for key, response in self.responses.items():
            if key in command:
                if isinstance(response, Iterator):
                    response = next(response)
                elif callable(response):
                    response = response()
                if isinstance(response, BaseException):
                    raise response
                return str(response)
        raise CommandFailed(command, 1, "no scripted response")

    async def launch(self, command: str, *, settle: float = 0.5) -> int:
        self.launched.append(command)
        if self.launch_error is not None:
            raise self.launch_error
        return 4242

    def calls_matching(self, fragment: str) -> list[tuple[str, float]]:
        return [call for call in self.calls if fragment in call[0]]


class FakeBrowser:
    def __init__(self, *, fail_with: str | None = None) -> None:
        self.fail_with = fail_with
        self.actions: list[tuple[str, Any]] = []
        self.closed = False

    def _result(self, message: str, data: Any = None) -> OperationResult:
        if self.fail_with:
            return OperationResult.fail(self.fail_with)
        return OperationResult.ok(message, data=data)

    async def open_page(self, url: str) -> OperationResult:
        self.actions.append(("open", url))
        return self._result(f"Opened {url}", {"url": url})

    async def navigate(self, url: str) -> OperationResult:
        self.actions.append(("navigate", url))
        return self._result(f"Navigated to {url}", {"url": url})

    async def click(self, selector: str) -> OperationResult:
        self.actions.append(("click", selector))
        return self._result(f"Clicked element: {selector}")

    async def type(self, selector: str, text: str) -> OperationResult:
        self.actions.append(("type", (selector, text)))
        return self._result(f"Typed text into: {selector}")

    async def screenshot(self, path: Any = None) -> OperationResult:
        self.actions.append(("screenshot", path))
        return self._result("Screenshot saved", {"path": str(path)})

    async def close(self) -> None:
        self.closed = True


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def fixed_facts(**overrides: Any) -> Callable[[], HostFacts]:
    values: dict[str, Any] = {
        "hostname": "test-host",
        "arch": "x86_64",
        "cores": 8,
        "model": "Test CPU",
        "uptime_seconds": 7200.0,
        "load1": 0.5,
    }
    values.update(overrides)
    return lambda: HostFacts(**values)


def cycle_responses(values: Iterable[Any]) -> Iterator[Any]:
    return iter(list(values))


WINDOWS_DISK_OUTPUT = "\r\nSize FreeSpace\r\n---- ---------\r\n1021821579264 863185633280\r\n\r\n"
WINDOWS_MEMORY_OUTPUT = "\r\nTotalVisibleMemorySize : 16000000\r\nFreePhysicalMemory     : 8000000\r\n\r\n"

LINUX_DF_OUTPUT = (
    "Filesystem     1024-blocks      Used Available Capacity Mounted on\n"
    "/dev/nvme0n1p2   100000000  95000000   5000000      95% /\n"
)
LINUX_MEMINFO_OUTPUT = (
    "MemTotal:       16000000 kB\n"
    "MemFree:         1000000 kB\n"
    "MemAvailable:    4000000 kB\n"
    "Buffers:          200000 kB\n"
)

MACOS_SYSCTL_OUTPUT = "hw.memsize: 17179869184\nhw.pagesize: 16384\nvm.page_free_count: 262144\n"
