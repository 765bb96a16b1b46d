"""Routes operation requests to platform handlers under a uniform result contract."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping

from opsengine import platforms
from opsengine.browser import AgentBrowser
from opsengine.commands import CommandRunner
from opsengine.config import EngineSettings
from opsengine.errors import ExternalCommandFailure, InvalidRequest, OpsEngineError, UnknownOperation
from opsengine.files import FileOperations
from opsengine.health import render_summary
from opsengine.models import (
    CpuStats,
    DetailedStats,
    DiskStats,
    HealthRating,
    HealthSnapshot,
    MemoryStats,
    OperationKind,
    OperationRequest,
    OperationResult,
    UptimeStats,
)
from opsengine.registry import ActiveApplicationRegistry
from opsengine.telemetry import TelemetryAssembler, collect_system_info

logger = logging.getLogger(__name__)

_CLOSE_TIMEOUT_SECONDS = 10.0
_ACTIVE_WINDOW_TIMEOUT_SECONDS = 2.0

Handler = Callable[[OperationRequest], Awaitable[OperationResult]]


@dataclass(frozen=True)
class OperationSpec:
    """Declarative metadata for one routable operation."""

    kind: OperationKind
    handler: Handler
    summary: str = ""
    requires_target: bool = False


class OperationDispatcher:
    """Single entry point for automation operations and health reporting.

    Public coroutines never raise: failures come back as unsuccessful
    :class:`OperationResult` values or as degraded snapshots.
    """

    def __init__(
        self,
        *,
        platform: platforms.PlatformTag | str | None = None,
        settings: EngineSettings | None = None,
        runner: CommandRunner | None = None,
        registry: ActiveApplicationRegistry | None = None,
        files: FileOperations | None = None,
        browser: AgentBrowser | None = None,
        telemetry: TelemetryAssembler | None = None,
        system_info: Callable[[], Dict[str, Any]] = collect_system_info,
    ) -> None:
        self._profile = platforms.resolve(platform)
        self._settings = settings or EngineSettings.from_config()
        self._runner = runner or CommandRunner()
        self._registry = registry if registry is not None else ActiveApplicationRegistry()
        self._files = files or FileOperations()
        self._browser = browser or AgentBrowser(
            headless=self._settings.browser_headless,
            screenshot_dir=self._settings.screenshot_dir,
        )
        self._telemetry = telemetry or TelemetryAssembler(
            runner=self._runner,
            profile=self._profile,
            settings=self._settings,
        )
        self._system_info = system_info
        self._operations: dict[OperationKind, OperationSpec] = {}
        self._register_builtin_operations()
        missing = [kind.value for kind in OperationKind if kind not in self._operations]
        if missing:
            raise RuntimeError(f"No handler registered for: {', '.join(missing)}")

    # ------------------------------------------------------------------
    @property
    def profile(self) -> platforms.PlatformProfile:
        return self._profile

    @property
    def registry(self) -> ActiveApplicationRegistry:
        return self._registry

    @property
    def telemetry(self) -> TelemetryAssembler:
        return self._telemetry

    def operations(self) -> dict[OperationKind, OperationSpec]:
        return dict(self._operations)

    def register_operation(self, spec: OperationSpec) -> None:
        self._operations[spec.kind] = spec

    async def execute(self, request: OperationRequest | Mapping[str, Any]) -> OperationResult:
        try:
            if not isinstance(request, OperationRequest):
                request = OperationRequest.from_mapping(request)
            kind = OperationKind.parse(request.operation)
            spec = self._operations.get(kind)
            if spec is None:
                raise UnknownOperation(kind.value)
            if spec.requires_target and not request.target.strip():
                raise InvalidRequest(f"{spec.kind.value} requires a target")
            return await spec.handler(request)
        except OpsEngineError as exc:
            logger.info("Operation rejected: %s", exc)
            return OperationResult.fail(exc)
        except Exception as exc:
            logger.exception("Operation handler crashed")
            return OperationResult.fail(f"{type(exc).__name__}: {exc}")

    async def close(self) -> None:
        await self._browser.close()

    # ------------------------------------------------------------------
    def _register_builtin_operations(self) -> None:
        for spec in (
            OperationSpec(OperationKind.OPEN_APPLICATION, self._op_open_application,
                          "Launch an application by alias or literal name.", requires_target=True),
            OperationSpec(OperationKind.CLOSE_APPLICATION, self._op_close_application,
                          "Terminate an application by name.", requires_target=True),
            OperationSpec(OperationKind.CREATE_FILE, self._op_create_file,
                          "Write a text file, creating parent folders.", requires_target=True),
            OperationSpec(OperationKind.CREATE_FOLDER, self._op_create_folder,
                          "Create a folder and its parents.", requires_target=True),
            OperationSpec(OperationKind.MOVE_FILE, self._op_move_file,
                          "Move a file to options['destination'].", requires_target=True),
            OperationSpec(OperationKind.DELETE_FILE, self._op_delete_file,
                          "Delete a file or folder tree.", requires_target=True),
            OperationSpec(OperationKind.GET_SYSTEM_INFO, self._op_system_info,
                          "Cheap host facts without sampling."),
            OperationSpec(OperationKind.GET_SYSTEM_STATUS, self._op_system_status,
                          "Sampled, classified health statistics."),
        ):
            self.register_operation(spec)

    async def _op_open_application(self, request: OperationRequest) -> OperationResult:
        name = request.target
        if platforms.wants_browser(name):
            return await self._open_cad_in_browser()
        command = self._profile.open_command(name)
        try:
            await self._runner.launch(command, settle=self._settings.launch_settle)
        except ExternalCommandFailure as exc:
            return OperationResult.fail(f"Failed to open {name}: {exc}")
        self._registry.register(name, command)
        logger.info("Opened %s via %r", name, command)
        return OperationResult.ok(f"Successfully opened {name}", data={"command": command})

    async def _open_cad_in_browser(self) -> OperationResult:
        result = await self._browser.open_page(self._settings.cad_url)
        if not result.success:
            return OperationResult.fail(f"Failed to open OnShape: {result.error}")
        return OperationResult.ok(
            "OnShape 3D modeling platform opened successfully. You can now start your CAD work.",
            data=result.data,
        )

    async def _op_close_application(self, request: OperationRequest) -> OperationResult:
        name = request.target
        command = self._profile.close_command(name)
        try:
            await self._runner.run(command, timeout=_CLOSE_TIMEOUT_SECONDS)
        except ExternalCommandFailure as exc:
            return OperationResult.fail(f"Failed to close {name}: {exc}")
        self._registry.unregister(name)
        return OperationResult.ok(f"Successfully closed {name}", data={"command": command})

    async def _op_create_file(self, request: OperationRequest) -> OperationResult:
        return self._files.create_file(request.target, str(request.options.get("content") or ""))

    async def _op_create_folder(self, request: OperationRequest) -> OperationResult:
        return self._files.create_folder(request.target)

    async def _op_move_file(self, request: OperationRequest) -> OperationResult:
        destination = request.options.get("destination")
        if not destination:
            raise InvalidRequest("move_file requires options['destination']")
        return self._files.move(request.target, destination)

    async def _op_delete_file(self, request: OperationRequest) -> OperationResult:
        return self._files.delete(request.target)

    async def _op_system_info(self, request: OperationRequest) -> OperationResult:  # noqa: ARG002
        return OperationResult.ok("System information collected", data=self._system_info())

    async def _op_system_status(self, request: OperationRequest) -> OperationResult:  # noqa: ARG002
        stats = await self.get_detailed_stats()
        return OperationResult.ok(render_summary(stats.to_snapshot()), data=stats.as_dict())

    # ------------------------------------------------------------------
    async def get_health_snapshot(self) -> HealthSnapshot:
        try:
            return await self._telemetry.build_snapshot()
        except Exception:
            logger.exception("Health snapshot failed")
            return HealthSnapshot(overall=HealthRating.UNKNOWN)

    async def get_detailed_stats(self) -> DetailedStats:
        try:
            return await self._telemetry.build_detailed_stats()
        except Exception:
            logger.exception("Detailed stats failed")
            return self._unknown_stats()

    def _unknown_stats(self) -> DetailedStats:
        return DetailedStats(
            timestamp=datetime.now(tz=timezone.utc).isoformat(),
            hostname="unknown",
            platform=self._profile.tag.value,
            arch="unknown",
            overall=HealthRating.UNKNOWN,
            cpu=CpuStats(usage=0, cores=0, model="Unknown", samples_count=0),
            memory=MemoryStats(total_gb=0.0, used_gb=0.0, free_gb=0.0, usage_pct=0),
            disk=DiskStats(total_gb=0.0, free_gb=0.0, used_gb=0.0, usage_pct=0),
            uptime=UptimeStats(seconds=0, hours=0.0, days=0.0),
        )

    async def status_summary(self) -> str:
        """Short text block describing machine health, for assistant prompts."""
        snapshot = await self.get_health_snapshot()
        return render_summary(snapshot, active_applications=len(self._registry))

    async def get_current_context(self) -> Dict[str, Any]:
        timestamp = datetime.now(tz=timezone.utc).isoformat()
        try:
            context: Dict[str, Any] = {
                "platform": self._profile.tag.value,
                "active_applications": [record.as_dict() for record in self._registry.list()],
                "cwd": os.getcwd(),
                "timestamp": timestamp,
                "system_info": self._system_info(),
            }
            if self._profile.active_window_query:
                context["active_window_title"] = await self._active_window_title()
            return context
        except Exception as exc:
            logger.exception("Building current context failed")
            return {"platform": self._profile.tag.value, "error": str(exc), "timestamp": timestamp}

    async def _active_window_title(self) -> str:
        try:
            output = await self._runner.run(
                self._profile.require("active_window"),
                timeout=_ACTIVE_WINDOW_TIMEOUT_SECONDS,
            )
        except OpsEngineError as exc:
            logger.debug("Active window query failed: %s", exc)
            return "Unknown"
        return output.strip() or "Unknown"

    # ------------------------------------------------------------------
    async def manage_files(
        self,
        action: str,
        source: str,
        destination: str | None = None,
        content: str | None = None,
    ) -> OperationResult:
        handlers: dict[str, Callable[[], OperationResult]] = {
            "create": lambda: self._files.create_file(source, content or ""),
            "delete": lambda: self._files.delete(source),
            "move": lambda: self._files.move(source, destination),
            "copy": lambda: self._files.copy(source, destination),
            "read": lambda: self._files.read(source),
        }
        handler = handlers.get((action or "").strip().lower())
        if handler is None:
            return OperationResult.fail(f"Unknown file action: {action}")
        try:
            return handler()
        except Exception as exc:
            logger.exception("File action %s crashed", action)
            return OperationResult.fail(exc)

    async def control_browser(
        self,
        action: str,
        *,
        url: str | None = None,
        selector: str | None = None,
        text: str | None = None,
        path: str | None = None,
    ) -> OperationResult:
        handlers: dict[str, Callable[[], Awaitable[OperationResult]]] = {
            "navigate": lambda: self._browser.navigate(url or ""),
            "click": lambda: self._browser.click(selector or ""),
            "type": lambda: self._browser.type(selector or "", text or ""),
            "screenshot": lambda: self._browser.screenshot(path),
        }
        handler = handlers.get((action or "").strip().lower())
        if handler is None:
            return OperationResult.fail(f"Unknown browser action: {action}")
        try:
            return await handler()
        except Exception as exc:
            logger.exception("Browser action %s crashed", action)
            return OperationResult.fail(exc)


__all__ = ["OperationDispatcher", "OperationSpec"]
