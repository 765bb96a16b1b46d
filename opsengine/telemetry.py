"""System telemetry: cheap host facts, sampled health snapshots and detailed stats."""
from __future__ import annotations

import asyncio
import logging
import platform
import sys
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Deque, Optional, Sequence, TypeVar

import psutil  # type: ignore[import-untyped]

from opsengine import sampler
from opsengine.commands import CommandRunner
from opsengine.config import EngineSettings
from opsengine.errors import ParseFailure
from opsengine.health import classify
from opsengine.models import (
    CpuStats,
    DetailedStats,
    DiskStats,
    DiskUsage,
    HealthSnapshot,
    MemoryReading,
    MemoryStats,
    UptimeStats,
)
from opsengine.parsers import parse_cpu_load
from opsengine.platforms import PlatformProfile, PlatformTag

logger = logging.getLogger(__name__)

T = TypeVar("T")
Probe = Callable[[], Awaitable[Optional[T]]]

_GB = 1024 ** 3


@dataclass(frozen=True)
class HostFacts:
    """Facts read directly from the OS, no sampling involved."""

    hostname: str = "unknown"
    arch: str = "unknown"
    cores: int = 0
    model: str = "Unknown"
    uptime_seconds: float = 0.0
    load1: float = 0.0


def _uptime_seconds() -> float:
    return max(0.0, time.time() - float(psutil.boot_time()))


def read_host_facts() -> HostFacts:
    facts: dict[str, Any] = {
        "hostname": platform.node() or "unknown",
        "arch": platform.machine() or "unknown",
        "model": platform.processor() or platform.machine() or "Unknown",
    }
    try:
        facts["cores"] = int(psutil.cpu_count(logical=True) or 0)
    except Exception:
        facts["cores"] = 0
    try:
        facts["uptime_seconds"] = _uptime_seconds()
    except Exception:
        facts["uptime_seconds"] = 0.0
    try:
        facts["load1"] = float(psutil.getloadavg()[0])
    except Exception:
        facts["load1"] = 0.0
    return HostFacts(**facts)


def read_virtual_memory() -> MemoryReading:
    vm = psutil.virtual_memory()
    return MemoryReading(total_bytes=int(vm.total), free_bytes=int(vm.available))


def collect_system_info() -> dict[str, Any]:
    """Collect cheap, unaveraged host information."""
    info: dict[str, Any] = {
        "platform": sys.platform,
        "arch": platform.machine(),
        "hostname": platform.node(),
        "uptime": None,
        "loadavg": [0.0, 0.0, 0.0],
        "totalmem": None,
        "freemem": None,
        "cpus": None,
    }
    try:
        info["uptime"] = round(_uptime_seconds())
    except Exception:
        pass
    try:
        info["loadavg"] = [round(float(value), 2) for value in psutil.getloadavg()]
    except Exception:
        pass
    try:
        vm = psutil.virtual_memory()
        info["totalmem"] = int(vm.total)
        info["freemem"] = int(vm.available)
    except Exception:
        pass
    try:
        info["cpus"] = psutil.cpu_count(logical=True)
    except Exception:
        pass
    return info


async def _first_result(probes: Sequence[tuple[str, Probe[T]]], default: T) -> T:
    """Run probes in order and return the first non-``None`` result."""
    for label, probe in probes:
        try:
            result = await probe()
        except Exception as exc:
            logger.debug("%s probe failed: %s", label, exc)
            continue
        if result is not None:
            return result
    return default


def _gb(value: float) -> float:
    return round(value / _GB, 2)


class TelemetryAssembler:
    """Build health snapshots from sampled and parsed platform queries.

    Each step degrades independently: a failed CPU, disk or memory probe
    contributes zeros instead of failing the whole snapshot.
    """

    def __init__(
        self,
        *,
        runner: CommandRunner,
        profile: PlatformProfile,
        settings: EngineSettings | None = None,
        host_facts: Callable[[], HostFacts] = read_host_facts,
        memory_fallback: Optional[Callable[[], MemoryReading]] = read_virtual_memory,
        sleep: sampler.Sleeper = asyncio.sleep,
    ) -> None:
        self._runner = runner
        self._profile = profile
        self._settings = settings or EngineSettings()
        self._host_facts = host_facts
        self._memory_fallback = memory_fallback
        self._sleep = sleep
        self._history: Deque[HealthSnapshot] = deque(maxlen=self._settings.history_size)

    @property
    def profile(self) -> PlatformProfile:
        return self._profile

    def history(self) -> list[HealthSnapshot]:
        """Snapshots produced so far, oldest first, bounded by ``history_size``."""
        return list(self._history)

    # ------------------------------------------------------------------
    async def build_snapshot(self) -> HealthSnapshot:
        return (await self.build_detailed_stats()).to_snapshot()

    async def build_detailed_stats(self) -> DetailedStats:
        try:
            facts = self._host_facts()
        except Exception as exc:
            logger.warning("Reading host facts failed: %s", exc)
            facts = HostFacts()

        cpu_usage, samples_count = await self._cpu_usage(facts)
        disk = await self._disk_usage()
        memory = await self._memory_usage()

        cpu_pct = round(cpu_usage)
        overall = classify(memory.percent, cpu_pct, disk.percent)
        seconds = int(facts.uptime_seconds)
        stats = DetailedStats(
            timestamp=datetime.now(tz=timezone.utc).isoformat(),
            hostname=facts.hostname,
            platform=self._profile.tag.value,
            arch=facts.arch,
            overall=overall,
            cpu=CpuStats(usage=cpu_pct, cores=facts.cores, model=facts.model, samples_count=samples_count),
            memory=MemoryStats(
                total_gb=_gb(memory.total_bytes),
                used_gb=_gb(memory.used_bytes),
                free_gb=_gb(memory.free_bytes),
                usage_pct=memory.percent,
            ),
            disk=DiskStats(
                total_gb=_gb(disk.size_bytes),
                free_gb=_gb(disk.free_bytes),
                used_gb=_gb(disk.used_bytes),
                usage_pct=disk.percent,
            ),
            uptime=UptimeStats(
                seconds=seconds,
                hours=round(seconds / 3600, 1),
                days=round(seconds / 86400, 1),
            ),
        )
        self._history.append(stats.to_snapshot())
        return stats

    # ------------------------------------------------------------------
    async def _cpu_usage(self, facts: HostFacts) -> tuple[float, int]:
        async def sampled() -> Optional[tuple[float, int]]:
            if not self._profile.cpu_query:
                return None
            window = await sampler.sample(
                self._query_cpu,
                window_seconds=self._settings.window_seconds,
                intervals=self._settings.intervals,
                timeout=self._settings.sample_timeout,
                sleep=self._sleep,
            )
            return window.average, window.valid_count

        async def load_average() -> Optional[tuple[float, int]]:
            if self._profile.tag is PlatformTag.WINDOWS:
                return None
            return sampler.load_average_cpu(facts.load1, self._settings.load_multiplier), 0

        return await _first_result([("cpu-sampled", sampled), ("cpu-load-average", load_average)], (0.0, 0))

    async def _query_cpu(self) -> float:
        command = self._profile.require("cpu")
        output = await self._runner.run(command, timeout=self._settings.sample_timeout)
        return parse_cpu_load(output)

    async def _disk_usage(self) -> DiskUsage:
        async def queried() -> Optional[DiskUsage]:
            command = self._profile.require("disk")
            if self._profile.disk_parser is None:
                return None
            output = await self._runner.run(command, timeout=self._settings.disk_timeout)
            return self._profile.disk_parser(output)

        return await _first_result([("disk-query", queried)], DiskUsage(size_bytes=0, free_bytes=0))

    async def _memory_usage(self) -> MemoryReading:
        async def queried() -> Optional[MemoryReading]:
            command = self._profile.require("memory")
            if self._profile.memory_parser is None:
                return None
            output = await self._runner.run(command, timeout=self._settings.memory_timeout)
            reading = self._profile.memory_parser(output)
            if reading.total_bytes <= 0:
                raise ParseFailure("Memory report carried no total")
            return reading

        async def fallback() -> Optional[MemoryReading]:
            if self._memory_fallback is None:
                return None
            return self._memory_fallback()

        return await _first_result(
            [("memory-query", queried), ("memory-psutil", fallback)],
            MemoryReading(total_bytes=0, free_bytes=0),
        )


__all__ = [
    "HostFacts",
    "TelemetryAssembler",
    "collect_system_info",
    "read_host_facts",
    "read_virtual_memory",
]
