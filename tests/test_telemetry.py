from __future__ import annotations

import asyncio
from dataclasses import replace

from opsengine import platforms
from opsengine.config import EngineSettings
from opsengine.errors import CommandTimeout
from opsengine.models import HealthRating, MemoryReading
from opsengine.telemetry import TelemetryAssembler, collect_system_info
from tests.fakes import (
    LINUX_DF_OUTPUT,
    LINUX_MEMINFO_OUTPUT,
    MACOS_SYSCTL_OUTPUT,
    WINDOWS_DISK_OUTPUT,
    WINDOWS_MEMORY_OUTPUT,
    FakeRunner,
    SleepRecorder,
    fixed_facts,
)


def _assembler(platform: str, runner: FakeRunner, **kwargs) -> TelemetryAssembler:
    kwargs.setdefault("settings", EngineSettings())
    kwargs.setdefault("host_facts", fixed_facts())
    kwargs.setdefault("memory_fallback", None)
    kwargs.setdefault("sleep", SleepRecorder())
    return TelemetryAssembler(runner=runner, profile=platforms.resolve(platform), **kwargs)


def _windows_runner(cpu: object = "12") -> FakeRunner:
    return FakeRunner(
        {
            "LoadPercentage": cpu,
            "Win32_LogicalDisk": WINDOWS_DISK_OUTPUT,
            "Win32_OperatingSystem": WINDOWS_MEMORY_OUTPUT,
        }
    )


def test_windows_stats_sample_cpu_and_parse_reports() -> None:
    runner = _windows_runner()
    sleep = SleepRecorder()
    stats = asyncio.run(_assembler("windows", runner, sleep=sleep).build_detailed_stats())

    assert stats.platform == "windows"
    assert stats.hostname == "test-host"
    assert stats.cpu.usage == 12
    assert stats.cpu.samples_count == 8
    assert stats.cpu.cores == 8
    assert stats.memory.usage_pct == 50
    assert stats.disk.usage_pct == 15
    assert stats.disk.total_gb == round(1021821579264 / 1024 ** 3, 2)
    assert stats.uptime.hours == 2.0
    assert stats.uptime.days == 0.1
    assert stats.overall is HealthRating.GOOD
    assert len(runner.calls_matching("LoadPercentage")) == 8
    assert sleep.delays == [0.25] * 7


def test_windows_cpu_failures_degrade_to_zero() -> None:
    runner = _windows_runner(cpu=CommandTimeout("cpu", 2.0))
    stats = asyncio.run(_assembler("windows", runner).build_detailed_stats())

    assert stats.cpu.usage == 0
    assert stats.cpu.samples_count == 0
    assert stats.memory.usage_pct == 50
    assert stats.overall is HealthRating.GOOD


def test_windows_partial_cpu_failures_average_valid_samples() -> None:
    readings = iter(["40", CommandTimeout("cpu", 2.0)] * 4)
    runner = _windows_runner(cpu=readings)
    stats = asyncio.run(_assembler("windows", runner).build_detailed_stats())

    assert stats.cpu.usage == 40
    assert stats.cpu.samples_count == 4


def test_malformed_disk_report_counts_as_zero() -> None:
    runner = FakeRunner(
        {
            "LoadPercentage": "10",
            "Win32_LogicalDisk": "Size FreeSpace\n---- ---------\n",
            "Win32_OperatingSystem": WINDOWS_MEMORY_OUTPUT,
        }
    )
    stats = asyncio.run(_assembler("windows", runner).build_detailed_stats())

    assert stats.disk.usage_pct == 0
    assert stats.disk.total_gb == 0
    assert stats.memory.usage_pct == 50


def test_linux_stats_use_load_average_and_proc_meminfo() -> None:
    runner = FakeRunner({"df -Pk": LINUX_DF_OUTPUT, "/proc/meminfo": LINUX_MEMINFO_OUTPUT})
    assembler = _assembler("linux", runner, host_facts=fixed_facts(load1=4.2))
    stats = asyncio.run(assembler.build_detailed_stats())

    assert stats.cpu.usage == 42
    assert stats.cpu.samples_count == 0
    assert stats.memory.usage_pct == 75
    assert stats.disk.usage_pct == 95
    assert stats.overall is HealthRating.POOR
    assert runner.calls_matching("LoadPercentage") == []


def test_macos_stats_without_disk_query() -> None:
    runner = FakeRunner({"sysctl": MACOS_SYSCTL_OUTPUT})
    stats = asyncio.run(_assembler("macos", runner).build_detailed_stats())

    assert stats.platform == "macos"
    assert stats.memory.usage_pct == 75
    assert stats.disk.usage_pct == 0
    assert stats.cpu.usage == 5
    assert stats.overall is HealthRating.FAIR
    assert all("df" not in command for command, _ in runner.calls)


def test_memory_falls_back_when_query_fails() -> None:
    runner = FakeRunner({"df -Pk": LINUX_DF_OUTPUT})
    assembler = _assembler(
        "linux",
        runner,
        memory_fallback=lambda: MemoryReading(total_bytes=1000, free_bytes=700),
    )
    stats = asyncio.run(assembler.build_detailed_stats())
    assert stats.memory.usage_pct == 30


def test_memory_without_fallback_reports_zero() -> None:
    runner = FakeRunner({"df -Pk": LINUX_DF_OUTPUT})
    stats = asyncio.run(_assembler("linux", runner).build_detailed_stats())
    assert stats.memory.usage_pct == 0
    assert stats.memory.total_gb == 0


def test_host_fact_failure_uses_placeholders() -> None:
    def broken_facts():
        raise OSError("boot time unavailable")

    runner = FakeRunner({"df -Pk": LINUX_DF_OUTPUT, "/proc/meminfo": LINUX_MEMINFO_OUTPUT})
    stats = asyncio.run(_assembler("linux", runner, host_facts=broken_facts).build_detailed_stats())
    assert stats.hostname == "unknown"
    assert stats.uptime.seconds == 0
    assert stats.disk.usage_pct == 95


def test_snapshot_matches_detailed_stats_and_history_is_bounded() -> None:
    runner = _windows_runner()
    settings = replace(EngineSettings(), history_size=3)
    assembler = _assembler("windows", runner, settings=settings)

    async def _collect():
        snapshots = []
        for _ in range(5):
            snapshots.append(await assembler.build_snapshot())
        return snapshots

    snapshots = asyncio.run(_collect())
    assert snapshots[-1].memory_pct == 50
    assert snapshots[-1].disk_pct == 15
    assert snapshots[-1].overall is HealthRating.GOOD
    assert len(assembler.history()) == 3


def test_collect_system_info_has_expected_keys() -> None:
    info = collect_system_info()
    assert set(info) == {"platform", "arch", "hostname", "uptime", "loadavg", "totalmem", "freemem", "cpus"}
    assert len(info["loadavg"]) == 3
