"""Parsers for the textual reports produced by platform query commands.

Every ad-hoc split of external command output lives here. Each parser takes
the captured stdout and returns a structured value or raises
:class:`~opsengine.errors.ParseFailure`.
"""
from __future__ import annotations

import re
from typing import Iterable

from opsengine.errors import ParseFailure
from opsengine.models import DiskUsage, MemoryReading

_NUMBER = re.compile(r"-?\d+(?:[.,]\d+)?")
_KB = 1024


class KeyValueReport(dict):
    """Mapping of report keys to numbers; absent keys read as ``0``."""

    def __missing__(self, key: str) -> float:
        return 0.0


def _content_lines(text: str) -> list[str]:
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


def _to_int(token: str, context: str) -> int:
    try:
        return int(token)
    except (TypeError, ValueError):
        raise ParseFailure(f"Expected an integer in {context}, got {token!r}") from None


def first_number(text: str) -> float:
    match = _NUMBER.search(text or "")
    if match is None:
        raise ParseFailure(f"No numeric value in output: {text!r}")
    return float(match.group(0).replace(",", "."))


def parse_cpu_load(text: str) -> float:
    """Parse a single CPU load percentage, clamped to ``[0, 100]``."""
    return min(100.0, max(0.0, first_number(text)))


def parse_windows_disk(text: str) -> DiskUsage:
    """Parse the three-row ``Size FreeSpace`` table printed by PowerShell.

    Row 0 is the header, row 1 the dash underline, row 2 the values.
    """
    lines = _content_lines(text)
    if len(lines) < 3:
        raise ParseFailure(f"Disk report has {len(lines)} rows, expected 3")
    values = lines[2].split()
    if len(values) < 2:
        raise ParseFailure(f"Disk value row is incomplete: {lines[2]!r}")
    size = _to_int(values[0], "disk size")
    free = _to_int(values[1], "disk free space")
    if size < 0 or free < 0 or free > size:
        raise ParseFailure(f"Inconsistent disk figures size={size} free={free}")
    return DiskUsage(size_bytes=size, free_bytes=free)


def parse_posix_disk(text: str) -> DiskUsage:
    """Parse ``df -Pk`` output: a header line followed by one filesystem row."""
    lines = _content_lines(text)
    if len(lines) < 2:
        raise ParseFailure(f"df report has {len(lines)} rows, expected 2")
    fields = lines[1].split()
    if len(fields) < 4:
        raise ParseFailure(f"df row is incomplete: {lines[1]!r}")
    size = _to_int(fields[1], "df block count") * _KB
    free = _to_int(fields[3], "df available blocks") * _KB
    if free > size:
        raise ParseFailure(f"Inconsistent df figures size={size} free={free}")
    return DiskUsage(size_bytes=size, free_bytes=free)


def parse_key_values(text: str, keys: Iterable[str] | None = None) -> KeyValueReport:
    """Parse ``key: value`` (or ``key=value``) lines into numbers.

    Lines without a numeric value are skipped. When ``keys`` is given, only
    those keys are kept. Missing keys read as ``0``.
    """
    wanted = set(keys) if keys is not None else None
    report = KeyValueReport()
    for line in _content_lines(text):
        separator = ":" if ":" in line else "=" if "=" in line else None
        if separator is None:
            continue
        key, _, raw_value = line.partition(separator)
        key = key.strip()
        if wanted is not None and key not in wanted:
            continue
        match = _NUMBER.search(raw_value)
        if match is None:
            continue
        report[key] = float(match.group(0).replace(",", "."))
    return report


def parse_windows_memory(text: str) -> MemoryReading:
    """``Format-List TotalVisibleMemorySize,FreePhysicalMemory`` (kilobytes)."""
    report = parse_key_values(text, ("TotalVisibleMemorySize", "FreePhysicalMemory"))
    return MemoryReading(
        total_bytes=int(report["TotalVisibleMemorySize"] * _KB),
        free_bytes=int(report["FreePhysicalMemory"] * _KB),
    )


def parse_linux_memory(text: str) -> MemoryReading:
    """``/proc/meminfo`` (kilobytes); prefers MemAvailable over MemFree."""
    report = parse_key_values(text, ("MemTotal", "MemAvailable", "MemFree"))
    free = report["MemAvailable"] or report["MemFree"]
    return MemoryReading(total_bytes=int(report["MemTotal"] * _KB), free_bytes=int(free * _KB))


def parse_macos_memory(text: str) -> MemoryReading:
    """``sysctl hw.memsize hw.pagesize vm.page_free_count``."""
    report = parse_key_values(text, ("hw.memsize", "hw.pagesize", "vm.page_free_count"))
    return MemoryReading(
        total_bytes=int(report["hw.memsize"]),
        free_bytes=int(report["vm.page_free_count"] * report["hw.pagesize"]),
    )


__all__ = [
    "KeyValueReport",
    "first_number",
    "parse_cpu_load",
    "parse_key_values",
    "parse_linux_memory",
    "parse_macos_memory",
    "parse_posix_disk",
    "parse_windows_disk",
    "parse_windows_memory",
]
