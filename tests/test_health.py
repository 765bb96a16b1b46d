from __future__ import annotations

import itertools

import pytest

from opsengine.health import classify, render_summary
from opsengine.models import HealthRating, HealthSnapshot

_RANK = {HealthRating.GOOD: 0, HealthRating.FAIR: 1, HealthRating.POOR: 2}
_LEVELS = [0, 30, 60, 61, 75, 80, 81, 85, 90, 91, 100]


@pytest.mark.parametrize(
    ("memory", "cpu", "disk", "expected"),
    [
        (85, 10, 10, HealthRating.POOR),
        (65, 10, 10, HealthRating.FAIR),
        (10, 10, 10, HealthRating.GOOD),
        (10, 81, 10, HealthRating.POOR),
        (10, 61, 10, HealthRating.FAIR),
        (10, 10, 91, HealthRating.POOR),
        (10, 10, 85, HealthRating.FAIR),
        (60, 60, 80, HealthRating.GOOD),
        (80, 80, 90, HealthRating.FAIR),
    ],
)
def test_classification_thresholds(memory: int, cpu: int, disk: int, expected: HealthRating) -> None:
    assert classify(memory, cpu, disk) is expected


def test_classification_is_monotonic() -> None:
    for memory, cpu, disk in itertools.product(_LEVELS, repeat=3):
        base = _RANK[classify(memory, cpu, disk)]
        for bumped in (
            (min(100, memory + 15), cpu, disk),
            (memory, min(100, cpu + 15), disk),
            (memory, cpu, min(100, disk + 15)),
        ):
            assert _RANK[classify(*bumped)] >= base


def test_render_summary_lists_each_metric() -> None:
    snapshot = HealthSnapshot(
        overall=HealthRating.FAIR,
        memory_pct=65,
        cpu_pct=12,
        disk_pct=40,
        disk_free_gb=120.5,
        disk_total_gb=200.0,
        uptime_hours=3.5,
    )
    text = render_summary(snapshot, active_applications=2)
    assert "Active Applications: 2" in text
    assert "System Health: Fair" in text
    assert "Memory Usage: 65%" in text
    assert "CPU Usage: 12%" in text
    assert "120.5 GB free of 200 GB" in text
