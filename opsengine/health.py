"""Health classification for memory, CPU and disk utilisation."""
from __future__ import annotations

from opsengine.models import HealthRating, HealthSnapshot

POOR_MEMORY_PCT = 80
POOR_CPU_PCT = 80
POOR_DISK_PCT = 90
FAIR_MEMORY_PCT = 60
FAIR_CPU_PCT = 60
FAIR_DISK_PCT = 80


def classify(memory_pct: float, cpu_pct: float, disk_pct: float) -> HealthRating:
    """Rate the machine from its utilisation percentages.

    Poor when any of memory > 80, cpu > 80, disk > 90; otherwise Fair when any
    of memory > 60, cpu > 60, disk > 80; otherwise Good.
    """
    if memory_pct > POOR_MEMORY_PCT or cpu_pct > POOR_CPU_PCT or disk_pct > POOR_DISK_PCT:
        return HealthRating.POOR
    if memory_pct > FAIR_MEMORY_PCT or cpu_pct > FAIR_CPU_PCT or disk_pct > FAIR_DISK_PCT:
        return HealthRating.FAIR
    return HealthRating.GOOD


def render_summary(snapshot: HealthSnapshot, *, active_applications: int | None = None) -> str:
    lines = []
    if active_applications is not None:
        lines.append(f"Active Applications: {active_applications}")
    lines.extend(
        [
            f"System Health: {snapshot.overall.value}",
            f"Memory Usage: {snapshot.memory_pct}%",
            f"CPU Usage: {snapshot.cpu_pct}%",
            f"Disk Usage: {snapshot.disk_pct}% ({snapshot.disk_free_gb:g} GB free of {snapshot.disk_total_gb:g} GB)",
            f"Uptime: {snapshot.uptime_hours:g} hours",
        ]
    )
    return "\n".join(lines)


__all__ = ["classify", "render_summary"]
