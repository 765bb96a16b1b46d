"""Value types exchanged between the dispatcher, resolver and telemetry layers."""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

from opsengine.errors import InvalidRequest, UnknownOperation


class OperationKind(str, Enum):
    OPEN_APPLICATION = "open_application"
    CLOSE_APPLICATION = "close_application"
    CREATE_FILE = "create_file"
    CREATE_FOLDER = "create_folder"
    MOVE_FILE = "move_file"
    DELETE_FILE = "delete_file"
    GET_SYSTEM_INFO = "get_system_info"
    GET_SYSTEM_STATUS = "get_system_status"

    @classmethod
    def parse(cls, raw: Any) -> "OperationKind":
        if isinstance(raw, cls):
            return raw
        value = str(raw or "").strip().lower()
        try:
            return cls(value)
        except ValueError:
            raise UnknownOperation(raw) from None


@dataclass(slots=True)
class OperationRequest:
    operation: OperationKind
    target: str = ""
    options: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "OperationRequest":
        if not isinstance(data, Mapping):
            raise InvalidRequest("Operation request must be a mapping")
        options = data.get("options")
        return cls(
            operation=OperationKind.parse(data.get("operation")),
            target=str(data.get("target") or "").strip(),
            options=dict(options) if isinstance(options, Mapping) else {},
        )


@dataclass(slots=True)
class OperationResult:
    """Uniform outcome of every dispatched operation.

    A failed result always carries a non-empty ``error``; a successful one
    carries a ``message`` and optionally ``data``.
    """

    success: bool
    message: str | None = None
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, message: str | None = None, data: Any = None) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, error: object) -> "OperationResult":
        text = str(error).strip() if error is not None else ""
        return cls(success=False, error=text or "Operation failed")

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        for key in ("message", "data", "error"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        return payload


@dataclass(slots=True, frozen=True)
class ActiveApplicationRecord:
    name: str
    start_time: datetime
    command: str

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "start_time": self.start_time.isoformat(), "command": self.command}


@dataclass(slots=True, frozen=True)
class Sample:
    value: float
    valid: bool


@dataclass(slots=True)
class SampleWindow:
    samples: list[Sample] = field(default_factory=list)

    @property
    def valid_count(self) -> int:
        return sum(1 for sample in self.samples if sample.valid)

    @property
    def average(self) -> float:
        values = [sample.value for sample in self.samples if sample.valid]
        if not values:
            return 0.0
        return sum(values) / len(values)


class HealthRating(str, Enum):
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    UNKNOWN = "Unknown"


@dataclass(slots=True, frozen=True)
class DiskUsage:
    size_bytes: int
    free_bytes: int

    @property
    def used_bytes(self) -> int:
        return max(0, self.size_bytes - self.free_bytes)

    @property
    def percent(self) -> int:
        if self.size_bytes <= 0:
            return 0
        # whole percent, truncated
        return math.floor(self.used_bytes / self.size_bytes * 100)


@dataclass(slots=True, frozen=True)
class MemoryReading:
    total_bytes: int
    free_bytes: int

    @property
    def used_bytes(self) -> int:
        return max(0, self.total_bytes - self.free_bytes)

    @property
    def percent(self) -> int:
        if self.total_bytes <= 0:
            return 0
        return round(self.used_bytes / self.total_bytes * 100)


@dataclass(slots=True, frozen=True)
class HealthSnapshot:
    overall: HealthRating
    memory_pct: int = 0
    cpu_pct: int = 0
    disk_pct: int = 0
    disk_free_gb: float = 0.0
    disk_total_gb: float = 0.0
    uptime_hours: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["overall"] = self.overall.value
        return payload


@dataclass(slots=True, frozen=True)
class CpuStats:
    usage: int
    cores: int
    model: str
    samples_count: int


@dataclass(slots=True, frozen=True)
class MemoryStats:
    total_gb: float
    used_gb: float
    free_gb: float
    usage_pct: int


@dataclass(slots=True, frozen=True)
class DiskStats:
    total_gb: float
    free_gb: float
    used_gb: float
    usage_pct: int


@dataclass(slots=True, frozen=True)
class UptimeStats:
    seconds: int
    hours: float
    days: float


@dataclass(slots=True, frozen=True)
class DetailedStats:
    timestamp: str
    hostname: str
    platform: str
    arch: str
    overall: HealthRating
    cpu: CpuStats
    memory: MemoryStats
    disk: DiskStats
    uptime: UptimeStats

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["overall"] = self.overall.value
        return payload

    def to_snapshot(self) -> HealthSnapshot:
        return HealthSnapshot(
            overall=self.overall,
            memory_pct=self.memory.usage_pct,
            cpu_pct=self.cpu.usage,
            disk_pct=self.disk.usage_pct,
            disk_free_gb=self.disk.free_gb,
            disk_total_gb=self.disk.total_gb,
            uptime_hours=self.uptime.hours,
        )


__all__ = [
    "ActiveApplicationRecord",
    "CpuStats",
    "DetailedStats",
    "DiskStats",
    "DiskUsage",
    "HealthRating",
    "HealthSnapshot",
    "MemoryReading",
    "MemoryStats",
    "OperationKind",
    "OperationRequest",
    "OperationResult",
    "Sample",
    "SampleWindow",
    "UptimeStats",
]
