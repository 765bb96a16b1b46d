"""Table of applications launched through the dispatcher."""
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable

from opsengine.models import ActiveApplicationRecord


class ActiveApplicationRegistry:
    """Thread-safe mapping of application name to its launch record.

    Entries are added on a successful open and removed on a successful close;
    there is no eviction.
    """

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, ActiveApplicationRecord] = {}
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))

    def register(self, name: str, command: str) -> ActiveApplicationRecord:
        record = ActiveApplicationRecord(name=name, start_time=self._clock(), command=command)
        with self._lock:
            self._records[name] = record
        return record

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._records.pop(name, None) is not None

    def get(self, name: str) -> ActiveApplicationRecord | None:
        with self._lock:
            return self._records.get(name)

    def list(self) -> list[ActiveApplicationRecord]:
        with self._lock:
            return list(self._records.values())

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


__all__ = ["ActiveApplicationRegistry"]
