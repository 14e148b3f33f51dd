"""Append-only step log recorded while a scan runs."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Callable, List, Optional, Tuple

from .models import LOG_STATUSES, ScanLogEntry

Listener = Callable[[List[ScanLogEntry]], None]


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class ScanLog:
    """Ordered audit trail of one run; entries are never reordered or mutated."""

    def __init__(self, listener: Optional[Listener] = None) -> None:
        self._entries: List[ScanLogEntry] = []
        self._lock = threading.Lock()
        self._listener = listener

    def add(self, step: str, status: str, message: str) -> ScanLogEntry:
        if status not in LOG_STATUSES:
            raise ValueError(f"Unknown log status '{status}'")
        entry = ScanLogEntry(step=step, status=status, message=message, timestamp=utc_timestamp())
        with self._lock:
            self._entries.append(entry)
            snapshot = list(self._entries)
            # Publish under the lock so observers never see an older snapshot last.
            if self._listener is not None:
                self._listener(snapshot)
        return entry

    def entries(self) -> Tuple[ScanLogEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["ScanLog", "utc_timestamp"]
