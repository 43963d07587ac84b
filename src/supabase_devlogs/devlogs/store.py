"""Bounded in-memory store of dev log records, newest first."""

from __future__ import annotations

import threading
from collections import deque

from supabase_devlogs.devlogs.models import LogLevel, LogRecord

MAX_LOGS = 1000
DEFAULT_QUERY_LIMIT = 100


class LogStore:
    """Thread-safe ring buffer keeping the most recent ``max_logs`` records.

    Records are inserted at the front; once the bound is exceeded the oldest
    record falls off the back.
    """

    def __init__(self, max_logs: int = MAX_LOGS) -> None:
        if max_logs < 1:
            raise ValueError("max_logs must be >= 1")
        self._max_logs = max_logs
        self._records: deque[LogRecord] = deque(maxlen=max_logs)
        self._lock = threading.Lock()

    @property
    def max_logs(self) -> int:
        return self._max_logs

    def append(self, record: LogRecord) -> None:
        with self._lock:
            self._records.appendleft(record)

    def query(
        self,
        limit: int = DEFAULT_QUERY_LIMIT,
        level: LogLevel | None = None,
    ) -> list[LogRecord]:
        """Return up to ``limit`` most recent records, optionally of a single level."""
        if limit <= 0:
            return []
        with self._lock:
            snapshot = list(self._records)
        if level is not None:
            snapshot = [record for record in snapshot if record.level == level]
        return snapshot[:limit]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
