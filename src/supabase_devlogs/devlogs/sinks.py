"""Destinations for trace events captured by the network tap."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

import httpx

from supabase_devlogs.devlogs.models import TraceEvent

logger = logging.getLogger(__name__)


class TraceSink(Protocol):
    def send(self, events: Sequence[TraceEvent]) -> None: ...

    async def asend(self, events: Sequence[TraceEvent]) -> None: ...


def trace_payload(events: Sequence[TraceEvent]) -> list[dict[str, object]]:
    return [event.model_dump(mode="json", exclude_none=True) for event in events]


class HttpTraceSink:
    """POST events to the trace ingest endpoint, fire-and-forget.

    Posts run on a single background worker so the caller never waits on the
    ingest endpoint, even when that endpoint is served by the caller's own
    event loop. Single attempt, short timeout, no retry; failures are dropped.
    The forwarding client is a plain httpx client and is never tapped.
    """

    def __init__(self, ingest_url: str, *, timeout: float = 2.0) -> None:
        self.ingest_url = ingest_url
        self._timeout = timeout
        self._client: httpx.Client | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="trace-forwarder"
                )
            return self._executor

    def _post(self, payload: list[dict[str, object]]) -> None:
        try:
            if self._client is None:
                self._client = httpx.Client(timeout=self._timeout)
            self._client.post(self.ingest_url, json=payload)
        except Exception:
            logger.debug("Dropped %d trace event(s)", len(payload), exc_info=True)

    def send(self, events: Sequence[TraceEvent]) -> None:
        if not events:
            return
        try:
            self._get_executor().submit(self._post, trace_payload(events))
        except RuntimeError:
            # Executor already shut down during interpreter exit.
            logger.debug("Trace forwarder closed; dropped %d event(s)", len(events))

    async def asend(self, events: Sequence[TraceEvent]) -> None:
        self.send(events)

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
        if self._client is not None:
            self._client.close()
            self._client = None


class MemoryTraceSink:
    """Collects events in a list. Used in-process and in tests."""

    def __init__(self) -> None:
        self.events: list[TraceEvent] = []
        self._lock = threading.Lock()

    def send(self, events: Sequence[TraceEvent]) -> None:
        with self._lock:
            self.events.extend(events)

    async def asend(self, events: Sequence[TraceEvent]) -> None:
        self.send(events)
