"""Application context assembly."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from supabase_devlogs.config import Settings, load_settings
from supabase_devlogs.devlogs.logger import DevLogger
from supabase_devlogs.devlogs.sinks import HttpTraceSink, TraceSink
from supabase_devlogs.devlogs.store import LogStore


@dataclass
class AppContext:
    """Application-wide dependency container.

    The log store lives here rather than at module level so tests and
    embedding applications can hand in their own.
    """

    settings: Settings
    store: LogStore
    dev_logger: DevLogger
    trace_sink: TraceSink

    @property
    def environment(self) -> str:
        return self.settings.environment


def build_app_context(
    settings: Settings,
    *,
    store: LogStore | None = None,
    trace_sink: TraceSink | None = None,
) -> AppContext:
    store = store or LogStore(max_logs=settings.devlogs.max_logs)
    trace_sink = trace_sink or HttpTraceSink(
        settings.trace_ingest_url,
        timeout=settings.devlogs.forward_timeout_seconds,
    )
    return AppContext(
        settings=settings,
        store=store,
        dev_logger=DevLogger(store, settings.environment),
        trace_sink=trace_sink,
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    """Get or create the process application context.

    Created on first use and kept for the lifetime of the process.
    """
    return build_app_context(load_settings())
