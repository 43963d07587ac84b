"""Development instrumentation: log store, client wrapper and network tap."""

from .logger import DevLogger, TrackedChannel, format_record
from .models import LOG_LEVELS, LogLevel, LogRecord, TraceEvent
from .sanitize import format_error, sanitize_details
from .store import MAX_LOGS, LogStore
from .tap import NetworkTap
from .wrapper import InstrumentedClient, wrap_client

__all__ = [
    "DevLogger",
    "InstrumentedClient",
    "LOG_LEVELS",
    "LogLevel",
    "LogRecord",
    "LogStore",
    "MAX_LOGS",
    "NetworkTap",
    "TraceEvent",
    "TrackedChannel",
    "format_error",
    "format_record",
    "sanitize_details",
    "wrap_client",
]
