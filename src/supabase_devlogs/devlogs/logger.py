"""Development logger: captures backend operations into a ``LogStore``."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

from supabase_devlogs.devlogs.models import LogLevel, LogRecord
from supabase_devlogs.devlogs.sanitize import format_error, sanitize_details
from supabase_devlogs.devlogs.store import DEFAULT_QUERY_LIMIT, LogStore
from supabase_devlogs.environment import is_development
from supabase_devlogs.middleware.context import get_request_context_optional
from supabase_devlogs.utils.serialization import dumps_pretty
from supabase_devlogs.utils.time import epoch_ms, iso_from_ms

logger = logging.getLogger(__name__)

_PYTHON_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_LEVEL_MARKERS: dict[str, str] = {
    "info": "INFO ",
    "warn": "WARN ",
    "error": "ERROR",
    "debug": "DEBUG",
}


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_format_value(item) for item in value) + "]"
    if isinstance(value, Mapping):
        return dumps_pretty(dict(value))
    return str(value)


def format_record(record: LogRecord, *, include_stack: bool = True) -> str:
    """Render a record as the multi-line console narration."""
    message = (
        f"[{iso_from_ms(record.timestamp)}] {_LEVEL_MARKERS[record.level]} "
        f"Supabase.{record.operation}"
    )
    if record.duration is not None:
        message += f" ({record.duration:.2f}ms)"

    if record.details:
        message += "\n  Details:"
        for key, value in record.details.items():
            message += f"\n    {key}: {_format_value(value)}"

    if record.error:
        error = record.error
        message += "\n  Error:"
        if error.get("message"):
            message += f"\n    Message: {error['message']}"
        if error.get("code"):
            message += f"\n    Code: {error['code']}"
        if error.get("details"):
            message += f"\n    Details: {_format_value(error['details'])}"
        if error.get("hint"):
            message += f"\n    Hint: {error['hint']}"
        if include_stack and error.get("stack"):
            message += f"\n    Stack: {error['stack']}"

    return message


class DevLogger:
    """Records backend operations while running in development.

    In any other environment ``log`` does nothing at all: no record is built,
    stored or narrated.
    """

    def __init__(
        self,
        store: LogStore,
        environment: str,
        *,
        narrate: bool = True,
        clock: Callable[[], int] = epoch_ms,
    ) -> None:
        self.store = store
        self.environment = environment
        self._narrate = narrate
        self._clock = clock
        self._channels: dict[str, Any] = {}
        self._channels_lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return is_development(self.environment)

    def log(
        self,
        level: LogLevel,
        operation: str,
        details: Mapping[str, Any] | None = None,
        error: object | None = None,
        duration: float | None = None,
    ) -> LogRecord | None:
        if not self.enabled:
            return None

        ctx = get_request_context_optional()
        record = LogRecord(
            timestamp=self._clock(),
            level=level,
            operation=operation,
            environment=self.environment,
            details=sanitize_details(details, self.environment) if details else None,
            error=format_error(error) if error is not None else None,
            duration=duration,
            request_id=ctx.request_id if ctx else None,
        )
        self.store.append(record)
        if self._narrate:
            logger.log(_PYTHON_LEVELS[level], format_record(record))
        return record

    def get_logs(
        self,
        limit: int = DEFAULT_QUERY_LIMIT,
        level: LogLevel | None = None,
    ) -> list[LogRecord]:
        return self.store.query(limit, level)

    def clear_logs(self) -> None:
        self.store.clear()

    @property
    def realtime_channels(self) -> dict[str, Any]:
        with self._channels_lock:
            return dict(self._channels)

    def register_realtime_channel(self, channel: Any, channel_name: str) -> None:
        with self._channels_lock:
            self._channels[channel_name] = channel

    def track_realtime_channel(self, channel: Any, channel_name: str) -> "TrackedChannel":
        """Register ``channel`` and log each status transition seen by ``subscribe``."""
        self.register_realtime_channel(channel, channel_name)
        return TrackedChannel(channel, channel_name, self)

    def untrack_realtime_channel(self, channel_name: str) -> None:
        with self._channels_lock:
            self._channels.pop(channel_name, None)


class TrackedChannel:
    """Realtime channel proxy that logs subscription status changes."""

    def __init__(self, channel: Any, channel_name: str, dev_logger: DevLogger) -> None:
        self._channel = channel
        self._channel_name = channel_name
        self._dev_logger = dev_logger

    @property
    def __wrapped__(self) -> Any:
        return self._channel

    def subscribe(self, callback: Callable[..., Any] | None = None, *args: Any, **kwargs: Any):
        def on_status(status: Any, *rest: Any) -> Any:
            try:
                self._dev_logger.log(
                    "info",
                    "realtime.status",
                    {"channel": self._channel_name, "status": getattr(status, "value", status)},
                )
            except Exception:
                logger.warning("Failed to record realtime status", exc_info=True)
            if callback is not None:
                return callback(status, *rest)
            return None

        return self._channel.subscribe(on_status, *args, **kwargs)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._channel, name)

    def __repr__(self) -> str:
        return f"TrackedChannel({self._channel_name!r}, {self._channel!r})"
