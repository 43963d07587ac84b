"""Data models for dev log records and forwarded trace events."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Literal, TypedDict

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from supabase_devlogs.utils.serialization import to_jsonable
from supabase_devlogs.utils.time import epoch_ms

LogLevel = Literal["info", "warn", "error", "debug"]
LOG_LEVELS: tuple[LogLevel, ...] = ("info", "warn", "error", "debug")

REDACTION_MARKER = "[REDACTED]"
BACKEND_EVENT_PREFIX = "Supabase."


class LogError(TypedDict, total=False):
    message: str
    code: str | int
    details: Any
    hint: str
    stack: str


def _frozen_snapshot(value: Mapping[str, Any]) -> Mapping[str, Any]:
    snapshot = to_jsonable(dict(value))
    return MappingProxyType(snapshot)  # type: ignore[arg-type]


@dataclass(frozen=True)
class LogRecord:
    """One captured backend operation. Immutable once built."""

    timestamp: int
    level: LogLevel
    operation: str
    environment: str
    details: Mapping[str, Any] | None = None
    error: Mapping[str, Any] | None = None
    duration: float | None = None
    request_id: str | None = None

    def __post_init__(self) -> None:
        # Nested values are copied; no caller object is shared with the record.
        if self.details is not None:
            object.__setattr__(self, "details", _frozen_snapshot(self.details))
        if self.error is not None:
            object.__setattr__(self, "error", _frozen_snapshot(self.error))

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation; absent optional fields are omitted."""
        payload: dict[str, Any] = {
            "timestamp": self.timestamp,
            "level": self.level,
            "operation": self.operation,
            "environment": self.environment,
        }
        if self.details is not None:
            payload["details"] = to_jsonable(dict(self.details))
        if self.error is not None:
            payload["error"] = to_jsonable(dict(self.error))
        if self.duration is not None:
            payload["duration"] = self.duration
        if self.request_id is not None:
            payload["requestId"] = self.request_id
        return payload


class TraceEvent(BaseModel):
    """Wire shape of an event forwarded to the trace ingest endpoint."""

    name: str
    attributes: dict[str, Any] = Field(default_factory=dict)
    level: str | None = None
    environment: Literal["client", "server"] = "client"
    duration: float | None = None
    timestamp: int = Field(default_factory=epoch_ms)

    @field_validator("attributes", mode="before")
    @classmethod
    def _null_attributes(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def is_backend_event(self) -> bool:
        return self.name.startswith(BACKEND_EVENT_PREFIX)


TRACE_BATCH_ADAPTER: TypeAdapter[list[TraceEvent]] = TypeAdapter(list[TraceEvent])
