"""Detail sanitizing and error normalization for dev log records.

``sanitize_details`` is flat: only the top-level keys of the
mapping are inspected, nested values are passed through untouched.
"""

from __future__ import annotations

import traceback
from collections.abc import Mapping
from typing import Any

from supabase_devlogs.devlogs.models import REDACTION_MARKER, LogError
from supabase_devlogs.environment import is_production_like

# Substring match, case-sensitive.
SENSITIVE_KEY_MARKERS: tuple[str, ...] = (
    "password",
    "token",
    "key",
    "secret",
    "session",
)


def is_sensitive_key(key: str) -> bool:
    return any(marker in key for marker in SENSITIVE_KEY_MARKERS)


def sanitize_details(
    details: Mapping[str, Any],
    environment: str,
    *,
    mask: str = REDACTION_MARKER,
) -> dict[str, Any]:
    """Drop private and empty entries, masking secrets in production-like environments."""
    redact = is_production_like(environment)
    sanitized: dict[str, Any] = {}
    for key, value in details.items():
        key = str(key)
        if key.startswith("_") or value is None:
            continue
        if redact and is_sensitive_key(key):
            sanitized[key] = mask
        else:
            sanitized[key] = value
    return sanitized


def format_error(raw: object) -> LogError:
    """Normalize anything raised or returned as an error into a ``LogError`` mapping."""
    if isinstance(raw, BaseException):
        formatted: dict[str, Any] = {
            "message": str(raw),
            "stack": "".join(traceback.format_exception(type(raw), raw, raw.__traceback__)),
        }
        for name, value in vars(raw).items():
            if not name.startswith("_"):
                formatted[name] = value
        if not formatted.get("message"):
            formatted["message"] = type(raw).__name__
        return formatted  # type: ignore[return-value]

    if isinstance(raw, Mapping):
        return dict(raw)  # type: ignore[return-value]

    return {"message": str(raw)}
