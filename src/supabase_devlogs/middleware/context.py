"""Request-scoped context shared with the dev logger."""

from __future__ import annotations

import secrets
import string
from contextvars import ContextVar, Token
from dataclasses import dataclass, field

from supabase_devlogs.utils.time import epoch_ms

_REQUEST_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_request_id(length: int = 26) -> str:
    return "".join(secrets.choice(_REQUEST_ID_ALPHABET) for _ in range(length))


@dataclass(frozen=True)
class RequestContext:
    """Immutable per-request identity."""

    request_id: str = field(default_factory=generate_request_id)
    timestamp: int = field(default_factory=epoch_ms)


_request_context: ContextVar[RequestContext | None] = ContextVar(
    "devlogs_request_context", default=None
)


def set_request_context(ctx: RequestContext) -> Token[RequestContext | None]:
    return _request_context.set(ctx)


def reset_request_context(token: Token[RequestContext | None]) -> None:
    _request_context.reset(token)


def get_request_context_optional() -> RequestContext | None:
    return _request_context.get()
