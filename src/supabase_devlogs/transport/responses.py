"""Response helpers shared by the HTTP endpoints."""

from __future__ import annotations

import json
from typing import Any

from starlette.responses import JSONResponse

from supabase_devlogs.utils.serialization import json_default

PRODUCTION_UNAVAILABLE_MESSAGE = "Dev logs are not available in production."


class DevLogJSONResponse(JSONResponse):
    """JSON response that tolerates arbitrary values captured in log details."""

    def render(self, content: Any) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            separators=(",", ":"),
            default=json_default,
        ).encode("utf-8")


def error_response(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return DevLogJSONResponse({"error": message, **extra}, status_code=status_code)


def unavailable_response() -> JSONResponse:
    return error_response(PRODUCTION_UNAVAILABLE_MESSAGE, 404)
