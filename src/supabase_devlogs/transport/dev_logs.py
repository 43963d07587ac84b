"""Query and clear endpoint for the in-memory dev log store."""

from __future__ import annotations

import logging
from typing import cast

from starlette.requests import Request
from starlette.responses import Response

from supabase_devlogs.devlogs.logger import DevLogger
from supabase_devlogs.devlogs.models import LOG_LEVELS, LogLevel
from supabase_devlogs.transport.responses import (
    DevLogJSONResponse,
    error_response,
    unavailable_response,
)

logger = logging.getLogger(__name__)


class DevLogsEndpoint:
    """Handler for GET and DELETE /api/dev-logs."""

    def __init__(self, dev_logger: DevLogger, default_limit: int = 100) -> None:
        self.dev_logger = dev_logger
        self.default_limit = default_limit

    @property
    def available(self) -> bool:
        return self.dev_logger.environment != "production"

    async def handle(self, request: Request) -> Response:
        if not self.available:
            return unavailable_response()
        if request.method == "DELETE":
            return self.clear()
        return self.query(request)

    def query(self, request: Request) -> Response:
        params = request.query_params
        level = params.get("level") or None
        if level is not None and level not in LOG_LEVELS:
            return error_response(f"Invalid level: {level}", 400)

        raw_limit = params.get("limit")
        limit = self.default_limit
        if raw_limit:
            try:
                limit = int(raw_limit)
            except ValueError:
                return error_response("Invalid limit", 400)
            if limit < 1:
                return error_response("Invalid limit", 400)

        records = self.dev_logger.get_logs(limit, cast("LogLevel | None", level))
        return DevLogJSONResponse([record.to_dict() for record in records])

    def clear(self) -> Response:
        self.dev_logger.clear_logs()
        logger.info("Dev log store cleared")
        return DevLogJSONResponse({"ok": True})


def create_dev_logs_endpoint(dev_logger: DevLogger, default_limit: int = 100) -> DevLogsEndpoint:
    """Factory function to create the dev logs endpoint."""
    return DevLogsEndpoint(dev_logger, default_limit=default_limit)

