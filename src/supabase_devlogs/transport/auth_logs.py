"""Proxy to the platform management API's analytics log endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from starlette.requests import Request
from starlette.responses import Response

from supabase_devlogs.config import SupabaseSettings
from supabase_devlogs.environment import is_development
from supabase_devlogs.transport.responses import DevLogJSONResponse, error_response

logger = logging.getLogger(__name__)

# Local query parameter -> management API parameter.
QUERY_PARAM_MAP: dict[str, str] = {
    "start": "iso_timestamp_start",
    "end": "iso_timestamp_end",
    "sql": "sql",
}

MISSING_CONFIG_MESSAGE = (
    "Missing environment variables: SUPABASE_PROJECT_ID or SUPABASE_ACCESS_TOKEN"
)


class UpstreamError(RuntimeError):
    """The management API answered with an error."""


def translate_query_params(params: Any) -> dict[str, str]:
    translated: dict[str, str] = {}
    for local_name, upstream_name in QUERY_PARAM_MAP.items():
        value = params.get(local_name)
        if value:
            translated[upstream_name] = value
    return translated


class AuthLogsProxy:
    """Handler for GET /api/auth-logs."""

    def __init__(
        self,
        config: SupabaseSettings,
        environment: str = "development",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.environment = environment
        self._transport = transport

    def logs_url(self) -> str:
        return (
            f"{self.config.management_api_url}/v1/projects/{self.config.project_id}"
            "/analytics/endpoints/logs.all"
        )

    async def fetch_logs(self, params: dict[str, str]) -> Any:
        url = self.logs_url()
        logger.info("Fetching logs from: %s params=%s", url, sorted(params))
        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=self.config.request_timeout_seconds,
        ) as client:
            response = await client.get(
                url,
                params=params,
                headers={"Authorization": f"Bearer {self.config.access_token}"},
            )

        if not response.is_success:
            logger.warning(
                "Management API error: status=%s status_text=%s body=%s",
                response.status_code,
                response.reason_phrase,
                response.text[:1000],
            )
            raise UpstreamError(
                f"Supabase API error: {response.status_code} {response.reason_phrase}"
            )

        data = response.json()
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise UpstreamError(message or "Unknown error from Supabase API")
        return data

    async def handle(self, request: Request) -> Response:
        if not self.config.project_id or not self.config.access_token:
            return error_response(MISSING_CONFIG_MESSAGE, 500)

        try:
            data = await self.fetch_logs(translate_query_params(request.query_params))
        except (UpstreamError, httpx.HTTPError, ValueError) as exc:
            logger.error("Error fetching auth logs: %s", exc)
            extra: dict[str, Any] = {}
            if is_development(self.environment):
                extra["details"] = {"type": type(exc).__name__}
            message = str(exc) or "Failed to fetch auth logs"
            return error_response(message, 500, **extra)
        return DevLogJSONResponse(data)


def create_auth_logs_proxy(
    config: SupabaseSettings,
    environment: str = "development",
    transport: httpx.AsyncBaseTransport | None = None,
) -> AuthLogsProxy:
    """Factory function to create the auth logs proxy."""
    return AuthLogsProxy(config, environment=environment, transport=transport)
