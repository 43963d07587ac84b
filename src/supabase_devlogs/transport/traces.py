"""Ingest endpoint for trace events forwarded by network taps."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import Response

from supabase_devlogs.devlogs.hooks import FORWARDED_RECORD_ATTR
from supabase_devlogs.devlogs.models import TRACE_BATCH_ADAPTER, TraceEvent
from supabase_devlogs.transport.responses import DevLogJSONResponse, error_response
from supabase_devlogs.utils.serialization import dumps_pretty
from supabase_devlogs.utils.time import iso_from_ms

logger = logging.getLogger(__name__)


def format_trace_error(trace: TraceEvent) -> str:
    """Render a forwarded backend error as a multi-line diagnostic."""
    message = f"[{iso_from_ms(trace.timestamp)}] Supabase Error:"
    if trace.duration:
        message += f" ({trace.duration:.2f}ms)"

    attributes = trace.attributes
    if attributes.get("method"):
        message += f"\n  Request: {attributes['method']} {attributes.get('url')}"
    if attributes.get("status"):
        message += f"\n  Status: {attributes['status']} {attributes.get('statusText')}"
    if attributes.get("error"):
        error = attributes["error"]
        rendered = dumps_pretty(error) if isinstance(error, (dict, list)) else str(error)
        message += f"\n  Error: {rendered}"
    if attributes.get("message") and not attributes.get("error"):
        message += f"\n  Message: {attributes['message']}"
    if attributes.get("stack"):
        message += f"\n  Stack: {attributes['stack']}"
    return message


class TraceIngestEndpoint:
    """Handler for POST /api/traces.

    Backend events are written to the server log only; they are not added to
    the dev log store.
    """

    async def handle(self, request: Request) -> Response:
        try:
            traces = TRACE_BATCH_ADAPTER.validate_python(await request.json())
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning("Error processing traces: %s", exc.__class__.__name__)
            return error_response("Invalid trace data", 400)

        for trace in traces:
            if trace.is_backend_event:
                logger.error(format_trace_error(trace), extra={FORWARDED_RECORD_ATTR: True})
        return DevLogJSONResponse({"ok": True})


def create_trace_ingest_endpoint() -> TraceIngestEndpoint:
    """Factory function to create the trace ingest endpoint."""
    return TraceIngestEndpoint()
