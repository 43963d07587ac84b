"""Network tap: httpx transports that report failed backend calls.

A tap is attached through httpx's ``transport=`` extension point::

    tap = NetworkTap(sink, host_pattern="supabase.co")
    client = httpx.Client(transport=tap.transport())

Requests to any other host are handed to the inner transport untouched.
"""

from __future__ import annotations

import logging
import re
import time
import traceback
from typing import Any, Literal

import httpx

from supabase_devlogs.devlogs.models import TraceEvent
from supabase_devlogs.devlogs.sinks import TraceSink

logger = logging.getLogger(__name__)

REDACTED_BACKEND_URL = "[SUPABASE_URL]"
BACKEND_ERROR_EVENT = "Supabase.error"
BACKEND_UNHANDLED_EVENT = "Supabase.unhandledRejection"
BACKEND_CONSOLE_EVENT = "Supabase.consoleError"


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _format_stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def _json_payload(response: httpx.Response) -> Any:
    """Parse the body of a fully loaded response when it is declared as JSON."""
    if "application/json" not in response.headers.get("content-type", ""):
        return None
    try:
        return response.json()
    except (ValueError, httpx.DecodingError):
        return None


def _raw_payload(response: httpx.Response, raw: bytes) -> Any:
    """Parse raw (still encoded) body bytes on a throwaway copy of ``response``."""
    try:
        duplicate = httpx.Response(response.status_code, headers=response.headers, content=raw)
    except httpx.DecodingError:
        return None
    return _json_payload(duplicate)


def _rebuild_response(
    response: httpx.Response,
    raw: bytes,
    request: httpx.Request,
) -> httpx.Response:
    return httpx.Response(
        response.status_code,
        headers=response.headers,
        stream=httpx.ByteStream(raw),
        extensions=response.extensions,
        request=request,
    )


class NetworkTap:
    """Builds trace events for backend calls and hands them to a sink."""

    def __init__(
        self,
        sink: TraceSink,
        host_pattern: str = "supabase.co",
        *,
        origin: Literal["client", "server"] = "server",
    ) -> None:
        if not host_pattern:
            raise ValueError("host_pattern must not be empty")
        self.sink = sink
        self.host_pattern = host_pattern
        self.origin = origin
        self._url_re = re.compile(r"https?://[^/\s\"']*" + re.escape(host_pattern))

    def matches(self, text: str | None) -> bool:
        return bool(text) and self.host_pattern in text  # type: ignore[operator]

    def redact_url(self, text: str) -> str:
        """Replace the backend origin (which carries the project id) with a placeholder."""
        return self._url_re.sub(REDACTED_BACKEND_URL, text)

    def event(
        self,
        name: str,
        attributes: dict[str, Any],
        duration: float | None = None,
    ) -> TraceEvent:
        return TraceEvent(
            name=name,
            level="error",
            attributes=attributes,
            environment=self.origin,
            duration=duration,
        )

    def response_event(
        self,
        request: httpx.Request,
        response: httpx.Response,
        payload: Any,
        duration: float,
    ) -> TraceEvent:
        return self.event(
            BACKEND_ERROR_EVENT,
            {
                "url": self.redact_url(str(request.url)),
                "method": request.method,
                "status": response.status_code,
                "statusText": response.reason_phrase,
                "error": payload,
            },
            duration,
        )

    def failure_event(
        self,
        request: httpx.Request,
        exc: BaseException,
        duration: float,
    ) -> TraceEvent:
        return self.event(
            BACKEND_ERROR_EVENT,
            {
                "url": self.redact_url(str(request.url)),
                "method": request.method,
                "error": self.redact_url(str(exc)),
                "stack": _format_stack(exc),
            },
            duration,
        )

    def forward(self, event: TraceEvent) -> None:
        try:
            self.sink.send([event])
        except Exception:
            logger.debug("Trace sink failed for %s", event.name, exc_info=True)

    async def aforward(self, event: TraceEvent) -> None:
        try:
            await self.sink.asend([event])
        except Exception:
            logger.debug("Trace sink failed for %s", event.name, exc_info=True)

    def transport(self, inner: httpx.BaseTransport | None = None) -> httpx.BaseTransport:
        if isinstance(inner, TappedTransport):
            return inner
        return TappedTransport(self, inner)

    def async_transport(
        self,
        inner: httpx.AsyncBaseTransport | None = None,
    ) -> httpx.AsyncBaseTransport:
        if isinstance(inner, AsyncTappedTransport):
            return inner
        return AsyncTappedTransport(self, inner)


class TappedTransport(httpx.BaseTransport):
    """Synchronous transport that reports failed backend calls to its tap."""

    def __init__(self, tap: NetworkTap, inner: httpx.BaseTransport | None = None) -> None:
        self.tap = tap
        self.inner = inner or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if not self.tap.matches(str(request.url)):
            return self.inner.handle_request(request)

        start = time.perf_counter()
        try:
            response = self.inner.handle_request(request)
        except Exception as exc:
            self.tap.forward(self.tap.failure_event(request, exc, _elapsed_ms(start)))
            raise
        duration = _elapsed_ms(start)
        if response.is_success:
            return response

        if response.is_stream_consumed:
            # Body already loaded in memory; reading it again is harmless.
            payload = _json_payload(response)
            self.tap.forward(self.tap.response_event(request, response, payload, duration))
            return response

        raw = b"".join(response.iter_raw())
        payload = _raw_payload(response, raw)
        self.tap.forward(self.tap.response_event(request, response, payload, duration))
        return _rebuild_response(response, raw, request)

    def close(self) -> None:
        self.inner.close()


class AsyncTappedTransport(httpx.AsyncBaseTransport):
    """Asynchronous transport that reports failed backend calls to its tap."""

    def __init__(
        self,
        tap: NetworkTap,
        inner: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.tap = tap
        self.inner = inner or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if not self.tap.matches(str(request.url)):
            return await self.inner.handle_async_request(request)

        start = time.perf_counter()
        try:
            response = await self.inner.handle_async_request(request)
        except Exception as exc:
            await self.tap.aforward(self.tap.failure_event(request, exc, _elapsed_ms(start)))
            raise
        duration = _elapsed_ms(start)
        if response.is_success:
            return response

        if response.is_stream_consumed:
            payload = _json_payload(response)
            await self.tap.aforward(self.tap.response_event(request, response, payload, duration))
            return response

        raw = b"".join([chunk async for chunk in response.aiter_raw()])
        payload = _raw_payload(response, raw)
        await self.tap.aforward(self.tap.response_event(request, response, payload, duration))
        return _rebuild_response(response, raw, request)

    async def aclose(self) -> None:
        await self.inner.aclose()
