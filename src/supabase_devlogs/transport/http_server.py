"""Starlette HTTP server assembly."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import httpx
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from supabase_devlogs.app import AppContext, get_app_context
from supabase_devlogs.devlogs.hooks import install_loop_handler, install_tap
from supabase_devlogs.middleware.request_context import RequestContextMiddleware
from supabase_devlogs.transport.auth_logs import create_auth_logs_proxy
from supabase_devlogs.transport.dev_logs import create_dev_logs_endpoint
from supabase_devlogs.transport.pages import AuthLogsPage, DevLogsPage
from supabase_devlogs.transport.traces import create_trace_ingest_endpoint

logger = logging.getLogger(__name__)


def create_http_app(
    context: AppContext | None = None,
    *,
    install_hooks: bool = True,
    auth_logs_transport: httpx.AsyncBaseTransport | None = None,
) -> Starlette:
    """Create the HTTP application.

    ``install_hooks`` installs the process-wide network tap hooks at startup;
    tests that only exercise the endpoints turn it off.
    """
    context = context or get_app_context()
    settings = context.settings

    dev_logs_endpoint = create_dev_logs_endpoint(
        context.dev_logger,
        default_limit=settings.devlogs.default_limit,
    )
    trace_endpoint = create_trace_ingest_endpoint()
    auth_logs_proxy = create_auth_logs_proxy(
        settings.supabase,
        environment=settings.environment,
        transport=auth_logs_transport,
    )
    dev_logs_page = DevLogsPage(
        settings.environment,
        poll_interval_seconds=settings.devlogs.poll_interval_seconds,
    )
    auth_logs_page = AuthLogsPage(
        settings.environment,
        poll_interval_seconds=settings.devlogs.poll_interval_seconds,
    )

    async def health_handler(request: Request) -> Response:
        return JSONResponse({"status": "healthy", "environment": settings.environment})

    routes = [
        Route("/health", endpoint=health_handler, methods=["GET"]),
        Route("/api/dev-logs", endpoint=dev_logs_endpoint.handle, methods=["GET", "DELETE"]),
        Route("/api/traces", endpoint=trace_endpoint.handle, methods=["POST"]),
        Route("/api/auth-logs", endpoint=auth_logs_proxy.handle, methods=["GET"]),
        Route("/dev-logs", endpoint=dev_logs_page.handle, methods=["GET"]),
        Route("/auth-logs", endpoint=auth_logs_page.handle, methods=["GET"]),
    ]

    middleware = [Middleware(RequestContextMiddleware)]

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Starting dev-logs HTTP server (environment=%s)", settings.environment)
        if install_hooks:
            tap = install_tap(
                context.trace_sink,
                settings.supabase.host_pattern,
                origin="server",
            )
            install_loop_handler(asyncio.get_running_loop())
            app.state.network_tap = tap
        try:
            yield
        finally:
            logger.info("Stopping dev-logs HTTP server...")
            close = getattr(context.trace_sink, "close", None)
            if callable(close):
                close()

    app = Starlette(
        routes=routes,
        middleware=middleware,
        lifespan=lifespan,
    )
    app.state.context = context
    app.state.network_tap = None
    return app
