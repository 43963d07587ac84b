"""Backend client construction.

Every client built here sends the ``x-environment`` and ``x-client-type``
headers so the receiving side can tell which execution context issued a call.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from supabase import create_client
from supabase.client import ClientOptions

from supabase_devlogs.config import Settings, load_settings
from supabase_devlogs.devlogs.hooks import get_installed_tap
from supabase_devlogs.devlogs.logger import DevLogger
from supabase_devlogs.devlogs.tap import NetworkTap
from supabase_devlogs.devlogs.wrapper import wrap_client
from supabase_devlogs.environment import ClientType, backend_headers

logger = logging.getLogger(__name__)


class BackendConfigError(RuntimeError):
    pass


def _require_backend(settings: Settings) -> tuple[str, str]:
    url = settings.supabase.url
    key = settings.supabase.anon_key
    if not url or not key:
        raise BackendConfigError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
    return url, key


def _tapped_http_client(
    settings: Settings,
    tap: NetworkTap | None,
    transport: httpx.BaseTransport | None,
) -> httpx.Client | None:
    """httpx client for the supabase sub-clients, routed through ``tap``."""
    if tap is None and transport is None:
        return None
    if tap is not None:
        transport = tap.transport(transport)
    return httpx.Client(
        transport=transport,
        timeout=settings.supabase.request_timeout_seconds,
        follow_redirects=True,
    )


def create_supabase_client(
    client_type: ClientType,
    dev_logger: DevLogger,
    settings: Settings | None = None,
    *,
    tap: NetworkTap | None = None,
    transport: httpx.BaseTransport | None = None,
) -> Any:
    """Create a supabase client for ``client_type``, wrapped with dev logging.

    REST, auth and storage traffic goes through ``tap`` (the process tap from
    ``install_tap`` by default) so failed backend calls are reported.
    """
    settings = settings or load_settings()
    url, key = _require_backend(settings)
    headers = backend_headers(settings.environment, client_type)
    tap = tap or get_installed_tap()
    options = ClientOptions(
        headers=headers,
        httpx_client=_tapped_http_client(settings, tap, transport),
    )
    client = create_client(url, key, options=options)
    logger.debug("Created %s backend client (tapped=%s)", client_type, tap is not None)
    return wrap_client(client, dev_logger)


def create_browser_client(
    dev_logger: DevLogger,
    settings: Settings | None = None,
    **kwargs: Any,
) -> Any:
    return create_supabase_client("client", dev_logger, settings, **kwargs)


def create_server_client(
    dev_logger: DevLogger,
    settings: Settings | None = None,
    **kwargs: Any,
) -> Any:
    return create_supabase_client("server", dev_logger, settings, **kwargs)


def create_middleware_client(
    dev_logger: DevLogger,
    settings: Settings | None = None,
    **kwargs: Any,
) -> Any:
    return create_supabase_client("middleware", dev_logger, settings, **kwargs)


def create_backend_http_client(
    client_type: ClientType,
    tap: NetworkTap | None = None,
    settings: Settings | None = None,
    *,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create an httpx client bound to the backend REST origin.

    Failed backend calls are reported through ``tap`` (the process tap by
    default); ``transport`` is the inner transport it delegates to.
    """
    settings = settings or load_settings()
    url, key = _require_backend(settings)
    tap = tap or get_installed_tap()
    headers = {
        "apikey": key,
        "Authorization": f"Bearer {key}",
        **backend_headers(settings.environment, client_type),
    }
    if tap is not None:
        transport = tap.transport(transport)
    return httpx.Client(
        base_url=url,
        headers=headers,
        transport=transport,
        timeout=settings.supabase.request_timeout_seconds,
    )
