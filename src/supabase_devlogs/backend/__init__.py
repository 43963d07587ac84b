"""Factories for backend clients carrying environment and role headers."""

from .clients import (
    create_backend_http_client,
    create_browser_client,
    create_middleware_client,
    create_server_client,
    create_supabase_client,
)

__all__ = [
    "create_backend_http_client",
    "create_browser_client",
    "create_middleware_client",
    "create_server_client",
    "create_supabase_client",
]
