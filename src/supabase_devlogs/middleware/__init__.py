"""HTTP middleware for the dev-logs application."""

from .request_context import RequestContextMiddleware

__all__ = ["RequestContextMiddleware"]
