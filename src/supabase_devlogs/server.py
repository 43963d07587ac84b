"""Entrypoint for the dev-logs HTTP server."""

from __future__ import annotations

import logging

from supabase_devlogs import __version__
from supabase_devlogs.config import load_settings
from supabase_devlogs.logging_utils import configure_logging


def run_entrypoint() -> None:
    """Run the HTTP server with uvicorn."""
    settings = load_settings()
    # Logging must be configured before the tap is installed so the console
    # filter lands on the final set of handlers.
    configure_logging()
    logging.info(
        "Initializing Supabase dev-logs server v%s (environment=%s)",
        __version__,
        settings.environment,
    )
    logging.info("Log file configured at: %s", settings.logging.file)

    from supabase_devlogs.transport.http_server import create_http_app

    try:
        import uvicorn
    except ImportError as exc:
        raise RuntimeError("uvicorn is required to run the HTTP server") from exc

    app = create_http_app()
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        ws="none",
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
