"""Process-wide error hooks for the network tap.

``install_tap`` runs once per process. Later calls return the tap that is
already installed, so a module reload cannot stack a second set of hooks.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
import traceback
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any, Callable

from supabase_devlogs.devlogs.sinks import TraceSink
from supabase_devlogs.devlogs.tap import (
    BACKEND_CONSOLE_EVENT,
    BACKEND_ERROR_EVENT,
    BACKEND_UNHANDLED_EVENT,
    NetworkTap,
)
from supabase_devlogs.logging_utils import console_handlers

logger = logging.getLogger(__name__)

# Log records carrying this attribute are never diverted (see the ingest
# endpoint, which logs forwarded events that may mention the backend host).
FORWARDED_RECORD_ATTR = "devlogs_forwarded"


def _traceback_details(tb: TracebackType | None) -> tuple[str | None, int | None]:
    frames = traceback.extract_tb(tb) if tb is not None else []
    if not frames:
        return None, None
    last = frames[-1]
    return last.filename, last.lineno


def _mentions_backend(tap: NetworkTap, exc: BaseException | None, tb: TracebackType | None) -> bool:
    if exc is not None and tap.matches(str(exc)):
        return True
    frames = traceback.extract_tb(tb) if tb is not None else []
    return any(tap.matches(frame.filename) for frame in frames)


def _error_attributes(
    tap: NetworkTap,
    exc: BaseException | None,
    tb: TracebackType | None,
) -> dict[str, Any]:
    filename, lineno = _traceback_details(tb)
    stack = "".join(traceback.format_exception(type(exc), exc, tb)) if exc is not None else None
    return {
        "message": tap.redact_url(str(exc)) if exc is not None else "",
        "filename": filename,
        "lineno": lineno,
        "stack": stack,
    }


class BackendConsoleFilter(logging.Filter):
    """Divert error log lines that mention the backend host to the tap's sink."""

    def __init__(self, tap: NetworkTap) -> None:
        super().__init__()
        self.tap = tap

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno < logging.ERROR or getattr(record, FORWARDED_RECORD_ATTR, False):
            return True
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        if not self.tap.matches(message):
            return True

        if record.args is None:
            args: tuple[Any, ...] = ()
        elif isinstance(record.args, tuple):
            args = record.args
        else:
            args = (record.args,)
        self.tap.forward(
            self.tap.event(
                BACKEND_CONSOLE_EVENT,
                {
                    "message": self.tap.redact_url(message),
                    "arguments": [self.tap.redact_url(str(arg)) for arg in args],
                    "logger": record.name,
                },
            )
        )
        return False


@dataclass
class _InstalledHooks:
    tap: NetworkTap
    previous_excepthook: Callable[..., Any]
    previous_threading_excepthook: Callable[..., Any]
    console_filter: BackendConsoleFilter
    filtered_handlers: list[logging.Handler] = field(default_factory=list)
    loops: list[tuple[asyncio.AbstractEventLoop, Any]] = field(default_factory=list)


_installed: _InstalledHooks | None = None
_install_lock = threading.Lock()


def get_installed_tap() -> NetworkTap | None:
    return _installed.tap if _installed is not None else None


def install_tap(
    sink: TraceSink,
    host_pattern: str = "supabase.co",
    *,
    origin: str = "server",
) -> NetworkTap:
    """Install the process hooks and return the process tap."""
    global _installed

    with _install_lock:
        if _installed is not None:
            logger.debug("Network tap already installed; reusing it")
            return _installed.tap

        tap = NetworkTap(sink, host_pattern, origin=origin)  # type: ignore[arg-type]
        hooks = _InstalledHooks(
            tap=tap,
            previous_excepthook=sys.excepthook,
            previous_threading_excepthook=threading.excepthook,
            console_filter=BackendConsoleFilter(tap),
        )

        def excepthook(
            exc_type: type[BaseException],
            exc: BaseException,
            tb: TracebackType | None,
        ) -> None:
            if _mentions_backend(tap, exc, tb):
                tap.forward(tap.event(BACKEND_ERROR_EVENT, _error_attributes(tap, exc, tb)))
                return
            hooks.previous_excepthook(exc_type, exc, tb)

        def threading_excepthook(args: threading.ExceptHookArgs) -> None:
            if _mentions_backend(tap, args.exc_value, args.exc_traceback):
                tap.forward(
                    tap.event(
                        BACKEND_ERROR_EVENT,
                        _error_attributes(tap, args.exc_value, args.exc_traceback),
                    )
                )
                return
            hooks.previous_threading_excepthook(args)

        sys.excepthook = excepthook
        threading.excepthook = threading_excepthook

        for handler in console_handlers():
            handler.addFilter(hooks.console_filter)
            hooks.filtered_handlers.append(handler)

        _installed = hooks
        logger.info("Network tap installed for host pattern %r", host_pattern)
        return tap


def install_loop_handler(loop: asyncio.AbstractEventLoop) -> None:
    """Divert unhandled task errors that mention the backend host on ``loop``."""
    with _install_lock:
        hooks = _installed
        if hooks is None:
            raise RuntimeError("install_tap() must be called before install_loop_handler()")
        if any(existing is loop for existing, _ in hooks.loops):
            return
        previous = loop.get_exception_handler()
        hooks.loops.append((loop, previous))

    tap = hooks.tap

    def handle_exception(
        current_loop: asyncio.AbstractEventLoop,
        context: dict[str, Any],
    ) -> None:
        exc = context.get("exception")
        message = str(context.get("message", ""))
        tb = exc.__traceback__ if isinstance(exc, BaseException) else None
        if tap.matches(message) or _mentions_backend(tap, exc, tb):
            attributes = _error_attributes(tap, exc, tb)
            if not attributes["message"]:
                attributes["message"] = tap.redact_url(message)
            event = tap.event(BACKEND_UNHANDLED_EVENT, attributes)
            current_loop.run_in_executor(None, tap.forward, event)
            return
        if previous is not None:
            previous(current_loop, context)
        else:
            current_loop.default_exception_handler(context)

    loop.set_exception_handler(handle_exception)


def uninstall_tap() -> None:
    """Restore every hook replaced by ``install_tap``."""
    global _installed

    with _install_lock:
        hooks = _installed
        if hooks is None:
            return
        sys.excepthook = hooks.previous_excepthook
        threading.excepthook = hooks.previous_threading_excepthook
        for handler in hooks.filtered_handlers:
            handler.removeFilter(hooks.console_filter)
        for loop, previous in hooks.loops:
            if not loop.is_closed():
                loop.set_exception_handler(previous)
        _installed = None
