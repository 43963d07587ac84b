"""Timing and logging wrapper for backend client objects.

``wrap_client`` binds one instrumented callable per observed method when the
wrapper is built; every other attribute is read straight from the wrapped
client. Observation never changes what a call returns or raises.
"""

from __future__ import annotations

import functools
import inspect
import logging
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, TypeVar

from supabase_devlogs.devlogs.logger import DevLogger

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Methods returning a realtime channel named by their first argument; the
# channel is registered but handed back to the caller as-is.
CHANNEL_FACTORY_METHODS = frozenset({"channel"})


def _primary_payload(result: Any) -> Any:
    """Return the ``data`` member of a backend response, not its metadata."""
    if isinstance(result, Mapping):
        return result.get("data")
    return getattr(result, "data", None)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def public_methods(client: object) -> frozenset[str]:
    """Names of the public callables declared on ``client``'s class."""
    names: set[str] = set()
    for name in dir(type(client)):
        if name.startswith("_"):
            continue
        attr = inspect.getattr_static(type(client), name)
        if isinstance(attr, property):
            continue
        if isinstance(attr, (staticmethod, classmethod)) or callable(attr):
            names.add(name)
    return frozenset(names)


class InstrumentedClient:
    """Stand-in for a backend client that times and logs observed method calls."""

    def __init__(
        self,
        client: Any,
        dev_logger: DevLogger,
        methods: Iterable[str] | None = None,
    ) -> None:
        object.__setattr__(self, "_client", client)
        object.__setattr__(self, "_dev_logger", dev_logger)
        observed = frozenset(methods) if methods is not None else public_methods(client)
        instrumented: dict[str, Callable[..., Any]] = {}
        for name in observed:
            target = getattr(client, name, None)
            if callable(target):
                instrumented[name] = self._instrument(name, target)
        object.__setattr__(self, "_instrumented", instrumented)

    @property
    def __wrapped__(self) -> Any:
        return self._client

    @property
    def observed_methods(self) -> frozenset[str]:
        return frozenset(self._instrumented)

    def __getattr__(self, name: str) -> Any:
        instrumented = self.__dict__.get("_instrumented", {})
        if name in instrumented:
            return instrumented[name]
        return getattr(self._client, name)

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._client, name, value)

    def __repr__(self) -> str:
        return f"InstrumentedClient({self._client!r})"

    def _record_success(self, name: str, args: tuple, kwargs: dict, result: Any, start: float) -> Any:
        duration = _elapsed_ms(start)
        try:
            self._dev_logger.log(
                "info",
                name,
                {"arguments": _call_arguments(args, kwargs), "result": _primary_payload(result)},
                None,
                duration,
            )
            if name in CHANNEL_FACTORY_METHODS and args:
                self._dev_logger.register_realtime_channel(result, str(args[0]))
        except Exception:
            logger.warning("Failed to record call to %s", name, exc_info=True)
        return result

    def _record_failure(self, name: str, args: tuple, kwargs: dict, exc: BaseException, start: float) -> None:
        duration = _elapsed_ms(start)
        try:
            self._dev_logger.log(
                "error",
                name,
                {"arguments": _call_arguments(args, kwargs)},
                exc,
                duration,
            )
        except Exception:
            logger.warning("Failed to record failed call to %s", name, exc_info=True)

    def _instrument(self, name: str, target: Callable[..., Any]) -> Callable[..., Any]:
        if inspect.iscoroutinefunction(target):

            @functools.wraps(target)
            async def async_call(*args: Any, **kwargs: Any) -> Any:
                start = time.perf_counter()
                try:
                    result = await target(*args, **kwargs)
                except Exception as exc:
                    self._record_failure(name, args, kwargs, exc, start)
                    raise
                return self._record_success(name, args, kwargs, result, start)

            return async_call

        @functools.wraps(target)
        def call(*args: Any, **kwargs: Any) -> Any:
            start = time.perf_counter()
            try:
                result = target(*args, **kwargs)
            except Exception as exc:
                self._record_failure(name, args, kwargs, exc, start)
                raise
            if inspect.isawaitable(result):
                return self._observe_awaitable(name, args, kwargs, result, start)
            return self._record_success(name, args, kwargs, result, start)

        return call

    async def _observe_awaitable(
        self,
        name: str,
        args: tuple,
        kwargs: dict,
        awaitable: Awaitable[Any],
        start: float,
    ) -> Any:
        try:
            result = await awaitable
        except Exception as exc:
            self._record_failure(name, args, kwargs, exc, start)
            raise
        return self._record_success(name, args, kwargs, result, start)


def _call_arguments(args: tuple, kwargs: dict) -> list[Any]:
    arguments: list[Any] = list(args)
    if kwargs:
        arguments.append(dict(kwargs))
    return arguments


def wrap_client(
    client: T,
    dev_logger: DevLogger,
    methods: Iterable[str] | None = None,
) -> T:
    """Return ``client`` with observed methods timed and logged.

    Outside development the client is returned unchanged.
    """
    if not dev_logger.enabled:
        return client
    return InstrumentedClient(client, dev_logger, methods)  # type: ignore[return-value]
