"""Runtime environment and client-role classification."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Literal, cast

Environment = Literal["development", "preview", "production"]
ClientType = Literal["client", "server", "middleware"]

ENVIRONMENTS: tuple[Environment, ...] = ("development", "preview", "production")
CLIENT_TYPES: tuple[ClientType, ...] = ("client", "server", "middleware")

ENVIRONMENT_HEADER = "x-environment"
CLIENT_TYPE_HEADER = "x-client-type"

# Checked in order; the deployment platform's label wins over the generic runtime mode.
ENVIRONMENT_VARIABLES: tuple[str, ...] = ("VERCEL_ENV", "APP_ENV")

_LOCAL_HOSTNAME = "localhost"


def get_environment(
    hostname: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Environment:
    """Classify the current runtime environment.

    With ``hostname`` the caller is classifying a client-side context (a
    browser talking to this app): ``localhost`` is development, anything else
    is production. Without it the server-side environment variables are read.
    """
    if hostname is not None:
        return "development" if hostname == _LOCAL_HOSTNAME else "production"

    source = os.environ if environ is None else environ
    for variable in ENVIRONMENT_VARIABLES:
        value = (source.get(variable) or "").strip().lower()
        if value in ENVIRONMENTS:
            return cast(Environment, value)
    return "development"


def is_development(environment: str) -> bool:
    return environment == "development"


def is_production_like(environment: str) -> bool:
    return environment in ("preview", "production")


def backend_headers(environment: Environment, client_type: ClientType) -> dict[str, str]:
    """Headers injected on every outbound backend call."""
    if client_type not in CLIENT_TYPES:
        raise ValueError(f"Unknown client type: {client_type!r}")
    return {
        ENVIRONMENT_HEADER: environment,
        CLIENT_TYPE_HEADER: client_type,
    }
