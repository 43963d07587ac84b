from __future__ import annotations

import asyncio
import contextlib

import pytest

from supabase_devlogs.config import Settings
from supabase_devlogs.devlogs.hooks import uninstall_tap
from supabase_devlogs.devlogs.logger import DevLogger
from supabase_devlogs.devlogs.sinks import MemoryTraceSink
from supabase_devlogs.devlogs.store import LogStore


@pytest.fixture(autouse=True)
def _close_default_event_loop() -> None:
    yield
    policy = asyncio.get_event_loop_policy()
    local = getattr(policy, "_local", None)
    loop = getattr(local, "_loop", None) if local is not None else None
    if loop is not None and not loop.is_running() and not loop.is_closed():
        with contextlib.suppress(Exception):
            loop.close()
    if loop is not None:
        with contextlib.suppress(Exception):
            policy.set_event_loop(None)


@pytest.fixture(autouse=True)
def _restore_process_hooks() -> None:
    yield
    uninstall_tap()


@pytest.fixture
def store() -> LogStore:
    return LogStore()


@pytest.fixture
def dev_logger(store: LogStore) -> DevLogger:
    return DevLogger(store, "development", narrate=False)


@pytest.fixture
def sink() -> MemoryTraceSink:
    return MemoryTraceSink()


def _make_settings(environment: str = "development", **supabase: object) -> Settings:
    return Settings.model_validate(
        {
            "environment": environment,
            "supabase": {
                "url": "https://abcd1234.supabase.co",
                "anon_key": "anon-key",
                **supabase,
            },
        }
    )


@pytest.fixture
def make_settings():
    return _make_settings
