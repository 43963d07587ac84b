from __future__ import annotations

import logging

import httpx
import pytest
from starlette.testclient import TestClient

from supabase_devlogs.app import AppContext, build_app_context
from supabase_devlogs.devlogs.hooks import FORWARDED_RECORD_ATTR
from supabase_devlogs.devlogs.sinks import MemoryTraceSink
from supabase_devlogs.transport.http_server import create_http_app

PRODUCTION_BODY = {"error": "Dev logs are not available in production."}


@pytest.fixture
def make_client(make_settings):
    def _make(
        environment: str = "development",
        auth_logs_transport: httpx.AsyncBaseTransport | None = None,
        **supabase: object,
    ) -> tuple[TestClient, AppContext]:
        context = build_app_context(
            make_settings(environment, **supabase),
            trace_sink=MemoryTraceSink(),
        )
        app = create_http_app(
            context,
            install_hooks=False,
            auth_logs_transport=auth_logs_transport,
        )
        return TestClient(app), context

    return _make


def test_health(make_client) -> None:
    client, _ = make_client("preview")
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "environment": "preview"}


def test_dev_logs_query_newest_first(make_client) -> None:
    client, context = make_client()
    context.dev_logger.log("info", "from.select", {"table": "profiles"}, None, 12.5)
    context.dev_logger.log("error", "auth.signIn", {"password": "hunter2"}, ValueError("bad login"))
    context.dev_logger.log("info", "from.insert")

    response = client.get("/api/dev-logs")
    assert response.status_code == 200
    logs = response.json()
    assert [entry["operation"] for entry in logs] == ["from.insert", "auth.signIn", "from.select"]
    assert logs[2]["details"] == {"table": "profiles"}
    assert logs[2]["duration"] == 12.5
    assert logs[1]["error"]["message"] == "bad login"
    assert logs[1]["details"] == {"password": "hunter2"}


def test_dev_logs_level_and_limit(make_client) -> None:
    client, context = make_client()
    for index in range(5):
        context.dev_logger.log("error" if index % 2 else "info", f"op{index}")

    errors = client.get("/api/dev-logs", params={"level": "error"}).json()
    assert [entry["operation"] for entry in errors] == ["op3", "op1"]

    limited = client.get("/api/dev-logs", params={"limit": "2"}).json()
    assert [entry["operation"] for entry in limited] == ["op4", "op3"]


@pytest.mark.parametrize(
    "params",
    [{"level": "fatal"}, {"limit": "abc"}, {"limit": "0"}, {"limit": "-3"}],
)
def test_dev_logs_rejects_bad_query(make_client, params: dict[str, str]) -> None:
    client, _ = make_client()
    response = client.get("/api/dev-logs", params=params)
    assert response.status_code == 400
    assert "error" in response.json()


def test_dev_logs_clear(make_client) -> None:
    client, context = make_client()
    context.dev_logger.log("info", "from.select")

    response = client.delete("/api/dev-logs")
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert len(context.store) == 0
    assert client.get("/api/dev-logs").json() == []


def test_dev_logs_unavailable_in_production(make_client) -> None:
    client, _ = make_client("production")
    assert client.get("/api/dev-logs").status_code == 404
    response = client.delete("/api/dev-logs")
    assert response.status_code == 404
    assert response.json() == PRODUCTION_BODY


def test_dev_logs_available_in_preview(make_client) -> None:
    client, _ = make_client("preview")
    response = client.get("/api/dev-logs")
    assert response.status_code == 200
    assert response.json() == []


def test_traces_emit_backend_events_only(make_client, caplog: pytest.LogCaptureFixture) -> None:
    client, context = make_client()
    batch = [
        {"name": "page.render", "attributes": {"path": "/"}},
        {
            "name": "Supabase.error",
            "level": "error",
            "timestamp": 1_700_000_000_000,
            "duration": 42.0,
            "attributes": {
                "url": "[SUPABASE_URL]/rest/v1/profiles",
                "method": "GET",
                "status": 401,
                "statusText": "Unauthorized",
                "error": {"message": "JWT expired"},
            },
        },
        {"name": "router.navigate", "attributes": {}},
    ]

    with caplog.at_level(logging.ERROR, logger="supabase_devlogs.transport.traces"):
        response = client.post("/api/traces", json=batch)

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    emitted = [r for r in caplog.records if r.name == "supabase_devlogs.transport.traces"]
    assert len(emitted) == 1
    message = emitted[0].getMessage()
    assert message.startswith("[2023-11-14T22:13:20.000Z] Supabase Error: (42.00ms)")
    assert "Request: GET [SUPABASE_URL]/rest/v1/profiles" in message
    assert "Status: 401 Unauthorized" in message
    assert '"message": "JWT expired"' in message
    assert getattr(emitted[0], FORWARDED_RECORD_ATTR) is True
    assert len(context.store) == 0


def test_traces_empty_batch(make_client) -> None:
    client, _ = make_client()
    response = client.post("/api/traces", json=[])
    assert response.status_code == 200
    assert response.json() == {"ok": True}


@pytest.mark.parametrize(
    "content",
    [b"{not json", b'{"name": "Supabase.error"}', b'[{"attributes": {}}]'],
)
def test_traces_reject_invalid_body(make_client, content: bytes) -> None:
    client, _ = make_client()
    response = client.post(
        "/api/traces",
        content=content,
        headers={"content-type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid trace data"}


def test_auth_logs_missing_config(make_client) -> None:
    client, _ = make_client()
    response = client.get("/api/auth-logs")
    assert response.status_code == 500
    assert response.json() == {
        "error": "Missing environment variables: SUPABASE_PROJECT_ID or SUPABASE_ACCESS_TOKEN"
    }


def test_auth_logs_proxies_query(make_client) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"result": [{"id": "log-1"}]})

    client, _ = make_client(
        auth_logs_transport=httpx.MockTransport(handler),
        project_id="abcd1234",
        access_token="sbp_secret",
    )
    response = client.get(
        "/api/auth-logs",
        params={"start": "2024-01-01T00:00:00Z", "end": "2024-01-02T00:00:00Z", "sql": "select 1"},
    )

    assert response.status_code == 200
    assert response.json() == {"result": [{"id": "log-1"}]}
    [upstream] = seen
    assert upstream.url.path == "/v1/projects/abcd1234/analytics/endpoints/logs.all"
    assert upstream.url.host == "api.supabase.com"
    assert dict(upstream.url.params) == {
        "iso_timestamp_start": "2024-01-01T00:00:00Z",
        "iso_timestamp_end": "2024-01-02T00:00:00Z",
        "sql": "select 1",
    }
    assert upstream.headers["authorization"] == "Bearer sbp_secret"


def test_auth_logs_upstream_status_error(make_client) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(401, text="nope"))
    client, _ = make_client(
        auth_logs_transport=transport,
        project_id="abcd1234",
        access_token="sbp_secret",
    )

    response = client.get("/api/auth-logs")
    assert response.status_code == 500
    assert response.json() == {
        "error": "Supabase API error: 401 Unauthorized",
        "details": {"type": "UpstreamError"},
    }


def test_auth_logs_error_member_in_production(make_client) -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"error": {"message": "invalid sql"}})
    )
    client, _ = make_client(
        "production",
        auth_logs_transport=transport,
        project_id="abcd1234",
        access_token="sbp_secret",
    )

    response = client.get("/api/auth-logs", params={"sql": "select"})
    assert response.status_code == 500
    assert response.json() == {"error": "invalid sql"}


def test_dev_logs_page(make_client) -> None:
    client, _ = make_client()
    response = client.get("/dev-logs")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert 'const endpoint = "/api/dev-logs";' in response.text
    assert "const pollMs = 5000;" in response.text


def test_dev_logs_page_in_production(make_client) -> None:
    client, _ = make_client("production")
    response = client.get("/dev-logs")
    assert response.status_code == 404
    assert "Dev logs are not available in production." in response.text


def test_request_id_is_echoed(make_client) -> None:
    client, _ = make_client()
    response = client.get("/health", headers={"x-request-id": "req-123"})
    assert response.headers["x-request-id"] == "req-123"


def test_traces_accept_null_attributes(make_client, caplog: pytest.LogCaptureFixture) -> None:
    client, _ = make_client()
    batch = [
        {"name": "page.render", "attributes": None},
        {"name": "Supabase.error", "attributes": None, "timestamp": 0},
    ]

    with caplog.at_level(logging.ERROR, logger="supabase_devlogs.transport.traces"):
        response = client.post("/api/traces", json=batch)

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    emitted = [r for r in caplog.records if r.name == "supabase_devlogs.transport.traces"]
    assert [r.getMessage() for r in emitted] == ["[1970-01-01T00:00:00.000Z] Supabase Error:"]


def test_auth_logs_page(make_client) -> None:
    client, _ = make_client()
    response = client.get("/auth-logs")
    assert response.status_code == 200
    assert 'const endpoint = "/api/auth-logs";' in response.text
    assert '<option value="15m">Last 15 minutes</option>' in response.text
    assert 'const rangeMinutes = {"15m": 15, "1h": 60, "1d": 1440};' in response.text
    assert 'id="auto-refresh"' in response.text


def test_auth_logs_page_in_production(make_client) -> None:
    client, _ = make_client("production")
    response = client.get("/auth-logs")
    assert response.status_code == 404
    assert "Auth logs viewer is only available in development mode." in response.text
