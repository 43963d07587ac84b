"""HTML log viewer pages."""

from __future__ import annotations

import html
import json
from string import Template

from starlette.requests import Request
from starlette.responses import HTMLResponse, Response

from supabase_devlogs.transport.responses import PRODUCTION_UNAVAILABLE_MESSAGE

_PAGE = Template(
    """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>$title</title>
<style>
body { font-family: system-ui, sans-serif; margin: 2rem; }
pre { background: #f5f5f5; padding: .5rem; overflow-x: auto; }
.entry { border-bottom: 1px solid #ddd; padding: .5rem 0; }
.error { color: #b00020; } .warn { color: #a15c00; } .debug { color: #666; }
</style>
</head>
<body>
$body
</body>
</html>
"""
)

_VIEWER_BODY = Template(
    """<h1>Supabase Dev Logs</h1>
<div>
  <select id="level">
    <option value="">All levels</option>
    <option value="info">Info</option>
    <option value="warn">Warning</option>
    <option value="error">Error</option>
    <option value="debug">Debug</option>
  </select>
  <button id="refresh">Refresh</button>
  <button id="clear">Clear logs</button>
</div>
<div id="logs"><p>Loading...</p></div>
<script>
const endpoint = "$endpoint";
const pollMs = $poll_ms;
const levelSelect = document.getElementById("level");
const container = document.getElementById("logs");

function render(logs) {
  if (!logs.length) { container.innerHTML = "<p>No logs found.</p>"; return; }
  container.innerHTML = "";
  for (const log of logs) {
    const entry = document.createElement("div");
    entry.className = "entry " + log.level;
    const head = document.createElement("div");
    const duration = log.duration !== undefined ? " (" + log.duration.toFixed(2) + "ms)" : "";
    head.textContent = new Date(log.timestamp).toLocaleString() + " [" + log.level.toUpperCase() + "] " + log.operation + duration;
    entry.appendChild(head);
    for (const key of ["details", "error"]) {
      if (log[key]) {
        const pre = document.createElement("pre");
        pre.textContent = key + ": " + JSON.stringify(log[key], null, 2);
        entry.appendChild(pre);
      }
    }
    container.appendChild(entry);
  }
}

async function fetchLogs() {
  const url = new URL(endpoint, window.location.origin);
  if (levelSelect.value) url.searchParams.set("level", levelSelect.value);
  try {
    const response = await fetch(url);
    if (!response.ok) throw new Error("Failed to fetch logs");
    render(await response.json());
  } catch (error) {
    container.textContent = error.message;
  }
}

document.getElementById("refresh").addEventListener("click", fetchLogs);
document.getElementById("clear").addEventListener("click", async () => {
  await fetch(endpoint, { method: "DELETE" });
  fetchLogs();
});
levelSelect.addEventListener("change", fetchLogs);
fetchLogs();
setInterval(fetchLogs, pollMs);
</script>"""
)


# Preset id -> (label, minutes back from now).
AUTH_LOG_TIME_RANGES: dict[str, tuple[str, int]] = {
    "15m": ("Last 15 minutes", 15),
    "1h": ("Last hour", 60),
    "1d": ("Last 24 hours", 24 * 60),
}

AUTH_LOGS_UNAVAILABLE_MESSAGE = "Auth logs viewer is only available in development mode."

_AUTH_LOGS_BODY = Template(
    """<h1>Auth Logs</h1>
<div>
  <button id="refresh">Refresh</button>
  <label><input type="checkbox" id="auto-refresh" checked> Auto-refresh</label>
</div>
<div>
  <select id="range">$range_options</select>
  <select id="method"><option value="all">All methods</option></select>
  <input type="text" id="sql" placeholder="SQL filter...">
</div>
<div id="status"></div>
<div id="logs"><p>Loading logs...</p></div>
<script>
const endpoint = "$endpoint";
const pollMs = $poll_ms;
const rangeMinutes = $range_minutes;
const rangeSelect = document.getElementById("range");
const methodSelect = document.getElementById("method");
const sqlInput = document.getElementById("sql");
const autoRefresh = document.getElementById("auto-refresh");
const status = document.getElementById("status");
const container = document.getElementById("logs");
let timer = null;

function parseMessage(message) {
  const parts = message.split(" | ");
  if (parts.length < 6) return null;
  return {
    method: parts[0], status: parseInt(parts[1], 10), ip: parts[2],
    requestId: parts[3], url: parts[4], userAgent: parts[5],
  };
}

function statusClass(code) {
  if (code >= 500) return "error";
  if (code >= 400) return "warn";
  return "";
}

function updateMethods(logs) {
  const current = methodSelect.value;
  const methods = new Set();
  for (const log of logs) {
    const parsed = parseMessage(log.message || "");
    if (parsed) methods.add(parsed.method);
  }
  methodSelect.innerHTML = '<option value="all">All methods</option>';
  for (const method of Array.from(methods).sort()) {
    const option = document.createElement("option");
    option.value = method;
    option.textContent = method;
    methodSelect.appendChild(option);
  }
  if (current === "all" || methods.has(current)) methodSelect.value = current;
}

function render(logs) {
  if (!logs.length) { container.innerHTML = "<p>No logs available</p>"; return; }
  container.innerHTML = "";
  for (const log of logs) {
    const entry = document.createElement("div");
    entry.className = "entry";
    const parsed = parseMessage(log.message || "");
    const when = new Date(log.timestamp).toLocaleString();
    const pre = document.createElement("pre");
    if (parsed) {
      entry.className += " " + statusClass(parsed.status);
      pre.textContent = when + " " + parsed.method + " " + parsed.status +
        "\\nIP: " + parsed.ip + "\\nRequest ID: " + parsed.requestId +
        "\\nURL: " + parsed.url + "\\nUser Agent: " + parsed.userAgent;
    } else {
      pre.textContent = when + " [" + log.level + "] " + log.message;
    }
    entry.appendChild(pre);
    container.appendChild(entry);
  }
}

function buildSql() {
  let sql = sqlInput.value.trim();
  if (methodSelect.value !== "all") {
    const condition = "message LIKE '" + methodSelect.value + " | %'";
    sql = sql ? sql + " AND " + condition : condition;
  }
  return sql;
}

async function fetchLogs() {
  const now = new Date();
  const minutes = rangeMinutes[rangeSelect.value] || 15;
  const start = new Date(now.getTime() - minutes * 60 * 1000);
  const url = new URL(endpoint, window.location.origin);
  url.searchParams.set("start", start.toISOString());
  url.searchParams.set("end", now.toISOString());
  const sql = buildSql();
  if (sql) url.searchParams.set("sql", sql);
  try {
    const response = await fetch(url);
    const data = await response.json();
    if (!response.ok || data.error) {
      const error = data.error;
      throw new Error((error && error.message) || error || "Failed to fetch logs");
    }
    const logs = data.result || [];
    updateMethods(logs);
    render(logs);
    status.textContent = "";
  } catch (error) {
    status.className = "error";
    status.textContent = error.message;
  }
}

function schedule() {
  if (timer) clearInterval(timer);
  timer = autoRefresh.checked ? setInterval(fetchLogs, pollMs) : null;
}

document.getElementById("refresh").addEventListener("click", fetchLogs);
for (const control of [rangeSelect, methodSelect, sqlInput]) {
  control.addEventListener("change", fetchLogs);
}
autoRefresh.addEventListener("change", schedule);
fetchLogs();
schedule();
</script>"""
)


def render_page(title: str, body: str) -> str:
    return _PAGE.substitute(title=html.escape(title), body=body)


def _unavailable_page(title: str, message: str) -> Response:
    body = f"<h1>{html.escape(title)}</h1>\n<p class=\"error\">{html.escape(message)}</p>"
    return HTMLResponse(render_page(title, body), status_code=404)


class DevLogsPage:
    """Handler for GET /dev-logs."""

    def __init__(
        self,
        environment: str,
        *,
        endpoint: str = "/api/dev-logs",
        poll_interval_seconds: int = 5,
    ) -> None:
        self.environment = environment
        self.endpoint = endpoint
        self.poll_interval_seconds = poll_interval_seconds

    async def handle(self, request: Request) -> Response:
        if self.environment == "production":
            return _unavailable_page("Dev Logs", PRODUCTION_UNAVAILABLE_MESSAGE)

        body = _VIEWER_BODY.substitute(
            endpoint=self.endpoint,
            poll_ms=self.poll_interval_seconds * 1000,
        )
        return HTMLResponse(render_page("Supabase Dev Logs", body))


class AuthLogsPage:
    """Handler for GET /auth-logs.

    The page polls the auth-logs proxy for the selected time range. A method
    filter is folded into the SQL filter as ``message LIKE '<METHOD> | %'``.
    """

    def __init__(
        self,
        environment: str,
        *,
        endpoint: str = "/api/auth-logs",
        poll_interval_seconds: int = 5,
    ) -> None:
        self.environment = environment
        self.endpoint = endpoint
        self.poll_interval_seconds = poll_interval_seconds

    async def handle(self, request: Request) -> Response:
        if self.environment == "production":
            return _unavailable_page("Auth Logs", AUTH_LOGS_UNAVAILABLE_MESSAGE)

        range_options = "".join(
            f'<option value="{key}">{html.escape(label)}</option>'
            for key, (label, _) in AUTH_LOG_TIME_RANGES.items()
        )
        body = _AUTH_LOGS_BODY.substitute(
            endpoint=self.endpoint,
            poll_ms=self.poll_interval_seconds * 1000,
            range_options=range_options,
            range_minutes=json.dumps(
                {key: minutes for key, (_, minutes) in AUTH_LOG_TIME_RANGES.items()}
            ),
        )
        return HTMLResponse(render_page("Auth Logs", body))
