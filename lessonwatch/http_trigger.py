"""HTTP endpoint that runs a refresh cycle on demand.

Endpoints:
- POST /refresh                 → one synchronous refresh cycle
- POST /refresh?notify_own=1    → same, but also mail lessons freed by the
                                  operator's own reservation changes

Responses are JSON: 200 when the cycle completed, 409 when another cycle is
running, 502 when the lessons could not be fetched.
"""

from __future__ import annotations

import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit

from lessonwatch.domain import BusyError, FetchError
from lessonwatch.orchestrator import RefreshOrchestrator

logger = logging.getLogger(__name__)

REFRESHED_MESSAGE = "Lessons reservation data refreshed."

_TRUTHY = {"1", "true", "yes", "on"}


def _parse_flag(query: str, name: str) -> bool:
    values = parse_qs(query).get(name)
    if not values:
        return False
    return values[-1].strip().lower() in _TRUTHY


def _make_handler(orchestrator: RefreshOrchestrator) -> type[BaseHTTPRequestHandler]:
    class RefreshHandler(BaseHTTPRequestHandler):
        server_version = "lessonwatch"

        def _send_json(self, status: int, body: dict[str, Any]) -> None:
            data = json.dumps(body, ensure_ascii=False).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json; charset=utf-8")
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

        def do_POST(self) -> None:  # noqa: N802 - http.server naming
            url = urlsplit(self.path)
            if url.path.rstrip("/") != "/refresh":
                self._send_json(404, {"error": "Not found"})
                return

            notify_own = _parse_flag(url.query, "notify_own")
            try:
                result = orchestrator.refresh(notify_from_own_actions=notify_own)
            except BusyError as e:
                self._send_json(409, {"error": str(e)})
                return
            except FetchError as e:
                self._send_json(502, {"error": f"Fetching lessons failed: {e}"})
                return

            self._send_json(
                200,
                {
                    "message": REFRESHED_MESSAGE,
                    "fetched": result.fetched,
                    "freed": len(result.freed),
                    "notified": result.notified,
                },
            )

        def do_GET(self) -> None:  # noqa: N802
            self._send_json(405, {"error": "Use POST /refresh"})

        def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
            logger.info("%s - %s", self.address_string(), format % args)

    return RefreshHandler


def build_server(orchestrator: RefreshOrchestrator, host: str, port: int) -> ThreadingHTTPServer:
    server = ThreadingHTTPServer((host, port), _make_handler(orchestrator))
    server.daemon_threads = True
    return server
