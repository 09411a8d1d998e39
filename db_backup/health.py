"""Health endpoints reporting the backup loop's state as JSON.

    GET /health  -> 200, full cycle state
    GET /ready   -> 200 once the scheduler is up, 503 before; includes the
                    last cycle's outcome and the next scheduled run
    GET /live    -> 200 while the process answers at all
"""

from __future__ import annotations

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable

from db_backup.runner import CycleState

logger = logging.getLogger(__name__)


def _health(state: CycleState) -> tuple[int, dict[str, Any]]:
    return 200, {"healthy": True, **state.snapshot()}


def _ready(state: CycleState) -> tuple[int, dict[str, Any]]:
    snapshot = state.snapshot()
    body = {
        "ready": state.ready,
        "status": snapshot["status"],
        "last_outcome": snapshot["last_outcome"],
        "next_run": snapshot["next_run"],
    }
    return (200 if state.ready else 503), body


def _live(state: CycleState) -> tuple[int, dict[str, Any]]:
    return 200, {"alive": True}


ROUTES: dict[str, Callable[[CycleState], tuple[int, dict[str, Any]]]] = {
    "/": _health,
    "/health": _health,
    "/ready": _ready,
    "/live": _live,
}


def make_handler(state: CycleState) -> type[BaseHTTPRequestHandler]:
    """Request handler class bound to one CycleState."""

    class HealthHandler(BaseHTTPRequestHandler):
        def log_message(self, format, *args):
            logger.debug(f"{self.address_string()} {format % args}")

        def do_GET(self):
            route = ROUTES.get(self.path.split("?", 1)[0])
            code, body = route(state) if route else (404, {"error": "not found"})
            payload = json.dumps(body).encode()
            self.send_response(code)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

    return HealthHandler


def start_health_server(port: int, state: CycleState, host: str = "0.0.0.0") -> HTTPServer:
    """Serve ``state`` over HTTP from a daemon thread. Port 0 picks a free port."""
    server = HTTPServer((host, port), make_handler(state))
    threading.Thread(target=server.serve_forever, name="health-server", daemon=True).start()
    logger.info(f"Health server listening on {host}:{server.server_address[1]}")
    return server
