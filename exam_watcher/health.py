"""
Liveness endpoint for the Exam Watcher bot.

Serves a plain-text status line on any GET path so an uptime monitor can
keep the process awake. It has no view of feed state beyond the time of
the last completed cycle.
"""

import threading
from datetime import datetime
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Optional

from exam_watcher.utils import get_logger


# Module logger
logger = get_logger("health")

LastCheckedFn = Callable[[], Optional[datetime]]


def render_status(last_checked: Optional[datetime]) -> str:
    """Build the status text returned by the endpoint."""
    checked = last_checked.strftime("%Y-%m-%d %H:%M:%S") if last_checked else "never"
    return f"Exam Notification Bot is running! Last checked: {checked}"


class HealthServer:
    """Background HTTP server answering every GET with the bot status."""

    def __init__(self, port: int, last_checked: Optional[LastCheckedFn] = None) -> None:
        self.port = port
        self.last_checked = last_checked or (lambda: None)
        self._httpd: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def _build_handler(self):
        server_ref = self

        class Handler(BaseHTTPRequestHandler):
            protocol_version = "HTTP/1.1"

            def do_GET(self) -> None:  # noqa: N802
                payload = render_status(server_ref.last_checked()).encode("utf-8")
                self.send_response(200)
                self.send_header("Content-Type", "text/plain; charset=utf-8")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def log_message(self, format: str, *args: object) -> None:  # noqa: A002
                logger.debug(f"{self.address_string()} - {format % args}")

        return Handler

    def start(self) -> None:
        if self._httpd is not None:
            return
        self._httpd = ThreadingHTTPServer(("0.0.0.0", self.port), self._build_handler())
        self._thread = threading.Thread(target=self._httpd.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"Keep-alive server running on port {self.server_port}")

    @property
    def server_port(self) -> int:
        """Bound port (differs from ``port`` when 0 was requested)."""
        if self._httpd is None:
            return self.port
        return self._httpd.server_address[1]

    def stop(self) -> None:
        if self._httpd is None:
            return
        self._httpd.shutdown()
        self._httpd.server_close()
        if self._thread is not None:
            self._thread.join(timeout=2)
        self._httpd = None
        self._thread = None
