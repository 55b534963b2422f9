"""Loopback HTTP listener that captures the sign-in redirect.

The browser user-agent binds this server to the host, port and path of
the configured ``http://127.0.0.1:<port>/...`` redirect URL. The first
request on that path is recorded verbatim; the browser gets a small
status page back.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import html
import logging
import socket
import threading

from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any
from urllib.parse import parse_qs, urlsplit


logger = logging.getLogger("hf_oauth.callback")

_SECURITY_HEADERS = (
    ("Cache-Control", "no-store"),
    ("Content-Security-Policy", "default-src 'none'; style-src 'unsafe-inline'"),
    ("X-Content-Type-Options", "nosniff"),
    ("Referrer-Policy", "no-referrer"),
)

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>{title}</title>
<style>
  body {{ font-family: system-ui, sans-serif; margin: 0; min-height: 100vh;
         display: grid; place-items: center; background: #fafafa; color: #111; }}
  main {{ max-width: 28rem; padding: 2rem; border: 1px solid #e5e7eb;
         border-radius: 8px; background: #fff; text-align: center; }}
  p {{ color: #4b5563; }}
</style></head>
<body><main><h1>{title}</h1><p>{detail}</p></main></body>
</html>"""


def _netloc_host(host: str) -> str:
    return f"[{host}]" if ":" in host else host


def _page(title: str, detail: str) -> bytes:
    return _PAGE.format(title=title, detail=html.escape(detail, quote=True)).encode("utf-8")


_SIGNED_IN_PAGE = _page(
    "Signed in to Hugging Face", "You can close this tab and return to the application."
)


class _CaptureServer(HTTPServer):
    """HTTPServer that remembers the first request made to ``path``."""

    def __init__(self, address: tuple[str, int], path: str) -> None:
        if ":" in address[0]:
            self.address_family = socket.AF_INET6
        super().__init__(address, _RedirectHandler)
        self.path = path
        self.captured: str | None = None
        self.captured_event = threading.Event()

    @property
    def origin(self) -> str:
        host, port = self.server_address[:2]
        return f"http://{_netloc_host(host)}:{port}"

    def capture(self, request_target: str) -> bool:
        """Record ``request_target``; False if a redirect was already recorded."""
        if self.captured_event.is_set():
            return False
        self.captured = f"{self.origin}{request_target}"
        self.captured_event.set()
        return True


class _RedirectHandler(BaseHTTPRequestHandler):
    server: _CaptureServer

    def do_GET(self) -> None:  # noqa: N802
        target = urlsplit(self.path)
        if target.path != self.server.path:
            self.send_error(404)
            return

        if not self.server.capture(self.path):
            logger.debug("Ignoring repeated redirect")
            self._respond(_SIGNED_IN_PAGE)
            return

        query = parse_qs(target.query)
        if "error" in query:
            reason = (query.get("error_description") or query["error"])[0]
            self._respond(_page("Sign-in failed", reason))
        else:
            self._respond(_SIGNED_IN_PAGE)

    def _respond(self, body: bytes) -> None:
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        for name, value in _SECURITY_HEADERS:
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("Redirect listener: %s", format % args)


class OAuthCallbackServer:
    """Listen on a loopback address for a single OAuth redirect.

    Parameters
    ----------
    host : str
        Loopback address to bind (default ``"127.0.0.1"``).
    port : int
        Port to bind; ``0`` lets the OS choose.
    path : str
        Request path the redirect arrives on (default ``"/callback"``).
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 0, path: str = "/callback") -> None:
        """Initialize the listener without binding it."""
        self.host = host
        self.port = port
        self.path = path or "/"
        self._server: _CaptureServer | None = None
        self._worker: threading.Thread | None = None

    @property
    def _actual_port(self) -> int:
        return self._server.server_address[1] if self._server else 0

    @property
    def redirect_uri(self) -> str:
        """The redirect URL this listener answers."""
        return f"http://{_netloc_host(self.host)}:{self._actual_port}{self.path}"

    def start(self) -> str:
        """Bind the socket and serve on a daemon thread.

        Returns
        -------
        str
            The redirect URL being served.
        """
        self._server = _CaptureServer((self.host, self.port), self.path)
        self._worker = threading.Thread(
            target=self._server.serve_forever, name="hf-oauth-redirect", daemon=True
        )
        self._worker.start()
        logger.debug("Redirect listener bound to %s", self.redirect_uri)
        return self.redirect_uri

    def wait_for_callback(self, timeout: float = 120.0) -> str | None:
        """Block until a redirect arrives; None after ``timeout`` seconds."""
        if self._server is None:
            return None
        if self._server.captured_event.wait(timeout=timeout):
            return self._server.captured
        return None

    def stop(self) -> None:
        """Stop serving and close the socket. Safe to call repeatedly."""
        server, worker = self._server, self._worker
        if server is None:
            return
        server.shutdown()
        server.server_close()
        if worker is not None and worker.is_alive():
            worker.join(timeout=5)
        self._worker = None
