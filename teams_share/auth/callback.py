"""Loopback listener for the OAuth redirect.

Binds ``127.0.0.1:<port>``, waits for exactly one request on the callback
path, answers it with a small HTML page and closes. Use as a context
manager so the socket is released on every exit path:

    with CallbackListener(3000, "/auth/callback", timeout=300) as listener:
        webbrowser.open(auth_url)
        code = listener.wait_for_code()
"""

from __future__ import annotations

import html
import logging
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Dict, Optional
from urllib.parse import parse_qs, urlparse

from teams_share.errors import AuthenticationError, LoginTimeoutError

logger = logging.getLogger(__name__)

_PAGE = """<!DOCTYPE html>
<html><head><title>{title}</title></head>
<body style="font-family:'Segoe UI',sans-serif;text-align:center;padding:50px;color:#333">
<div style="max-width:600px;margin:0 auto">
<h1 style="color:{color}">{icon} {title}</h1>
<p>{message}</p>
<p>You can close this tab and return to your terminal.</p>
</div></body></html>
"""

SUCCESS_PAGE = _PAGE.format(
    title="Authentication Successful",
    color="#107C10",
    icon="&#10004;",
    message="You can now share code snippets to Microsoft Teams.",
)


def _failure_page(message: str) -> str:
    return _PAGE.format(
        title="Authentication Failed",
        color="#d83b01",
        icon="&#10008;",
        message=html.escape(message),
    )


class CallbackListener:
    """Single-shot HTTP listener for the authorization-code redirect."""

    # Idle connections (browser preconnects) may not outlive this
    READ_TIMEOUT = 10.0

    def __init__(self, port: int, path: str, timeout: float = 300, host: str = "127.0.0.1"):
        self.port = port
        self.path = path
        self.timeout = timeout
        self.host = host
        self._server: Optional[HTTPServer] = None
        self._captured: Dict[str, Optional[Dict[str, str]]] = {"params": None}
        self._deadline: Optional[float] = None

    def __enter__(self) -> "CallbackListener":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _read_timeout(self) -> float:
        if self._deadline is None:
            return min(self.READ_TIMEOUT, self.timeout)
        return max(0.1, min(self.READ_TIMEOUT, self._deadline - time.monotonic()))

    @property
    def is_open(self) -> bool:
        return self._server is not None

    @property
    def bound_port(self) -> int:
        """Actual port, useful when constructed with port 0."""
        if self._server is None:
            return self.port
        return self._server.server_address[1]

    def open(self):
        captured = self._captured
        callback_path = self.path
        read_timeout = self._read_timeout

        class CallbackHandler(BaseHTTPRequestHandler):
            def setup(self):
                self.timeout = read_timeout()
                super().setup()

            def do_GET(self):
                parsed = urlparse(self.path)
                if parsed.path != callback_path:
                    self.send_response(404)
                    self.end_headers()
                    return

                params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
                captured["params"] = params

                if params.get("code"):
                    status, body = 200, SUCCESS_PAGE
                else:
                    msg = params.get("error_description") or params.get("error") or "No authorization code received."
                    status, body = 400, _failure_page(msg)

                self.send_response(status)
                self.send_header("Content-type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(body.encode("utf-8"))

            def log_message(self, format, *args):
                pass

        try:
            self._server = HTTPServer((self.host, self.port), CallbackHandler)
        except OSError as exc:
            raise AuthenticationError(
                f"Could not start the sign-in listener on port {self.port}: {exc}",
                reason="listener",
            ) from exc
        logger.info("Listening on http://localhost:%d%s for auth callback", self.bound_port, self.path)

    def close(self):
        if self._server is not None:
            self._server.server_close()
            self._server = None
            logger.debug("Auth callback listener closed")

    def wait_for_response(self) -> Dict[str, str]:
        """Block until the callback arrives and return its query parameters.

        Raises LoginTimeoutError after ``timeout`` seconds and
        AuthenticationError if the callback carries no code.
        """
        if self._server is None:
            raise AuthenticationError("Sign-in listener is not open", reason="listener")

        self._deadline = time.monotonic() + self.timeout
        try:
            while self._captured["params"] is None:
                remaining = self._deadline - time.monotonic()
                if remaining <= 0:
                    raise LoginTimeoutError(
                        f"No sign-in response within {int(self.timeout)} seconds. Please try again."
                    )
                self._server.timeout = remaining
                self._server.handle_request()
        finally:
            self._deadline = None
            self.close()

        params = self._captured["params"]
        if params.get("code"):
            return params

        error = params.get("error", "")
        description = params.get("error_description") or "No authorization code received."
        raise AuthenticationError(description, reason=error or "generic")

    def wait_for_code(self) -> str:
        return self.wait_for_response()["code"]
