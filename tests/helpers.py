"""Non-fixture helpers shared by the test modules."""

from __future__ import annotations

import socket
import threading
import time
from datetime import datetime, timedelta, timezone
from http.client import HTTPConnection
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

TOKEN_URL = "https://identity.xero.com/connect/token"
CONNECTIONS_URL = "https://api.xero.com/connections"


def find_free_port() -> int:
    """Find a free TCP port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class FakeClock:
    """A settable UTC clock."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2030, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def make_response(
    status_code: int = 200,
    json_body: Any = None,
    text: Optional[str] = None,
    method: str = "POST",
    url: str = TOKEN_URL,
) -> httpx.Response:
    """Build a real httpx.Response with either a JSON or a text body."""
    request = httpx.Request(method, url)
    if text is not None:
        return httpx.Response(status_code, text=text, request=request)
    return httpx.Response(status_code, json=json_body, request=request)


def token_body(
    access_token: str = "access-1",
    refresh_token: str = "refresh-1",
    expires_in: int = 1800,
) -> dict[str, Any]:
    """A token endpoint success body."""
    return {
        "access_token": access_token,
        "refresh_token": refresh_token,
        "expires_in": expires_in,
        "token_type": "Bearer",
    }


def send_redirect(port: int, query: dict[str, str], delay: float = 0.1) -> threading.Thread:
    """Hit the local listener from a background thread, like a browser would."""

    def send() -> None:
        time.sleep(delay)
        conn = HTTPConnection("127.0.0.1", port, timeout=5)
        conn.request("GET", f"/callback?{urlencode(query)}")
        conn.getresponse().read()
        conn.close()

    thread = threading.Thread(target=send, daemon=True)
    thread.start()
    return thread
