"""Loopback HTTP listener that captures the single login redirect.

:func:`start_listener` binds ``127.0.0.1:<port>`` and serves the callback
path from a background thread, with one handler thread per connection. The
first request to that path is parsed into a
:class:`~xerogate.models.CallbackResult`, answered with a static
confirmation page, and only then published to a :class:`CallbackMailbox`.
Later requests (browser retries, duplicate tabs) get the same page but never
replace the captured result. Anything outside the callback path is a 404.

The caller polls :meth:`ListenerHandle.received` and calls
:meth:`ListenerHandle.stop` when done. A result is published only after its
confirmation page has been written, so the tab that delivered the code is
never left hanging. Idle connections (browser preconnects) hold only their
own handler thread and are dropped after :data:`REQUEST_TIMEOUT` seconds;
they cannot block the redirect or delay ``stop()``.
"""

from __future__ import annotations

import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional
from urllib.parse import parse_qs, urlparse

from xerogate.exceptions import ListenerBindFailed
from xerogate.models import CallbackResult

logger = logging.getLogger(__name__)

LISTEN_HOST = "127.0.0.1"

# Idle connections (browser preconnects) are dropped after this many seconds.
REQUEST_TIMEOUT = 5.0

CONFIRMATION_PAGE = (
    "<html><head><title>Xero login</title></head>"
    "<body style='font:14px system-ui'>"
    "<h2>Login received.</h2><p>You can close this window and return to the app.</p>"
    "</body></html>"
).encode("utf-8")

NOT_FOUND_PAGE = b"<html><body>Not found.</body></html>"


class CallbackMailbox:
    """Single-slot, write-once handoff between the server thread and the waiter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._result: Optional[CallbackResult] = None

    def offer(self, result: CallbackResult) -> bool:
        """Store *result* if the slot is empty. Returns ``True`` if it was stored."""
        with self._lock:
            if self._result is not None:
                return False
            self._result = result
            return True

    def peek(self) -> Optional[CallbackResult]:
        with self._lock:
            return self._result


def _first(params: dict[str, list[str]], name: str) -> Optional[str]:
    values = params.get(name)
    return values[0] if values else None


def _make_handler(callback_path: str, mailbox: CallbackMailbox) -> type[BaseHTTPRequestHandler]:
    class CallbackHandler(BaseHTTPRequestHandler):
        timeout = REQUEST_TIMEOUT

        def do_GET(self) -> None:
            parsed = urlparse(self.path)
            if parsed.path != callback_path:
                self._reply(404, NOT_FOUND_PAGE)
                return

            params = parse_qs(parsed.query)
            result = CallbackResult(
                code=_first(params, "code"),
                state=_first(params, "state"),
                error=_first(params, "error"),
                error_description=_first(params, "error_description"),
            )
            self._reply(200, CONFIRMATION_PAGE)
            if mailbox.offer(result):
                logger.debug("Captured login redirect on %s", callback_path)
            else:
                logger.debug("Ignoring repeated request to %s", callback_path)

        def _reply(self, status: int, body: bytes) -> None:
            self.send_response(status)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(body)))
            self.send_header("Connection", "close")
            self.end_headers()
            self.wfile.write(body)
            self.wfile.flush()

        def log_message(self, format: str, *args: Any) -> None:
            # Query strings carry the authorization code; keep them out of stderr.
            logger.debug("listener: %s", self.command)

    return CallbackHandler


class ListenerHandle:
    """A running loopback listener. Create with :func:`start_listener`."""

    def __init__(self, server: ThreadingHTTPServer, mailbox: CallbackMailbox) -> None:
        self._server = server
        self._mailbox = mailbox
        self._stopped = False
        self._stop_lock = threading.Lock()
        self._thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": 0.05},
            name="xerogate-redirect-listener",
            daemon=True,
        )

    @property
    def port(self) -> int:
        return self._server.server_address[1]

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    def received(self) -> Optional[CallbackResult]:
        """Return the captured redirect, or ``None`` while still pending."""
        return self._mailbox.peek()

    def stop(self) -> None:
        """Stop serving and release the port. Safe to call more than once."""
        with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(timeout=5)
        logger.debug("Redirect listener on port %d stopped", self.port)

    def _start(self) -> None:
        self._thread.start()

    def __enter__(self) -> ListenerHandle:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def start_listener(port: int, path: str) -> ListenerHandle:
    """Bind the loopback listener and start serving in the background.

    Args:
        port: Fixed local port matching the registered redirect URI.
        path: Callback path (e.g. ``/callback``).

    Returns:
        A running :class:`ListenerHandle`.

    Raises:
        ListenerBindFailed: If the port cannot be bound (already in use,
            permission denied). Not retried.
    """
    mailbox = CallbackMailbox()
    try:
        server = ThreadingHTTPServer((LISTEN_HOST, port), _make_handler(path, mailbox))
        server.daemon_threads = True
    except OSError as exc:
        raise ListenerBindFailed(LISTEN_HOST, port, exc.strerror or str(exc)) from exc

    handle = ListenerHandle(server, mailbox)
    handle._start()
    logger.debug("Redirect listener on http://%s:%d%s", LISTEN_HOST, handle.port, path)
    return handle
