"""Interactive OAuth2 Authorization Code + PKCE login.

:class:`Authorizer` drives one login attempt end to end:

1. Builds the authorize URL from the session's PKCE material.
2. Starts the loopback listener on the registered port *before* the browser
   opens, so the redirect cannot arrive early and be lost.
3. Opens the default browser. If that fails the URL is still printed and the
   user can paste it by hand.
4. Polls the listener at a short fixed interval until a redirect arrives,
   the hard timeout expires, or :meth:`Authorizer.cancel` is called.
5. Stops the listener, checks ``state`` and hands the code to the
   :class:`~xerogate.auth.token_client.TokenClient`.

The wait is a plain blocking loop in the calling thread; the listener runs
on its own daemon thread and reports through a single-slot mailbox.
"""

from __future__ import annotations

import logging
import secrets
import threading
import time
import webbrowser
from typing import Callable, Optional
from urllib.parse import urlencode

from xerogate.auth.listener import ListenerHandle, start_listener
from xerogate.auth.token_client import TokenClient
from xerogate.config import require_client_id
from xerogate.exceptions import (
    AuthorizationDenied,
    AuthTimeout,
    LoginCancelled,
    StateMismatch,
)
from xerogate.models import AuthSession, CallbackResult, Credential, Settings
from xerogate.output import info, warning

logger = logging.getLogger(__name__)

ListenerFactory = Callable[[int, str], ListenerHandle]
BrowserOpener = Callable[[str], bool]


def build_authorize_url(settings: Settings, session: AuthSession) -> str:
    """Return the provider authorize URL for *session*."""
    params = {
        "response_type": "code",
        "client_id": require_client_id(settings),
        "redirect_uri": session.redirect_uri,
        "scope": settings.scope_string,
        "code_challenge": session.challenge,
        "code_challenge_method": "S256",
        "prompt": "login",
        "state": session.state,
    }
    return f"{settings.authorize_url}?{urlencode(params)}"


class Authorizer:
    """Runs the browser-driven part of the login and returns a credential.

    Args:
        settings: Endpoints, client id, timeout and poll interval.
        token_client: Exchanges the captured code for tokens.
        listener_factory: Starts the loopback listener; injectable for tests.
        browser_opener: Opens a URL in the user's browser.
        monotonic: Clock used for the timeout.
    """

    def __init__(
        self,
        settings: Settings,
        token_client: TokenClient,
        listener_factory: ListenerFactory = start_listener,
        browser_opener: BrowserOpener = webbrowser.open,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._token_client = token_client
        self._listener_factory = listener_factory
        self._browser_opener = browser_opener
        self._monotonic = monotonic
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Release a waiting :meth:`login` early; it raises ``LoginCancelled``."""
        self._cancel.set()

    def login(self, session: AuthSession) -> Credential:
        """Run one interactive login attempt.

        Raises:
            ListenerBindFailed: The callback port is in use.
            AuthTimeout: No redirect arrived within ``login_timeout``.
            LoginCancelled: :meth:`cancel` was called while waiting.
            StateMismatch: The redirect's ``state`` is not the one we sent.
            AuthorizationDenied: The provider redirected back with an error
                or without a code.
            TokenExchangeFailed: The token endpoint rejected the code.
        """
        self._cancel.clear()
        auth_url = build_authorize_url(self._settings, session)

        listener = self._listener_factory(
            self._settings.callback_port, self._settings.callback_path
        )
        try:
            info(f"Listening for the Xero login redirect on {session.redirect_uri}")
            self._open_browser(auth_url)
            result = self._wait_for_redirect(listener)
        finally:
            listener.stop()

        if result is None:
            if self._cancel.is_set():
                raise LoginCancelled("Login cancelled before the redirect arrived.")
            raise AuthTimeout(session.redirect_uri, self._settings.login_timeout)

        code = self._check_result(result, session)
        logger.debug("Received authorization code; exchanging")
        return self._token_client.exchange_code(code, session.verifier, session.redirect_uri)

    def _open_browser(self, auth_url: str) -> None:
        info("Opening the Xero login page. If no browser appears, open this URL:")
        info(auth_url)
        try:
            opened = self._browser_opener(auth_url)
        except (webbrowser.Error, OSError) as exc:
            warning(f"Could not launch a browser ({exc}); open the URL above manually.")
            return
        if opened is False:
            warning("Could not launch a browser; open the URL above manually.")

    def _wait_for_redirect(self, listener: ListenerHandle) -> Optional[CallbackResult]:
        deadline = self._monotonic() + self._settings.login_timeout
        while True:
            result = listener.received()
            if result is not None:
                return result
            if self._monotonic() >= deadline:
                logger.debug("Login redirect timed out")
                return None
            if self._cancel.wait(self._settings.poll_interval):
                return None

    def _check_result(self, result: CallbackResult, session: AuthSession) -> str:
        if result.state is None or not secrets.compare_digest(
            result.state.encode("utf-8"), session.state.encode("utf-8")
        ):
            raise StateMismatch()
        if result.error:
            raise AuthorizationDenied(result.error, result.error_description)
        if not result.code:
            raise AuthorizationDenied("missing_code", "the redirect carried no authorization code")
        return result.code
