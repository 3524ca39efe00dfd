"""Tests for the interactive authorization flow."""

from __future__ import annotations

import socket
import threading
import time
import webbrowser
from typing import Optional
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from tests.helpers import FakeClock, send_redirect
from xerogate.auth.authorizer import Authorizer, build_authorize_url
from xerogate.auth.listener import start_listener
from xerogate.auth.pkce import compute_challenge, new_session
from xerogate.auth.token_client import TokenClient
from xerogate.exceptions import (
    AuthorizationDenied,
    AuthTimeout,
    ConfigError,
    ListenerBindFailed,
    LoginCancelled,
    StateMismatch,
)
from xerogate.models import AuthSession, CallbackResult, Credential, Settings


class FakeListener:
    """Stands in for ListenerHandle; yields *result* after *delay_polls* polls."""

    def __init__(self, result: Optional[CallbackResult], delay_polls: int = 0) -> None:
        self._result = result
        self._delay = delay_polls
        self.stopped = False

    def received(self) -> Optional[CallbackResult]:
        if self._delay > 0:
            self._delay -= 1
            return None
        return self._result

    def stop(self) -> None:
        self.stopped = True


class FakeMonotonic:
    """Advances by *step* seconds on every call."""

    def __init__(self, step: float) -> None:
        self._now = 0.0
        self._step = step

    def __call__(self) -> float:
        self._now += self._step
        return self._now


@pytest.fixture()
def session(settings: Settings) -> AuthSession:
    return new_session(settings.redirect_uri)


@pytest.fixture()
def token_client() -> MagicMock:
    client = MagicMock(spec=TokenClient)
    client.exchange_code.return_value = Credential(
        access_token="X", refresh_token="Y", expires_at=FakeClock().now
    )
    return client


def _authorizer(
    settings: Settings,
    token_client: MagicMock,
    listener: object,
    opener: Optional[MagicMock] = None,
    monotonic: object = time.monotonic,
) -> Authorizer:
    return Authorizer(
        settings,
        token_client,
        listener_factory=lambda port, path: listener,  # type: ignore[arg-type,return-value]
        browser_opener=opener or MagicMock(return_value=True),
        monotonic=monotonic,  # type: ignore[arg-type]
    )


class TestBuildAuthorizeUrl:
    def test_parameters(self, settings: Settings, session: AuthSession) -> None:
        url = build_authorize_url(settings, session)
        parsed = urlparse(url)
        params = {k: v[0] for k, v in parse_qs(parsed.query).items()}

        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == (
            "https://login.xero.com/identity/connect/authorize"
        )
        assert params == {
            "response_type": "code",
            "client_id": "test-client-id",
            "redirect_uri": settings.redirect_uri,
            "scope": "offline_access accounting.contacts accounting.transactions accounting.settings",
            "code_challenge": session.challenge,
            "code_challenge_method": "S256",
            "prompt": "login",
            "state": session.state,
        }

    def test_challenge_matches_verifier(self, settings: Settings, session: AuthSession) -> None:
        params = parse_qs(urlparse(build_authorize_url(settings, session)).query)
        assert params["code_challenge"][0] == compute_challenge(session.verifier)
        assert "code_verifier" not in params

    def test_requires_client_id(self, session: AuthSession) -> None:
        with pytest.raises(ConfigError):
            build_authorize_url(Settings(), session)


class TestLogin:
    def test_success(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        listener = FakeListener(CallbackResult(code="ABC", state=session.state), delay_polls=2)
        opener = MagicMock(return_value=True)
        authorizer = _authorizer(settings, token_client, listener, opener)

        credential = authorizer.login(session)

        assert credential.access_token == "X"
        token_client.exchange_code.assert_called_once_with(
            "ABC", session.verifier, session.redirect_uri
        )
        opener.assert_called_once()
        assert opener.call_args.args[0].startswith(settings.authorize_url)
        assert listener.stopped

    def test_listener_started_on_redirect_port(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        calls: list[tuple[int, str]] = []
        listener = FakeListener(CallbackResult(code="ABC", state=session.state))

        def factory(port: int, path: str) -> FakeListener:
            calls.append((port, path))
            return listener

        authorizer = Authorizer(
            settings, token_client, listener_factory=factory,  # type: ignore[arg-type]
            browser_opener=MagicMock(return_value=True),
        )
        authorizer.login(session)
        assert calls == [(settings.callback_port, "/callback")]

    def test_state_mismatch(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        listener = FakeListener(CallbackResult(code="ABC", state="forged"))
        with pytest.raises(StateMismatch):
            _authorizer(settings, token_client, listener).login(session)
        token_client.exchange_code.assert_not_called()
        assert listener.stopped

    def test_missing_state(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        listener = FakeListener(CallbackResult(code="ABC"))
        with pytest.raises(StateMismatch):
            _authorizer(settings, token_client, listener).login(session)
        token_client.exchange_code.assert_not_called()

    def test_access_denied(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        listener = FakeListener(
            CallbackResult(
                error="access_denied", error_description="User cancelled", state=session.state
            )
        )
        with pytest.raises(AuthorizationDenied, match="access_denied") as exc_info:
            _authorizer(settings, token_client, listener).login(session)
        assert exc_info.value.error == "access_denied"
        token_client.exchange_code.assert_not_called()

    def test_missing_code(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        listener = FakeListener(CallbackResult(state=session.state))
        with pytest.raises(AuthorizationDenied, match="missing_code"):
            _authorizer(settings, token_client, listener).login(session)

    def test_timeout_names_redirect_uri(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        listener = FakeListener(None)
        authorizer = _authorizer(
            settings, token_client, listener, monotonic=FakeMonotonic(step=1.0)
        )
        with pytest.raises(AuthTimeout) as exc_info:
            authorizer.login(session)
        assert settings.redirect_uri in str(exc_info.value)
        assert listener.stopped

    def test_browser_failure_still_waits(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        listener = FakeListener(CallbackResult(code="ABC", state=session.state))
        opener = MagicMock(side_effect=webbrowser.Error("no browser"))
        credential = _authorizer(settings, token_client, listener, opener).login(session)
        assert credential.access_token == "X"

    def test_browser_returns_false(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        listener = FakeListener(CallbackResult(code="ABC", state=session.state))
        opener = MagicMock(return_value=False)
        credential = _authorizer(settings, token_client, listener, opener).login(session)
        assert credential.access_token == "X"

    def test_browser_command_os_error_still_waits(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        listener = FakeListener(CallbackResult(code="ABC", state=session.state))
        opener = MagicMock(side_effect=FileNotFoundError(2, "No such file", "xdg-open"))
        credential = _authorizer(settings, token_client, listener, opener).login(session)
        assert credential.access_token == "X"
        token_client.exchange_code.assert_called_once()

    def test_exchange_failure_stops_listener_first(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        listener = FakeListener(CallbackResult(code="ABC", state=session.state))
        stopped_before_exchange: list[bool] = []

        def exchange(*args: object) -> Credential:
            stopped_before_exchange.append(listener.stopped)
            raise RuntimeError("boom")

        token_client.exchange_code.side_effect = exchange
        with pytest.raises(RuntimeError):
            _authorizer(settings, token_client, listener).login(session)
        assert stopped_before_exchange == [True]

    def test_cancel(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        listener = FakeListener(None)
        authorizer = _authorizer(settings, token_client, listener)
        timer = threading.Timer(0.1, authorizer.cancel)
        timer.start()
        try:
            with pytest.raises(LoginCancelled):
                authorizer.login(session)
        finally:
            timer.cancel()
        assert listener.stopped


class TestLoginWithRealListener:
    def test_redirect_captured_and_exchanged(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        def open_browser(url: str) -> bool:
            state = parse_qs(urlparse(url).query)["state"][0]
            send_redirect(settings.callback_port, {"code": "ABC", "state": state})
            return True

        authorizer = Authorizer(settings, token_client, browser_opener=open_browser)
        credential = authorizer.login(session)

        assert credential.access_token == "X"
        token_client.exchange_code.assert_called_once_with(
            "ABC", session.verifier, session.redirect_uri
        )

    def test_timeout_releases_port(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        fast = settings.model_copy(update={"login_timeout": 0.3})
        authorizer = Authorizer(fast, token_client, browser_opener=MagicMock(return_value=True))

        with pytest.raises(AuthTimeout):
            authorizer.login(session)

        handle = start_listener(settings.callback_port, "/callback")
        handle.stop()

    def test_port_in_use(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        blocker = start_listener(settings.callback_port, "/callback")
        opener = MagicMock(return_value=True)
        try:
            with pytest.raises(ListenerBindFailed):
                Authorizer(settings, token_client, browser_opener=opener).login(session)
        finally:
            blocker.stop()
        opener.assert_not_called()

    def test_redirect_captured_with_idle_preconnect(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        idle: list[socket.socket] = []

        def open_browser(url: str) -> bool:
            idle.append(socket.create_connection(("127.0.0.1", settings.callback_port)))
            state = parse_qs(urlparse(url).query)["state"][0]
            send_redirect(settings.callback_port, {"code": "ABC", "state": state})
            return True

        try:
            credential = Authorizer(settings, token_client, browser_opener=open_browser).login(
                session
            )
        finally:
            for sock in idle:
                sock.close()

        assert credential.access_token == "X"

    def test_timeout_on_time_with_idle_preconnect(
        self, settings: Settings, session: AuthSession, token_client: MagicMock
    ) -> None:
        fast = settings.model_copy(update={"login_timeout": 0.3})
        idle: list[socket.socket] = []

        def open_browser(url: str) -> bool:
            idle.append(socket.create_connection(("127.0.0.1", settings.callback_port)))
            return True

        started = time.monotonic()
        try:
            with pytest.raises(AuthTimeout):
                Authorizer(fast, token_client, browser_opener=open_browser).login(session)
            elapsed = time.monotonic() - started
        finally:
            for sock in idle:
                sock.close()

        assert elapsed < 2.0
        token_client.exchange_code.assert_not_called()
        handle = start_listener(settings.callback_port, "/callback")
        handle.stop()
