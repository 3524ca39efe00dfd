"""Token endpoint client: authorization-code exchange and refresh.

Both grants post a form to ``{token_base}/connect/token`` as a public
(desktop) client -- the PKCE verifier stands in for a client secret -- and
parse ``access_token``, ``refresh_token`` and ``expires_in`` from the JSON
reply. The resulting :class:`~xerogate.models.Credential` is written to the
:class:`~xerogate.auth.credential_store.TokenStore` before it is returned.

There is no retry here. A transport failure surfaces immediately as
:class:`~xerogate.exceptions.ProviderUnreachable`; any retry policy belongs
to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from xerogate.auth.credential_store import TokenStore
from xerogate.config import require_client_id
from xerogate.exceptions import (
    ProviderError,
    ProviderUnreachable,
    RefreshFailed,
    StorageUnavailable,
    TokenExchangeFailed,
    excerpt,
)
from xerogate.models import Credential, Settings

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("access_token", "refresh_token", "expires_in")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenClient:
    """Turns an authorization code or refresh token into a fresh credential.

    Args:
        settings: Endpoint, client id and timeout configuration.
        store: Where every new credential is persisted.
        clock: Returns the current UTC time; ``expires_at`` is computed from it.
    """

    def __init__(
        self,
        settings: Settings,
        store: TokenStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings
        self._store = store
        self._clock = clock

    def exchange_code(self, code: str, verifier: str, redirect_uri: str) -> Credential:
        """Exchange an authorization code for a token pair.

        Args:
            code: The ``code`` from the login redirect.
            verifier: The PKCE verifier of the session that produced *code*.
            redirect_uri: The redirect URI sent in the authorize request.

        Raises:
            TokenExchangeFailed: On a non-2xx reply or an unusable body.
            ProviderUnreachable: On a network failure.
        """
        data = {
            "grant_type": "authorization_code",
            "client_id": require_client_id(self._settings),
            "code": code,
            "redirect_uri": redirect_uri,
            "code_verifier": verifier,
        }
        return self._request_token(data, TokenExchangeFailed, "Token exchange")

    def refresh(self, refresh_token: str) -> Credential:
        """Trade a refresh token for a new token pair.

        Raises:
            RefreshFailed: On a non-2xx reply or an unusable body. The
                session gate answers this by running the interactive login.
            ProviderUnreachable: On a network failure.
        """
        data = {
            "grant_type": "refresh_token",
            "client_id": require_client_id(self._settings),
            "refresh_token": refresh_token,
        }
        return self._request_token(data, RefreshFailed, "Token refresh")

    def _request_token(
        self,
        data: dict[str, str],
        failure: type[ProviderError],
        action: str,
    ) -> Credential:
        url = self._settings.token_url
        logger.debug("POST %s grant_type=%s", url, data["grant_type"])
        try:
            response = httpx.post(
                url,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self._settings.http_timeout,
            )
        except httpx.HTTPError as exc:
            raise ProviderUnreachable(f"{action} failed: {exc}") from exc

        logger.debug("%s returned HTTP %d", action, response.status_code)
        if not response.is_success:
            raise failure(response.status_code, excerpt(response.text))

        credential = self._parse(response, failure)
        self._persist(credential)
        return credential

    def _parse(self, response: httpx.Response, failure: type[ProviderError]) -> Credential:
        # The body holds live tokens, so errors describe it instead of quoting it.
        try:
            token_data: Any = response.json()
        except ValueError:
            raise failure(response.status_code, "response body is not JSON") from None
        if not isinstance(token_data, dict):
            raise failure(response.status_code, "response body is not a JSON object")

        missing = [name for name in _REQUIRED_FIELDS if not token_data.get(name)]
        if missing:
            raise failure(
                response.status_code,
                f"response is missing {', '.join(missing)}",
            )
        try:
            expires_in = float(token_data["expires_in"])
        except (TypeError, ValueError):
            raise failure(response.status_code, "expires_in is not a number") from None

        return Credential.from_token_response(
            access_token=str(token_data["access_token"]),
            refresh_token=str(token_data["refresh_token"]),
            expires_in=expires_in,
            now=self._clock(),
        )

    def _persist(self, credential: Credential) -> None:
        try:
            self._store.save(credential)
        except StorageUnavailable as exc:
            # The credential is still good for this process.
            logger.warning("Token obtained but not saved: %s", exc)


def bearer_headers(access_token: str, extra: Optional[dict[str, str]] = None) -> dict[str, str]:
    """Build ``Authorization`` and ``Accept`` headers for a bearer-authenticated call."""
    headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
    if extra:
        headers.update(extra)
    return headers
