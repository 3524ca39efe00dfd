"""The session gate: the one call collaborators make before any API request.

:class:`SessionGate` owns the current :class:`~xerogate.models.Credential`
and tenant id. :meth:`SessionGate.ensure_authenticated` is idempotent and
cheap when the token is fresh::

    if no credential or now >= expires_at - margin:
        if a refresh token is present:
            refresh; on RefreshFailed fall through to interactive login
        else:
            interactive login
    if no tenant:
        resolve the first linked tenant

It is the only place that turns an internal failure into a decision
(refresh, log in again, or propagate). Everything else surfaces unchanged.
Calls are serialized with an internal lock, so one gate instance can be
shared between threads.

See Also:
    :func:`create_gate` -- wires the default components from settings.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Optional

from xerogate.auth.authorizer import Authorizer
from xerogate.auth.base import AuthResult
from xerogate.auth.credential_store import TenantStore, TokenStore
from xerogate.auth.pkce import new_session
from xerogate.auth.tenant import TenantResolver
from xerogate.auth.token_client import TokenClient, utcnow
from xerogate.exceptions import AuthError, RefreshFailed
from xerogate.models import Connection, Credential, Settings

logger = logging.getLogger(__name__)


class SessionGate:
    """Keeps a valid bearer token and tenant id available to collaborators.

    The persisted credential and tenant are loaded once at construction;
    afterwards the gate's in-memory copy is authoritative and every change
    is written back through the stores by the component that produced it.

    Args:
        settings: Effective configuration.
        token_store: Persistence for the credential.
        tenant_store: Persistence for the tenant selection.
        token_client: Performs refreshes (and the code exchange, via the
            authorizer).
        authorizer: Runs the interactive browser login.
        resolver: Picks the tenant.
        clock: Returns the current UTC time.
    """

    def __init__(
        self,
        settings: Settings,
        token_store: TokenStore,
        tenant_store: TenantStore,
        token_client: TokenClient,
        authorizer: Authorizer,
        resolver: TenantResolver,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._settings = settings
        self._token_store = token_store
        self._tenant_store = tenant_store
        self._token_client = token_client
        self._authorizer = authorizer
        self._resolver = resolver
        self._clock = clock
        self._lock = threading.RLock()

        self._credential: Optional[Credential] = token_store.load()
        selection = tenant_store.load()
        self._tenant_id: Optional[str] = selection.tenant_id if selection else None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    @property
    def access_token(self) -> Optional[str]:
        return self._credential.access_token if self._credential else None

    @property
    def tenant_id(self) -> Optional[str]:
        return self._tenant_id

    def ensure_authenticated(self) -> None:
        """Make sure a fresh token and a tenant are available.

        Raises:
            AuthError: Any login, exchange or tenant failure (subclass
                identifies which). ``RefreshFailed`` never escapes; it
                triggers the interactive login instead.
            ProviderUnreachable: The provider could not be reached.
            ConfigError: No client id is configured.
        """
        with self._lock:
            if self._is_stale():
                if self._credential is not None:
                    try:
                        self._refresh(self._credential.refresh_token)
                    except RefreshFailed as exc:
                        logger.info("Refresh rejected (%s); starting interactive login", exc)
                        self._interactive_login()
                else:
                    self._interactive_login()

            if not self._tenant_id or not self._tenant_id.strip():
                assert self._credential is not None
                self._tenant_id = self._resolver.resolve(self._credential.access_token)

    def authenticate(self) -> AuthResult:
        """Run :meth:`ensure_authenticated` and return the request headers."""
        with self._lock:
            self.ensure_authenticated()
            assert self._credential is not None and self._tenant_id
            return AuthResult(self._credential.access_token, self._tenant_id)

    def login(self) -> None:
        """Force an interactive login, then resolve a tenant if none is selected."""
        with self._lock:
            self._interactive_login()
            self.ensure_authenticated()

    def refresh(self) -> None:
        """Force a refresh with the stored refresh token.

        Raises:
            AuthError: If there is no stored credential.
            RefreshFailed: If the provider rejects the refresh token.
        """
        with self._lock:
            if self._credential is None:
                raise AuthError("No stored credential to refresh; log in first.")
            self._refresh(self._credential.refresh_token)

    def logout(self) -> None:
        """Forget the credential and tenant, in memory and on disk."""
        with self._lock:
            self._credential = None
            self._tenant_id = None
            self._token_store.clear()
            self._tenant_store.clear()

    def connections(self) -> list[Connection]:
        """List every organisation linked to the signed-in user."""
        with self._lock:
            self.ensure_authenticated()
            assert self._credential is not None
            return self._resolver.list_connections(self._credential.access_token)

    def cancel_login(self) -> None:
        """Release an interactive login that is waiting for the redirect."""
        self._authorizer.cancel()

    def status(self) -> dict[str, Any]:
        """Snapshot of the session for display. Contains no token values."""
        with self._lock:
            now = self._clock()
            credential = self._credential
            return {
                "authenticated": credential is not None,
                "expires_at": credential.expires_at.isoformat() if credential else None,
                "seconds_remaining": (
                    int((credential.expires_at - now).total_seconds()) if credential else None
                ),
                "needs_refresh": self._is_stale(),
                "tenant_id": self._tenant_id,
                "token_file": str(self._token_store.path),
                "tenant_file": str(self._tenant_store.path),
            }

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _is_stale(self) -> bool:
        if self._credential is None:
            return True
        return self._credential.needs_refresh(self._clock(), self._settings.refresh_margin)

    def _refresh(self, refresh_token: str) -> None:
        logger.debug("Refreshing access token")
        self._credential = self._token_client.refresh(refresh_token)

    def _interactive_login(self) -> None:
        session = new_session(self._settings.redirect_uri)
        self._credential = self._authorizer.login(session)


def create_gate(settings: Optional[Settings] = None) -> SessionGate:
    """Build a :class:`SessionGate` with the default components.

    Args:
        settings: Effective configuration; loaded with
            :func:`xerogate.config.load_settings` when omitted.
    """
    if settings is None:
        from xerogate.config import load_settings

        settings = load_settings()
    if settings.data_dir is None:
        from xerogate.config import get_data_dir

        settings = settings.model_copy(update={"data_dir": get_data_dir()})

    token_store = TokenStore(settings.data_dir)
    tenant_store = TenantStore(settings.data_dir)
    token_client = TokenClient(settings, token_store)
    return SessionGate(
        settings=settings,
        token_store=token_store,
        tenant_store=tenant_store,
        token_client=token_client,
        authorizer=Authorizer(settings, token_client),
        resolver=TenantResolver(settings, tenant_store),
    )
