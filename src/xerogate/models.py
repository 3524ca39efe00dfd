"""Canonical Pydantic models shared across all xerogate modules.

The models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config
directory: :class:`Scope` and :class:`Settings`.

**Session records** -- produced and consumed by the auth components:
:class:`Credential` and :class:`TenantSelection` (persisted),
:class:`AuthSession` and :class:`CallbackResult` (ephemeral, one login
attempt only), and :class:`Connection` (one entry of the connections
endpoint).

All models use Pydantic v2. Persisted records use field aliases so that the
on-disk JSON keeps the provider's naming (``tenantId``) while Python code
uses snake_case.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8721/callback"


# --- Configuration ---


class Scope(str, enum.Enum):
    """OAuth2 scopes requested at login.

    The set is fixed: the application needs offline access (for refresh
    tokens) plus contacts, transactions (quotes) and settings.
    """

    OFFLINE_ACCESS = "offline_access"
    CONTACTS = "accounting.contacts"
    TRANSACTIONS = "accounting.transactions"
    SETTINGS = "accounting.settings"


class Settings(BaseModel):
    """Effective configuration for the auth client.

    Built by :func:`xerogate.config.load_settings` from defaults, the
    ``config.json`` file, and environment variables.

    Example::

        Settings(client_id="ABC123", data_dir=Path("/tmp/xero"))
    """

    client_id: Optional[str] = Field(
        default=None, description="OAuth2 client id of the registered Xero app"
    )
    redirect_uri: str = Field(
        default=DEFAULT_REDIRECT_URI,
        description="Loopback redirect URI registered with the Xero app",
    )
    auth_base: str = "https://login.xero.com/identity"
    token_base: str = "https://identity.xero.com"
    api_base: str = "https://api.xero.com"
    scopes: list[Scope] = Field(default_factory=lambda: list(Scope))
    data_dir: Optional[Path] = Field(
        default=None, description="Directory holding the token and tenant files"
    )
    login_timeout: float = Field(default=90.0, gt=0)
    poll_interval: float = Field(default=0.15, gt=0)
    refresh_margin: float = Field(default=60.0, ge=0)
    http_timeout: float = Field(default=30.0, gt=0)

    @field_validator("redirect_uri")
    @classmethod
    def _check_redirect_uri(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme != "http" or not parsed.hostname:
            raise ValueError(
                f"redirect_uri must be an http:// loopback URL, got {value!r}"
            )
        return value

    @property
    def authorize_url(self) -> str:
        return f"{self.auth_base.rstrip('/')}/connect/authorize"

    @property
    def token_url(self) -> str:
        return f"{self.token_base.rstrip('/')}/connect/token"

    @property
    def connections_url(self) -> str:
        return f"{self.api_base.rstrip('/')}/connections"

    @property
    def scope_string(self) -> str:
        """Space-separated scopes in declaration order."""
        return " ".join(scope.value for scope in self.scopes)

    @property
    def callback_port(self) -> int:
        return urlparse(self.redirect_uri).port or 80

    @property
    def callback_path(self) -> str:
        return urlparse(self.redirect_uri).path or "/"


# --- Persisted session records ---


class Credential(BaseModel):
    """The current access/refresh token pair and its absolute expiry.

    Attributes:
        access_token: Short-lived bearer token sent with every API call.
        refresh_token: Longer-lived token used to obtain a new pair.
        expires_at: UTC instant after which ``access_token`` is unusable.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(min_length=1)
    refresh_token: str = Field(min_length=1)
    expires_at: datetime

    @field_validator("expires_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        # Naive datetimes are treated as UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def from_token_response(
        cls, access_token: str, refresh_token: str, expires_in: float, now: datetime
    ) -> Credential:
        """Build a credential from a token endpoint response."""
        return cls(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=now + timedelta(seconds=expires_in),
        )

    def needs_refresh(self, now: datetime, margin: float = 60.0) -> bool:
        """Return ``True`` once *now* is within *margin* seconds of expiry."""
        return now >= self.expires_at - timedelta(seconds=margin)

    def __repr__(self) -> str:
        # Keep tokens out of logs and tracebacks.
        return f"Credential(expires_at={self.expires_at.isoformat()})"

    __str__ = __repr__


class TenantSelection(BaseModel):
    """The organisation that API calls operate against."""

    model_config = ConfigDict(populate_by_name=True)

    tenant_id: str = Field(alias="tenantId", min_length=1)


class Connection(BaseModel):
    """One entry of the provider's ``/connections`` response."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    tenant_id: str = Field(alias="tenantId")
    tenant_name: Optional[str] = Field(default=None, alias="tenantName")
    tenant_type: Optional[str] = Field(default=None, alias="tenantType")


# --- Ephemeral login records ---


class AuthSession(BaseModel):
    """PKCE material for one interactive login attempt. Never persisted."""

    model_config = ConfigDict(frozen=True)

    verifier: str
    challenge: str
    state: str
    redirect_uri: str


class CallbackResult(BaseModel):
    """Query parameters captured from the single login redirect."""

    model_config = ConfigDict(frozen=True)

    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None
