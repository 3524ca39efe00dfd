"""Exception hierarchy for xerogate.

All exceptions inherit from :class:`XerogateError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`xerogate.exit_codes`.
The top-level error handler in :func:`xerogate.app.main` catches
``XerogateError`` and exits with the appropriate code.

Collaborators that only need to know "authentication is unavailable" can
catch :class:`AuthError`; the subclasses exist so that the session gate can
decide between refreshing, re-running the interactive login, or giving up.

Subclass hierarchy::

    XerogateError (exit 1)
    +-- ConfigError              (exit 2)
    +-- AuthError                (exit 3)
    |   +-- ListenerBindFailed
    |   +-- AuthTimeout
    |   +-- StateMismatch
    |   +-- AuthorizationDenied
    |   +-- LoginCancelled
    |   +-- ProviderError
    |   |   +-- TokenExchangeFailed
    |   |   +-- RefreshFailed
    |   |   +-- TenantLookupFailed
    |   +-- NoTenantLinked
    |   +-- MalformedConnections
    +-- ApiError                 (exit 5)
    +-- ProviderUnreachable      (exit 6)
    +-- StorageUnavailable       (exit 7)
"""

from __future__ import annotations

from xerogate.exit_codes import (
    EXIT_API_ERROR,
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_STORAGE_ERROR,
)

EXCERPT_LIMIT = 500


def excerpt(text: str | None, limit: int = EXCERPT_LIMIT) -> str:
    """Return at most *limit* characters of *text*, marking truncation."""
    if not text:
        return ""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + " ..."


class XerogateError(Exception):
    """Base exception for all xerogate errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(XerogateError):
    """Raised for configuration problems (missing client id, invalid JSON, bad redirect URI)."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(XerogateError):
    """Raised when an access token or tenant cannot be obtained."""

    exit_code = EXIT_AUTH_FAILURE


class ListenerBindFailed(AuthError):
    """Raised when the loopback callback port is already in use."""

    def __init__(self, host: str, port: int, reason: str):
        super().__init__(
            f"Cannot listen for the login redirect on {host}:{port}: {reason}"
        )
        self.host = host
        self.port = port


class AuthTimeout(AuthError):
    """Raised when no redirect reaches the loopback listener in time."""

    def __init__(self, redirect_uri: str, timeout: float):
        super().__init__(
            f"Did not receive the login redirect within {timeout:g} seconds. "
            f"Check that this exact redirect URI is registered with the Xero app: "
            f"{redirect_uri} (and try again in a private browser window)."
        )
        self.redirect_uri = redirect_uri
        self.timeout = timeout


class StateMismatch(AuthError):
    """Raised when the redirect's ``state`` does not match the one we sent."""

    def __init__(self) -> None:
        super().__init__(
            "Login redirect carried an unexpected 'state' value; "
            "the authorization code was rejected."
        )


class AuthorizationDenied(AuthError):
    """Raised when the provider redirects back with an error instead of a code."""

    def __init__(self, error: str, description: str | None = None):
        message = f"Authorization failed: {error}"
        if description:
            message += f" - {excerpt(description, 200)}"
        super().__init__(message)
        self.error = error
        self.description = description


class LoginCancelled(AuthError):
    """Raised in the waiting thread when an interactive login is cancelled."""


class ProviderError(AuthError):
    """An HTTP-level rejection from the identity provider.

    Carries the status code and a bounded excerpt of the response body so
    callers never have to inspect HTTP internals.

    Args:
        action: Short description of the failed call (``"Token exchange"``).
        http_status: The response status code.
        body_excerpt: At most :data:`EXCERPT_LIMIT` characters of the body.
    """

    def __init__(self, action: str, http_status: int, body_excerpt: str = ""):
        message = f"{action} failed with HTTP {http_status}"
        if body_excerpt:
            message += f": {body_excerpt}"
        super().__init__(message)
        self.http_status = http_status
        self.body_excerpt = body_excerpt


class TokenExchangeFailed(ProviderError):
    """Raised when the token endpoint rejects an authorization code."""

    def __init__(self, http_status: int, body_excerpt: str = ""):
        super().__init__("Token exchange", http_status, body_excerpt)


class RefreshFailed(ProviderError):
    """Raised when the token endpoint rejects a refresh token.

    The session gate recovers from this by running the interactive login.
    """

    def __init__(self, http_status: int, body_excerpt: str = ""):
        super().__init__("Token refresh", http_status, body_excerpt)


class TenantLookupFailed(ProviderError):
    """Raised when the connections endpoint returns a non-2xx response."""

    def __init__(self, http_status: int, body_excerpt: str = ""):
        super().__init__("Connections lookup", http_status, body_excerpt)


class NoTenantLinked(AuthError):
    """Raised when the user has no Xero organisation linked to the app."""

    def __init__(self) -> None:
        super().__init__(
            "No Xero organisations are linked to this user. "
            "Connect an organisation to the app and try again."
        )


class MalformedConnections(AuthError):
    """Raised when the connections endpoint does not return a JSON array of tenants."""

    def __init__(self, body_excerpt: str = ""):
        message = "Connections response is not a JSON array of tenants"
        if body_excerpt:
            message += f": {body_excerpt}"
        super().__init__(message)
        self.body_excerpt = body_excerpt


class ApiError(XerogateError):
    """Raised when an accounting API call returns a non-2xx response."""

    exit_code = EXIT_API_ERROR

    def __init__(self, message: str, http_status: int | None = None):
        super().__init__(message)
        self.http_status = http_status


class ProviderUnreachable(XerogateError):
    """Raised on network-level failures talking to the provider (timeout, DNS, refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class StorageUnavailable(XerogateError):
    """Raised when the token or tenant file cannot be written."""

    exit_code = EXIT_STORAGE_ERROR
