"""Auth artifacts handed to API callers.

:class:`AuthResult` is what :meth:`~xerogate.auth.session.SessionGate.authenticate`
returns: the bearer token, the selected tenant, and the two headers every
accounting API request needs.
"""

from __future__ import annotations

TENANT_HEADER = "xero-tenant-id"


class AuthResult:
    """Container for authentication artifacts to inject into HTTP requests.

    Args:
        access_token: The current bearer token.
        tenant_id: The selected organisation id.

    Example::

        result = AuthResult("tok123", "tenant-1")
        assert result.headers["Authorization"] == "Bearer tok123"
        assert result.headers["xero-tenant-id"] == "tenant-1"
    """

    def __init__(self, access_token: str, tenant_id: str):
        self.access_token = access_token
        self.tenant_id = tenant_id
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            TENANT_HEADER: tenant_id,
        }

    def __repr__(self) -> str:
        return f"AuthResult(tenant_id={self.tenant_id!r})"
