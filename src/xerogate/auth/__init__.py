"""OAuth2 Authorization Code + PKCE client for the Xero identity service.

Components, leaf first:

- :mod:`~xerogate.auth.pkce` -- verifier/challenge pair and state token.
- :class:`TokenStore` / :class:`TenantStore` -- durable JSON records.
- :mod:`~xerogate.auth.listener` -- transient loopback redirect listener.
- :class:`Authorizer` -- browser login with a bounded wait.
- :class:`TokenClient` -- code exchange and refresh.
- :class:`TenantResolver` -- picks the organisation.
- :class:`SessionGate` -- the single entry point collaborators call.

Typical usage::

    from xerogate.auth import create_gate

    gate = create_gate()
    gate.ensure_authenticated()
    headers = gate.authenticate().headers
"""

from xerogate.auth.authorizer import Authorizer, build_authorize_url
from xerogate.auth.base import AuthResult
from xerogate.auth.credential_store import TenantStore, TokenStore
from xerogate.auth.listener import ListenerHandle, start_listener
from xerogate.auth.pkce import generate_pkce_pair, new_session
from xerogate.auth.session import SessionGate, create_gate
from xerogate.auth.tenant import TenantResolver
from xerogate.auth.token_client import TokenClient

__all__ = [
    "AuthResult",
    "Authorizer",
    "ListenerHandle",
    "SessionGate",
    "TenantResolver",
    "TenantStore",
    "TokenClient",
    "TokenStore",
    "build_authorize_url",
    "create_gate",
    "generate_pkce_pair",
    "new_session",
    "start_listener",
]
