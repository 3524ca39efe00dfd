"""PKCE (:rfc:`7636`) material for one interactive login.

:func:`new_session` bundles a ``code_verifier``, its S256 ``code_challenge``
and an anti-forgery ``state`` token into an
:class:`~xerogate.models.AuthSession`. A fresh session is created for every
login attempt and dropped afterwards; none of it is ever written to disk.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import uuid

from xerogate.models import AuthSession

VERIFIER_LENGTH = 64


def compute_challenge(code_verifier: str) -> str:
    """Return ``base64url_no_pad(sha256(code_verifier))``."""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce_pair(length: int = VERIFIER_LENGTH) -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    The verifier is drawn from :mod:`secrets` and only contains the
    URL-safe base64 alphabet, a subset of the unreserved characters the
    RFC allows.

    Args:
        length: Verifier length, 43 to 128 characters.

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    if not 43 <= length <= 128:
        raise ValueError(f"PKCE verifier length must be 43-128, got {length}")
    # token_urlsafe(n) yields about 1.3 * n characters
    code_verifier = secrets.token_urlsafe(length)[:length]
    return code_verifier, compute_challenge(code_verifier)


def new_session(redirect_uri: str) -> AuthSession:
    """Create the PKCE pair and state token for one login attempt."""
    verifier, challenge = generate_pkce_pair()
    return AuthSession(
        verifier=verifier,
        challenge=challenge,
        state=str(uuid.uuid4()),
        redirect_uri=redirect_uri,
    )
