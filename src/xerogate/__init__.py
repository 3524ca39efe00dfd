"""xerogate -- OAuth2 Authorization Code + PKCE session gate for the Xero API.

This package obtains, persists, and refreshes access to the Xero accounting
API on behalf of a desktop user. Collaborators call a single entry point
before every API request and receive a bearer token plus the selected
organisation (tenant) id, or an exception explaining why authentication is
unavailable.

Typical usage::

    from xerogate.auth import create_gate

    gate = create_gate()
    result = gate.authenticate()
    # result.headers carries Authorization and xero-tenant-id.

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware settings resolution and atomic writes.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    client: Minimal accounting API client built on the session gate.
"""

__version__ = "0.1.0"
