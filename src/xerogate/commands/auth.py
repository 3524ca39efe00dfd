"""Auth commands -- drive and inspect the Xero session.

Provides the ``xerogate auth`` sub-command group. All commands go through
the same :class:`~xerogate.auth.session.SessionGate` that collaborators use,
so what works here works for them.

Typical workflow::

    xerogate auth login     # browser login + tenant selection
    xerogate auth status    # expiry and tenant, no token values
    xerogate auth tenants   # organisations linked to the user
    xerogate auth logout    # forget everything
"""

from __future__ import annotations

import typer

from xerogate.commands import exit_on_error
from xerogate.output import format_response, info, print_table, success, suggest

auth_app = typer.Typer(no_args_is_help=True)


@auth_app.command("login")
def auth_login() -> None:
    """Run the interactive browser login, even if a token is still valid.

    Opens the Xero login page, waits for the redirect on the loopback
    listener, exchanges the code and selects the first linked organisation
    if none is selected yet.

    Example::

        xerogate auth login
    """
    from xerogate.auth import create_gate

    with exit_on_error():
        gate = create_gate()
        gate.login()
    success(f"Logged in. Tenant: {gate.tenant_id}")


@auth_app.command("status")
def auth_status() -> None:
    """Show whether a credential is stored, when it expires, and the tenant.

    Never prints token values and never touches the network.

    Example::

        xerogate auth status --json
    """
    from xerogate.auth import create_gate

    with exit_on_error():
        gate = create_gate()
        status = gate.status()
    format_response(status)
    if not status["authenticated"]:
        suggest("Log in: xerogate auth login")


@auth_app.command("refresh")
def auth_refresh() -> None:
    """Exchange the stored refresh token for a new token pair."""
    from xerogate.auth import create_gate

    with exit_on_error():
        gate = create_gate()
        gate.refresh()
        assert gate.credential is not None
        expires_at = gate.credential.expires_at
    success(f"Token refreshed; valid until {expires_at:%Y-%m-%d %H:%M:%S} UTC.")


@auth_app.command("ensure")
def auth_ensure() -> None:
    """Do exactly what collaborators do before an API call.

    Refreshes or logs in only when needed, then selects a tenant if none is
    selected. Prints nothing but the outcome; useful in scripts.
    """
    from xerogate.auth import create_gate

    with exit_on_error():
        gate = create_gate()
        gate.ensure_authenticated()
    success(f"Session ready. Tenant: {gate.tenant_id}")


@auth_app.command("tenants")
def auth_tenants() -> None:
    """List the organisations linked to the signed-in user.

    The selected organisation is marked with ``*``.
    """
    from xerogate.auth import create_gate

    with exit_on_error():
        gate = create_gate()
        connections = gate.connections()

    rows = [
        [
            "*" if c.tenant_id == gate.tenant_id else "",
            c.tenant_id,
            c.tenant_name or "",
            c.tenant_type or "",
        ]
        for c in connections
    ]
    print_table(["selected", "tenantId", "tenantName", "tenantType"], rows, title="Linked organisations")


@auth_app.command("logout")
def auth_logout(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Delete the stored token pair and tenant selection."""
    from xerogate.auth import create_gate

    if not force:
        confirmed = typer.confirm("Forget the stored Xero session?", default=False)
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    with exit_on_error():
        create_gate().logout()
    success("Logged out.")
