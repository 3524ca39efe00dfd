"""Typer application factory and CLI entry point for xerogate.

This module wires together the top-level Typer application and registers the
built-in sub-commands (``auth``, ``config``, ``smoke``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands and
invokes the Typer app. :class:`~xerogate.exceptions.XerogateError` instances
become a one-line error and the matching exit code; anything else is written
to a crash log under the data directory.

See Also:
    :mod:`xerogate.config`: Settings resolution.
    :mod:`xerogate.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from xerogate import __version__
from xerogate.exit_codes import EXIT_GENERIC_FAILURE

app = typer.Typer(
    name="xerogate",
    help="Sign in to the Xero accounting API and keep the session fresh.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"xerogate {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output and logging."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~xerogate.output.OutputManager` and configures
    :mod:`logging` (``DEBUG`` with ``--verbose``, ``WARNING`` otherwise).
    """
    from xerogate.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )
    # httpx logs full request URLs at INFO; keep it at WARNING unless debugging.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.command("smoke")
def smoke_command() -> None:
    """Authenticate and fetch the selected organisation.

    Runs the session gate (logging in through the browser if needed) and
    calls ``GET /api.xro/2.0/Organisations`` to prove the token and tenant
    work together.
    """
    from xerogate.auth import create_gate
    from xerogate.client import XeroClient
    from xerogate.commands import exit_on_error
    from xerogate.output import format_response, success

    with exit_on_error():
        gate = create_gate()
        with XeroClient(gate) as client:
            organisations = client.organisations()
    format_response(organisations)
    success(f"Connected to tenant {gate.tenant_id}.")


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback under ``<data_dir>/logs`` and return its path."""
    from xerogate.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def _register_commands() -> None:
    from xerogate.commands.auth import auth_app
    from xerogate.commands.config import config_app

    app.add_typer(auth_app, name="auth", help="Log in, refresh, inspect or forget the session.")
    app.add_typer(config_app, name="config", help="Configuration management.")


_register_commands()


def main() -> None:
    """CLI entry point invoked by the ``xerogate`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    from xerogate.exceptions import XerogateError
    from xerogate.output import error

    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except XerogateError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        try:
            log_path = _write_crash_log(exc)
            sys.stderr.write(f"Unexpected error: {exc}\nCrash log: {log_path}\n")
        except OSError:
            sys.stderr.write(f"Unexpected error: {exc}\n")
        sys.exit(EXIT_GENERIC_FAILURE)
