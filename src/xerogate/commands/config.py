"""Config commands -- view and modify the settings file.

Provides the ``xerogate config`` sub-command group. Values written here
land in ``config.json`` under the config directory; environment variables
(``XERO_CLIENT_ID``, ``XERO_REDIRECT``, ``XEROGATE_DATA_DIR``) still take
precedence at runtime.
"""

from __future__ import annotations

import json

import typer
from pydantic import ValidationError

from xerogate.output import error, format_response, info, print_data, success

config_app = typer.Typer(no_args_is_help=True)

# Scopes are fixed in code and not user-editable.
_EDITABLE_KEYS = (
    "client_id",
    "redirect_uri",
    "auth_base",
    "token_base",
    "api_base",
    "data_dir",
    "login_timeout",
    "poll_interval",
    "refresh_margin",
    "http_timeout",
)

_NUMERIC_KEYS = frozenset({"login_timeout", "poll_interval", "refresh_margin", "http_timeout"})


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration (file + environment + defaults).

    Example::

        xerogate config show --json
    """
    from xerogate.commands import exit_on_error
    from xerogate.config import load_settings, settings_path

    with exit_on_error():
        settings = load_settings()
    info(f"Config file: {settings_path()}")
    data = settings.model_dump(mode="json")
    data["authorize_url"] = settings.authorize_url
    data["token_url"] = settings.token_url
    data["connections_url"] = settings.connections_url
    format_response(data)


@config_app.command("path")
def config_path() -> None:
    """Print the path of the settings file."""
    from xerogate.config import settings_path

    print_data(str(settings_path()))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help=f"One of: {', '.join(_EDITABLE_KEYS)}."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value in the settings file.

    The updated file is validated against :class:`~xerogate.models.Settings`
    before it is saved.

    Example::

        xerogate config set client_id 0A1B2C3D
        xerogate config set redirect_uri http://127.0.0.1:8721/callback
        xerogate config set login_timeout 120
    """
    _update_settings_file(key, value)
    success(f"Set {key} = {value}")


@config_app.command("unset")
def config_unset(
    key: str = typer.Argument(help="Key to remove from the settings file."),
) -> None:
    """Remove a key from the settings file so the default applies again."""
    _update_settings_file(key, None)
    success(f"Unset {key}")


def _update_settings_file(key: str, value: str | None) -> None:
    from xerogate.commands import exit_on_error
    from xerogate.config import atomic_write, load_settings_file, settings_path
    from xerogate.models import Settings

    if key not in _EDITABLE_KEYS:
        error(f"Invalid config key: {key}")
        raise typer.Exit(code=2)

    with exit_on_error():
        data = load_settings_file()

    if value is None:
        data.pop(key, None)
    elif key in _NUMERIC_KEYS:
        try:
            data[key] = float(value)
        except ValueError:
            data[key] = value
    else:
        data[key] = value

    try:
        Settings.model_validate(data)
    except ValidationError as exc:
        error(f"Invalid value for {key}: {exc.errors()[0]['msg']}")
        raise typer.Exit(code=2) from None

    atomic_write(settings_path(), json.dumps(data, indent=2) + "\n")
