"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for xerogate:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.xerogate/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Settings file** -- A single :class:`~xerogate.models.Settings` JSON
  file (``config.json``) storing the client id, redirect URI, endpoints and
  timeouts.
* **Precedence resolution** -- :func:`load_settings` merges environment
  variables over the settings file over built-in defaults.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) so that a crash never leaves a torn record behind;
the token and tenant stores rely on the same helper.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from xerogate.exceptions import ConfigError
from xerogate.models import Settings

_APP_NAME = "xerogate"
_CONFIG_FILENAME = "config.json"

ENV_CLIENT_ID = "XERO_CLIENT_ID"
ENV_REDIRECT = "XERO_REDIRECT"
ENV_DATA_DIR = "XEROGATE_DATA_DIR"
ENV_DATA_DIR_FALLBACK = "DATA_DIR"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Linux and the BSDs follow XDG; everything else uses ``~/.xerogate``."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """``~/.xerogate``, used on macOS and Windows."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Return ``$env_var`` if set, else ``$HOME`` joined with *default_segments*."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/xerogate/`` (default ``~/.config/xerogate/``).
    On macOS/Windows: ``~/.xerogate/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the default data directory (tokens, tenant, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/xerogate/`` (default ``~/.local/share/xerogate/``).
    On macOS/Windows: ``~/.xerogate/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. Readers see either
    the old content or the new content, never a mix. On any failure the temp
    file is cleaned up and the exception re-raised.

    Args:
        path: Destination file.
        data: Full text content.
        mode: Optional permission bits applied to the temp file before any
            content is written (e.g. ``0o600`` for secrets).
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Settings ---


def settings_path() -> Path:
    """Path to the settings file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_settings_file() -> dict:
    """Load the raw settings file, or an empty dict if it does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = settings_path()
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config at {path}: expected a JSON object")
    return data


def load_settings() -> Settings:
    """Resolve the effective settings.

    Precedence (high to low):
        1. Environment variables (``XERO_CLIENT_ID``, ``XERO_REDIRECT``,
           ``XEROGATE_DATA_DIR``, then ``DATA_DIR``)
        2. Settings file (``~/.config/xerogate/config.json``)
        3. Defaults (data directory from :func:`get_data_dir`)

    Raises:
        ConfigError: If the file is invalid or the merged values fail
            validation.
    """
    data = load_settings_file()

    client_id = os.environ.get(ENV_CLIENT_ID)
    if client_id:
        data["client_id"] = client_id
    redirect = os.environ.get(ENV_REDIRECT)
    if redirect:
        data["redirect_uri"] = redirect
    data_dir = os.environ.get(ENV_DATA_DIR) or os.environ.get(ENV_DATA_DIR_FALLBACK)
    if data_dir:
        data["data_dir"] = data_dir

    try:
        settings = Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc

    if settings.data_dir is None:
        settings.data_dir = get_data_dir()
    return settings


def require_client_id(settings: Settings) -> str:
    """Return the configured client id.

    Raises:
        ConfigError: If no client id is configured.
    """
    if not settings.client_id:
        raise ConfigError(
            f"No Xero client id configured. Set {ENV_CLIENT_ID} or run "
            "'xerogate config set client_id <id>'."
        )
    return settings.client_id
