"""Shared test fixtures for xerogate.

Provides isolated config/data directories, a controllable clock, quiet
output, and free loopback ports. These fixtures are discovered by pytest
automatically; plain helpers live in :mod:`tests.helpers`.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from tests.helpers import FakeClock, find_free_port
from xerogate.models import Settings
from xerogate.output import OutputFormat, OutputManager, reset_output, set_output


@pytest.fixture(autouse=True)
def _quiet_output_between_tests() -> None:
    """Install a quiet plain OutputManager for each test, then drop it.

    Typer's CliRunner swaps sys.stdout/sys.stderr; a manager created against
    the old streams would write to closed files on the next test.
    """
    set_output(OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True))
    yield
    reset_output()


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG dirs at tmp_path and clear xerogate environment variables.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("xerogate.config._is_xdg_platform", lambda: True)
    for var in ["XERO_CLIENT_ID", "XERO_REDIRECT", "XEROGATE_DATA_DIR", "DATA_DIR"]:
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def free_port() -> int:
    return find_free_port()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path, free_port: int) -> Settings:
    """Settings with a client id, a temp data dir, and a free callback port."""
    return Settings(
        client_id="test-client-id",
        redirect_uri=f"http://127.0.0.1:{free_port}/callback",
        data_dir=tmp_path / "data",
        login_timeout=5.0,
        poll_interval=0.02,
    )
