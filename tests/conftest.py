"""Shared test fixtures for netrc_credential.

Provides netrc files and stores, isolated environment variables, output
state management, and a CLI runner. These fixtures are automatically
discovered by pytest and available to all test modules.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from netrc_credential.output import reset_output
from netrc_credential.store import NetrcStore


SAMPLE_NETRC = """\
# registry credentials
machine example.com
    login alice
    password secret

machine nopass.example.com login bob

machine acct.example.com login carol account ops password "pa ss"

machine example.com login mallory password other
"""


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches a reference to sys.stderr at creation time.
    When Typer's CliRunner redirects the stream and the test finishes, the
    cached reference becomes stale. Resetting forces a fresh manager to be
    created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME and XDG_DATA_HOME at tmp_path and clear NETRC.

    Returns:
        The tmp_path root directory (also the fake home directory).
    """
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("USERPROFILE", str(tmp_path))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("NETRC", raising=False)
    monkeypatch.delenv("NO_COLOR", raising=False)
    return tmp_path


# ---------------------------------------------------------------------------
# netrc fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def netrc_file(tmp_path: Path) -> Path:
    """A netrc file with the sample entries and 0600 permissions."""
    path = tmp_path / "netrc"
    path.write_text(SAMPLE_NETRC, encoding="utf-8")
    path.chmod(0o600)
    return path


@pytest.fixture
def sample_store() -> NetrcStore:
    """A store parsed from the sample netrc text."""
    return NetrcStore.from_text(SAMPLE_NETRC, "sample")


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
