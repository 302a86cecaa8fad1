"""Startup configuration: netrc location, token format and XDG paths.

This module resolves everything the provider needs before the first request
is read:

* **Netrc location** -- :func:`resolve_netrc_path` applies the precedence
  ``--netrc`` flag > ``$NETRC`` > ``~/.netrc`` (``~/_netrc`` on Windows when
  no ``.netrc`` exists).
* **Provider settings** -- :func:`build_config` validates CLI values into a
  :class:`~netrc_credential.models.ProviderConfig`.
* **Request arguments** -- :func:`parse_format_args` extracts ``--format``
  from the ``args`` cargo forwards with every request, for setups where the
  format is written in the ``credential-provider`` setting rather than
  passed when the process starts.
* **Data directory** -- :func:`get_data_dir` is XDG compliant and holds
  crash logs.
"""

from __future__ import annotations

import os
import platform
from pathlib import Path
from typing import Iterable, Optional, Sequence

from netrc_credential.exceptions import InvalidUsageError
from netrc_credential.models import TEMPLATE_VARIABLES, CacheControl, ProviderConfig

_APP_NAME = "cargo-credential-netrc"
_NETRC_ENV = "NETRC"
_FORMAT_FLAG = "--format"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform uses XDG Base Directory paths (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/cargo-credential-netrc/`` (default
    ``~/.local/share/cargo-credential-netrc/``).
    On macOS/Windows: ``~/.cargo-credential-netrc/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_DATA_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Netrc location ---


def default_netrc_path() -> Path:
    """Return the netrc path used when no ``--netrc`` flag is given.

    ``$NETRC`` wins when set. Otherwise ``~/.netrc``; on Windows, ``~/_netrc``
    is used instead if it exists and ``~/.netrc`` does not.
    """
    env_value = os.environ.get(_NETRC_ENV, "")
    if env_value:
        return Path(env_value).expanduser()

    home = Path.home()
    dotted = home / ".netrc"
    if platform.system() == "Windows" and not dotted.exists():
        underscored = home / "_netrc"
        if underscored.exists():
            return underscored
    return dotted


def resolve_netrc_path(cli_path: Optional[str] = None) -> Path:
    """Resolve the netrc path with precedence flag > ``$NETRC`` > home directory."""
    if cli_path:
        return Path(cli_path).expanduser()
    return default_netrc_path()


# --- Provider settings ---


def parse_format_args(args: Sequence[str]) -> Optional[str]:
    """Find the token format in cargo's forwarded request arguments.

    Accepts ``--format VALUE`` and ``--format=VALUE``. The last occurrence
    wins, as with most command-line parsers.

    Raises:
        InvalidUsageError: If ``--format`` is the last argument and has no
            value.
    """
    found: Optional[str] = None
    index = 0
    while index < len(args):
        arg = args[index]
        if arg == _FORMAT_FLAG:
            if index + 1 >= len(args):
                raise InvalidUsageError("'--format' in credential-provider args needs a value")
            found = args[index + 1]
            index += 2
            continue
        if arg.startswith(_FORMAT_FLAG + "="):
            found = arg[len(_FORMAT_FLAG) + 1:]
        index += 1
    return found


def build_config(
    format: Optional[str] = None,
    netrc: Optional[str] = None,
    cache: CacheControl = CacheControl.SESSION,
    require: Optional[Iterable[str]] = None,
) -> ProviderConfig:
    """Validate CLI values into a :class:`ProviderConfig`.

    Args:
        format: Token format from ``--format``, or ``None`` to read it from
            each request's ``args``.
        netrc: Value of ``--netrc``.
        cache: Cache policy reported to cargo.
        require: Fields that must be present when referenced. ``None``
            keeps the default (``password``).

    Raises:
        InvalidUsageError: If a required field is not a template variable.
    """
    required = None
    if require is not None:
        required = frozenset(require)
        unknown = sorted(required - set(TEMPLATE_VARIABLES))
        if unknown:
            raise InvalidUsageError(
                f"unknown field(s) for --require: {', '.join(unknown)} "
                f"(choose from {', '.join(TEMPLATE_VARIABLES)})"
            )

    values = {
        "format": format,
        "netrc_path": resolve_netrc_path(netrc),
        "cache": cache,
    }
    if required is not None:
        values["required_fields"] = required
    return ProviderConfig(**values)
