"""Typer application and console-script entry point.

``cargo-credential-netrc`` is not meant to be run by hand: cargo starts it
with ``--cargo-plugin`` and exchanges JSON lines with it on stdin/stdout
(see :mod:`netrc_credential.protocol`). A typical cargo configuration::

    [credential-alias]
    cargo-credential-artifactory = ["cargo-credential-netrc", "--format", "Bearer {{password}}"]

    [registries.artifactory]
    index = "sparse+https://artifactory.example.com/api/cargo/crates/index/"
    credential-provider = "cargo-credential-artifactory"

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. Unhandled exceptions are written to a crash log under
the data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, List, Optional

import typer

from netrc_credential import __version__
from netrc_credential.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE
from netrc_credential.models import CacheControl

app = typer.Typer(
    name="cargo-credential-netrc",
    help="Cargo credential provider that builds registry tokens from your .netrc file.",
    add_completion=False,
    rich_markup_mode="rich",
)

_NOT_RUN_BY_CARGO = (
    "cargo-credential-netrc is a cargo credential provider and is meant to be "
    "started by cargo (with --cargo-plugin), not run directly."
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"cargo-credential-netrc {__version__}")
        raise typer.Exit()


@app.command()
def run(
    cargo_plugin: bool = typer.Option(
        False,
        "--cargo-plugin",
        help="Speak the cargo credential-provider protocol on stdin/stdout.",
    ),
    format: Optional[str] = typer.Option(
        None,
        "--format",
        help="Token format, e.g. 'Bearer {{password}}' or '{{login}}:{{password}}'. "
        "Variables: login, account, password. If omitted, it is read from the "
        "arguments cargo forwards with each request.",
    ),
    netrc: Optional[str] = typer.Option(
        None,
        "--netrc",
        help="Path to the netrc file (default: $NETRC, then ~/.netrc).",
    ),
    cache: CacheControl = typer.Option(
        CacheControl.SESSION,
        "--cache",
        help="How long cargo may cache the token.",
    ),
    require: Optional[List[str]] = typer.Option(
        None,
        "--require",
        help="Field that must be set in the netrc entry when the format uses it "
        "(repeatable; default: password).",
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Print debug output to stderr."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Answer cargo's credential requests from the netrc file.

    Builds the :class:`~netrc_credential.models.ProviderConfig`, installs the
    diagnostic output manager and hands stdin/stdout to a
    :class:`~netrc_credential.protocol.ProtocolHandler`. The process exits
    with the code of the last exchange.

    Raises:
        typer.Exit: With code 2 when not started by cargo or given invalid
            options, otherwise with the handler's exit code.
    """
    from netrc_credential.config import build_config
    from netrc_credential.exceptions import NetrcCredentialError
    from netrc_credential.output import OutputManager, debug, error, set_output
    from netrc_credential.protocol import ProtocolHandler

    set_output(OutputManager(no_color=no_color, verbose=verbose))

    if not cargo_plugin:
        error(_NOT_RUN_BY_CARGO)
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    try:
        config = build_config(format=format, netrc=netrc, cache=cache, require=require or None)
    except NetrcCredentialError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    debug(f"Configuration: {config.to_summary()}")
    handler = ProtocolHandler(config)
    raise typer.Exit(code=handler.run())


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path.

    Args:
        exc: The unhandled exception to log.

    Returns:
        Absolute path to the written crash log file.
    """
    from netrc_credential.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(
        "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    )
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``cargo-credential-netrc`` console script.

    Unhandled :class:`~netrc_credential.exceptions.NetrcCredentialError`
    instances cause a clean exit with the error's ``exit_code``. All other
    exceptions produce a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from netrc_credential.exceptions import NetrcCredentialError
        from netrc_credential.output import error

        if isinstance(exc, NetrcCredentialError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
