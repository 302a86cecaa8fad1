"""Read-only index of netrc ``machine`` entries.

The netrc file is read once at startup into a :class:`NetrcStore`, which is
passed explicitly to the resolver; there is no module-level lookup function.

Grammar handled by :func:`parse_netrc` (the same subset Python's ``netrc``
module accepts)::

    machine <host> [login|user <name>] [account <acct>] [password <secret>]
    default        [login|user <name>] [account <acct>] [password <secret>]
    macdef <name>  (body runs up to the next blank line and is skipped)
    # comment      (where a keyword is expected; rest of the line is ignored)

Values may be double-quoted, with backslash escapes, to include spaces.

Lookup policy:

* Host matching is an exact, case-sensitive comparison with ``machine``.
* When a host appears more than once, the **first** entry in file order
  wins; later duplicates are ignored.
* A ``default`` entry is parsed but never returned by :meth:`NetrcStore.lookup`.
"""

from __future__ import annotations

import os
import re
import stat
from pathlib import Path
from typing import Iterable, Iterator, Optional

from netrc_credential.exceptions import ConfigurationError
from netrc_credential.models import NetrcRecord
from netrc_credential.output import debug, warning

_TOKEN_RE = re.compile(r'"((?:\\.|[^"\\])*)"|(\S+)')
_ESCAPE_RE = re.compile(r"\\(.)")

_ENTRY_KEYWORDS = frozenset({"machine", "default", "macdef"})
_FIELD_KEYWORDS = {
    "login": "login",
    "user": "login",
    "account": "account",
    "password": "password",
}


def _tokenize(line: str) -> Iterator[tuple[str, bool]]:
    """Yield ``(token, is_bare)`` for every token on *line*.

    ``is_bare`` is ``False`` for quoted tokens, which are never treated as
    keywords or comments.
    """
    for match in _TOKEN_RE.finditer(line):
        quoted, bare = match.groups()
        if quoted is not None:
            yield _ESCAPE_RE.sub(r"\1", quoted), False
        else:
            yield bare, True


def _check_permissions(path: Path) -> None:
    """Warn when a netrc file on a POSIX system is readable by other users."""
    if os.name != "posix":
        return
    try:
        mode = stat.S_IMODE(path.stat().st_mode)
    except OSError:
        return
    if mode & (stat.S_IRWXG | stat.S_IRWXO):
        warning(f"{path} is accessible by other users (mode {mode:o}); consider chmod 600")


def parse_netrc(text: str, source: str = "<netrc>") -> list[NetrcRecord]:
    """Parse netrc *text* into records, in file order.

    Args:
        text: Full content of a netrc file.
        source: Name used in error messages (usually the file path).

    Returns:
        One :class:`~netrc_credential.models.NetrcRecord` per ``machine``
        entry. ``default`` entries and macros are not included.

    Raises:
        ConfigurationError: If a keyword is missing its value, a field
            appears outside an entry, or an unknown keyword is found. Error
            messages carry the line number but never the offending value.
    """
    records: list[NetrcRecord] = []
    entry: Optional[dict[str, str]] = None
    pending: Optional[tuple[str, str, int]] = None
    in_macro = False

    def _close() -> None:
        if entry is not None and "machine" in entry:
            records.append(NetrcRecord(**entry))

    for lineno, line in enumerate(text.splitlines(), start=1):
        if in_macro:
            if not line.strip():
                in_macro = False
            continue

        for token, bare in _tokenize(line):
            # A value is taken verbatim, even when it starts with '#'.
            if pending is not None:
                entry[pending[1]] = token  # type: ignore[index]
                pending = None
                continue

            if bare and token.startswith("#"):
                break
            if bare and token in _ENTRY_KEYWORDS:
                _close()
                entry = None
                if token == "machine":
                    entry = {}
                    pending = (token, "machine", lineno)
                elif token == "default":
                    entry = {}
                else:
                    in_macro = True
                    break
                continue

            if entry is None:
                raise ConfigurationError(
                    f"{source}:{lineno}: expected 'machine', 'default' or 'macdef'"
                )
            if bare and token in _FIELD_KEYWORDS:
                pending = (token, _FIELD_KEYWORDS[token], lineno)
            else:
                raise ConfigurationError(f"{source}:{lineno}: unknown keyword in netrc entry")

    if pending is not None:
        keyword, _field, line_number = pending
        raise ConfigurationError(f"{source}:{line_number}: missing value after '{keyword}'")
    _close()
    return records


class NetrcStore:
    """Immutable, host-indexed view of a netrc file.

    Args:
        records: Parsed records in file order.
        source: Where the records came from, for diagnostics.

    Example::

        store = NetrcStore.from_text("machine example.com login alice password s3cret")
        record = store.lookup("example.com")
        assert record is not None and record.login == "alice"
    """

    def __init__(self, records: Iterable[NetrcRecord], source: str = "<netrc>") -> None:
        self._records = tuple(records)
        self._source = source
        self._index: dict[str, NetrcRecord] = {}
        for record in self._records:
            if record.machine in self._index:
                debug(
                    f"{source}: duplicate machine '{record.machine}' ignored "
                    "(first entry wins)"
                )
                continue
            self._index[record.machine] = record

    @classmethod
    def from_text(cls, text: str, source: str = "<netrc>") -> NetrcStore:
        return cls(parse_netrc(text, source), source)

    @classmethod
    def from_path(cls, path: Path) -> NetrcStore:
        """Read and parse the netrc file at *path*.

        Raises:
            ConfigurationError: If the file is missing, unreadable, not
                UTF-8, or malformed.
        """
        path = Path(path).expanduser()
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigurationError(f"netrc file not found: {path}") from None
        except UnicodeDecodeError:
            raise ConfigurationError(f"netrc file is not valid UTF-8: {path}") from None
        except OSError as exc:
            raise ConfigurationError(
                f"cannot read netrc file {path}: {exc.strerror or exc}"
            ) from exc
        _check_permissions(path)
        store = cls.from_text(text, str(path))
        debug(f"Loaded {len(store)} netrc entries from {path}")
        return store

    @property
    def source(self) -> str:
        return self._source

    @property
    def hosts(self) -> list[str]:
        """Distinct machine names, in file order."""
        return list(self._index)

    def lookup(self, host: str) -> Optional[NetrcRecord]:
        """Return the first record whose ``machine`` equals *host*, or ``None``."""
        return self._index.get(host)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[NetrcRecord]:
        return iter(self._records)

    def __contains__(self, host: object) -> bool:
        return host in self._index
