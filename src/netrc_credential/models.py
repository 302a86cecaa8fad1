"""Canonical Pydantic models shared across all netrc_credential modules.

The models fall into three groups:

**Credential models** -- built from the netrc file and per request:
    :class:`NetrcRecord` and :class:`TemplateVariables`.

**Wire models** -- the cargo credential-provider protocol (version 1):
    :class:`RegistryInfo`, :class:`ProviderRequest`, :class:`Action` and
    :class:`CacheControl`.

**Configuration models** -- resolved once at startup:
    :class:`ProviderConfig`.

Wire models ignore unknown keys so that newer cargo releases adding fields
to the request do not break the provider.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

PROTOCOL_VERSION = 1

TEMPLATE_VARIABLES = ("login", "account", "password")


# --- Credentials ---


class NetrcRecord(BaseModel):
    """One ``machine`` entry of a netrc file.

    Records are immutable once the store has been built. ``account`` and
    ``password`` are ``None`` when the entry does not set them.
    """

    model_config = ConfigDict(frozen=True)

    machine: str
    login: str = ""
    account: Optional[str] = Field(default=None, repr=False)
    password: Optional[str] = Field(default=None, repr=False)


class TemplateVariables(BaseModel):
    """The variable namespace available to a token format.

    Absent optional fields stay ``None`` so the renderer can tell an empty
    value apart from a missing one.
    """

    model_config = ConfigDict(frozen=True)

    login: str = ""
    account: Optional[str] = Field(default=None, repr=False)
    password: Optional[str] = Field(default=None, repr=False)

    @classmethod
    def from_record(cls, record: NetrcRecord) -> TemplateVariables:
        return cls(login=record.login, account=record.account, password=record.password)

    def as_mapping(self) -> dict[str, Optional[str]]:
        return {name: getattr(self, name) for name in TEMPLATE_VARIABLES}


# --- Wire protocol ---


class Action(str, enum.Enum):
    """Closed set of actions the provider distinguishes.

    cargo may send ``get``, ``login``, ``logout`` or kinds added by later
    releases; everything that is not ``get`` collapses into ``UNSUPPORTED``.
    """

    GET = "get"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_kind(cls, kind: str) -> Action:
        return cls.GET if kind == cls.GET.value else cls.UNSUPPORTED


class CacheControl(str, enum.Enum):
    """How long cargo may cache the returned token."""

    SESSION = "session"
    NEVER = "never"


class RegistryInfo(BaseModel):
    """The registry a request refers to."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    index_url: str = Field(alias="index-url")
    name: Optional[str] = None
    headers: list[str] = Field(default_factory=list)


class ProviderRequest(BaseModel):
    """A single request line sent by cargo.

    Example::

        {"v": 1, "kind": "get", "operation": "read",
         "registry": {"index-url": "sparse+https://example.com/index/"},
         "args": ["--format", "Bearer {{password}}"]}
    """

    model_config = ConfigDict(extra="ignore")

    v: int
    registry: RegistryInfo
    kind: str
    operation: Optional[str] = None
    args: list[str] = Field(default_factory=list)

    @property
    def action(self) -> Action:
        return Action.from_kind(self.kind)


# --- Configuration ---


class ProviderConfig(BaseModel):
    """Startup configuration of the provider.

    Attributes:
        format: The token format from ``--format``. ``None`` means the
            format is taken from the ``args`` cargo forwards with each
            request.
        netrc_path: Location of the netrc file.
        cache: Cache policy reported back to cargo with every token.
        required_fields: Variables that must be present in the netrc entry
            when the format references them for a ``get``.
    """

    format: Optional[str] = None
    netrc_path: Path
    cache: CacheControl = CacheControl.SESSION
    required_fields: frozenset[str] = frozenset({"password"})

    def to_summary(self) -> dict[str, Any]:
        """Non-secret view of the configuration for debug output."""
        return {
            "format": "set" if self.format is not None else "from request args",
            "netrc_path": str(self.netrc_path),
            "cache": self.cache.value,
            "required_fields": sorted(self.required_fields),
        }
