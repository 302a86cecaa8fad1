"""cargo credential-provider protocol (version 1) over stdin/stdout.

cargo starts the provider with ``--cargo-plugin`` and talks to it in
line-delimited JSON:

1. The provider announces the protocol versions it speaks::

       {"v":[1]}

2. cargo writes one request per line::

       {"v":1,"registry":{"index-url":"sparse+https://example.com/index/","name":"corp"},
        "kind":"get","operation":"read","args":[]}

3. The provider answers each request with exactly one line, either::

       {"Ok":{"kind":"get","token":"Bearer s3cret","cache":"session","operation_independent":true}}

   or::

       {"Err":{"kind":"not-found","message":"no netrc entry for machine 'example.com'"}}

Every exchange moves :class:`ProtocolHandler` through
``AWAITING_REQUEST -> PROCESSING -> EMITTED_RESPONSE | EMITTED_ERROR``.
A failure ends its exchange: nothing is retried and no partial token is
written. Only ``get`` is served; ``login``, ``logout`` and any other kind
are answered with ``operation-not-supported``.
"""

from __future__ import annotations

import enum
import json
import sys
from typing import Any, Optional, TextIO
from urllib.parse import urlsplit

from pydantic import ValidationError

from netrc_credential.config import parse_format_args
from netrc_credential.exceptions import (
    ConfigurationError,
    MalformedRequestError,
    NetrcCredentialError,
    UnsupportedActionError,
    UrlNotSupportedError,
)
from netrc_credential.exit_codes import EXIT_SUCCESS
from netrc_credential.models import (
    PROTOCOL_VERSION,
    Action,
    CacheControl,
    ProviderConfig,
    ProviderRequest,
)
from netrc_credential.output import debug
from netrc_credential.resolver import CredentialResolver
from netrc_credential.store import NetrcStore
from netrc_credential.template import Template, compile_template

HELLO: dict[str, Any] = {"v": [PROTOCOL_VERSION]}

_SPARSE_PREFIX = "sparse+"


class HandlerState(str, enum.Enum):
    """Where the handler is in the current exchange."""

    AWAITING_REQUEST = "awaiting_request"
    PROCESSING = "processing"
    EMITTED_RESPONSE = "emitted_response"
    EMITTED_ERROR = "emitted_error"


# --- Wire encoding ---


def parse_request(line: str) -> ProviderRequest:
    """Decode one request line.

    Raises:
        MalformedRequestError: If the line is not JSON, not an object, lacks
            ``registry``, fails validation, or uses another protocol
            version. Messages name fields, never their values.
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as exc:
        raise MalformedRequestError(
            f"request is not valid JSON: {exc.msg} (column {exc.colno})"
        ) from None
    if not isinstance(data, dict):
        raise MalformedRequestError("request must be a JSON object")
    if "registry" not in data:
        raise MalformedRequestError("request has no 'registry' field")

    try:
        request = ProviderRequest.model_validate(data)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in err["loc"]) for err in exc.errors()})
        raise MalformedRequestError(f"invalid request field(s): {', '.join(fields)}") from None

    if request.v != PROTOCOL_VERSION:
        raise MalformedRequestError(f"unsupported protocol version {request.v}")
    return request


def encode_success(token: str, cache: CacheControl) -> dict[str, Any]:
    """Build the ``Ok`` response for a ``get``."""
    return {
        "Ok": {
            "kind": Action.GET.value,
            "token": token,
            "cache": cache.value,
            "operation_independent": True,
        }
    }


def encode_error(exc: NetrcCredentialError) -> dict[str, Any]:
    """Build the ``Err`` response for any provider error."""
    return {"Err": {"kind": exc.kind, "message": exc.message}}


def registry_host(index_url: str) -> str:
    """Return the host name of a registry index URL, keeping its case.

    The ``sparse+`` prefix, userinfo and port are dropped and IPv6 brackets
    are removed. The host is not lower-cased, so it can be compared exactly
    with netrc ``machine`` names.

    Raises:
        UrlNotSupportedError: If the URL has no host (e.g. ``file://``).
    """
    url = index_url[len(_SPARSE_PREFIX):] if index_url.startswith(_SPARSE_PREFIX) else index_url
    try:
        netloc = urlsplit(url).netloc
    except ValueError:
        netloc = ""
    hostport = netloc.rpartition("@")[2]
    if hostport.startswith("["):
        host = hostport[1:].partition("]")[0]
    else:
        host = hostport.partition(":")[0]
    if not host:
        raise UrlNotSupportedError("registry index URL has no host to look up in netrc")
    return host


# --- Handler ---


class ProtocolHandler:
    """Serve credential requests from cargo.

    Args:
        config: Startup configuration.
        resolver: Resolver over the startup netrc store. When omitted, the
            store is read from ``config.netrc_path`` on the first ``get``,
            so that a missing netrc file is reported to cargo as an ``Err``
            response instead of aborting before the handshake.
        stdin: Request stream (defaults to ``sys.stdin``).
        stdout: Response stream (defaults to ``sys.stdout``).
    """

    def __init__(
        self,
        config: ProviderConfig,
        resolver: Optional[CredentialResolver] = None,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ) -> None:
        self._config = config
        self._resolver = resolver
        self._load_error: Optional[ConfigurationError] = None
        self._template: Optional[Template] = None
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout
        self._state = HandlerState.AWAITING_REQUEST
        self._exit_code = EXIT_SUCCESS

    @property
    def state(self) -> HandlerState:
        return self._state

    @property
    def exit_code(self) -> int:
        """Exit code of the most recent exchange."""
        return self._exit_code

    def run(self) -> int:
        """Send the hello line, then answer requests until stdin closes.

        Returns:
            The exit code of the last exchange, or ``0`` when none failed.
        """
        self._write(HELLO)
        for line in self._stdin:
            if not line.strip():
                continue
            self._write(self.handle_line(line))
        return self._exit_code

    def handle_line(self, line: str) -> dict[str, Any]:
        """Run one exchange and return the response object to send."""
        self._state = HandlerState.PROCESSING
        try:
            request = parse_request(line)
            debug(f"Request: kind={request.kind} operation={request.operation}")
            token = self._process(request)
        except NetrcCredentialError as exc:
            self._state = HandlerState.EMITTED_ERROR
            self._exit_code = exc.exit_code
            debug(f"Responding with error kind '{exc.kind}': {exc.message}")
            return encode_error(exc)

        self._state = HandlerState.EMITTED_RESPONSE
        self._exit_code = EXIT_SUCCESS
        return encode_success(token, self._config.cache)

    def _process(self, request: ProviderRequest) -> str:
        if request.action is not Action.GET:
            raise UnsupportedActionError(request.kind)
        host = registry_host(request.registry.index_url)
        debug(f"Resolving credentials for host '{host}'")
        template = self._template_for(request)
        return self._get_resolver().resolve(host, template, self._config.required_fields)

    def _template_for(self, request: ProviderRequest) -> Template:
        if self._config.format is not None:
            if self._template is None:
                self._template = compile_template(self._config.format)
            return self._template

        source = parse_format_args(request.args)
        if source is None:
            raise ConfigurationError(
                "no token format configured: pass --format to the provider "
                "or add it to the credential-provider arguments"
            )
        return compile_template(source)

    def _get_resolver(self) -> CredentialResolver:
        if self._resolver is None:
            if self._load_error is not None:
                raise self._load_error
            try:
                store = NetrcStore.from_path(self._config.netrc_path)
            except ConfigurationError as exc:
                self._load_error = exc
                raise
            self._resolver = CredentialResolver(store)
        return self._resolver

    def _write(self, message: dict[str, Any]) -> None:
        self._stdout.write(json.dumps(message, separators=(",", ":")) + "\n")
        self._stdout.flush()
