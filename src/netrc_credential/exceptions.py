"""Exception hierarchy for netrc_credential.

All exceptions inherit from :class:`NetrcCredentialError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`netrc_credential.exit_codes` and a ``kind`` used on the wire when the
error is reported to cargo. The protocol handler turns any
``NetrcCredentialError`` into an ``Err`` response, and :func:`netrc_credential.app.main`
exits with the error's code.

Subclass hierarchy::

    NetrcCredentialError (exit 1, kind "other")
    +-- InvalidUsageError              (exit 2)
    +-- ConfigurationError             (exit 3)
    +-- ResolutionError                (exit 4)
    |   +-- NoCredentialsError         (exit 4, kind "not-found")
    |   +-- TemplateError              (exit 5)
    |       +-- TemplateSyntaxError
    |       +-- UnknownVariableError
    |       +-- MissingRequiredFieldError
    +-- ProtocolError                  (exit 6)
        +-- MalformedRequestError
        +-- UnsupportedActionError     (kind "operation-not-supported")
        +-- UrlNotSupportedError       (kind "url-not-supported")

Messages never include login, account, password or token values.
"""

from netrc_credential.exit_codes import (
    EXIT_CONFIGURATION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NO_CREDENTIALS,
    EXIT_PROTOCOL_ERROR,
    EXIT_TEMPLATE_ERROR,
)


class NetrcCredentialError(Exception):
    """Base exception for all netrc_credential errors.

    Args:
        message: Human-readable error description. Reported to cargo in the
            ``message`` field of the ``Err`` response and printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE
    kind: str = "other"

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code

    @property
    def message(self) -> str:
        return str(self)


class InvalidUsageError(NetrcCredentialError):
    """Raised when the provider is invoked with invalid arguments."""

    exit_code = EXIT_INVALID_USAGE


class ConfigurationError(NetrcCredentialError):
    """Raised when the netrc file is missing, unreadable or malformed, or no token format is set."""

    exit_code = EXIT_CONFIGURATION_ERROR


class ResolutionError(NetrcCredentialError):
    """Raised when a token cannot be resolved for a registry host."""

    exit_code = EXIT_NO_CREDENTIALS


class NoCredentialsError(ResolutionError):
    """Raised when no netrc entry matches the requested host."""

    kind = "not-found"

    def __init__(self, host: str):
        super().__init__(f"no netrc entry for machine '{host}'")
        self.host = host


class TemplateError(ResolutionError):
    """Base class for token format errors."""

    exit_code = EXIT_TEMPLATE_ERROR


class TemplateSyntaxError(TemplateError):
    """Raised for an unterminated or empty ``{{`` reference."""

    def __init__(self, message: str, position: int):
        super().__init__(f"invalid token format at column {position + 1}: {message}")
        self.position = position


class UnknownVariableError(TemplateError):
    """Raised when a reference names something other than login, account or password."""

    def __init__(self, name: str):
        super().__init__(
            f"unknown variable '{name}' in token format "
            "(available: login, account, password)"
        )
        self.name = name


class MissingRequiredFieldError(TemplateError):
    """Raised when a required field is referenced but absent from the netrc entry."""

    def __init__(self, name: str):
        super().__init__(f"netrc entry has no '{name}', which the token format requires")
        self.name = name


class ProtocolError(NetrcCredentialError):
    """Base class for credential-provider protocol violations."""

    exit_code = EXIT_PROTOCOL_ERROR


class MalformedRequestError(ProtocolError):
    """Raised when a request line is not a valid credential-provider request."""


class UnsupportedActionError(ProtocolError):
    """Raised for any action other than ``get``; this provider is read-only."""

    kind = "operation-not-supported"

    def __init__(self, action: str):
        super().__init__(f"action '{action}' is not supported by the netrc provider")
        self.action = action


class UrlNotSupportedError(ProtocolError):
    """Raised when the registry index URL has no host to look up."""

    kind = "url-not-supported"
