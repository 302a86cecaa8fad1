"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~netrc_credential.exceptions.NetrcCredentialError`
subclass. The exit code mirrors the ``Err`` response written to stdout so
that wrappers can rely on either channel.

Example::

    $ echo '{"v":1,"kind":"get","registry":{"index-url":"sparse+https://other.com/"}}' \
        | cargo-credential-netrc --cargo-plugin --format '{{password}}'
    $ echo $?
    4   # EXIT_NO_CREDENTIALS -- no netrc entry for other.com
"""

EXIT_SUCCESS = 0
"""The exchange completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The provider was invoked with invalid arguments (e.g. not by cargo)."""

EXIT_CONFIGURATION_ERROR = 3
"""The netrc file is missing, unreadable or malformed, or no format is configured."""

EXIT_NO_CREDENTIALS = 4
"""No netrc entry matches the requested registry host."""

EXIT_TEMPLATE_ERROR = 5
"""The token format could not be rendered."""

EXIT_PROTOCOL_ERROR = 6
"""The host sent a malformed request or asked for an unsupported action."""
