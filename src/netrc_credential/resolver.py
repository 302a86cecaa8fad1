"""Turn a registry host into a rendered token.

:class:`CredentialResolver` looks the host up in the
:class:`~netrc_credential.store.NetrcStore` and renders the token format with
the matched entry. Failures are deterministic, so nothing is retried.
"""

from __future__ import annotations

from typing import Collection, Union

from netrc_credential.exceptions import NoCredentialsError
from netrc_credential.models import TemplateVariables
from netrc_credential.output import debug
from netrc_credential.store import NetrcStore
from netrc_credential.template import Template, render


class CredentialResolver:
    """Resolve tokens from a netrc store.

    Args:
        store: The store built at startup. It is only read.
    """

    def __init__(self, store: NetrcStore) -> None:
        self._store = store

    @property
    def store(self) -> NetrcStore:
        return self._store

    def resolve(
        self,
        host: str,
        template: Union[str, Template],
        required: Collection[str] = (),
    ) -> str:
        """Render *template* with the netrc entry for *host*.

        Args:
            host: Exact machine name to look up.
            template: Token format source or a compiled template.
            required: Fields that must be present if the format uses them.

        Returns:
            The rendered token.

        Raises:
            NoCredentialsError: If the store has no entry for *host*.
            TemplateError: If the format is invalid or a required field is
                missing. ``TemplateError`` is a ``ResolutionError``.
        """
        record = self._store.lookup(host)
        if record is None:
            raise NoCredentialsError(host)
        debug(f"Using netrc entry for machine '{record.machine}'")
        return render(template, TemplateVariables.from_record(record), required)
