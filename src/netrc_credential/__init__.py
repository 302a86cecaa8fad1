"""netrc_credential -- a cargo credential provider backed by your .netrc file.

Private cargo registries expect different token shapes, so the provider
renders a user-supplied format such as ``Bearer {{password}}`` with the
``login``, ``account`` and ``password`` of the netrc entry whose ``machine``
matches the registry host.

Modules:
    app: Typer application and console-script entry point.
    protocol: The cargo credential-provider protocol handler.
    resolver: Host lookup plus token rendering.
    store: netrc parsing and host index.
    template: The ``{{variable}}`` token format.
    models: Pydantic models shared across the package.
    config: netrc location, provider settings and XDG paths.
    exceptions: Exception hierarchy with exit-code and wire-kind mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stderr diagnostics with Rich support.
"""

__version__ = "0.1.0"
