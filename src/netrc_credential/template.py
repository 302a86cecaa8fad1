"""Token format compiler and renderer.

A token format is plain text with ``{{variable}}`` references to the fields
of the matched netrc entry. It is a deliberately small subset of
Handlebars: there are no helpers, conditionals, loops or partials.

Syntax::

    {{login}}  {{ account }}  {{{password}}}   variable references
    \\{{                                        a literal "{{"

Only ``login``, ``account`` and ``password`` are recognised (case-sensitive).
The triple-brace form is accepted for compatibility and renders exactly like
the double-brace form, because values are never escaped: the substituted
value and the surrounding text reach the token unchanged.

The format is compiled once into a :class:`Template`, a sequence of
:class:`Literal` and :class:`VariableRef` tokens, which can be rendered any
number of times.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Collection, Union

from netrc_credential.exceptions import (
    MissingRequiredFieldError,
    TemplateSyntaxError,
    UnknownVariableError,
)
from netrc_credential.models import TEMPLATE_VARIABLES, TemplateVariables

_OPEN = "{{"
_ESCAPED_OPEN = "\\{{"


@dataclass(frozen=True)
class Literal:
    """Text copied to the output as is."""

    text: str


@dataclass(frozen=True)
class VariableRef:
    """A reference to one of the template variables.

    Attributes:
        name: The variable name.
        position: Offset of the opening braces in the source format.
    """

    name: str
    position: int


Token = Union[Literal, VariableRef]


@dataclass(frozen=True)
class Template:
    """A compiled token format."""

    source: str
    tokens: tuple[Token, ...]

    @property
    def variables(self) -> list[str]:
        """Names referenced by the format, in order of first use."""
        seen: list[str] = []
        for token in self.tokens:
            if isinstance(token, VariableRef) and token.name not in seen:
                seen.append(token.name)
        return seen

    def render(
        self,
        variables: TemplateVariables,
        required: Collection[str] = (),
    ) -> str:
        """Substitute *variables* into the format.

        Args:
            variables: Values for ``login``, ``account`` and ``password``.
            required: Variable names that must have a value when the format
                references them. Absent fields not listed here render as an
                empty string.

        Returns:
            The rendered token.

        Raises:
            MissingRequiredFieldError: If a referenced, required field is
                absent.
        """
        values = variables.as_mapping()
        parts: list[str] = []
        for token in self.tokens:
            if isinstance(token, Literal):
                parts.append(token.text)
                continue
            value = values[token.name]
            if value is None:
                if token.name in required:
                    raise MissingRequiredFieldError(token.name)
                value = ""
            parts.append(value)
        return "".join(parts)


def _parse_reference(source: str, start: int) -> tuple[VariableRef, int]:
    """Parse the reference opening at *start*; return it and the offset after it."""
    if source.startswith("{{{", start):
        open_len, close = 3, "}}}"
    else:
        open_len, close = 2, "}}"

    end = source.find(close, start + open_len)
    if end == -1:
        raise TemplateSyntaxError(f"unterminated '{source[start:start + open_len]}'", start)

    name = source[start + open_len:end].strip()
    if not name:
        raise TemplateSyntaxError("empty variable reference", start)
    if name not in TEMPLATE_VARIABLES:
        raise UnknownVariableError(name)
    return VariableRef(name=name, position=start), end + len(close)


def compile_template(source: str) -> Template:
    """Tokenise *source* into a :class:`Template`.

    Raises:
        TemplateSyntaxError: For an unterminated or empty reference.
        UnknownVariableError: For a reference to anything other than
            ``login``, ``account`` or ``password``.
    """
    tokens: list[Token] = []
    text: list[str] = []
    pos = 0

    while True:
        start = source.find(_OPEN, pos)
        if start == -1:
            text.append(source[pos:])
            break
        if start > 0 and source.startswith(_ESCAPED_OPEN, start - 1):
            text.append(source[pos:start - 1])
            text.append(_OPEN)
            pos = start + len(_OPEN)
            continue

        text.append(source[pos:start])
        if any(text):
            tokens.append(Literal("".join(text)))
        text = []
        ref, pos = _parse_reference(source, start)
        tokens.append(ref)

    if any(text):
        tokens.append(Literal("".join(text)))
    return Template(source=source, tokens=tuple(tokens))


def render(
    template: Union[str, Template],
    variables: TemplateVariables,
    required: Collection[str] = (),
) -> str:
    """Compile *template* if needed and render it with *variables*.

    Rendering is pure: the same inputs always give the same token.

    Raises:
        TemplateError: Any of the template errors raised by
            :func:`compile_template` or :meth:`Template.render`.
    """
    if isinstance(template, str):
        template = compile_template(template)
    return template.render(variables, required)
