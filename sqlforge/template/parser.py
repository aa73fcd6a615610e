"""Tokenizer and parser for the placeholder template language.

Grammar::

    template    := (literal | placeholder | block)*
    placeholder := "{{" name (":" option ("|" option)*)? (" --" flag [" " value])* "}}"
    block       := "{{if " cond "}}" template "{{/if}}"
    cond        := ("notnull" | "null" | "notempty" | "empty") "=" name | name

Both option syntaxes may be combined on one placeholder::

    {{columns:auto|exclude=Id}}
    {{columns --exclude Id CreatedAt}}
    {{orderby name --desc}}

The parser only builds the token tree.  Whether a placeholder name exists is
decided by :mod:`sqlforge.template.handlers` at prepare time.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from sqlforge.errors import GenerationError

_OPEN = "{{"
_CLOSE = "}}"
_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_BLOCK_CLOSERS = frozenset({"/if", "endif"})
_OPTION_JOINER = re.compile(r"\s*([,|=])\s*")


class ConditionKind(str, Enum):
    NOT_NULL = "notnull"
    NULL = "null"
    NOT_EMPTY = "notempty"
    EMPTY = "empty"
    TRUTHY = "truthy"


@dataclass(frozen=True)
class Condition:
    kind: ConditionKind
    param: str

    @property
    def text(self) -> str:
        if self.kind == ConditionKind.TRUTHY:
            return self.param
        return f"{self.kind.value}={self.param}"


@dataclass(frozen=True)
class LiteralSpan:
    text: str


@dataclass(frozen=True)
class PlaceholderToken:
    """One ``{{...}}`` placeholder.

    Attributes:
        name: Placeholder name (``table``, ``columns``, ...).
        kind: First bare segment after ``:`` (``auto`` in ``columns:auto``).
        options: ``key=value`` segments after ``:``, plus bare segments
            after the first, mapped to ``"true"``.
        flags: ``--flag value`` pairs; a flag without a value maps to ``""``.
        args: Positional words before the first ``--flag``.
        raw: The text between the braces.
    """

    name: str
    kind: str | None = None
    options: dict[str, str] = field(default_factory=dict)
    flags: dict[str, str] = field(default_factory=dict)
    args: tuple[str, ...] = ()
    raw: str = ""

    def get(self, key: str, default: str | None = None) -> str | None:
        """Option or flag value; ``:key=v`` wins over ``--key v``."""
        if key in self.options:
            return self.options[key]
        if key in self.flags:
            return self.flags[key]
        return default

    def has(self, key: str) -> bool:
        return key in self.options or key in self.flags or self.kind == key

    def names(self, *keys: str) -> list[str]:
        """Comma or space separated names collected from ``keys``."""
        result: list[str] = []
        for key in keys:
            value = self.get(key)
            if value:
                result.extend(n for n in re.split(r"[,\s]+", value) if n)
        return result


@dataclass(frozen=True)
class ConditionalBlock:
    condition: Condition
    children: tuple[TemplateNode, ...]


TemplateNode = LiteralSpan | PlaceholderToken | ConditionalBlock


# ---------------------------------------------------------------------------
# Placeholder content
# ---------------------------------------------------------------------------


def parse_placeholder(content: str) -> PlaceholderToken:
    """Parse the text between ``{{`` and ``}}``.

    Raises:
        GenerationError: For an empty or malformed placeholder.
    """
    raw = content
    content = content.strip()
    match = _NAME.match(content)
    if not match:
        raise GenerationError(
            f"Malformed placeholder '{{{{{raw}}}}}': expected a placeholder name.",
            placeholder=raw,
        )
    name = match.group(0)
    rest = content[match.end():]

    kind: str | None = None
    options: dict[str, str] = {}
    if rest.startswith(":"):
        # Whitespace next to a separator does not end the option list.
        spec, _, rest = _OPTION_JOINER.sub(r"\1", rest[1:]).partition(" ")
        for segment in spec.split("|"):
            segment = segment.strip()
            if not segment:
                continue
            if "=" in segment:
                key, _, value = segment.partition("=")
                options[key.strip().lower()] = value.strip()
            elif kind is None:
                kind = segment
            else:
                options[segment.lower()] = "true"
    elif rest and not rest[0].isspace():
        raise GenerationError(
            f"Malformed placeholder '{{{{{raw}}}}}': unexpected '{rest[0]}' after name.",
            placeholder=name,
        )

    args: list[str] = []
    flags: dict[str, str] = {}
    current: str | None = None
    for word in rest.split():
        if word.startswith("--"):
            current = word[2:].lower()
            if not current:
                raise GenerationError(
                    f"Malformed placeholder '{{{{{raw}}}}}': empty flag name.", placeholder=name
                )
            flags[current] = ""
        elif current is None:
            args.append(word)
        else:
            flags[current] = f"{flags[current]} {word}".strip()

    return PlaceholderToken(
        name=name, kind=kind, options=options, flags=flags, args=tuple(args), raw=raw
    )


def parse_condition(text: str) -> Condition:
    """Parse the condition of ``{{if ...}}``.

    Raises:
        GenerationError: For an unknown condition or invalid parameter name.
    """
    text = text.strip()
    if "=" in text:
        kind_text, _, param = text.partition("=")
        try:
            kind = ConditionKind(kind_text.strip().lower())
        except ValueError:
            kind = None
        if kind is None or kind == ConditionKind.TRUTHY:
            raise GenerationError(
                f"Unknown condition '{kind_text.strip()}' in '{{{{if {text}}}}}'; "
                "expected notnull, null, notempty or empty.",
                placeholder="if",
            )
        param = param.strip()
    else:
        kind, param = ConditionKind.TRUTHY, text
    if not _IDENTIFIER.match(param):
        raise GenerationError(
            f"Invalid parameter name '{param}' in '{{{{if {text}}}}}'.", placeholder="if"
        )
    return Condition(kind=kind, param=param)


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------


def parse_template(template: str) -> tuple[TemplateNode, ...]:
    """Split ``template`` into literal spans, placeholders and blocks.

    Raises:
        GenerationError: For unclosed placeholders, unbalanced ``{{if}}`` /
            ``{{/if}}`` pairs or malformed placeholder content.
    """
    if template is None:
        raise GenerationError("Template text must not be None.")

    # Stack of (condition, children) for open blocks; the root has no condition.
    stack: list[tuple[Condition | None, list[TemplateNode]]] = [(None, [])]
    pos = 0
    while True:
        start = template.find(_OPEN, pos)
        if start < 0:
            _append_literal(stack[-1][1], template[pos:])
            break
        _append_literal(stack[-1][1], template[pos:start])
        end = template.find(_CLOSE, start + len(_OPEN))
        if end < 0:
            raise GenerationError(
                f"Unclosed placeholder starting at position {start}.",
                details={"position": start},
            )
        content = template[start + len(_OPEN):end]
        pos = end + len(_CLOSE)
        stripped = content.strip()

        if stripped.startswith("if ") or stripped == "if":
            stack.append((parse_condition(stripped[2:]), []))
        elif stripped in _BLOCK_CLOSERS:
            if len(stack) == 1:
                raise GenerationError(
                    f"'{{{{{stripped}}}}}' at position {start} has no matching '{{{{if}}}}'.",
                    placeholder="if",
                )
            condition, children = stack.pop()
            stack[-1][1].append(ConditionalBlock(condition=condition, children=tuple(children)))
        else:
            stack[-1][1].append(parse_placeholder(content))

    if len(stack) > 1:
        raise GenerationError(
            f"Unclosed '{{{{if {stack[-1][0].text}}}}}' block.", placeholder="if"
        )
    return tuple(stack[0][1])


def _append_literal(nodes: list[TemplateNode], text: str) -> None:
    if text:
        nodes.append(LiteralSpan(text))
