"""Prepared SQL templates.

``prepare`` parses a template once, expands every static placeholder
against the dialect and column metadata, and returns an immutable
:class:`SqlTemplate`.  Dynamic placeholders and ``{{if}}`` blocks stay open
until :meth:`SqlTemplate.render` supplies values.

Example::

    ctx = PlaceholderContext.create("sqlite", todo_entity)
    tpl = prepare("SELECT {{columns}} FROM {{table}} WHERE {{where --param cond}}", ctx)
    sql = tpl.render("cond", "is_completed = 0")
"""
from __future__ import annotations

import logging
import re
from collections.abc import Callable, Mapping, Sized
from dataclasses import dataclass, replace
from typing import Any, Union

from sqlforge.compile.registry import DialectTarget
from sqlforge.errors import GenerationError
from sqlforge.template.context import PlaceholderContext
from sqlforge.template.handlers import DynamicHole, resolve_placeholder
from sqlforge.template.parser import (
    Condition,
    ConditionalBlock,
    ConditionKind,
    LiteralSpan,
    TemplateNode,
    parse_template,
)

logger = logging.getLogger(__name__)

_MISSING = object()
_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")

#: ``key -> value`` or ``_MISSING``.
Lookup = Callable[[str], Any]


@dataclass(frozen=True)
class _Block:
    condition: Condition
    segments: tuple[Segment, ...]


Segment = Union[str, DynamicHole, _Block]


# ---------------------------------------------------------------------------
# Conditions
# ---------------------------------------------------------------------------


def _is_empty(value: Any) -> bool:
    if value is None or value is _MISSING:
        return True
    if isinstance(value, Sized):
        return len(value) == 0
    return False


def evaluate_condition(condition: Condition, lookup: Lookup) -> bool:
    """Decide whether a block is emitted; a missing parameter counts as null."""
    value = lookup(condition.param)
    kind = condition.kind
    if kind == ConditionKind.NOT_NULL:
        return value is not _MISSING and value is not None
    if kind == ConditionKind.NULL:
        return value is _MISSING or value is None
    if kind == ConditionKind.NOT_EMPTY:
        return not _is_empty(value)
    if kind == ConditionKind.EMPTY:
        return _is_empty(value)
    return value is not _MISSING and bool(value)


# ---------------------------------------------------------------------------
# SqlTemplate
# ---------------------------------------------------------------------------


class SqlTemplate:
    """A prepared, immutable SQL template.

    Instances are safe to share between threads: ``render`` keeps all of its
    state in locals.

    Attributes:
        template: The original template text.
    """

    def __init__(self, template: str, segments: tuple[Segment, ...], context: PlaceholderContext) -> None:
        self.template = template
        self._segments = segments
        self._dynamic = any(not isinstance(s, str) for s in segments)
        self._sql = "".join(_display(s) for s in segments)
        self._parameter_names = _scan_parameters(segments, context.provider.parameter_prefix)

    @property
    def sql(self) -> str:
        """Prepared SQL; open holes and blocks are shown in ``{{...}}`` form."""
        return self._sql

    @property
    def has_dynamic_placeholders(self) -> bool:
        return self._dynamic

    @property
    def parameter_names(self) -> list[str]:
        """Prefixed bind-parameter names in the prepared SQL, first-seen order."""
        return list(self._parameter_names)

    @property
    def dynamic_parameters(self) -> list[str]:
        """Names that ``render`` reads (holes and block conditions)."""
        names: list[str] = []
        _collect_dynamic(self._segments, names)
        return names

    def render(
        self,
        name: str | Mapping[str, Any] | None = None,
        value: Any = None,
        name2: str | None = None,
        value2: Any = None,
        /,
        *,
        values: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> str:
        """Fill the dynamic placeholders and evaluate ``{{if}}`` blocks.

        Call as ``render("name", value)``, ``render("a", 1, "b", 2)``,
        ``render({"a": 1, "b": 2})``, ``render(values=...)`` or
        ``render(a=1, b=2)``.  One or two positional pairs are looked up
        without building a mapping.  Without dynamic placeholders the
        prepared SQL is returned unchanged.

        Raises:
            GenerationError: When a hole has no value.
        """
        if not self._dynamic:
            return self._sql
        if isinstance(name, Mapping):
            if values is not None:
                raise TypeError("Pass the value map either positionally or as values=, not both.")
            name, values = None, name

        if name is not None and values is None and not kwargs:
            key = name
            if name2 is None:

                def lookup(k: str) -> Any:
                    return value if k == key else _MISSING

            else:
                key2 = name2

                def lookup(k: str) -> Any:
                    if k == key2:
                        return value2
                    return value if k == key else _MISSING

        elif name is None and name2 is None and values is None:
            lookup = _mapping_lookup(kwargs)
        else:
            merged: dict[str, Any] = dict(values or {})
            if name is not None:
                merged[name] = value
            if name2 is not None:
                merged[name2] = value2
            merged.update(kwargs)
            lookup = _mapping_lookup(merged)

        out: list[str] = []
        _render(self._segments, lookup, out)
        return "".join(out)

    def __repr__(self) -> str:
        return f"SqlTemplate({self._sql!r}, dynamic={self._dynamic})"


def _mapping_lookup(values: Mapping[str, Any]) -> Lookup:
    def lookup(k: str) -> Any:
        return values.get(k, _MISSING)

    return lookup


def _render(segments: tuple[Segment, ...], lookup: Lookup, out: list[str]) -> None:
    for segment in segments:
        if isinstance(segment, str):
            out.append(segment)
        elif isinstance(segment, DynamicHole):
            value = lookup(segment.param)
            if value is _MISSING:
                raise GenerationError(
                    f"No value supplied for '{segment.param}' required by {segment.source}.",
                    placeholder=segment.placeholder,
                    details={"parameter": segment.param},
                )
            out.append(segment.render(value))
        elif evaluate_condition(segment.condition, lookup):
            _render(segment.segments, lookup, out)


def _display(segment: Segment) -> str:
    if isinstance(segment, str):
        return segment
    if isinstance(segment, DynamicHole):
        return segment.source
    inner = "".join(_display(s) for s in segment.segments)
    return f"{{{{if {segment.condition.text}}}}}{inner}{{{{/if}}}}"


def _collect_dynamic(segments: tuple[Segment, ...], names: list[str]) -> None:
    for segment in segments:
        if isinstance(segment, DynamicHole):
            candidate = segment.param
        elif isinstance(segment, _Block):
            candidate = segment.condition.param
        else:
            continue
        if candidate not in names:
            names.append(candidate)
        if isinstance(segment, _Block):
            _collect_dynamic(segment.segments, names)


def _scan_parameters(segments: tuple[Segment, ...], prefix: str) -> list[str]:
    pattern = re.compile(rf"(?<![\w{re.escape(prefix)}]){re.escape(prefix)}([A-Za-z_][A-Za-z0-9_]*)")
    names: list[str] = []

    def scan(parts: tuple[Segment, ...]) -> None:
        for part in parts:
            if isinstance(part, str):
                for match in pattern.finditer(_STRING_LITERAL.sub("", part)):
                    found = f"{prefix}{match.group(1)}"
                    if found not in names:
                        names.append(found)
            elif isinstance(part, _Block):
                scan(part.segments)

    scan(segments)
    return names


# ---------------------------------------------------------------------------
# Prepare
# ---------------------------------------------------------------------------


def _expand(nodes: tuple[TemplateNode, ...], ctx: PlaceholderContext) -> tuple[Segment, ...]:
    segments: list[Segment] = []
    for node in nodes:
        if isinstance(node, LiteralSpan):
            piece: Segment = node.text
        elif isinstance(node, ConditionalBlock):
            piece = _Block(condition=node.condition, segments=_expand(node.children, ctx))
        else:
            piece = resolve_placeholder(node, ctx)
        if isinstance(piece, str) and segments and isinstance(segments[-1], str):
            segments[-1] += piece
        else:
            segments.append(piece)
    return tuple(segments)


def _placeholder_names(nodes: tuple[TemplateNode, ...], names: set[str]) -> set[str]:
    for node in nodes:
        if isinstance(node, ConditionalBlock):
            _placeholder_names(node.children, names)
        elif not isinstance(node, LiteralSpan):
            names.add(node.name.lower())
    return names


def prepare(template: str, context: PlaceholderContext | DialectTarget) -> SqlTemplate:
    """Parse ``template`` and expand its static placeholders.

    Args:
        template: Template text.
        context: A :class:`PlaceholderContext`, or just a dialect for
            templates that need no table or column metadata.

    Raises:
        GenerationError: For malformed templates and unknown placeholders.
            Nothing is returned partially prepared.
        UnsupportedDialectError: When the dialect has no provider.
    """
    if not isinstance(context, PlaceholderContext):
        context = PlaceholderContext.create(context)
    nodes = parse_template(template)
    context = replace(context, placeholders=frozenset(_placeholder_names(nodes, set())))
    segments = _expand(nodes, context)
    prepared = SqlTemplate(template, segments, context)
    logger.debug(
        "Prepared template for %s (dynamic=%s): %s",
        context.provider.dialect_name,
        prepared.has_dynamic_placeholders,
        prepared.sql,
    )
    return prepared
