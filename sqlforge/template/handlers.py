"""Placeholder handlers.

Every placeholder name maps to a handler registered on
:class:`PlaceholderRegistry`.  A handler receives the parsed
:class:`~sqlforge.template.parser.PlaceholderToken` and the
:class:`~sqlforge.template.context.PlaceholderContext` and returns either
the final SQL text (static placeholder) or a :class:`DynamicHole` that is
filled in by ``SqlTemplate.render``.

Any placeholder carrying ``--param name`` becomes a hole rendered as an
inline literal of the supplied value, unless its handler was registered
with ``handles_param=True`` and interprets the parameter itself (``table``,
``where``, ``limit``, ``offset``, ``orderby``, ``arg``).

Usage::

    @PlaceholderRegistry.register("now_utc")
    def _now_utc(token, ctx):
        return "CURRENT_TIMESTAMP AT TIME ZONE 'UTC'"
"""
from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar

from sqlforge.compile.base import DialectProvider
from sqlforge.compile.clause_builders import ColumnListBuilder
from sqlforge.errors import GenerationError
from sqlforge.schema.columns import ColumnMeta
from sqlforge.template.context import PlaceholderContext
from sqlforge.template.parser import PlaceholderToken

_LIMIT_PRESETS = {"tiny": 5, "small": 10, "medium": 50, "large": 100, "page": 20, "default": 20}
_FALSE_WORDS = frozenset({"false", "0", "no", "off"})
_ORDER_ITEM = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)(?:\s+(asc|desc))?$", re.IGNORECASE)


@dataclass(frozen=True)
class DynamicHole:
    """A placeholder left open until render time.

    Attributes:
        param: Name of the render value that fills the hole.
        placeholder: Placeholder name, for error messages.
        source: Original ``{{...}}`` text, shown in ``SqlTemplate.sql``.
        render: Turns the supplied value into SQL text.
    """

    param: str
    placeholder: str
    source: str
    render: Callable[[Any], str]


Handler = Callable[[PlaceholderToken, PlaceholderContext], "str | DynamicHole"]


@dataclass(frozen=True)
class PlaceholderEntry:
    handler: Handler
    handles_param: bool = False


class PlaceholderRegistry:
    """Registry mapping placeholder names to handlers (exact, case-sensitive)."""

    _handlers: ClassVar[dict[str, PlaceholderEntry]] = {}

    @classmethod
    def register(cls, *names: str, handles_param: bool = False) -> Callable[[Handler], Handler]:
        """Decorator that registers a handler under one or more names."""

        def decorator(handler: Handler) -> Handler:
            for name in names:
                cls._handlers[name] = PlaceholderEntry(handler, handles_param)
            return handler

        return decorator

    @classmethod
    def get(cls, name: str) -> PlaceholderEntry | None:
        return cls._handlers.get(name)

    @classmethod
    def registered_placeholders(cls) -> list[str]:
        return sorted(cls._handlers)


def resolve_placeholder(token: PlaceholderToken, ctx: PlaceholderContext) -> str | DynamicHole:
    """Run the handler for ``token``.

    Raises:
        GenerationError: For an unknown placeholder name or invalid options.
    """
    entry = PlaceholderRegistry.get(token.name)
    if entry is None:
        raise GenerationError(
            f"Unknown placeholder '{{{{{token.name}}}}}'.",
            placeholder=token.name,
            details={"registered": PlaceholderRegistry.registered_placeholders()},
        )
    param = _param(token)
    if param is not None and not entry.handles_param:
        return _hole(token, param, _literal_renderer(ctx.provider))
    return entry.handler(token, ctx)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _param(token: PlaceholderToken) -> str | None:
    param = token.get("param")
    if param is None:
        return None
    if not param or " " in param:
        raise GenerationError(
            f"'{{{{{token.raw.strip()}}}}}': --param expects exactly one parameter name.",
            placeholder=token.name,
        )
    return param


def _hole(token: PlaceholderToken, param: str, render: Callable[[Any], str]) -> DynamicHole:
    return DynamicHole(
        param=param, placeholder=token.name, source=f"{{{{{token.raw}}}}}", render=render
    )


def _literal_renderer(provider: DialectProvider) -> Callable[[Any], str]:
    def render(value: Any) -> str:
        if isinstance(value, (list, tuple, set, frozenset)):
            if not value:
                return "(NULL)"
            return "(" + ", ".join(provider.quote_literal(v) for v in value) + ")"
        return provider.quote_literal(value)

    return render


def _truthy(value: str | None) -> bool:
    return value is not None and value.strip().lower() not in _FALSE_WORDS


def _int_option(token: PlaceholderToken, text: str) -> int:
    try:
        value = int(text)
    except ValueError as exc:
        raise GenerationError(
            f"'{{{{{token.raw.strip()}}}}}': expected an integer, got '{text}'.",
            placeholder=token.name,
        ) from exc
    if value < 0:
        raise GenerationError(
            f"'{{{{{token.raw.strip()}}}}}': value must not be negative.", placeholder=token.name
        )
    return value


def _select(token: PlaceholderToken, ctx: PlaceholderContext) -> list[ColumnMeta]:
    entity = ctx.require_entity(token.name)
    columns = entity.select_columns(
        exclude=token.names("exclude"),
        only=token.names("include", "only"),
        skip_keys=token.kind == "auto",
    )
    if not columns:
        raise GenerationError(
            f"'{{{{{token.raw.strip()}}}}}' selects no columns.", placeholder=token.name
        )
    return columns


def _quoted(token: PlaceholderToken) -> bool:
    return not (token.has("raw") or token.has("unquoted"))


# ---------------------------------------------------------------------------
# Table and column lists
# ---------------------------------------------------------------------------


@PlaceholderRegistry.register("table", handles_param=True)
def _table(token: PlaceholderToken, ctx: PlaceholderContext) -> str | DynamicHole:
    quote = ctx.provider.quote_identifier
    param = _param(token)
    if param is not None:

        def render(value: Any) -> str:
            if not value:
                raise GenerationError(
                    f"Table name parameter '{param}' is empty.", placeholder="table"
                )
            return quote(str(value))

        return _hole(token, param, render)
    name = token.args[0] if token.args else ctx.table_name
    return quote(name) if _quoted(token) else name


@PlaceholderRegistry.register("columns")
def _columns(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    return ColumnListBuilder(ctx.translation).columns(_select(token, ctx), quoted=_quoted(token))


@PlaceholderRegistry.register("values")
def _values(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    return ColumnListBuilder(ctx.translation).parameters(_select(token, ctx))


@PlaceholderRegistry.register("set")
def _set(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    return ColumnListBuilder(ctx.translation).assignments(
        _select(token, ctx), quoted=_quoted(token)
    )


@PlaceholderRegistry.register("wrap")
def _wrap(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    name = token.kind or (token.args[0] if token.args else None)
    if not name:
        raise GenerationError("'{{wrap}}' requires a column name.", placeholder="wrap")
    return ctx.provider.quote_identifier(ctx.physical_name(name))


# ---------------------------------------------------------------------------
# Statement heads
# ---------------------------------------------------------------------------


def _head_table(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    table = ctx.table_name
    return ctx.provider.quote_identifier(table) if token.has("quoted") else table


@PlaceholderRegistry.register("insert")
def _insert(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    return f"INSERT INTO {_head_table(token, ctx)}"


@PlaceholderRegistry.register("update")
def _update(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    return f"UPDATE {_head_table(token, ctx)}"


@PlaceholderRegistry.register("delete")
def _delete(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    return f"DELETE FROM {_head_table(token, ctx)}"


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------

_AGGREGATE_KEYWORDS = frozenset({"distinct", "coalesce", "all", "*"})


def _aggregate(func: str) -> Handler:
    def handler(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
        column = token.get("column")
        if not column and token.kind and token.kind not in _AGGREGATE_KEYWORDS:
            column = token.kind
        if not column and token.args:
            column = token.args[0]
        distinct = token.has("distinct")

        if not column or column in ("*", "all"):
            if func != "COUNT" or distinct:
                raise GenerationError(
                    f"'{{{{{token.raw.strip()}}}}}' requires a column.", placeholder=token.name
                )
            argument = "*"
        else:
            argument = ctx.provider.quote_identifier(ctx.physical_name(column))

        sql = f"{func}(DISTINCT {argument})" if distinct else f"{func}({argument})"
        default = token.get("default")
        coalesce = token.kind == "coalesce" or _truthy(token.get("coalesce"))
        if default or coalesce:
            return f"COALESCE({sql}, {default or '0'})"
        return sql

    return handler


for _name in ("count", "sum", "avg", "min", "max"):
    PlaceholderRegistry.register(_name)(_aggregate(_name.upper()))


# ---------------------------------------------------------------------------
# WHERE, paging and ordering
# ---------------------------------------------------------------------------


@PlaceholderRegistry.register("where", handles_param=True)
def _where(token: PlaceholderToken, ctx: PlaceholderContext) -> str | DynamicHole:
    param = _param(token)
    if param is None and token.kind is None and not token.args and not token.options:
        param = "where"
    if param is not None:
        # Caller-supplied condition text is inserted as is.
        return _hole(token, param, lambda value: "1=1" if value is None else str(value))

    if token.kind == "id":
        provider = ctx.provider
        keys = (
            [c.physical_name for c in ctx.entity.key_columns] if ctx.entity is not None else []
        ) or ["id"]
        return " AND ".join(
            f"{provider.quote_identifier(k)} = {provider.parameter(k.lower())}" for k in keys
        )
    if token.kind == "all" or token.kind == "none":
        return "1=1" if token.kind == "all" else "1=0"
    raise GenerationError(
        f"'{{{{{token.raw.strip()}}}}}': unsupported where form.", placeholder="where"
    )


def _paging(name: str) -> Handler:
    def handler(token: PlaceholderToken, ctx: PlaceholderContext) -> str | DynamicHole:
        provider = ctx.provider
        with_offset = "offset" in ctx.placeholders

        def fragment(value: int) -> str:
            if name == "limit":
                return provider.limit_fragment(value, with_offset)
            return provider.offset_fragment(value)

        param = _param(token)
        static = token.get("count") or (token.args[0] if token.args else None)
        if static is None and token.kind is not None:
            if name == "limit" and token.kind.lower() in _LIMIT_PRESETS:
                return fragment(_LIMIT_PRESETS[token.kind.lower()])
            static = token.kind
        if static is not None and param is None:
            return fragment(_int_option(token, static))

        def render(value: Any) -> str:
            if value is None:
                # A paired limit still needs its offset clause.
                if name == "offset" and provider.paired_paging and "limit" in ctx.placeholders:
                    return fragment(0)
                return ""
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise GenerationError(
                    f"{name} must be a non-negative integer, got {value!r}.", placeholder=name
                )
            return fragment(value)

        return _hole(token, param or name, render)

    return handler


PlaceholderRegistry.register("limit", handles_param=True)(_paging("limit"))
PlaceholderRegistry.register("offset", handles_param=True)(_paging("offset"))


def _order_sql(ctx: PlaceholderContext, items: list[tuple[str, bool]]) -> str:
    quote = ctx.provider.quote_identifier
    parts = [f"{quote(ctx.physical_name(c))} {'DESC' if desc else 'ASC'}" for c, desc in items]
    return f"ORDER BY {', '.join(parts)}"


def _split_names(text: str) -> list[str]:
    return [n for n in re.split(r"[,\s]+", text) if n]


@PlaceholderRegistry.register("orderby", handles_param=True)
def _orderby(token: PlaceholderToken, ctx: PlaceholderContext) -> str | DynamicHole:
    param = _param(token)
    if param is not None:

        def render(value: Any) -> str:
            if not value:
                return ""
            items = []
            for item in str(value).split(","):
                match = _ORDER_ITEM.match(item.strip())
                if not match:
                    raise GenerationError(
                        f"Invalid ORDER BY item {item.strip()!r}.", placeholder="orderby"
                    )
                items.append((match.group(1), (match.group(2) or "").lower() == "desc"))
            return _order_sql(ctx, items)

        return _hole(token, param, render)

    items: list[tuple[str, bool]] = []
    if token.kind:
        kind = token.kind
        if kind.lower().endswith("_desc"):
            items.append((kind[:-5], True))
        elif kind.lower().endswith("_asc"):
            items.append((kind[:-4], False))
        else:
            items.append((kind, False))
    # ``--desc`` without a column applies to the positional columns.
    descending = token.get("desc") == ""
    items.extend((c, descending) for c in _split_names(" ".join(token.args)))
    items.extend((c, False) for c in _split_names(token.flags.get("asc", "")))
    items.extend((c, True) for c in _split_names(token.flags.get("desc", "")))
    if not items:
        raise GenerationError(
            "'{{orderby}}' requires a column name or --param.", placeholder="orderby"
        )
    return _order_sql(ctx, items)


# ---------------------------------------------------------------------------
# Dialect literals and parameters
# ---------------------------------------------------------------------------


@PlaceholderRegistry.register("bool_true")
def _bool_true(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    return ctx.provider.boolean_literal(True)


@PlaceholderRegistry.register("bool_false")
def _bool_false(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    return ctx.provider.boolean_literal(False)


@PlaceholderRegistry.register("current_timestamp")
def _current_timestamp(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    return ctx.provider.current_timestamp()


@PlaceholderRegistry.register("random")
def _random(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    return f"{ctx.provider.random_function}()"


@PlaceholderRegistry.register("arg", handles_param=True)
def _arg(token: PlaceholderToken, ctx: PlaceholderContext) -> str:
    name = _param(token) or (token.args[0] if token.args else None) or token.kind
    if not name:
        raise GenerationError("'{{arg}}' requires --param <name>.", placeholder="arg")
    return ctx.provider.parameter(name)
