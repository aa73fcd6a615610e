"""Expression AST to SQL translation.

``ExpressionTranslator`` walks a typed
:data:`~sqlforge.schema.expressions.ExpressionNode` tree with one case per
node kind and returns a SQL fragment.  Method calls are dispatched through
:class:`~sqlforge.compile.registry.MethodRegistry` (handlers live in
:mod:`sqlforge.compile.functions`).

Both the translator and its callers share a :class:`ParameterBinder`
(per-statement parameter state) so bound names are unique across every
fragment of one statement.
"""
from __future__ import annotations

import datetime
import decimal
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlforge.compile import functions  # noqa: F401  (registers method handlers)
from sqlforge.compile.base import DialectProvider
from sqlforge.compile.cache import ExpressionCache, cache_key, default_cache
from sqlforge.compile.context import TranslationContext
from sqlforge.compile.registry import MethodRegistry, normalize_method
from sqlforge.errors import InvalidExpressionError, NullArgumentError
from sqlforge.schema.columns import ValueKind
from sqlforge.schema.expressions import (
    ARITHMETIC_OPS,
    COMPARISON_OPS,
    LOGICAL_OPS,
    AggregateFunc,
    AggregateNode,
    BinaryNode,
    BinaryOp,
    CastNode,
    CoalesceNode,
    ColumnNode,
    ConditionalNode,
    ConstantNode,
    ExpressionNode,
    MethodCallNode,
    NewNode,
    ParameterNode,
    UnaryNode,
    UnaryOp,
    to_node,
)
from sqlforge.schema.fluent import Expr

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Translation:
    """Result of a standalone translation.

    Attributes:
        sql: The SQL fragment.
        parameters: Bound ``(placeholder, value)`` pairs; empty for inline output.
    """

    sql: str
    parameters: tuple[tuple[str, Any], ...] = ()


# ---------------------------------------------------------------------------
# Parameter binder (shared across all fragments of one statement)
# ---------------------------------------------------------------------------


@dataclass
class ParameterBinder:
    """Allocates dialect-prefixed parameter names and keeps their values.

    Names are stored with the prefix (``@age``, ``$p0``) in first-bound
    order.  Binding an existing name again replaces its value.
    """

    prefix: str = "@"
    stem: str = "p"
    _values: dict[str, Any] = field(default_factory=dict)
    _counter: int = 0

    def add_value(self, value: Any) -> str:
        """Store an anonymous value and return its placeholder."""
        name = f"{self.stem}{self._counter}"
        while f"{self.prefix}{name}" in self._values:
            self._counter += 1
            name = f"{self.stem}{self._counter}"
        self._counter += 1
        return self.bind(name, value)

    def bind(self, name: str, value: Any) -> str:
        """Store ``value`` under ``name`` and return the placeholder."""
        placeholder = name if name.startswith(self.prefix) else f"{self.prefix}{name}"
        self._values[placeholder] = value
        return placeholder

    def merge(self, other: ParameterBinder) -> None:
        for placeholder, value in other._values.items():
            self._values[placeholder] = value

    @property
    def parameters(self) -> list[tuple[str, Any]]:
        return list(self._values.items())

    def __len__(self) -> int:
        return len(self._values)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_CLOSING = {"'": "'", '"': '"', "`": "`", "[": "]"}


def _wraps_whole(sql: str) -> bool:
    """True when the first ``(`` is closed by the final ``)``."""
    depth = 0
    closing: str | None = None
    last = len(sql) - 1
    for i, ch in enumerate(sql):
        if closing is not None:
            if ch == closing:
                closing = None
            continue
        if ch in _CLOSING:
            closing = _CLOSING[ch]
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0 and i != last:
                return False
    return depth == 0


def strip_outer_parentheses(sql: str) -> str:
    """Remove redundant parentheses wrapping the whole fragment."""
    sql = sql.strip()
    while len(sql) >= 2 and sql[0] == "(" and sql[-1] == ")" and _wraps_whole(sql):
        sql = sql[1:-1].strip()
    return sql


_COMPARISON_SQL: dict[BinaryOp, str] = {
    BinaryOp.EQ: "=",
    BinaryOp.NE: "<>",
    BinaryOp.GT: ">",
    BinaryOp.GTE: ">=",
    BinaryOp.LT: "<",
    BinaryOp.LTE: "<=",
}

_LOGICAL_SQL: dict[BinaryOp, str] = {BinaryOp.AND: "AND", BinaryOp.OR: "OR"}

_AGGREGATE_KINDS: dict[AggregateFunc, ValueKind] = {
    AggregateFunc.COUNT: ValueKind.NUMERIC,
    AggregateFunc.STRING_AGG: ValueKind.TEXT,
}


def kind_of_value(value: Any) -> ValueKind | None:
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float, decimal.Decimal)):
        return ValueKind.NUMERIC
    if isinstance(value, str):
        return ValueKind.TEXT
    if isinstance(value, (datetime.date, datetime.datetime)):
        return ValueKind.TEMPORAL
    if isinstance(value, (bytes, bytearray)):
        return ValueKind.BINARY
    return None


# ---------------------------------------------------------------------------
# Translator
# ---------------------------------------------------------------------------


class ExpressionTranslator:
    """Compiles expression trees to dialect-specific SQL fragments.

    Args:
        ctx: Provider, column metadata and options.
        binder: Shared parameter state; a private one is created when omitted.
        cache: Expression cache; defaults to the process-wide cache.
    """

    def __init__(
        self,
        ctx: TranslationContext,
        binder: ParameterBinder | None = None,
        cache: ExpressionCache | None = None,
    ) -> None:
        self._ctx = ctx
        if binder is None:
            binder = ParameterBinder(
                prefix=ctx.provider.parameter_prefix, stem=ctx.options.parameter_stem
            )
        self._binder = binder
        self._cache = cache if cache is not None else default_cache()

    @property
    def ctx(self) -> TranslationContext:
        return self._ctx

    @property
    def provider(self) -> DialectProvider:
        return self._ctx.provider

    @property
    def binder(self) -> ParameterBinder:
        return self._binder

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def translate(self, node: ExpressionNode | Expr | dict, predicate: bool = False) -> str:
        """Translate ``node`` to SQL.

        Args:
            node: Typed node, fluent ``Expr`` or raw node dict.
            predicate: Translate in boolean context (WHERE / HAVING), where
                a bare boolean column becomes ``col = 1``.

        Raises:
            NullArgumentError: If ``node`` is None.
            InvalidExpressionError: For a construct with no translation.
        """
        if node is None:
            raise NullArgumentError("node")
        if isinstance(node, Expr):
            node = node.node
        node = to_node(node)
        options = self._ctx.options
        if not options.use_cache or options.parameterize:
            return self._visit(node, predicate)

        key = cache_key(self._ctx, node, predicate)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        sql = self._visit(node, predicate)
        self._cache.put(key, sql)
        return sql

    def sql(self, node: ExpressionNode) -> str:
        """Translate a sub-expression in value context."""
        return self._visit(node, False)

    def predicate_sql(self, node: ExpressionNode) -> str:
        """Translate a sub-expression in boolean context."""
        return self._visit(node, True)

    def literal(self, value: Any) -> str:
        """Inline ``value`` or bind it, depending on the options."""
        if value is not None and self._ctx.options.parameterize:
            return self._binder.add_value(value)
        return self.provider.quote_literal(value)

    def kind_of(self, node: ExpressionNode) -> ValueKind | None:
        """Best-effort value kind of ``node``."""
        if node.value_kind is not None:
            return node.value_kind
        if isinstance(node, ConstantNode):
            return kind_of_value(node.value)
        if isinstance(node, ColumnNode):
            meta = self._ctx.column(node.name)
            return meta.value_kind if meta is not None else None
        if isinstance(node, BinaryNode):
            if node.op in COMPARISON_OPS or node.op in LOGICAL_OPS:
                return ValueKind.BOOLEAN
            if node.op == BinaryOp.ADD and self._is_text_add(node):
                return ValueKind.TEXT
            return ValueKind.NUMERIC
        if isinstance(node, UnaryNode):
            return ValueKind.BOOLEAN if node.op == UnaryOp.NOT else self.kind_of(node.operand)
        if isinstance(node, MethodCallNode):
            entry = MethodRegistry.get(node.method)
            return entry.result_kind if entry is not None else None
        if isinstance(node, ConditionalNode):
            return self.kind_of(node.if_true) or self.kind_of(node.if_false)
        if isinstance(node, CoalesceNode):
            return self.kind_of(node.left) or self.kind_of(node.right)
        if isinstance(node, AggregateNode):
            kind = _AGGREGATE_KINDS.get(node.func)
            if kind is None and node.argument is not None:
                return self.kind_of(node.argument)
            return kind
        return None

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _visit(self, node: ExpressionNode, predicate: bool) -> str:
        if isinstance(node, ConstantNode):
            return self._visit_constant(node, predicate)
        if isinstance(node, ColumnNode):
            return self._visit_column(node, predicate)
        if isinstance(node, ParameterNode):
            return self.provider.parameter(node.name)
        if isinstance(node, BinaryNode):
            return self._visit_binary(node)
        if isinstance(node, UnaryNode):
            return self._visit_unary(node)
        if isinstance(node, MethodCallNode):
            return self._visit_method(node)
        if isinstance(node, ConditionalNode):
            test = strip_outer_parentheses(self.predicate_sql(node.test))
            return f"CASE WHEN {test} THEN {self.sql(node.if_true)} ELSE {self.sql(node.if_false)} END"
        if isinstance(node, CoalesceNode):
            return f"COALESCE({self.sql(node.left)}, {self.sql(node.right)})"
        if isinstance(node, AggregateNode):
            return self._visit_aggregate(node)
        if isinstance(node, CastNode):
            return f"CAST({self.sql(node.operand)} AS {self.provider.map_type(node.target_type)})"
        if isinstance(node, NewNode):
            quote = self.provider.quote_identifier
            return ", ".join(f"{self.sql(m.expr)} AS {quote(m.alias)}" for m in node.members)
        raise InvalidExpressionError(
            f"Unknown expression node: {type(node).__name__}", construct=type(node).__name__
        )

    # ------------------------------------------------------------------
    # Node sub-compilers
    # ------------------------------------------------------------------

    def _visit_constant(self, node: ConstantNode, predicate: bool) -> str:
        if node.is_collection:
            raise InvalidExpressionError(
                "A collection constant is only valid as the receiver of a membership check.",
                construct="collection",
            )
        if predicate and isinstance(node.value, bool):
            return "1 = 1" if node.value else "1 = 0"
        return self.literal(node.value)

    def _visit_column(self, node: ColumnNode, predicate: bool) -> str:
        sql = self._ctx.quote_column(node.name)
        if predicate and self.kind_of(node) == ValueKind.BOOLEAN:
            return f"{sql} = {self.provider.quote_literal(True)}"
        return sql

    def _is_bool_column(self, node: ExpressionNode) -> bool:
        return isinstance(node, ColumnNode) and self.kind_of(node) == ValueKind.BOOLEAN

    def _visit_unary(self, node: UnaryNode) -> str:
        if node.op == UnaryOp.NOT:
            if self._is_bool_column(node.operand):
                column = self._ctx.quote_column(node.operand.name)
                return f"{column} = {self.provider.quote_literal(False)}"
            inner = strip_outer_parentheses(self.predicate_sql(node.operand))
            return f"NOT ({inner})"
        return f"-({strip_outer_parentheses(self.sql(node.operand))})"

    def _visit_binary(self, node: BinaryNode) -> str:
        op = node.op
        if op in LOGICAL_OPS:
            left = self.predicate_sql(node.left)
            right = self.predicate_sql(node.right)
            return f"({left} {_LOGICAL_SQL[op]} {right})"

        if op in COMPARISON_OPS:
            null_check = self._null_comparison(node)
            if null_check is not None:
                return null_check
            return f"{self.sql(node.left)} {_COMPARISON_SQL[op]} {self.sql(node.right)}"

        if op in ARITHMETIC_OPS:
            if op == BinaryOp.ADD and self._is_text_add(node):
                return self.provider.concat(*(self.sql(p) for p in self._concat_parts(node)))
            return f"({self.sql(node.left)} {op.value} {self.sql(node.right)})"

        raise InvalidExpressionError(f"Binary operator {op!r} is not supported.", construct=str(op))

    def _null_comparison(self, node: BinaryNode) -> str | None:
        if node.op not in (BinaryOp.EQ, BinaryOp.NE):
            return None
        if _is_null(node.right):
            other = node.left
        elif _is_null(node.left):
            other = node.right
        else:
            return None
        suffix = "IS NULL" if node.op == BinaryOp.EQ else "IS NOT NULL"
        return f"{self.sql(other)} {suffix}"

    def _is_text_add(self, node: BinaryNode) -> bool:
        return ValueKind.TEXT in (self.kind_of(node.left), self.kind_of(node.right))

    def _concat_parts(self, node: ExpressionNode) -> list[ExpressionNode]:
        if isinstance(node, BinaryNode) and node.op == BinaryOp.ADD and self._is_text_add(node):
            return self._concat_parts(node.left) + self._concat_parts(node.right)
        return [node]

    def _visit_method(self, node: MethodCallNode) -> str:
        name = normalize_method(node.method)
        if name == "contains":
            membership = self._membership(node)
            if membership is not None:
                return membership
        entry = MethodRegistry.get(name)
        if entry is not None:
            return entry.handler(self, node)
        return self._cast_fallback(node)

    def _membership(self, node: MethodCallNode) -> str | None:
        if node.target is not None and len(node.args) == 1 and _is_collection(node.target):
            collection, item = node.target, node.args[0]
        elif node.target is None and len(node.args) == 2 and _is_collection(node.args[0]):
            collection, item = node.args
        else:
            return None
        item_sql = self.sql(item)
        if not collection.value:
            return f"{item_sql} IN (NULL)"
        values = ", ".join(self.literal(v) for v in collection.value)
        return f"{item_sql} IN ({values})"

    def _cast_fallback(self, node: MethodCallNode) -> str:
        if node.target is not None and node.value_kind is not None:
            logger.debug("No handler for method %r; casting receiver.", node.method)
            target_type = self.provider.map_type(node.value_kind)
            return f"CAST({self.sql(node.target)} AS {target_type})"
        raise InvalidExpressionError(
            f"Method '{node.method}' has no SQL translation.", construct=node.method
        )

    def _visit_aggregate(self, node: AggregateNode) -> str:
        func = node.func
        if func == AggregateFunc.COUNT:
            if node.predicate is not None:
                condition = strip_outer_parentheses(self.predicate_sql(node.predicate))
                return f"SUM(CASE WHEN {condition} THEN 1 ELSE 0 END)"
            if node.argument is None and not node.distinct:
                return "COUNT(*)"
        if node.argument is None:
            raise InvalidExpressionError(
                f"Aggregate {func.value} requires an argument.", construct=func.value
            )
        inner = self.sql(node.argument)
        if func == AggregateFunc.STRING_AGG:
            return self.provider.string_agg(inner, node.separator)
        distinct = "DISTINCT " if node.distinct else ""
        return f"{func.value}({distinct}{inner})"


def _is_null(node: ExpressionNode) -> bool:
    return isinstance(node, ConstantNode) and node.value is None


def _is_collection(node: ExpressionNode) -> bool:
    return isinstance(node, ConstantNode) and (node.is_collection or node.value is None)
