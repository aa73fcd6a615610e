"""Fluent construction of expression trees.

``Expr`` wraps an :data:`~sqlforge.schema.expressions.ExpressionNode` and
overloads Python operators so predicates read naturally::

    from sqlforge.schema.fluent import agg, col, fn

    pred = (col("Age") > 18) & col("IsActive", bool)
    proj = agg.sum(fn.round(col("Salary") * 1.2, 2))

Use ``&``, ``|`` and ``~`` for AND, OR and NOT.  Python's ``and``/``or``/
``not`` cannot be overloaded, so ``Expr`` refuses to be used as a boolean.
"""
from __future__ import annotations

import datetime
import decimal
from collections.abc import Iterable
from typing import Any

from sqlforge.schema.columns import ValueKind
from sqlforge.schema.expressions import (
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
    ProjectionMember,
    UnaryNode,
    UnaryOp,
    is_node,
)

_PY_KINDS: dict[type, ValueKind] = {
    bool: ValueKind.BOOLEAN,
    int: ValueKind.NUMERIC,
    float: ValueKind.NUMERIC,
    decimal.Decimal: ValueKind.NUMERIC,
    str: ValueKind.TEXT,
    datetime.datetime: ValueKind.TEMPORAL,
    datetime.date: ValueKind.TEMPORAL,
    bytes: ValueKind.BINARY,
}


def kind_of_type(kind: ValueKind | type | str | None) -> ValueKind | None:
    """Normalise a ValueKind, Python type or kind name to a ValueKind."""
    if kind is None or isinstance(kind, ValueKind):
        return kind
    if isinstance(kind, str):
        return ValueKind(kind)
    return _PY_KINDS.get(kind)


def as_node(value: Any) -> ExpressionNode:
    """Coerce ``value`` to a node: Expr, node, or a Python constant."""
    if isinstance(value, Expr):
        return value.node
    if is_node(value):
        return value
    return ConstantNode(value=value)


class Expr:
    """Operator-overloading wrapper around an expression node."""

    __slots__ = ("node",)

    def __init__(self, node: ExpressionNode) -> None:
        self.node = node

    def __repr__(self) -> str:
        return f"Expr({self.node!r})"

    def __bool__(self) -> bool:
        raise TypeError("Boolean value of an Expr is not defined; use &, | and ~.")

    # Comparisons

    def _binary(self, op: BinaryOp, other: Any, reflected: bool = False) -> Expr:
        left, right = self.node, as_node(other)
        if reflected:
            left, right = right, left
        return Expr(BinaryNode(op=op, left=left, right=right))

    def __eq__(self, other: Any) -> Expr:  # type: ignore[override]
        return self._binary(BinaryOp.EQ, other)

    def __ne__(self, other: Any) -> Expr:  # type: ignore[override]
        return self._binary(BinaryOp.NE, other)

    __hash__ = None  # type: ignore[assignment]

    def __gt__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.GT, other)

    def __ge__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.GTE, other)

    def __lt__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.LT, other)

    def __le__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.LTE, other)

    # Logical

    def __and__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.AND, other)

    def __rand__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.AND, other, reflected=True)

    def __or__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.OR, other)

    def __ror__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.OR, other, reflected=True)

    def __invert__(self) -> Expr:
        return Expr(UnaryNode(op=UnaryOp.NOT, operand=self.node))

    # Arithmetic

    def __add__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.ADD, other)

    def __radd__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.ADD, other, reflected=True)

    def __sub__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.SUBTRACT, other)

    def __rsub__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.SUBTRACT, other, reflected=True)

    def __mul__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.MULTIPLY, other)

    def __rmul__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.MULTIPLY, other, reflected=True)

    def __truediv__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.DIVIDE, other)

    def __rtruediv__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.DIVIDE, other, reflected=True)

    def __mod__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.MODULO, other)

    def __rmod__(self, other: Any) -> Expr:
        return self._binary(BinaryOp.MODULO, other, reflected=True)

    def __neg__(self) -> Expr:
        return Expr(UnaryNode(op=UnaryOp.NEGATE, operand=self.node))

    # Null handling

    def is_null(self) -> Expr:
        return self._binary(BinaryOp.EQ, None)

    def is_not_null(self) -> Expr:
        return self._binary(BinaryOp.NE, None)

    def coalesce(self, default: Any) -> Expr:
        """``self ?? default``."""
        return Expr(CoalesceNode(left=self.node, right=as_node(default)))

    def is_in(self, values: Iterable[Any] | None) -> Expr:
        """Membership test; an empty or ``None`` collection matches nothing."""
        collection = ConstantNode(value=None if values is None else list(values))
        return Expr(MethodCallNode(method="contains", target=collection, args=(self.node,)))

    def cast(self, target_type: str) -> Expr:
        return Expr(CastNode(operand=self.node, target_type=target_type))

    # Method calls

    def _call(self, method: str, *args: Any, kind: ValueKind | None = None) -> Expr:
        return Expr(
            MethodCallNode(
                method=method,
                target=self.node,
                args=tuple(as_node(a) for a in args),
                value_kind=kind,
            )
        )

    def contains(self, text: Any) -> Expr:
        return self._call("contains", text)

    def startswith(self, text: Any) -> Expr:
        return self._call("starts_with", text)

    def endswith(self, text: Any) -> Expr:
        return self._call("ends_with", text)

    def upper(self) -> Expr:
        return self._call("upper")

    def lower(self) -> Expr:
        return self._call("lower")

    def strip(self) -> Expr:
        return self._call("trim")

    def lstrip(self) -> Expr:
        return self._call("trim_start")

    def rstrip(self) -> Expr:
        return self._call("trim_end")

    def length(self) -> Expr:
        return self._call("length")

    def substring(self, start: Any, length: Any | None = None) -> Expr:
        """Zero-based substring, like ``str[start:start + length]``."""
        if length is None:
            return self._call("substring", start)
        return self._call("substring", start, length)

    def replace(self, old: Any, new: Any) -> Expr:
        return self._call("replace", old, new)

    def pad_left(self, width: int, char: str | None = None) -> Expr:
        return self._call("pad_left", width) if char is None else self._call("pad_left", width, char)

    def pad_right(self, width: int, char: str | None = None) -> Expr:
        return self._call("pad_right", width) if char is None else self._call("pad_right", width, char)

    def index_of(self, text: Any, start: Any | None = None) -> Expr:
        return self._call("index_of", text) if start is None else self._call("index_of", text, start)

    def add_days(self, n: Any) -> Expr:
        return self._call("add_days", n)

    def add_months(self, n: Any) -> Expr:
        return self._call("add_months", n)

    def add_years(self, n: Any) -> Expr:
        return self._call("add_years", n)

    def add_hours(self, n: Any) -> Expr:
        return self._call("add_hours", n)

    def add_minutes(self, n: Any) -> Expr:
        return self._call("add_minutes", n)

    def add_seconds(self, n: Any) -> Expr:
        return self._call("add_seconds", n)

    def method(self, name: str, *args: Any, kind: ValueKind | type | None = None) -> Expr:
        """Call an arbitrary method by name."""
        return self._call(name, *args, kind=kind_of_type(kind))


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def col(name: str, kind: ValueKind | type | str | None = None) -> Expr:
    """Reference a column; ``kind`` may be a ValueKind or a Python type."""
    return Expr(ColumnNode(name=name, value_kind=kind_of_type(kind)))


def lit(value: Any, kind: ValueKind | type | str | None = None) -> Expr:
    return Expr(ConstantNode(value=value, value_kind=kind_of_type(kind)))


def param(name: str, kind: ValueKind | type | str | None = None) -> Expr:
    return Expr(ParameterNode(name=name, value_kind=kind_of_type(kind)))


def when(test: Any, if_true: Any, if_false: Any) -> Expr:
    """Ternary ``test ? if_true : if_false``."""
    return Expr(
        ConditionalNode(test=as_node(test), if_true=as_node(if_true), if_false=as_node(if_false))
    )


def coalesce(value: Any, default: Any) -> Expr:
    return Expr(CoalesceNode(left=as_node(value), right=as_node(default)))


def project(**members: Any) -> Expr:
    """A ``new { Alias = expr, ... }`` projection; keyword order is kept."""
    return Expr(
        NewNode(members=tuple(ProjectionMember(alias=a, expr=as_node(e)) for a, e in members.items()))
    )


class _Functions:
    """Static scalar functions (``fn.round(x, 2)``)."""

    @staticmethod
    def _static(method: str, *args: Any) -> Expr:
        return Expr(MethodCallNode(method=method, args=tuple(as_node(a) for a in args)))

    def abs(self, x: Any) -> Expr:
        return self._static("abs", x)

    def round(self, x: Any, digits: Any | None = None) -> Expr:
        return self._static("round", x) if digits is None else self._static("round", x, digits)

    def floor(self, x: Any) -> Expr:
        return self._static("floor", x)

    def ceiling(self, x: Any) -> Expr:
        return self._static("ceiling", x)

    def sqrt(self, x: Any) -> Expr:
        return self._static("sqrt", x)

    def pow(self, x: Any, y: Any) -> Expr:
        return self._static("pow", x, y)

    def sign(self, x: Any) -> Expr:
        return self._static("sign", x)

    def exp(self, x: Any) -> Expr:
        return self._static("exp", x)

    def log(self, x: Any) -> Expr:
        return self._static("log", x)

    def log10(self, x: Any) -> Expr:
        return self._static("log10", x)

    def truncate(self, x: Any) -> Expr:
        return self._static("truncate", x)

    def atan2(self, y: Any, x: Any) -> Expr:
        return self._static("atan2", y, x)

    def least(self, a: Any, b: Any) -> Expr:
        return self._static("min", a, b)

    def greatest(self, a: Any, b: Any) -> Expr:
        return self._static("max", a, b)

    def call(self, method: str, *args: Any) -> Expr:
        return self._static(method, *args)


class _Aggregates:
    """Aggregate constructors (``agg.sum(x)``)."""

    @staticmethod
    def _make(func: AggregateFunc, argument: Any | None = None, **kwargs: Any) -> Expr:
        arg = None if argument is None else as_node(argument)
        return Expr(AggregateNode(func=func, argument=arg, **kwargs))

    def count(self, argument: Any | None = None, where: Any | None = None) -> Expr:
        """``COUNT(*)``, ``COUNT(x)``, or a count of rows matching ``where``."""
        predicate = None if where is None else as_node(where)
        return self._make(AggregateFunc.COUNT, argument, predicate=predicate)

    def count_distinct(self, argument: Any) -> Expr:
        return self._make(AggregateFunc.COUNT, argument, distinct=True)

    def sum(self, argument: Any) -> Expr:
        return self._make(AggregateFunc.SUM, argument)

    def avg(self, argument: Any) -> Expr:
        return self._make(AggregateFunc.AVG, argument)

    def min(self, argument: Any) -> Expr:
        return self._make(AggregateFunc.MIN, argument)

    def max(self, argument: Any) -> Expr:
        return self._make(AggregateFunc.MAX, argument)

    def string_agg(self, argument: Any, separator: str = ",") -> Expr:
        return self._make(AggregateFunc.STRING_AGG, argument, separator=separator)


fn = _Functions()
agg = _Aggregates()
