"""Clause-level SQL builders.

Each builder handles exactly one clause and receives the shared
:class:`~sqlforge.compile.context.TranslationContext` plus the
:class:`~sqlforge.compile.expression_builder.ExpressionTranslator` of the
statement being assembled.  ``ColumnListBuilder`` is also used by the
template placeholders, so ``{{columns}}``/``{{values}}``/``{{set}}`` and the
query builder render column lists identically.
"""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlforge.compile.context import TranslationContext
from sqlforge.compile.expression_builder import (
    ExpressionTranslator,
    ParameterBinder,
    strip_outer_parentheses,
)
from sqlforge.schema.columns import ColumnMeta
from sqlforge.schema.expressions import ExpressionNode


class ColumnListBuilder:
    """Renders column lists, parameter lists and ``col = @col`` assignments.

    Args:
        ctx: Translation context (provider for quoting and prefixes).
    """

    def __init__(self, ctx: TranslationContext) -> None:
        self._ctx = ctx

    def columns(self, columns: Sequence[ColumnMeta], quoted: bool = True) -> str:
        quote = self._ctx.provider.quote_identifier
        return ", ".join(quote(c.physical_name) if quoted else c.physical_name for c in columns)

    def parameters(self, columns: Sequence[ColumnMeta], prefix: str | None = None) -> str:
        prefix = self._ctx.provider.parameter_prefix if prefix is None else prefix
        return ", ".join(f"{prefix}{c.parameter_name}" for c in columns)

    def assignments(
        self, columns: Sequence[ColumnMeta], quoted: bool = True, prefix: str | None = None
    ) -> str:
        quote = self._ctx.provider.quote_identifier
        prefix = self._ctx.provider.parameter_prefix if prefix is None else prefix
        return ", ".join(
            f"{quote(c.physical_name) if quoted else c.physical_name} = {prefix}{c.parameter_name}"
            for c in columns
        )


class SelectClauseBuilder:
    """Compiles the SELECT list."""

    def __init__(self, ctx: TranslationContext, translator: ExpressionTranslator) -> None:
        self._ctx = ctx
        self._tr = translator

    def build(self, items: Sequence[ExpressionNode], distinct: bool = False) -> str:
        cols = ", ".join(self._tr.translate(i) for i in items) if items else "*"
        return f"SELECT {'DISTINCT ' if distinct else ''}{cols}"


class SetClauseBuilder:
    """Compiles ``SET col = value, ...`` for UPDATE statements.

    Plain values are bound under the column's parameter name; expression
    values are translated inline.
    """

    def __init__(
        self,
        ctx: TranslationContext,
        translator: ExpressionTranslator,
        binder: ParameterBinder,
    ) -> None:
        self._ctx = ctx
        self._tr = translator
        self._binder = binder

    def build(self, assignments: dict[str, Any]) -> str:
        parts = []
        for column, value in assignments.items():
            target = self._ctx.quote_column(column)
            if isinstance(value, _Expression):
                parts.append(f"{target} = {self._tr.translate(value.node)}")
            else:
                name = self._ctx.physical_name(column).lower()
                parts.append(f"{target} = {self._binder.bind(name, value)}")
        return f"SET {', '.join(parts)}"


class _Expression:
    """Marks an assignment value that must be translated, not bound."""

    __slots__ = ("node",)

    def __init__(self, node: ExpressionNode) -> None:
        self.node = node


def expression_value(node: ExpressionNode) -> _Expression:
    return _Expression(node)


class PredicateClauseBuilder:
    """Compiles WHERE and HAVING with redundant outer parentheses removed."""

    def __init__(self, translator: ExpressionTranslator) -> None:
        self._tr = translator

    def build(self, keyword: str, predicate: ExpressionNode) -> str:
        return f"{keyword} {strip_outer_parentheses(self._tr.translate(predicate, predicate=True))}"


class GroupByClauseBuilder:
    def __init__(self, translator: ExpressionTranslator) -> None:
        self._tr = translator

    def build(self, items: Sequence[ExpressionNode]) -> str:
        return f"GROUP BY {', '.join(self._tr.translate(i) for i in items)}"


class OrderByClauseBuilder:
    """Compiles ORDER BY from ``(expression, descending)`` pairs."""

    def __init__(self, translator: ExpressionTranslator) -> None:
        self._tr = translator

    def build(self, items: Sequence[tuple[ExpressionNode, bool]]) -> str:
        parts = [
            f"{self._tr.translate(expr)} {'DESC' if descending else 'ASC'}"
            for expr, descending in items
        ]
        return f"ORDER BY {', '.join(parts)}"
