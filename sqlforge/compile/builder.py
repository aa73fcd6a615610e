"""Fluent SQL statement assembly.

``QueryBuilder`` accumulates the pieces of one SELECT, INSERT, UPDATE or
DELETE statement and compiles them on demand.  Predicates are kept as
expression trees and translated in :meth:`QueryBuilder.build`, so repeated
calls produce the same SQL and parameters.

Sub-builder hierarchy
---------------------
QueryBuilder
  ├── ExpressionTranslator  (expression_builder.py)
  ├── SelectClauseBuilder   (clause_builders.py)
  ├── SetClauseBuilder      (clause_builders.py)
  ├── PredicateClauseBuilder(clause_builders.py)
  ├── GroupByClauseBuilder  (clause_builders.py)
  └── OrderByClauseBuilder  (clause_builders.py)

A single :class:`~sqlforge.compile.expression_builder.ParameterBinder` is
created per ``build()`` call and shared by every sub-builder, so bound
parameter names are unique across the whole statement.

Safety
------
DELETE and UPDATE without a WHERE clause are refused with
:class:`~sqlforge.errors.StatementOperationError`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from sqlforge.compile.cache import ExpressionCache
from sqlforge.compile.clause_builders import (
    GroupByClauseBuilder,
    OrderByClauseBuilder,
    PredicateClauseBuilder,
    SelectClauseBuilder,
    SetClauseBuilder,
    expression_value,
)
from sqlforge.compile.context import TranslationContext, TranslationOptions
from sqlforge.compile.expression_builder import ExpressionTranslator, ParameterBinder
from sqlforge.compile.registry import DialectTarget, ProviderFactory
from sqlforge.errors import NullArgumentError, StatementOperationError
from sqlforge.schema.columns import ColumnMeta, EntityMeta
from sqlforge.schema.expressions import BinaryNode, BinaryOp, ColumnNode, ExpressionNode, to_node
from sqlforge.schema.fluent import Expr, as_node

logger = logging.getLogger(__name__)


class StatementKind(str, Enum):
    UNSET = "UNSET"
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass
class CompiledSQL:
    """Output of :meth:`QueryBuilder.build`.

    Attributes:
        sql: The SQL string with dialect-prefixed placeholders.
        params: Placeholder (prefix included) to value, in binding order.
        dialect: Dialect name the SQL was generated for.
    """

    sql: str
    params: dict[str, Any] = field(default_factory=dict)
    dialect: str = ""


def _entity(entity: EntityMeta | str | None) -> EntityMeta | None:
    if entity is None or isinstance(entity, EntityMeta):
        return entity
    # A bare string names the table directly.
    return EntityMeta(name=entity, table=entity)


def _column_node(column: str | Expr | ExpressionNode) -> ExpressionNode:
    if isinstance(column, str):
        return ColumnNode(name=column)
    return as_node(column)


class QueryBuilder:
    """Builds one SQL statement for an entity.

    The first statement-kind call (``select``, ``insert``, ``update``/``set``,
    ``delete``) fixes the statement kind; a call implying another kind raises
    :class:`~sqlforge.errors.StatementOperationError`.  ``where`` composes
    with every kind.  Without any kind call the statement is ``SELECT *``.

    Args:
        dialect: Dialect, dialect name, raw profile or provider.
        entity: Column metadata, or a bare table name.
        options: Translator options.  ``parameterize=True`` binds constants
            instead of inlining them.
        cache: Expression cache; defaults to the process-wide cache.

    Example::

        with QueryBuilder("sqlserver", users) as qb:
            sql = qb.where(col("Age") > 18).order_by("Name").take(10).to_sql()
    """

    def __init__(
        self,
        dialect: DialectTarget,
        entity: EntityMeta | str | None = None,
        options: TranslationOptions | None = None,
        cache: ExpressionCache | None = None,
    ) -> None:
        if dialect is None:
            raise NullArgumentError("dialect")
        provider = ProviderFactory.resolve(dialect)
        self._ctx = TranslationContext(
            provider=provider,
            entity=_entity(entity),
            options=options or TranslationOptions(),
        )
        self._cache = cache
        self._kind = StatementKind.UNSET
        self._distinct = False
        self._select: list[ExpressionNode] = []
        self._where: ExpressionNode | None = None
        self._assignments: dict[str, Any] = {}
        self._values: dict[str, Any] = {}
        self._group_by: list[ExpressionNode] = []
        self._having: ExpressionNode | None = None
        self._order_by: list[tuple[ExpressionNode, bool]] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._params: dict[str, Any] = {}
        self._closed = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def context(self) -> TranslationContext:
        return self._ctx

    @property
    def kind(self) -> StatementKind:
        return self._kind

    @property
    def table(self) -> str:
        if self._ctx.entity is None:
            raise StatementOperationError("No entity or table name was supplied to the builder.")
        return self._ctx.entity.table_name

    # ------------------------------------------------------------------
    # Statement kind
    # ------------------------------------------------------------------

    def _enter(self, kind: StatementKind) -> None:
        self._check_open()
        if self._kind in (StatementKind.UNSET, kind):
            self._kind = kind
            return
        raise StatementOperationError(
            f"Cannot turn a {self._kind.value} statement into a {kind.value} statement.",
            statement=self._kind.value,
        )

    def _check_open(self) -> None:
        if self._closed:
            raise StatementOperationError("QueryBuilder has been closed.")

    # ------------------------------------------------------------------
    # Fluent API
    # ------------------------------------------------------------------

    def select(self, *columns: str | Expr | ExpressionNode, distinct: bool = False) -> QueryBuilder:
        """Add projection items; no items means ``SELECT *``."""
        self._enter(StatementKind.SELECT)
        self._select.extend(_column_node(c) for c in columns)
        self._distinct = self._distinct or distinct
        return self

    def where(self, predicate: Expr | ExpressionNode | dict) -> QueryBuilder:
        """AND ``predicate`` onto the current WHERE tree."""
        self._check_open()
        if predicate is None:
            raise NullArgumentError("predicate")
        self._where = _conjoin(self._where, _predicate(predicate), BinaryOp.AND)
        return self

    def or_where(self, predicate: Expr | ExpressionNode | dict) -> QueryBuilder:
        """OR ``predicate`` onto the current WHERE tree."""
        self._check_open()
        if predicate is None:
            raise NullArgumentError("predicate")
        self._where = _conjoin(self._where, _predicate(predicate), BinaryOp.OR)
        return self

    def set(self, column: str, value: Any) -> QueryBuilder:
        """Assign a bound value in an UPDATE."""
        self._enter(StatementKind.UPDATE)
        self._assignments[column] = value
        return self

    def set_expr(self, column: str, expr: Expr | ExpressionNode) -> QueryBuilder:
        """Assign a translated expression, e.g. ``col("Count") + 1``."""
        self._enter(StatementKind.UPDATE)
        if expr is None:
            raise NullArgumentError("expr")
        self._assignments[column] = expression_value(as_node(expr))
        return self

    def update(self, values: Mapping[str, Any] | None = None) -> QueryBuilder:
        self._enter(StatementKind.UPDATE)
        for column, value in (values or {}).items():
            self._assignments[column] = value
        return self

    def insert(self, values: Mapping[str, Any]) -> QueryBuilder:
        """INSERT one row from a column-to-value mapping."""
        self._enter(StatementKind.INSERT)
        if values is None:
            raise NullArgumentError("values")
        self._values.update(values)
        return self

    def delete(self) -> QueryBuilder:
        self._enter(StatementKind.DELETE)
        return self

    def group_by(self, *columns: str | Expr | ExpressionNode) -> QueryBuilder:
        self._enter(StatementKind.SELECT)
        self._group_by.extend(_column_node(c) for c in columns)
        return self

    def having(self, predicate: Expr | ExpressionNode | dict) -> QueryBuilder:
        self._enter(StatementKind.SELECT)
        if predicate is None:
            raise NullArgumentError("predicate")
        self._having = _conjoin(self._having, _predicate(predicate), BinaryOp.AND)
        return self

    def order_by(self, column: str | Expr | ExpressionNode, descending: bool = False) -> QueryBuilder:
        self._enter(StatementKind.SELECT)
        self._order_by.append((_column_node(column), descending))
        return self

    def order_by_desc(self, column: str | Expr | ExpressionNode) -> QueryBuilder:
        return self.order_by(column, descending=True)

    def take(self, count: int) -> QueryBuilder:
        self._enter(StatementKind.SELECT)
        self._limit = count
        return self

    def skip(self, count: int) -> QueryBuilder:
        self._enter(StatementKind.SELECT)
        self._offset = count
        return self

    def bind(self, name: str, value: Any) -> QueryBuilder:
        """Supply the value for a named parameter used in an expression."""
        self._check_open()
        self._params[name] = value
        return self

    def merge_from(self, other: QueryBuilder) -> QueryBuilder:
        """AND ``other``'s WHERE tree into this one and adopt its parameters.

        On a parameter name collision ``other``'s value wins.

        Raises:
            NullArgumentError: If ``other`` is ``None``.
        """
        self._check_open()
        if other is None:
            raise NullArgumentError("other")
        if other._where is not None:
            self._where = _conjoin(self._where, other._where, BinaryOp.AND)
        self._params.update(other._params)
        return self

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def build(self) -> CompiledSQL:
        """Compile the accumulated state.

        Raises:
            StatementOperationError: For DELETE/UPDATE without WHERE, an
                UPDATE without assignments or an INSERT without values.
            InvalidExpressionError: For an untranslatable expression.
        """
        self._check_open()
        kind = self._kind if self._kind != StatementKind.UNSET else StatementKind.SELECT
        provider = self._ctx.provider
        binder = ParameterBinder(
            prefix=provider.parameter_prefix, stem=self._ctx.options.parameter_stem
        )
        for name, value in self._params.items():
            binder.bind(name, value)
        translator = ExpressionTranslator(self._ctx, binder, self._cache)

        if kind in (StatementKind.UPDATE, StatementKind.DELETE) and self._where is None:
            raise StatementOperationError(
                f"{kind.value} without a WHERE clause would affect every row; "
                f"add a WHERE condition to the {kind.value} statement.",
                statement=kind.value,
            )

        parts: list[str] = []
        table = provider.quote_identifier(self.table)
        if kind == StatementKind.SELECT:
            parts.append(SelectClauseBuilder(self._ctx, translator).build(self._select, self._distinct))
            parts.append(f"FROM {table}")
        elif kind == StatementKind.INSERT:
            parts.append(self._insert_sql(table, binder))
        elif kind == StatementKind.UPDATE:
            if not self._assignments:
                raise StatementOperationError(
                    "UPDATE requires at least one SET assignment.", statement=kind.value
                )
            parts.append(f"UPDATE {table}")
            parts.append(SetClauseBuilder(self._ctx, translator, binder).build(self._assignments))
        else:
            parts.append(f"DELETE FROM {table}")

        if self._where is not None:
            if kind == StatementKind.INSERT:
                raise StatementOperationError(
                    "INSERT statements do not take a WHERE clause.", statement=kind.value
                )
            parts.append(PredicateClauseBuilder(translator).build("WHERE", self._where))
        if self._group_by:
            parts.append(GroupByClauseBuilder(translator).build(self._group_by))
        if self._having is not None:
            parts.append(PredicateClauseBuilder(translator).build("HAVING", self._having))
        if self._order_by:
            parts.append(OrderByClauseBuilder(translator).build(self._order_by))
        paging = provider.limit_clause(self._limit, self._offset)
        if paging:
            parts.append(paging)

        sql = "\n".join(parts)
        logger.debug("Built %s statement for %s: %s", kind.value, provider.dialect_name, sql)
        return CompiledSQL(sql=sql, params=dict(binder.parameters), dialect=provider.dialect_name)

    def _insert_sql(self, table: str, binder: ParameterBinder) -> str:
        if not self._values:
            raise StatementOperationError("INSERT requires at least one value.", statement="INSERT")
        columns, placeholders = [], []
        for column, value in self._values.items():
            columns.append(self._ctx.quote_column(column))
            placeholders.append(binder.bind(self._ctx.physical_name(column).lower(), value))
        return f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join(placeholders)})"

    def to_sql(self) -> str:
        return self.build().sql

    def get_parameters(self) -> list[tuple[str, Any]]:
        """Return the bound ``(placeholder, value)`` pairs in binding order."""
        return list(self.build().params.items())

    # ------------------------------------------------------------------
    # Entity-wide generators
    # ------------------------------------------------------------------

    def _entity_columns(self) -> list[ColumnMeta]:
        entity = self._ctx.entity
        if entity is None or not entity.columns:
            raise StatementOperationError("This operation requires entity column metadata.")
        return list(entity.columns)

    def upsert_sql(self, key_columns: Iterable[str] | None = None) -> str:
        """Insert-or-update over every entity column.

        Args:
            key_columns: Logical or physical key names; defaults to the
                entity's key columns.
        """
        self._check_open()
        columns = self._entity_columns()
        if key_columns is None:
            keys = [c.physical_name for c in self._ctx.entity.key_columns]
        else:
            keys = [self._ctx.physical_name(k) for k in key_columns]
        return self._ctx.provider.upsert(self.table, [c.physical_name for c in columns], keys)

    def batch_insert_sql(self, batch_size: int, skip_keys: bool = True) -> str:
        """One INSERT with ``batch_size`` parameter rows over the entity columns."""
        self._check_open()
        self._entity_columns()
        columns = self._ctx.entity.select_columns(skip_keys=skip_keys)
        return self._ctx.provider.batch_insert(
            self.table, [c.physical_name for c in columns], batch_size
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release accumulated state.  Calling it again has no effect."""
        if self._closed:
            return
        self._closed = True
        self._select.clear()
        self._assignments.clear()
        self._values.clear()
        self._group_by.clear()
        self._order_by.clear()
        self._params.clear()
        self._where = self._having = None

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> QueryBuilder:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        entity = self._ctx.entity.name if self._ctx.entity is not None else None
        return f"QueryBuilder({self._ctx.provider.dialect_name!r}, {entity!r}, kind={self._kind.value})"


def _predicate(predicate: Expr | ExpressionNode | dict) -> ExpressionNode:
    return to_node(predicate) if isinstance(predicate, dict) else as_node(predicate)


def _conjoin(left: ExpressionNode | None, right: ExpressionNode, op: BinaryOp) -> ExpressionNode:
    if left is None:
        return right
    return BinaryNode(op=op, left=left, right=right)
