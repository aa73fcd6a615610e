"""sqlforge: dialect-correct, parameterized SQL generation.

Public API
----------
- ``resolve(target)``                            -> DialectProvider
- ``prepare(template, context)``                 -> SqlTemplate
- ``translate(node, dialect, columns, options)`` -> Translation
- ``QueryBuilder(dialect, entity)``              -> fluent SELECT / INSERT / UPDATE / DELETE
- ``clear_cache()``                              -> drop cached inline translations

Re-exported types
-----------------
- ``Dialect``, ``DialectProfile``                -- the six fixed dialects and raw profiles
- ``ColumnMeta``, ``EntityMeta``, ``ValueKind``  -- injected column metadata
- ``col``, ``lit``, ``param``, ``fn``, ``agg``   -- fluent expression helpers
- ``SqlForgeError`` and its subclasses           -- coded errors (SQLX001..SQLX003)

Extensibility
-------------
New dialect providers are registered with :class:`ProviderFactory`; new
expression methods with :class:`MethodRegistry`; new template placeholders
with :class:`PlaceholderRegistry`.  None of these require changes to the
translator or the template engine.

Example::

    import sqlforge
    from sqlforge import col

    print(sqlforge.translate((col("Age") > 18) & (col("IsActive") == 1), "sqlserver").sql)
    # ([Age] > 18 AND [IsActive] = 1)
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlforge.compile.base import DialectProvider
from sqlforge.compile.builder import CompiledSQL, QueryBuilder, StatementKind
from sqlforge.compile.cache import (
    ExpressionCache,
    InMemoryExpressionCache,
    clear_cache,
    default_cache,
    set_default_cache,
)
from sqlforge.compile.context import TranslationContext, TranslationOptions
from sqlforge.compile.expression_builder import ExpressionTranslator, ParameterBinder, Translation
from sqlforge.compile.mysql import MySQLProvider
from sqlforge.compile.postgres import PostgresProvider
from sqlforge.compile.registry import DialectTarget, MethodRegistry, ProviderFactory
from sqlforge.compile.sqlite import SQLiteProvider
from sqlforge.compile.sqlserver import SqlServerProvider
from sqlforge.compile.unsupported import Db2Provider, OracleProvider
from sqlforge.errors import (
    GenerationError,
    InvalidExpressionError,
    NullArgumentError,
    ProfileConfigError,
    SqlForgeError,
    StatementOperationError,
    UnsupportedDialectError,
)
from sqlforge.schema.columns import ColumnMeta, EntityMeta, ValueKind, to_snake_case
from sqlforge.schema.converters import (
    columns_from_model,
    columns_from_sqlalchemy,
    entity_from_sqlalchemy,
)
from sqlforge.schema.dialect import Dialect, DialectProfile
from sqlforge.schema.expressions import ExpressionNode
from sqlforge.schema.fluent import Expr, agg, coalesce, col, fn, lit, param, project, when
from sqlforge.template.context import PlaceholderContext
from sqlforge.template.handlers import PlaceholderRegistry
from sqlforge.template.template import SqlTemplate, prepare

# ---------------------------------------------------------------------------
# Register built-in dialect providers
# ---------------------------------------------------------------------------

ProviderFactory.register_class(Dialect.SQL_SERVER, SqlServerProvider)
ProviderFactory.register_class(Dialect.MYSQL, MySQLProvider)
ProviderFactory.register_class(Dialect.POSTGRES, PostgresProvider)
ProviderFactory.register_class(Dialect.SQLITE, SQLiteProvider)
ProviderFactory.register_class(Dialect.ORACLE, OracleProvider)
ProviderFactory.register_class(Dialect.DB2, Db2Provider)

__all__ = [
    # Entry points
    "resolve",
    "prepare",
    "translate",
    "clear_cache",
    "QueryBuilder",
    "CompiledSQL",
    "StatementKind",
    "SqlTemplate",
    "PlaceholderContext",
    "PlaceholderRegistry",
    "Translation",
    # Translation internals
    "ExpressionTranslator",
    "ParameterBinder",
    "TranslationContext",
    "TranslationOptions",
    "ExpressionCache",
    "InMemoryExpressionCache",
    "default_cache",
    "set_default_cache",
    # Dialects
    "Dialect",
    "DialectProfile",
    "DialectTarget",
    "DialectProvider",
    "ProviderFactory",
    "MethodRegistry",
    # Metadata
    "ColumnMeta",
    "EntityMeta",
    "ValueKind",
    "to_snake_case",
    "columns_from_model",
    "columns_from_sqlalchemy",
    "entity_from_sqlalchemy",
    # Expressions
    "ExpressionNode",
    "Expr",
    "col",
    "lit",
    "param",
    "when",
    "coalesce",
    "project",
    "fn",
    "agg",
    # Errors
    "SqlForgeError",
    "GenerationError",
    "InvalidExpressionError",
    "UnsupportedDialectError",
    "StatementOperationError",
    "NullArgumentError",
    "ProfileConfigError",
]


def resolve(target: DialectTarget) -> DialectProvider:
    """Return the shared :class:`DialectProvider` for ``target``.

    Args:
        target: A :class:`Dialect`, a dialect name such as ``"postgres"``, a
            :class:`DialectProfile` or an existing provider.

    Raises:
        UnsupportedDialectError: For unknown names and for the ORACLE and
            DB2 dialects, which have profiles but no provider.
    """
    return ProviderFactory.resolve(target)


def translate(
    node: ExpressionNode | Expr | dict[str, Any],
    dialect: DialectTarget,
    columns: EntityMeta | Iterable[ColumnMeta] | None = None,
    options: TranslationOptions | None = None,
    *,
    predicate: bool = False,
) -> Translation:
    """Translate one expression tree to a SQL fragment.

    Args:
        node: Typed node, fluent ``Expr`` or a raw node dict.
        dialect: Target dialect.
        columns: Column metadata for logical-to-physical name mapping.
        options: Translator options; constants are inlined by default.
        predicate: Translate in boolean (WHERE) context.

    Returns:
        A :class:`Translation` with the SQL and, when ``options.parameterize``
        is set, the bound parameters in binding order.

    Raises:
        NullArgumentError: If ``node`` or ``dialect`` is None.
        InvalidExpressionError: For constructs with no SQL translation.
        UnsupportedDialectError: When the dialect has no provider.
    """
    if node is None:
        raise NullArgumentError("node")
    if dialect is None:
        raise NullArgumentError("dialect")
    if columns is not None and not isinstance(columns, EntityMeta):
        columns = EntityMeta(name="", columns=tuple(columns))
    ctx = TranslationContext(
        provider=ProviderFactory.resolve(dialect),
        entity=columns,
        options=options or TranslationOptions(),
    )
    translator = ExpressionTranslator(ctx)
    sql = translator.translate(node, predicate=predicate)
    return Translation(sql=sql, parameters=tuple(translator.binder.parameters))
