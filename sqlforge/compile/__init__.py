"""sqlforge compilation layer: dialect providers, expression translation and the query builder."""
from sqlforge.compile.base import DialectProvider
from sqlforge.compile.builder import CompiledSQL, QueryBuilder
from sqlforge.compile.expression_builder import ExpressionTranslator, ParameterBinder
from sqlforge.compile.mysql import MySQLProvider
from sqlforge.compile.postgres import PostgresProvider
from sqlforge.compile.registry import ProviderFactory
from sqlforge.compile.sqlite import SQLiteProvider
from sqlforge.compile.sqlserver import SqlServerProvider

__all__ = [
    "DialectProvider",
    "CompiledSQL",
    "QueryBuilder",
    "ExpressionTranslator",
    "ParameterBinder",
    "ProviderFactory",
    "MySQLProvider",
    "PostgresProvider",
    "SQLiteProvider",
    "SqlServerProvider",
]
