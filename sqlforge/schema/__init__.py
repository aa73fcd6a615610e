"""sqlforge schema layer: dialect profiles, column metadata and expression trees."""
from sqlforge.schema.columns import ColumnMeta, EntityMeta, ValueKind
from sqlforge.schema.dialect import Dialect, DialectProfile
from sqlforge.schema.expressions import ExpressionNode

__all__ = [
    "ColumnMeta",
    "EntityMeta",
    "ValueKind",
    "Dialect",
    "DialectProfile",
    "ExpressionNode",
]
