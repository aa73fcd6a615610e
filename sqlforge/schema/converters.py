"""Utilities for building column metadata from external sources.

Python models
-------------
:func:`columns_from_model` derives :class:`ColumnMeta` from a pydantic model
or a dataclass.

SQLAlchemy converter
--------------------
:func:`columns_from_sqlalchemy` and :func:`entity_from_sqlalchemy` read a
SQLAlchemy :class:`~sqlalchemy.schema.Table` (or a declarative class).

Install the optional dependency before using the SQLAlchemy helpers::

    pip install "sqlforge[sqlalchemy]"

Example::

    from sqlalchemy import Column, Integer, MetaData, String, Table
    from sqlforge.schema.converters import entity_from_sqlalchemy

    users = Table("users", MetaData(), Column("id", Integer, primary_key=True),
                  Column("name", String(50)))
    entity = entity_from_sqlalchemy(users)
"""

from __future__ import annotations

import dataclasses
import datetime
import decimal
import types
import typing
import uuid
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from sqlforge.schema.columns import ColumnMeta, EntityMeta, ValueKind

if TYPE_CHECKING:
    from sqlalchemy import Table

_PY_TYPES: dict[type, tuple[ValueKind, str]] = {
    bool: (ValueKind.BOOLEAN, "bool"),
    int: (ValueKind.NUMERIC, "int"),
    float: (ValueKind.NUMERIC, "double"),
    decimal.Decimal: (ValueKind.NUMERIC, "decimal"),
    str: (ValueKind.TEXT, "string"),
    datetime.datetime: (ValueKind.TEMPORAL, "datetime"),
    datetime.date: (ValueKind.TEMPORAL, "datetime"),
    uuid.UUID: (ValueKind.TEXT, "guid"),
    bytes: (ValueKind.BINARY, "bytes"),
}


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Return ``(inner_type, nullable)`` for ``X | None`` / ``Optional[X]``."""
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        nullable = len(args) != len(typing.get_args(annotation))
        if len(args) == 1:
            return args[0], nullable
        return annotation, nullable
    return annotation, annotation is None or annotation is type(None)


def _classify(annotation: Any) -> tuple[ValueKind, str | None]:
    if isinstance(annotation, type):
        # bool before int: bool is an int subclass.
        for py_type, result in _PY_TYPES.items():
            if issubclass(annotation, py_type):
                return result
    return ValueKind.TEXT, None


def columns_from_model(
    model: type, *, key_columns: tuple[str, ...] = ("Id", "id")
) -> tuple[ColumnMeta, ...]:
    """Derive column metadata from a pydantic model class or dataclass.

    Field names are the logical names; physical names follow the default
    snake_case mapping.  A field annotated ``X | None`` is nullable.

    Args:
        model: A pydantic ``BaseModel`` subclass or a dataclass type.
        key_columns: Field names flagged ``is_key``.

    Raises:
        TypeError: If ``model`` is neither a pydantic model nor a dataclass.
    """
    if isinstance(model, type) and issubclass(model, BaseModel):
        hints = typing.get_type_hints(model)
        names = list(model.model_fields)
    elif dataclasses.is_dataclass(model) and isinstance(model, type):
        hints = typing.get_type_hints(model)
        names = [f.name for f in dataclasses.fields(model)]
    else:
        raise TypeError(f"Expected a pydantic model or dataclass type, got {model!r}.")

    columns = []
    for name in names:
        annotation, nullable = _unwrap_optional(hints.get(name, Any))
        kind, logical = _classify(annotation)
        columns.append(
            ColumnMeta(
                name=name,
                value_kind=kind,
                nullable=nullable,
                logical_type=logical,
                is_key=name in key_columns,
            )
        )
    return tuple(columns)


# ---------------------------------------------------------------------------
# SQLAlchemy
# ---------------------------------------------------------------------------


def _require_sqlalchemy(func_name: str) -> Any:
    try:
        import sqlalchemy
    except ImportError as exc:
        raise ImportError(
            f"SQLAlchemy is required for {func_name}(). "
            'Install it with: pip install "sqlforge[sqlalchemy]"'
        ) from exc
    return sqlalchemy


def _as_table(source: Any) -> Table:
    table = getattr(source, "__table__", source)
    if not hasattr(table, "columns") or not hasattr(table, "name"):
        raise TypeError(f"Expected a SQLAlchemy Table or declarative class, got {source!r}.")
    return table


def _sqlalchemy_kind(sa: Any, col_type: Any) -> tuple[ValueKind, str | None]:
    types_ = sa.types
    # Order matters: Boolean before Integer, DateTime before Date.
    if isinstance(col_type, types_.Boolean):
        return ValueKind.BOOLEAN, "bool"
    if isinstance(col_type, types_.BigInteger):
        return ValueKind.NUMERIC, "long"
    if isinstance(col_type, types_.Integer):
        return ValueKind.NUMERIC, "int"
    if isinstance(col_type, types_.Float):
        return ValueKind.NUMERIC, "double"
    if isinstance(col_type, types_.Numeric):
        return ValueKind.NUMERIC, "decimal"
    if isinstance(col_type, (types_.DateTime, types_.Date, types_.Time)):
        return ValueKind.TEMPORAL, "datetime"
    if isinstance(col_type, types_.Uuid):
        return ValueKind.TEXT, "guid"
    if isinstance(col_type, types_.LargeBinary):
        return ValueKind.BINARY, "bytes"
    return ValueKind.TEXT, "string"


def columns_from_sqlalchemy(source: Any) -> tuple[ColumnMeta, ...]:
    """Derive column metadata from a SQLAlchemy ``Table`` or declarative class.

    The logical name is the mapped attribute key (``Column.key``) and the
    physical name is the database column name.

    Raises:
        ImportError: If ``sqlalchemy`` is not installed.
        TypeError: If ``source`` is not a table or mapped class.
    """
    sa = _require_sqlalchemy("columns_from_sqlalchemy")
    table = _as_table(source)
    columns = []
    for col in table.columns:
        kind, logical = _sqlalchemy_kind(sa, col.type)
        columns.append(
            ColumnMeta(
                name=col.key,
                column_name=col.name,
                value_kind=kind,
                nullable=bool(col.nullable),
                logical_type=logical,
                is_key=bool(col.primary_key),
            )
        )
    return tuple(columns)


def entity_from_sqlalchemy(source: Any, name: str | None = None) -> EntityMeta:
    """Wrap :func:`columns_from_sqlalchemy` into an :class:`EntityMeta`.

    Args:
        source: A SQLAlchemy ``Table`` or declarative class.
        name: Entity name; defaults to the declarative class name or the
            table name.
    """
    table = _as_table(source)
    default_name = source.__name__ if isinstance(source, type) else table.name
    return EntityMeta(
        name=name or default_name,
        table=table.name,
        columns=columns_from_sqlalchemy(source),
    )
