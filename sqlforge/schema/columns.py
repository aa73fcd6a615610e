"""Pydantic models for mapped column metadata.

Column metadata is produced outside sqlforge (by hand, from a pydantic model
or dataclass, or by reflecting SQLAlchemy tables; see
:mod:`sqlforge.schema.converters`) and injected into templates, the
expression translator and the query builder.
"""
from __future__ import annotations

import re
from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

_WORD_BOUNDARY = re.compile(r"(.)([A-Z][a-z]+)")
_LOWER_UPPER = re.compile(r"([a-z0-9])([A-Z])")


def to_snake_case(name: str) -> str:
    """Convert a PascalCase / camelCase name to snake_case.

    ``IsCompleted`` -> ``is_completed``, ``HTTPStatus`` -> ``http_status``.
    Names that are already snake_case are returned unchanged.
    """
    if not name:
        return name
    converted = _WORD_BOUNDARY.sub(r"\1_\2", name)
    converted = _LOWER_UPPER.sub(r"\1_\2", converted)
    return re.sub(r"_+", "_", converted).lower()


class ValueKind(str, Enum):
    """Coarse value category used for literal formatting and type mapping."""

    NUMERIC = "numeric"
    TEXT = "text"
    BOOLEAN = "boolean"
    TEMPORAL = "temporal"
    BINARY = "binary"


class ColumnMeta(BaseModel):
    """Metadata for a single mapped column.

    Attributes:
        name: Logical (property) name, usually PascalCase.
        column_name: Physical column name override.  When ``None`` the
            physical name is the snake_case form of ``name``.
        value_kind: Coarse value category.
        nullable: Whether the column accepts NULL.
        logical_type: Fine-grained logical type (``'int'``, ``'long'``,
            ``'decimal'``, ...) used by ``DialectProvider.map_type``.
        is_key: Whether the column is (part of) the primary key.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    column_name: str | None = None
    value_kind: ValueKind = ValueKind.TEXT
    nullable: bool = True
    logical_type: str | None = None
    is_key: bool = False

    @property
    def physical_name(self) -> str:
        """The database column name."""
        return self.column_name or to_snake_case(self.name)

    @property
    def parameter_name(self) -> str:
        """Bind-parameter name (physical name, lower-cased, no prefix)."""
        return self.physical_name.lower()

    def matches(self, ref: str) -> bool:
        """True when ``ref`` names this column (logical or physical, any case)."""
        folded = ref.strip().lower()
        return folded in (self.name.lower(), self.physical_name.lower())


class EntityMeta(BaseModel):
    """A mapped entity: its table and ordered columns.

    Attributes:
        name: Entity (logical) name, e.g. ``'TodoItem'``.
        table: Physical table override.  Defaults to snake_case of ``name``.
        columns: Ordered column metadata.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    table: str | None = None
    columns: tuple[ColumnMeta, ...] = Field(default_factory=tuple)

    @property
    def table_name(self) -> str:
        """The physical table name."""
        return self.table or to_snake_case(self.name)

    @property
    def column_names(self) -> list[str]:
        """Returns all logical column names."""
        return [c.name for c in self.columns]

    @property
    def key_columns(self) -> list[ColumnMeta]:
        """Columns flagged ``is_key``; falls back to a column named ``Id``."""
        keys = [c for c in self.columns if c.is_key]
        if keys:
            return keys
        return [c for c in self.columns if c.name.lower() == "id"]

    def get_column(self, ref: str) -> ColumnMeta | None:
        """Returns the column named ``ref`` (logical or physical), or ``None``."""
        for col in self.columns:
            if col.matches(ref):
                return col
        return None

    def select_columns(
        self,
        exclude: Iterable[str] = (),
        only: Iterable[str] = (),
        skip_keys: bool = False,
    ) -> list[ColumnMeta]:
        """Return columns filtered by inclusion and exclusion lists.

        Names are compared case-insensitively against both logical and
        physical names; unknown names are ignored.

        Args:
            exclude: Names to drop.
            only: When non-empty, keep only these names.
            skip_keys: Drop key columns (``:auto`` behaviour).
        """
        exclude = [e for e in exclude if e]
        only = [o for o in only if o]
        keys = {c.name for c in self.key_columns} if skip_keys else set()
        selected = []
        for col in self.columns:
            if col.name in keys:
                continue
            if any(col.matches(e) for e in exclude):
                continue
            if only and not any(col.matches(o) for o in only):
                continue
            selected.append(col)
        return selected
