"""Prepare-time context for templates."""
from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from sqlforge.compile.base import DialectProvider
from sqlforge.compile.context import TranslationContext
from sqlforge.compile.registry import DialectTarget, ProviderFactory
from sqlforge.errors import GenerationError, NullArgumentError
from sqlforge.schema.columns import ColumnMeta, EntityMeta, to_snake_case


@dataclass(frozen=True)
class PlaceholderContext:
    """Dialect provider and entity metadata that static placeholders read.

    Attributes:
        provider: Resolved dialect provider.
        entity: Table and column metadata; optional for templates that only
            use dialect placeholders (``bool_true``, ``limit``, ...).
        placeholders: Lower-cased names of every placeholder in the template
            being prepared; filled in by :func:`prepare`.
    """

    provider: DialectProvider
    entity: EntityMeta | None = None
    placeholders: frozenset[str] = frozenset()

    @classmethod
    def create(
        cls,
        dialect: DialectTarget,
        entity: EntityMeta | None = None,
        *,
        table: str | None = None,
        columns: Iterable[ColumnMeta] | None = None,
    ) -> PlaceholderContext:
        """Build a context from a dialect and either an entity or table + columns.

        Example::

            ctx = PlaceholderContext.create("sqlite", table="users", columns=cols)
        """
        if entity is None and (table is not None or columns is not None):
            entity = EntityMeta(name=table or "", table=table, columns=tuple(columns or ()))
        if dialect is None:
            raise NullArgumentError("dialect")
        return cls(provider=ProviderFactory.resolve(dialect), entity=entity)

    @property
    def translation(self) -> TranslationContext:
        return TranslationContext(provider=self.provider, entity=self.entity)

    @property
    def table_name(self) -> str:
        if self.entity is None or not self.entity.table_name:
            raise GenerationError("This placeholder requires a table name in the context.")
        return self.entity.table_name

    def require_entity(self, placeholder: str) -> EntityMeta:
        if self.entity is None or not self.entity.columns:
            raise GenerationError(
                f"'{{{{{placeholder}}}}}' requires column metadata in the context.",
                placeholder=placeholder,
            )
        return self.entity

    def physical_name(self, ref: str) -> str:
        """Physical name for ``ref``; unmapped names are snake_cased."""
        meta = self.entity.get_column(ref) if self.entity is not None else None
        return meta.physical_name if meta is not None else to_snake_case(ref)
