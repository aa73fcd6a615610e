"""Translation context value objects.

Packages the ``(provider, entity, options)`` data clump shared by the
expression translator, the clause builders and the query builder into a
single immutable object.
"""
from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

from sqlforge.compile.base import DialectProvider
from sqlforge.schema.columns import ColumnMeta, EntityMeta, to_snake_case


class TranslationOptions(BaseModel):
    """Knobs for the expression translator.

    Attributes:
        parameterize: Bind constants as parameters instead of inlining them.
        parameter_stem: Name stem for bound constants (``p`` -> ``@p0``).
        snake_case_columns: Convert column names without metadata to
            snake_case.  With metadata the mapped physical name always wins.
        use_cache: Consult the expression cache for inline translations.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    parameterize: bool = False
    parameter_stem: str = "p"
    snake_case_columns: bool = False
    use_cache: bool = True


@dataclass(frozen=True)
class TranslationContext:
    """Immutable context for translating expressions of one entity.

    Attributes:
        provider: Dialect provider used for quoting and function spelling.
        entity: Column metadata for logical-to-physical name mapping.
        options: Translator options.
    """

    provider: DialectProvider
    entity: EntityMeta | None = None
    options: TranslationOptions = TranslationOptions()

    def column(self, name: str) -> ColumnMeta | None:
        if self.entity is None:
            return None
        return self.entity.get_column(name)

    def physical_name(self, name: str) -> str:
        meta = self.column(name)
        if meta is not None:
            return meta.physical_name
        return to_snake_case(name) if self.options.snake_case_columns else name

    def quote_column(self, name: str) -> str:
        return self.provider.quote_identifier(self.physical_name(name))
