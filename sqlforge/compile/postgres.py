"""Postgres-like dialect provider (double-quote quoting, ``$`` parameters)."""

from __future__ import annotations

import datetime

from sqlforge.compile.base import DialectProvider
from sqlforge.schema.dialect import Dialect


class PostgresProvider(DialectProvider):
    """Generates PostgreSQL flavoured fragments.

    Upserts use ``ON CONFLICT (...) DO UPDATE SET col = EXCLUDED.col``;
    timestamps are written as ``'...'::timestamp``.
    """

    dialect = Dialect.POSTGRES
    type_map = {
        "int": "INTEGER",
        "long": "BIGINT",
        "string": "VARCHAR(4000)",
        "datetime": "TIMESTAMP",
        "bool": "BOOLEAN",
        "decimal": "DECIMAL(18,2)",
        "double": "DOUBLE PRECISION",
        "float": "REAL",
        "guid": "UUID",
        "bytes": "BYTEA",
    }

    ceiling_function = "CEIL"

    def boolean_literal(self, value: bool) -> str:
        return "true" if value else "false"

    def _paging(self, limit: int | None, offset: int | None) -> str:
        parts = []
        if limit is not None:
            parts.append(f"LIMIT {limit}")
        if offset is not None:
            parts.append(f"OFFSET {offset}")
        return " ".join(parts)

    def _upsert(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        update_columns: list[str],
    ) -> str:
        q = self.quote_identifier
        conflict = ", ".join(q(k) for k in key_columns)
        if not update_columns:
            return f"{self._insert_head(table, columns)} ON CONFLICT ({conflict}) DO NOTHING"
        set_sql = ", ".join(f"{q(c)} = EXCLUDED.{q(c)}" for c in update_columns)
        return f"{self._insert_head(table, columns)} ON CONFLICT ({conflict}) DO UPDATE SET {set_sql}"

    def format_datetime(self, value: datetime.datetime) -> str:
        return f"{super().format_datetime(value)}::timestamp"

    def format_binary(self, value: bytes) -> str:
        return f"'\\x{value.hex()}'::bytea"

    def current_timestamp(self) -> str:
        return "CURRENT_TIMESTAMP"

    def date_add(self, unit: str, amount: str, expr: str) -> str:
        unit = unit.upper()
        if self.is_integer_text(amount):
            return f"({expr} + INTERVAL '{amount} {unit}')"
        return f"({expr} + ({amount}) * INTERVAL '1 {unit}')"

    def index_of(self, expr: str, search: str, start: str | None = None) -> str:
        if start is None:
            return f"(POSITION({search} IN {expr}) - 1)"
        return f"(POSITION({search} IN SUBSTRING({expr} FROM {start} + 1)) + {start} - 1)"
