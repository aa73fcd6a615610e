"""SQLite-like dialect provider (bracket quoting, ``@`` parameters)."""
from __future__ import annotations

from sqlforge.compile.base import DialectProvider
from sqlforge.schema.dialect import Dialect


class SQLiteProvider(DialectProvider):
    """Generates SQLite flavoured fragments.

    SQLite shares the bracket/``@`` signature with the SQL-Server-like
    profile, so it is only reachable by name.  Offset-only paging is written
    as ``LIMIT -1 OFFSET n``.
    """

    dialect = Dialect.SQLITE
    type_map = {
        "int": "INTEGER",
        "long": "INTEGER",
        "string": "TEXT",
        "datetime": "TEXT",
        "bool": "INTEGER",
        "decimal": "REAL",
        "double": "REAL",
        "float": "REAL",
        "guid": "TEXT",
        "bytes": "BLOB",
    }

    substring_function = "SUBSTR"
    least_function = "MIN"
    greatest_function = "MAX"

    def _paging(self, limit: int | None, offset: int | None) -> str:
        if offset is None:
            return f"LIMIT {limit}"
        return f"LIMIT {-1 if limit is None else limit} OFFSET {offset}"

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
        set_sql = ", ".join(f"{q(c)} = excluded.{q(c)}" for c in update_columns)
        return f"{self._insert_head(table, columns)} ON CONFLICT ({conflict}) DO UPDATE SET {set_sql}"

    def current_timestamp(self) -> str:
        return "CURRENT_TIMESTAMP"

    def date_add(self, unit: str, amount: str, expr: str) -> str:
        modifier = f"{unit.lower()}s"
        if self.is_integer_text(amount):
            return f"datetime({expr}, '{int(amount):+d} {modifier}')"
        return f"datetime({expr}, {amount} || ' {modifier}')"

    def pad_left(self, expr: str, width: str, pad: str) -> str:
        return f"SUBSTR(REPLACE(HEX(ZEROBLOB({width})), '00', {pad}) || {expr}, -({width}))"

    def pad_right(self, expr: str, width: str, pad: str) -> str:
        return f"SUBSTR({expr} || REPLACE(HEX(ZEROBLOB({width})), '00', {pad}), 1, {width})"

    def index_of(self, expr: str, search: str, start: str | None = None) -> str:
        if start is None:
            return f"(INSTR({expr}, {search}) - 1)"
        return f"(INSTR(SUBSTR({expr}, {start} + 1), {search}) + {start} - 1)"

    def string_agg(self, expr: str, separator: str) -> str:
        return f"GROUP_CONCAT({expr}, {self.quote_string(separator)})"

    def truncate(self, expr: str) -> str:
        return f"CAST({expr} AS INTEGER)"
