"""MySQL-like dialect provider (backtick quoting, ``@`` parameters)."""

from __future__ import annotations

from sqlforge.compile.base import DialectProvider
from sqlforge.schema.dialect import Dialect

#: MySQL has no OFFSET without LIMIT; this is the documented "all rows" value.
_MAX_ROWS = 18446744073709551615


class MySQLProvider(DialectProvider):
    """Generates MySQL flavoured fragments.

    Identifiers use backticks but parameters still use the ``@`` prefix.
    Upserts use ``INSERT ... ON DUPLICATE KEY UPDATE``.
    """

    dialect = Dialect.MYSQL
    type_map = {
        "int": "INT",
        "long": "BIGINT",
        "string": "VARCHAR(4000)",
        "datetime": "DATETIME",
        "bool": "BOOLEAN",
        "decimal": "DECIMAL(18,2)",
        "double": "DOUBLE",
        "float": "FLOAT",
        "guid": "CHAR(36)",
        "bytes": "BLOB",
    }

    power_function = "POW"
    random_function = "RAND"

    def _paging(self, limit: int | None, offset: int | None) -> str:
        if limit is None:
            return f"LIMIT {_MAX_ROWS} OFFSET {offset}"
        if offset is None:
            return f"LIMIT {limit}"
        return f"LIMIT {limit} OFFSET {offset}"

    def _upsert(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        update_columns: list[str],
    ) -> str:
        q = self.quote_identifier
        # At least one assignment is required; a key self-assignment is a no-op.
        targets = update_columns or key_columns[:1]
        set_sql = ", ".join(f"{q(c)} = VALUES({q(c)})" for c in targets)
        return f"{self._insert_head(table, columns)} ON DUPLICATE KEY UPDATE {set_sql}"

    def current_timestamp(self) -> str:
        return "NOW()"

    def _concat(self, exprs: list[str]) -> str:
        return f"CONCAT({', '.join(exprs)})"

    def date_add(self, unit: str, amount: str, expr: str) -> str:
        return f"DATE_ADD({expr}, INTERVAL {amount} {unit.upper()})"

    def index_of(self, expr: str, search: str, start: str | None = None) -> str:
        if start is None:
            return f"(LOCATE({search}, {expr}) - 1)"
        return f"(LOCATE({search}, {expr}, {start} + 1) - 1)"

    def string_agg(self, expr: str, separator: str) -> str:
        return f"GROUP_CONCAT({expr} SEPARATOR {self.quote_string(separator)})"

    def truncate(self, expr: str) -> str:
        return f"TRUNCATE({expr}, 0)"
