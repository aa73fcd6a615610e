"""SQL-Server-like dialect provider (bracket quoting, ``@`` parameters)."""
from __future__ import annotations

import datetime

from sqlforge.compile.base import DialectProvider
from sqlforge.schema.dialect import Dialect


class SqlServerProvider(DialectProvider):
    """Generates T-SQL flavoured fragments.

    Paging uses ``OFFSET ... ROWS FETCH NEXT ... ROWS ONLY``; upserts use
    ``MERGE`` against a single-row ``VALUES`` source.  This provider is also
    the default for raw profiles that match no known signature.
    """

    dialect = Dialect.SQL_SERVER
    type_map = {
        "int": "INT",
        "long": "BIGINT",
        "string": "NVARCHAR(4000)",
        "datetime": "DATETIME2",
        "bool": "BIT",
        "decimal": "DECIMAL(18,2)",
        "double": "FLOAT",
        "float": "REAL",
        "guid": "UNIQUEIDENTIFIER",
        "bytes": "VARBINARY(MAX)",
    }

    length_function = "LEN"
    log_function = "LOG"
    atan2_function = "ATN2"
    random_function = "RAND"
    paired_paging = True

    def _paging(self, limit: int | None, offset: int | None) -> str:
        if limit is None:
            return f"OFFSET {offset} ROWS"
        return f"OFFSET {offset or 0} ROWS FETCH NEXT {limit} ROWS ONLY"

    def limit_fragment(self, limit: int, with_offset: bool = False) -> str:
        if with_offset:
            return f"FETCH NEXT {limit} ROWS ONLY"
        return f"OFFSET 0 ROWS FETCH NEXT {limit} ROWS ONLY"

    def offset_fragment(self, offset: int) -> str:
        return f"OFFSET {offset} ROWS"

    def _upsert(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        update_columns: list[str],
    ) -> str:
        q = self.quote_identifier
        cols_sql = ", ".join(q(c) for c in columns)
        params_sql = ", ".join(self.parameter(c.lower()) for c in columns)
        on_sql = " AND ".join(f"target.{q(k)} = source.{q(k)}" for k in key_columns)
        lines = [
            f"MERGE {q(table)} AS target",
            "USING (",
            f"  VALUES ({params_sql})",
            f") AS source ({cols_sql})",
            f"ON ({on_sql})",
        ]
        if update_columns:
            set_sql = ", ".join(f"{q(c)} = source.{q(c)}" for c in update_columns)
            lines += ["WHEN MATCHED THEN", f"  UPDATE SET {set_sql}"]
        source_sql = ", ".join(f"source.{q(c)}" for c in columns)
        lines += ["WHEN NOT MATCHED THEN", f"  INSERT ({cols_sql}) VALUES ({source_sql});"]
        return "\n".join(lines)

    def format_datetime(self, value: datetime.datetime) -> str:
        millis = value.microsecond // 1000
        return self.quote_string(f"{value.strftime('%Y-%m-%d %H:%M:%S')}.{millis:03d}")

    def current_timestamp(self) -> str:
        return "GETDATE()"

    def _concat(self, exprs: list[str]) -> str:
        return " + ".join(exprs)

    def date_add(self, unit: str, amount: str, expr: str) -> str:
        return f"DATEADD({unit.upper()}, {amount}, {expr})"

    def substring(self, expr: str, start: str, length: str | None = None) -> str:
        # SUBSTRING needs an explicit length here.
        if length is None:
            length = f"{self.length_function}({expr})"
        return super().substring(expr, start, length)

    def pad_left(self, expr: str, width: str, pad: str) -> str:
        return f"RIGHT(REPLICATE({pad}, {width}) + {expr}, {width})"

    def pad_right(self, expr: str, width: str, pad: str) -> str:
        return f"LEFT({expr} + REPLICATE({pad}, {width}), {width})"

    def index_of(self, expr: str, search: str, start: str | None = None) -> str:
        if start is None:
            return f"(CHARINDEX({search}, {expr}) - 1)"
        return f"(CHARINDEX({search}, {expr}, {start} + 1) - 1)"

    def truncate(self, expr: str) -> str:
        return f"ROUND({expr}, 0, 1)"
