"""Dialect provider abstraction: the DialectProvider ABC.

The Template Method pattern (GoF) is used:
- ``DialectProvider`` implements the behaviour shared by every dialect
  (identifier and literal quoting, batch INSERT, type mapping lookups,
  n-ary concatenation skeleton, function-name table).
- Concrete providers override the dialect-specific steps (LIMIT/OFFSET
  syntax, UPSERT syntax, date arithmetic, timestamp literals).

Providers are stateless: every method is pure given its inputs, so a single
instance per dialect is shared process-wide (see
:class:`~sqlforge.compile.registry.ProviderFactory`).
"""
from __future__ import annotations

import datetime
import decimal
import re
import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum
from typing import Any, ClassVar

from sqlforge.errors import GenerationError
from sqlforge.schema.columns import ValueKind
from sqlforge.schema.dialect import PROFILES, Dialect, DialectProfile

_INTEGER_TEXT = re.compile(r"^-?\d+$")

_PY_LOGICAL: dict[type, str] = {
    bool: "bool",
    int: "int",
    float: "double",
    decimal.Decimal: "decimal",
    str: "string",
    datetime.datetime: "datetime",
    datetime.date: "datetime",
    uuid.UUID: "guid",
    bytes: "bytes",
}

_KIND_LOGICAL: dict[ValueKind, str] = {
    ValueKind.NUMERIC: "int",
    ValueKind.TEXT: "string",
    ValueKind.BOOLEAN: "bool",
    ValueKind.TEMPORAL: "datetime",
    ValueKind.BINARY: "bytes",
}

#: Returned by ``map_type`` for unknown logical types.
DEFAULT_DB_TYPE = "VARCHAR(4000)"


class DialectProvider(ABC):
    """Abstract base for dialect-specific SQL generation.

    Subclasses set :attr:`dialect` and :attr:`type_map` and implement the
    abstract steps; the translator, template renderer and query builder use
    this interface only.
    """

    dialect: ClassVar[Dialect]
    type_map: ClassVar[dict[str, str]] = {}
    #: Row limits are only valid after an offset clause.
    paired_paging: ClassVar[bool] = False

    # Function spellings that vary per dialect.
    length_function: ClassVar[str] = "LENGTH"
    substring_function: ClassVar[str] = "SUBSTRING"
    ceiling_function: ClassVar[str] = "CEILING"
    power_function: ClassVar[str] = "POWER"
    log_function: ClassVar[str] = "LN"
    atan2_function: ClassVar[str] = "ATAN2"
    least_function: ClassVar[str] = "LEAST"
    greatest_function: ClassVar[str] = "GREATEST"
    random_function: ClassVar[str] = "RANDOM"

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    @property
    def profile(self) -> DialectProfile:
        return PROFILES[self.dialect]

    @property
    def dialect_name(self) -> str:
        return self.dialect.value

    @property
    def parameter_prefix(self) -> str:
        return self.profile.parameter_prefix

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    # ------------------------------------------------------------------
    # Quoting
    # ------------------------------------------------------------------

    def quote_identifier(self, name: str) -> str:
        """Return a properly-quoted SQL identifier.

        The closing quote character is escaped by doubling it.
        """
        left, right = self.profile.identifier_quotes
        return f"{left}{name.replace(right, right * 2)}{right}"

    def quote_string(self, text: str) -> str:
        left, right = self.profile.string_quotes
        return f"{left}{text.replace(right, right * 2)}{right}"

    def quote_literal(self, value: Any) -> str:
        """Format ``value`` as an inline SQL literal.

        ``None`` -> ``NULL``; booleans -> ``1``/``0``; numbers as written;
        strings quoted with the closing quote doubled; datetimes through
        :meth:`format_datetime`.
        """
        if value is None:
            return "NULL"
        if isinstance(value, Enum):
            value = value.value
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, decimal.Decimal)):
            return str(value)
        if isinstance(value, float):
            return repr(value)
        if isinstance(value, datetime.datetime):
            return self.format_datetime(value)
        if isinstance(value, datetime.date):
            return self.quote_string(value.isoformat())
        if isinstance(value, (bytes, bytearray)):
            return self.format_binary(bytes(value))
        return self.quote_string(str(value))

    def format_binary(self, value: bytes) -> str:
        return f"X'{value.hex().upper()}'"

    def boolean_literal(self, value: bool) -> str:
        """Boolean literal for templates (``{{bool_true}}``, ``{{bool_false}}``)."""
        return "1" if value else "0"

    def parameter(self, name: str) -> str:
        """Return the placeholder for a named bind parameter."""
        return f"{self.parameter_prefix}{name}"

    # ------------------------------------------------------------------
    # Paging and DML generators
    # ------------------------------------------------------------------

    def limit_clause(self, limit: int | None = None, offset: int | None = None) -> str:
        """Return the dialect's paging clause, or ``''`` if both are absent.

        Raises:
            GenerationError: When ``limit`` or ``offset`` is negative.
        """
        for name, value in (("limit", limit), ("offset", offset)):
            if value is not None and (isinstance(value, bool) or int(value) < 0):
                raise GenerationError(f"{name} must be a non-negative integer, got {value!r}.")
        if limit is None and offset is None:
            return ""
        return self._paging(
            None if limit is None else int(limit),
            None if offset is None else int(offset),
        )

    @abstractmethod
    def _paging(self, limit: int | None, offset: int | None) -> str:
        """Dialect step for :meth:`limit_clause`; at least one value is set."""

    def limit_fragment(self, limit: int, with_offset: bool = False) -> str:
        """Standalone row-count fragment for the ``{{limit}}`` placeholder.

        Args:
            limit: Row count.
            with_offset: The template also carries an ``{{offset}}``
                placeholder, so dialects with paired paging syntax must not
                emit their own offset.
        """
        return f"LIMIT {limit}"

    def offset_fragment(self, offset: int) -> str:
        """Standalone skip fragment for the ``{{offset}}`` placeholder."""
        return f"OFFSET {offset}"

    def upsert(
        self,
        table: str,
        columns: Sequence[str],
        key_columns: Sequence[str],
    ) -> str:
        """Return an insert-or-update statement keyed by ``key_columns``.

        Args:
            table: Physical table name (unquoted).
            columns: Physical column names, in insert order.
            key_columns: Subset of ``columns`` identifying a row.

        Raises:
            GenerationError: For empty columns/keys or unknown key columns.
        """
        if not columns:
            raise GenerationError("Upsert requires at least one column.")
        if not key_columns:
            raise GenerationError("Upsert requires at least one key column.")
        unknown = [k for k in key_columns if k not in columns]
        if unknown:
            raise GenerationError(
                f"Upsert key columns {unknown} are not among the inserted columns.",
                details={"columns": list(columns), "key_columns": list(key_columns)},
            )
        update_columns = [c for c in columns if c not in key_columns]
        return self._upsert(table, list(columns), list(key_columns), update_columns)

    @abstractmethod
    def _upsert(
        self,
        table: str,
        columns: list[str],
        key_columns: list[str],
        update_columns: list[str],
    ) -> str:
        """Dialect step for :meth:`upsert`; input is already validated."""

    def batch_insert(self, table: str, columns: Sequence[str], batch_size: int) -> str:
        """Return one INSERT with ``batch_size`` value tuples.

        Parameters are named ``{column}{row}`` (lower-cased, zero-based row).
        """
        if not columns:
            raise GenerationError("Batch insert requires at least one column.")
        if batch_size < 1:
            raise GenerationError(f"Batch size must be positive, got {batch_size}.")
        cols_sql = ", ".join(self.quote_identifier(c) for c in columns)
        rows = [
            "(" + ", ".join(self.parameter(f"{c.lower()}{i}") for c in columns) + ")"
            for i in range(batch_size)
        ]
        return f"INSERT INTO {self.quote_identifier(table)} ({cols_sql}) VALUES {', '.join(rows)}"

    def _insert_head(self, table: str, columns: list[str]) -> str:
        cols_sql = ", ".join(self.quote_identifier(c) for c in columns)
        params_sql = ", ".join(self.parameter(c.lower()) for c in columns)
        return f"INSERT INTO {self.quote_identifier(table)} ({cols_sql}) VALUES ({params_sql})"

    # ------------------------------------------------------------------
    # Types, dates, concatenation
    # ------------------------------------------------------------------

    def map_type(self, logical: str | type | ValueKind) -> str:
        """Map a logical type (name, Python type or ValueKind) to a DB type."""
        if isinstance(logical, ValueKind):
            name = _KIND_LOGICAL[logical]
        elif isinstance(logical, type):
            name = _PY_LOGICAL.get(logical, "")
        else:
            name = logical.strip().lower()
        return self.type_map.get(name, DEFAULT_DB_TYPE)

    def format_datetime(self, value: datetime.datetime) -> str:
        return self.quote_string(value.strftime("%Y-%m-%d %H:%M:%S"))

    @abstractmethod
    def current_timestamp(self) -> str:
        """Return the dialect's current-timestamp expression."""

    def concat(self, *exprs: str) -> str:
        """Concatenate SQL expressions.

        No expressions gives ``''``, one gives itself, more are joined with
        the dialect's operator or function.
        """
        if not exprs:
            return ""
        if len(exprs) == 1:
            return exprs[0]
        return self._concat(list(exprs))

    def _concat(self, exprs: list[str]) -> str:
        return " || ".join(exprs)

    @abstractmethod
    def date_add(self, unit: str, amount: str, expr: str) -> str:
        """Add ``amount`` ``unit``s (``'DAY'``, ``'MONTH'``, ...) to ``expr``."""

    # ------------------------------------------------------------------
    # String functions with dialect-specific shapes
    # ------------------------------------------------------------------

    def substring(self, expr: str, start: str, length: str | None = None) -> str:
        """``start`` is already 1-based SQL text."""
        if length is None:
            return f"{self.substring_function}({expr}, {start})"
        return f"{self.substring_function}({expr}, {start}, {length})"

    def pad_left(self, expr: str, width: str, pad: str) -> str:
        return f"LPAD({expr}, {width}, {pad})"

    def pad_right(self, expr: str, width: str, pad: str) -> str:
        return f"RPAD({expr}, {width}, {pad})"

    @abstractmethod
    def index_of(self, expr: str, search: str, start: str | None = None) -> str:
        """Zero-based position of ``search`` in ``expr`` (-1 when absent)."""

    def string_agg(self, expr: str, separator: str) -> str:
        return f"STRING_AGG({expr}, {self.quote_string(separator)})"

    def truncate(self, expr: str) -> str:
        return f"TRUNC({expr})"

    @staticmethod
    def is_integer_text(sql: str) -> bool:
        return bool(_INTEGER_TEXT.match(sql))
