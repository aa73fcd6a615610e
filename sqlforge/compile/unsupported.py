"""Providers for the two profiles that have no implementation.

The Oracle-like (``:`` prefix) and DB2-like (``?`` prefix) profiles exist
in the dialect table so raw profiles can be matched against them, but any
attempt to obtain a provider fails fast with
:class:`~sqlforge.errors.UnsupportedDialectError`.
"""
from __future__ import annotations

from typing import Any

from sqlforge.compile.base import DialectProvider
from sqlforge.errors import UnsupportedDialectError
from sqlforge.schema.dialect import Dialect


class UnimplementedProvider(DialectProvider):
    """Base for providers that refuse to be instantiated."""

    def __new__(cls, *args: Any, **kwargs: Any) -> UnimplementedProvider:
        raise UnsupportedDialectError(cls.dialect.value)


class OracleProvider(UnimplementedProvider):
    dialect = Dialect.ORACLE


class Db2Provider(UnimplementedProvider):
    dialect = Dialect.DB2
