"""Dialect profiles: the lexical conventions of each supported database.

Six profiles are fixed and reproduced verbatim from the dialect table:

==========  =================  ==============  ================
Dialect     Identifier quotes  String quotes   Parameter prefix
==========  =================  ==============  ================
MYSQL       `` ` `` / `` ` ``  ``'`` / ``'``   ``@``
SQL_SERVER  ``[`` / ``]``      ``'`` / ``'``   ``@``
POSTGRES    ``"`` / ``"``      ``'`` / ``'``   ``$``
ORACLE      ``"`` / ``"``      ``'`` / ``'``   ``:``
DB2         ``"`` / ``"``      ``'`` / ``'``   ``?``
SQLITE      ``[`` / ``]``      ``'`` / ``'``   ``@``
==========  =================  ==============  ================

Callers normally pick a profile by name.  A raw profile (quote characters
plus prefix) can be assembled through the builder and is matched against
the fixed signatures at resolution time::

    from sqlforge import DialectProfile

    profile = (
        DialectProfile.builder()
        .identifier_quotes("`", "`")
        .parameter_prefix("@")
        .build()
    )
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from sqlforge.errors import ProfileConfigError


class Dialect(str, Enum):
    """The six named dialects."""

    MYSQL = "mysql"
    SQL_SERVER = "sqlserver"
    POSTGRES = "postgres"
    ORACLE = "oracle"
    DB2 = "db2"
    SQLITE = "sqlite"


class DialectProfile(BaseModel):
    """One database's quoting and parameter conventions.

    Attributes:
        identifier_quotes: Opening and closing identifier quote.
        string_quotes: Opening and closing string-literal quote.
        parameter_prefix: Prefix placed before bind-parameter names.
        dialect: Tag of the fixed profile this instance represents, or
            ``None`` for a raw profile that still has to be matched.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    identifier_quotes: tuple[str, str]
    string_quotes: tuple[str, str] = ("'", "'")
    parameter_prefix: str
    dialect: Dialect | None = None

    @property
    def signature(self) -> tuple[str, str, str, str, str]:
        """Structural signature used to match raw profiles."""
        return (*self.identifier_quotes, *self.string_quotes, self.parameter_prefix)

    @classmethod
    def builder(cls) -> DialectProfileBuilder:
        """Return a fluent builder for a raw profile."""
        return DialectProfileBuilder()

    @classmethod
    def named(cls, dialect: Dialect | str) -> DialectProfile:
        """Return the fixed profile for ``dialect``."""
        return PROFILES[Dialect(dialect)]


class DialectProfileBuilder:
    """Fluent builder for raw :class:`DialectProfile` instances.

    Each method returns ``self`` so calls can be chained.  :meth:`build`
    validates the combination and raises :class:`ProfileConfigError` for
    incomplete input.
    """

    def __init__(self) -> None:
        self._identifier_quotes: tuple[str, str] | None = None
        self._string_quotes: tuple[str, str] = ("'", "'")
        self._parameter_prefix: str | None = None
        self._dialect: Dialect | None = None

    def identifier_quotes(self, left: str, right: str | None = None) -> DialectProfileBuilder:
        self._identifier_quotes = (left, right if right is not None else left)
        return self

    def string_quotes(self, left: str, right: str | None = None) -> DialectProfileBuilder:
        self._string_quotes = (left, right if right is not None else left)
        return self

    def parameter_prefix(self, prefix: str) -> DialectProfileBuilder:
        self._parameter_prefix = prefix
        return self

    def tagged(self, dialect: Dialect | str) -> DialectProfileBuilder:
        """Pin the profile to a named dialect, bypassing structural matching."""
        self._dialect = Dialect(dialect)
        return self

    def build(self) -> DialectProfile:
        """Validate and return the profile.

        Raises:
            ProfileConfigError: When quotes or the prefix are missing or empty.
        """
        missing: list[str] = []
        if not self._identifier_quotes or not all(self._identifier_quotes):
            missing.append("identifier_quotes()")
        if not self._parameter_prefix:
            missing.append("parameter_prefix()")
        if missing:
            raise ProfileConfigError(
                f"DialectProfile is incomplete; call {', '.join(missing)} before build().",
                missing=missing,
            )
        if not all(self._string_quotes):
            raise ProfileConfigError("String quotes must not be empty.", missing=["string_quotes()"])
        return DialectProfile(
            identifier_quotes=self._identifier_quotes,
            string_quotes=self._string_quotes,
            parameter_prefix=self._parameter_prefix,
            dialect=self._dialect,
        )


# Order matters for structural matching: SQL_SERVER precedes SQLITE so a raw
# bracket/@ profile resolves to SQL_SERVER.
PROFILES: dict[Dialect, DialectProfile] = {
    Dialect.MYSQL: DialectProfile(
        identifier_quotes=("`", "`"), parameter_prefix="@", dialect=Dialect.MYSQL
    ),
    Dialect.SQL_SERVER: DialectProfile(
        identifier_quotes=("[", "]"), parameter_prefix="@", dialect=Dialect.SQL_SERVER
    ),
    Dialect.POSTGRES: DialectProfile(
        identifier_quotes=('"', '"'), parameter_prefix="$", dialect=Dialect.POSTGRES
    ),
    Dialect.ORACLE: DialectProfile(
        identifier_quotes=('"', '"'), parameter_prefix=":", dialect=Dialect.ORACLE
    ),
    Dialect.DB2: DialectProfile(
        identifier_quotes=('"', '"'), parameter_prefix="?", dialect=Dialect.DB2
    ),
    Dialect.SQLITE: DialectProfile(
        identifier_quotes=("[", "]"), parameter_prefix="@", dialect=Dialect.SQLITE
    ),
}

#: Dialect used when a raw profile matches no known signature.
DEFAULT_DIALECT = Dialect.SQL_SERVER


def match_profile(profile: DialectProfile) -> Dialect | None:
    """Return the named dialect whose signature equals ``profile``'s.

    A profile that already carries a ``dialect`` tag is returned as-is.
    ``None`` means no fixed profile matched.
    """
    if profile.dialect is not None:
        return profile.dialect
    for dialect, known in PROFILES.items():
        if known.signature == profile.signature:
            return dialect
    return None
