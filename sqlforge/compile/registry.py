"""Provider and method registries.

``ProviderFactory``
    Central registry for :class:`~sqlforge.compile.base.DialectProvider`
    implementations.  ``resolve`` accepts a :class:`Dialect`, a dialect name
    or a :class:`DialectProfile` and returns the shared provider instance.

``MethodRegistry``
    Per-method SQL rendering handlers used by the expression translator.
    New methods can be registered without touching
    :class:`~sqlforge.compile.expression_builder.ExpressionTranslator`.

Usage::

    from sqlforge.compile.registry import MethodRegistry

    @MethodRegistry.register("soundex", result_kind=ValueKind.TEXT)
    def _soundex(t, node):
        return f"SOUNDEX({t.sql(node.target)})"
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from sqlforge.compile.base import DialectProvider
from sqlforge.errors import NullArgumentError, UnsupportedDialectError
from sqlforge.schema.columns import ValueKind, to_snake_case
from sqlforge.schema.dialect import DEFAULT_DIALECT, Dialect, DialectProfile, match_profile

if TYPE_CHECKING:
    from sqlforge.compile.expression_builder import ExpressionTranslator
    from sqlforge.schema.expressions import MethodCallNode

logger = logging.getLogger(__name__)

#: Anything ``ProviderFactory.resolve`` accepts.
DialectTarget = Dialect | str | DialectProfile | DialectProvider

# ---------------------------------------------------------------------------
# Provider factory
# ---------------------------------------------------------------------------


class ProviderFactory:
    """Registry mapping dialects to :class:`DialectProvider` classes.

    Providers are stateless, so one instance per dialect is created lazily
    and shared.

    Example::

        @ProviderFactory.register(Dialect.SQLITE)
        class SQLiteProvider(DialectProvider):
            ...

        provider = ProviderFactory.resolve("sqlite")
    """

    _providers: ClassVar[dict[Dialect, type[DialectProvider]]] = {}
    _instances: ClassVar[dict[Dialect, DialectProvider]] = {}

    @classmethod
    def register(
        cls, dialect: Dialect | str
    ) -> Callable[[type[DialectProvider]], type[DialectProvider]]:
        """Decorator that registers a provider class for ``dialect``."""

        def decorator(provider_cls: type[DialectProvider]) -> type[DialectProvider]:
            cls.register_class(dialect, provider_cls)
            return provider_cls

        return decorator

    @classmethod
    def register_class(cls, dialect: Dialect | str, provider_cls: type[DialectProvider]) -> None:
        """Register a provider class without using the decorator form."""
        key = Dialect(dialect)
        cls._providers[key] = provider_cls
        cls._instances.pop(key, None)

    @classmethod
    def create(cls, dialect: Dialect | str) -> DialectProvider:
        """Return the shared provider registered for ``dialect``.

        Raises:
            UnsupportedDialectError: If nothing is registered for ``dialect``
                or the registered provider is unimplemented.
        """
        if dialect is None:
            raise NullArgumentError("dialect")
        try:
            key = Dialect(dialect.lower())
        except ValueError as exc:
            raise UnsupportedDialectError(str(dialect), cls.registered_dialects()) from exc
        instance = cls._instances.get(key)
        if instance is not None:
            return instance
        provider_cls = cls._providers.get(key)
        if provider_cls is None:
            raise UnsupportedDialectError(key.value, cls.registered_dialects())
        instance = provider_cls()
        # Concurrent first calls may both construct; either instance is fine.
        return cls._instances.setdefault(key, instance)

    @classmethod
    def resolve(cls, target: DialectTarget) -> DialectProvider:
        """Return the provider for a dialect, dialect name or raw profile.

        A raw profile is matched structurally against the fixed profiles; an
        unmatched profile falls back to the SQL-Server-like provider.

        Raises:
            NullArgumentError: If ``target`` is None.
            UnsupportedDialectError: If the dialect has no usable provider.
        """
        if target is None:
            raise NullArgumentError("target")
        if isinstance(target, DialectProvider):
            return target
        if isinstance(target, DialectProfile):
            dialect = match_profile(target)
            if dialect is None:
                logger.warning(
                    "Dialect profile %s matched no known dialect; using %s.",
                    target.signature,
                    DEFAULT_DIALECT.value,
                )
                dialect = DEFAULT_DIALECT
            target = dialect
        provider = cls.create(target)
        logger.debug("Resolved dialect %s to %r.", target, provider)
        return provider

    @classmethod
    def registered_dialects(cls) -> list[str]:
        """Return the sorted list of registered dialect names."""
        return sorted(d.value for d in cls._providers)


# ---------------------------------------------------------------------------
# Method registry
# ---------------------------------------------------------------------------

#: ``(translator, node) -> sql_string``
MethodHandler = Callable[["ExpressionTranslator", "MethodCallNode"], str]


@dataclass(frozen=True)
class MethodEntry:
    handler: MethodHandler
    result_kind: ValueKind | None = None


def normalize_method(name: str) -> str:
    """``StartsWith`` / ``startsWith`` / ``starts_with`` -> ``starts_with``."""
    return to_snake_case(name.strip())


class MethodRegistry:
    """Registry mapping method names to SQL rendering handlers.

    Names are normalised with :func:`normalize_method`, so a handler
    registered as ``"starts_with"`` also serves ``"StartsWith"``.
    """

    _methods: ClassVar[dict[str, MethodEntry]] = {}

    @classmethod
    def register(
        cls, *names: str, result_kind: ValueKind | None = None
    ) -> Callable[[MethodHandler], MethodHandler]:
        """Decorator that registers a handler under one or more names."""

        def decorator(handler: MethodHandler) -> MethodHandler:
            for name in names:
                cls.register_handler(name, handler, result_kind)
            return handler

        return decorator

    @classmethod
    def register_handler(
        cls, name: str, handler: MethodHandler, result_kind: ValueKind | None = None
    ) -> None:
        cls._methods[normalize_method(name)] = MethodEntry(handler, result_kind)

    @classmethod
    def get(cls, name: str) -> MethodEntry | None:
        """Return the entry for ``name``, or ``None`` if not registered."""
        return cls._methods.get(normalize_method(name))

    @classmethod
    def registered_methods(cls) -> list[str]:
        return sorted(cls._methods)
