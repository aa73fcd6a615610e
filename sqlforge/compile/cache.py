"""Expression translation cache.

Translating the same expression tree against the same dialect and column
metadata always yields the same fragment, so inline translations are cached
under a structural signature of the tree.

The cache is an explicit collaborator: :class:`ExpressionCache` is the
interface, :class:`InMemoryExpressionCache` the default lock-protected
implementation shared process-wide.  Pass another implementation to the
translator or query builder for tests or alternate eviction policies.
Entries are only evicted by :meth:`ExpressionCache.clear`.
"""
from __future__ import annotations

import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from sqlforge.compile.context import TranslationContext

logger = logging.getLogger(__name__)


class ExpressionCache(ABC):
    """Interface for the expression cache (get / put / clear)."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the cached fragment for ``key``, or ``None``."""

    @abstractmethod
    def put(self, key: str, sql: str) -> None:
        """Store ``sql`` under ``key``; an existing entry is overwritten."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every entry."""

    @abstractmethod
    def __len__(self) -> int: ...


class InMemoryExpressionCache(ExpressionCache):
    """Dict-backed cache safe for concurrent readers and writers."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> str | None:
        with self._lock:
            sql = self._entries.get(key)
            if sql is None:
                self.misses += 1
            else:
                self.hits += 1
            return sql

    def put(self, key: str, sql: str) -> None:
        with self._lock:
            self._entries[key] = sql

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.debug("Expression cache cleared.")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


# ---------------------------------------------------------------------------
# Structural signature
# ---------------------------------------------------------------------------


def _canonical(value: Any) -> Any:
    if isinstance(value, BaseModel):
        fields = type(value).model_fields
        return (type(value).__name__, tuple((n, _canonical(getattr(value, n))) for n in fields))
    if isinstance(value, tuple):
        return ("tuple", tuple(_canonical(v) for v in value))
    # Type name keeps 1, 1.0, True and "1" apart.
    return (type(value).__qualname__, repr(value))


def structural_signature(node: BaseModel) -> str:
    """Return a SHA-256 digest of the node kinds and constant shapes."""
    return hashlib.sha256(repr(_canonical(node)).encode()).hexdigest()


def cache_key(ctx: TranslationContext, node: BaseModel, predicate: bool = False) -> str:
    """Key covering the tree, the dialect, the column metadata and options."""
    entity = ctx.entity.model_dump_json() if ctx.entity is not None else ""
    parts = [
        ctx.provider.dialect_name,
        ctx.options.model_dump_json(),
        hashlib.sha256(entity.encode()).hexdigest(),
        "P" if predicate else "V",
        structural_signature(node),
    ]
    return "|".join(parts)


# ---------------------------------------------------------------------------
# Process-wide default
# ---------------------------------------------------------------------------

_default_cache: ExpressionCache = InMemoryExpressionCache()


def default_cache() -> ExpressionCache:
    return _default_cache


def set_default_cache(cache: ExpressionCache) -> ExpressionCache:
    """Replace the process-wide cache and return the previous one."""
    global _default_cache
    previous, _default_cache = _default_cache, cache
    return previous


def clear_cache() -> None:
    """Clear the process-wide cache.

    Fragments already returned to callers are plain strings and are never
    affected.
    """
    _default_cache.clear()
