"""Custom exception hierarchy for sqlforge.

All public errors inherit from SqlForgeError so callers can catch the base
class for any sqlforge-specific failure.  Every error carries a stable
``code`` for programmatic matching:

* ``SQLX001`` - generic generation failure (templates, statement assembly).
* ``SQLX002`` - invalid method or expression shape.
* ``SQLX003`` - unsupported dialect.
"""
from __future__ import annotations

from typing import Any

GENERATION_FAILED = "SQLX001"
INVALID_EXPRESSION = "SQLX002"
UNSUPPORTED_DIALECT = "SQLX003"


class SqlForgeError(Exception):
    """Base exception for all sqlforge errors.

    Args:
        message: Human-readable description.
        code: Machine-readable error code.
        details: Extra context for the caller.
    """

    default_code = GENERATION_FAILED

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.details: dict[str, Any] = details or {}

    def to_error_response(self) -> dict[str, Any]:
        """Returns a structured error response."""
        return {
            "error": self.code,
            "message": str(self),
            "details": self.details,
        }


class GenerationError(SqlForgeError):
    """Raised when SQL text cannot be generated.

    Covers malformed templates, unknown placeholder names, missing render
    values and invalid provider input (e.g. an upsert without key columns).

    Args:
        message: Human-readable description.
        placeholder: The placeholder being processed, when relevant.
    """

    def __init__(
        self,
        message: str,
        placeholder: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if placeholder is not None:
            details.setdefault("placeholder", placeholder)
        super().__init__(message, code=GENERATION_FAILED, details=details)
        self.placeholder = placeholder


class InvalidExpressionError(SqlForgeError):
    """Raised when an expression node has no translation rule.

    Args:
        message: Human-readable description.
        construct: Name of the unsupported node kind or method.
    """

    default_code = INVALID_EXPRESSION

    def __init__(self, message: str, construct: str | None = None) -> None:
        super().__init__(
            message,
            code=INVALID_EXPRESSION,
            details={"construct": construct} if construct else None,
        )
        self.construct = construct


class UnsupportedDialectError(SqlForgeError):
    """Raised when a dialect has no implemented provider."""

    default_code = UNSUPPORTED_DIALECT

    def __init__(self, dialect: str, registered: list[str] | None = None) -> None:
        message = f"Dialect '{dialect}' is not supported."
        if registered:
            message += f" Supported dialects: {registered}."
        super().__init__(
            message,
            code=UNSUPPORTED_DIALECT,
            details={"dialect": dialect, "supported": registered or []},
        )
        self.dialect = dialect


class StatementOperationError(SqlForgeError):
    """Raised when a statement cannot be assembled in its current state.

    The main case is a DELETE or UPDATE without a WHERE predicate.

    Args:
        message: Human-readable description.
        statement: The statement kind (``'DELETE'``, ``'UPDATE'``, ...).
    """

    def __init__(self, message: str, statement: str | None = None) -> None:
        super().__init__(
            message,
            code=GENERATION_FAILED,
            details={"statement": statement} if statement else None,
        )
        self.statement = statement


class NullArgumentError(SqlForgeError, ValueError):
    """Raised at the call that received ``None`` for a required argument."""

    def __init__(self, argument: str) -> None:
        super().__init__(
            f"Argument '{argument}' must not be None.",
            code=GENERATION_FAILED,
            details={"argument": argument},
        )
        self.argument = argument


class ProfileConfigError(SqlForgeError):
    """Raised when a raw DialectProfile is misconfigured.

    Detected at :meth:`DialectProfileBuilder.build` time so the caller gets a
    clear message instead of malformed SQL later.

    Args:
        message: Human-readable description.
        missing: Builder method(s) that must be called.
    """

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message, code=GENERATION_FAILED, details={"missing": missing or []})
        self.missing = missing or []
