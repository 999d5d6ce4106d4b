"""
Structured error types for rowsmith.

Every failure the query builder raises on its own carries a category and
structured context (connection name, table, SQL text) so callers can log it
or route it without parsing messages. Errors raised by the database driver
are never wrapped: they reach the caller unchanged.

Manifesto:
    - **Typed hierarchy:** one class per failure kind, never bare Exception
    - **Fail at the call site:** nothing is logged and swallowed
    - **Rich context:** connection/table/sql travel with the error
    - **Driver errors untouched:** the driver owns its own exception types

Architecture:
    ::

        RowsmithError (category, context, cause)
        ├── ConfigError            (CONFIG)
        │   ├── MissingConfigError     unknown connection name or key
        │   └── InvalidConfigError     value fails validation / unknown option
        ├── IdentityError          (IDENTITY)
        │                              primary key (part) is null
        └── MethodMissingError     (CAPABILITY, also an AttributeError)
                                       undefined builder/entity/result-set op

Examples:
    >>> err = IdentityError.missing()
    >>> str(err)
    'Primary key ID missing from row or is null'
    >>> err.with_context(table="widget").context.table
    'widget'

Tags:
    error-handling, exception-hierarchy, rowsmith

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and routing."""

    CONFIG = "CONFIG"          # Unknown connection, bad option value
    IDENTITY = "IDENTITY"      # Row has no usable primary key
    CAPABILITY = "CAPABILITY"  # Undefined operation
    DATABASE = "DATABASE"      # Reserved for callers wrapping driver errors
    INTERNAL = "INTERNAL"      # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        connection: Connection name the failing operation targeted
        table: Table the record or builder is bound to
        sql: Statement text, when one had already been rendered
        metadata: Additional key-value pairs
    """

    connection: str | None = None
    table: str | None = None
    sql: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["connection", "table", "sql"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RowsmithError(Exception):
    """
    Base exception for all rowsmith errors.

    Subclasses set ``default_category``. Instances carry a message, a
    category, an :class:`ErrorContext` and an optional chained cause.

    Examples:
        >>> error = RowsmithError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["error_type"]
        'RowsmithError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RowsmithError:
        """
        Add context to this error (fluent API).

        Usage:
            raise IdentityError.missing().with_context(
                connection="default",
                table="widget",
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(RowsmithError):
    """Configuration error. Never retryable; the configuration must be fixed."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """A configuration key (or a whole connection) was read before being set."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing configuration: {key}")


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(
        self,
        key: str,
        value: Any,
        message: str | None = None,
        *,
        cause: Exception | None = None,
    ):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}", cause=cause)


# =============================================================================
# IDENTITY ERRORS
# =============================================================================


class IdentityError(RowsmithError):
    """
    An operation needing the primary key ran on a row without one.

    Raised by ``Record.id(strict=True)``, UPDATE and DELETE before any
    statement reaches the driver. ``partial`` tells whether only some columns
    of a compound key were null.
    """

    default_category = ErrorCategory.IDENTITY

    MISSING_MESSAGE = "Primary key ID missing from row or is null"
    PARTIAL_MESSAGE = "Primary key ID contains null value(s)"

    def __init__(
        self,
        message: str,
        *,
        id_columns: list[str] | None = None,
        null_columns: list[str] | None = None,
        partial: bool = False,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.id_columns = id_columns or []
        self.null_columns = null_columns or []
        self.partial = partial

    @classmethod
    def missing(cls, id_column: str | None = None) -> IdentityError:
        columns = [id_column] if id_column else []
        return cls(cls.MISSING_MESSAGE, id_columns=columns, null_columns=columns)

    @classmethod
    def null_parts(cls, id_columns: list[str], null_columns: list[str]) -> IdentityError:
        return cls(
            cls.PARTIAL_MESSAGE,
            id_columns=list(id_columns),
            null_columns=list(null_columns),
            partial=True,
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.id_columns:
            result["id_columns"] = self.id_columns
        if self.null_columns:
            result["null_columns"] = self.null_columns
        return result


# =============================================================================
# CAPABILITY ERRORS
# =============================================================================


class MethodMissingError(RowsmithError, AttributeError):
    """An undefined operation was called on a record or a result set.

    Subclasses ``AttributeError`` so ``hasattr()`` and ``getattr(obj, name,
    default)`` keep their usual meaning.
    """

    default_category = ErrorCategory.CAPABILITY

    def __init__(self, method: str, owner: str):
        self.method = method
        self.owner = owner
        super().__init__(f"Method {method}() does not exist in class {owner}")


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RowsmithError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "IdentityError",
    "MethodMissingError",
]
