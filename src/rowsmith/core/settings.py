"""Connection configuration and process-wide defaults.

Each named connection owns one :class:`ConnectionConfig`. New connections
start from :class:`RowsmithSettings`, which reads ``ROWSMITH_*`` environment
variables (and a ``.env`` file), so a deployment can switch the default
database or turn on query logging without touching code.

Manifesto:
    Configuration should be explicit and validated. A typo in an option name
    or a wrong value type fails at ``configure()`` time, not halfway through
    a query.

    - **Pydantic validation:** every assignment is type-checked
    - **Closed option set:** unknown option names are rejected
    - **Environment-driven defaults:** ``ROWSMITH_CONNECTION_STRING`` etc.

Examples:
    >>> cfg = ConnectionConfig()
    >>> cfg.connection_string, cfg.id_column
    ('sqlite::memory:', 'id')
    >>> cfg.update("caching", True).caching
    True

Tags:
    settings, configuration, pydantic, environment, rowsmith

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rowsmith.core.cache import QueryCache
from rowsmith.core.errors import InvalidConfigError, MissingConfigError

DEFAULT_CONNECTION_NAME = "default"
DEFAULT_CONNECTION_STRING = "sqlite::memory:"


class RowsmithSettings(BaseSettings):
    """Process defaults applied to every connection when it is first touched.

    Fields
    ──────
    connection_string   : DSN for new connections
    id_column           : Default primary key column
    logging             : Keep the per-connection query log
    caching             : Enable the query-result cache
    caching_auto_clear  : Clear the cache after every successful write
    return_result_sets  : ``find_many()`` returns a ``ResultSet``
    log_level / log_json: structlog setup used by the CLI
    """

    model_config = SettingsConfigDict(
        env_prefix="ROWSMITH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Connection ───────────────────────────────────────────────
    connection_string: str = DEFAULT_CONNECTION_STRING
    id_column: str = "id"

    # ── Behaviour ────────────────────────────────────────────────
    logging: bool = False
    caching: bool = False
    caching_auto_clear: bool = False
    return_result_sets: bool = False

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = False


class ConnectionConfig(BaseModel):
    """Validated option set for one named connection.

    Callback options (``logger`` and the four cache hooks) take plain
    callables; ``query_cache`` takes an object implementing
    :class:`~rowsmith.core.cache.QueryCache`.
    """

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    connection_string: str = DEFAULT_CONNECTION_STRING
    username: str | None = None
    password: str | None = None
    driver_options: dict[str, Any] | None = None

    id_column: str | list[str] = "id"
    id_column_overrides: dict[str, str | list[str]] = Field(default_factory=dict)

    # None means "probe from the driver on first use"
    identifier_quote_character: str | None = None
    limit_clause_style: Literal["limit", "top"] | None = None

    logging: bool = False
    logger: Callable[..., Any] | None = None

    caching: bool = False
    caching_auto_clear: bool = False
    return_result_sets: bool = False

    create_cache_key: Callable[..., Any] | None = None
    check_query_cache: Callable[..., Any] | None = None
    cache_query_result: Callable[..., Any] | None = None
    clear_cache: Callable[..., Any] | None = None
    query_cache: Any = None

    @field_validator("query_cache")
    @classmethod
    def _check_query_cache(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, QueryCache):
            raise ValueError("query_cache must implement fingerprint/lookup/store/clear")
        return value

    @field_validator("identifier_quote_character")
    @classmethod
    def _check_quote_character(cls, value: str | None) -> str | None:
        if value is not None and len(value) != 1:
            raise ValueError("identifier_quote_character must be a single character")
        return value

    @classmethod
    def from_settings(cls, settings: RowsmithSettings) -> ConnectionConfig:
        return cls(
            connection_string=settings.connection_string,
            id_column=settings.id_column,
            logging=settings.logging,
            caching=settings.caching,
            caching_auto_clear=settings.caching_auto_clear,
            return_result_sets=settings.return_result_sets,
        )

    @classmethod
    def option_names(cls) -> list[str]:
        return list(cls.model_fields)

    def get(self, key: str) -> Any:
        if key not in type(self).model_fields:
            raise MissingConfigError(key)
        return getattr(self, key)

    def update(self, key: str, value: Any) -> ConnectionConfig:
        """Validate and assign one option; returns ``self`` for chaining."""
        if key not in type(self).model_fields:
            raise InvalidConfigError(key, value, f"Unknown configuration option: {key}")
        try:
            setattr(self, key, value)
        except ValidationError as exc:
            raise InvalidConfigError(key, value, cause=exc) from exc
        return self

    def update_many(self, options: Mapping[str, Any]) -> ConnectionConfig:
        for key, value in options.items():
            self.update(key, value)
        return self

    def as_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in type(self).model_fields}


__all__ = [
    "DEFAULT_CONNECTION_NAME",
    "DEFAULT_CONNECTION_STRING",
    "ConnectionConfig",
    "RowsmithSettings",
]
