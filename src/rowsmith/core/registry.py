"""
Named connections: configuration, driver handles, query log and cache.

A :class:`ConnectionRegistry` replaces process-wide static state with one
explicit object. Everything is keyed by connection name; ``"default"`` is
used when no name is given. A module-level default registry backs the
convenience functions exported from :mod:`rowsmith`.

Manifesto:
    - **Lazy:** configuration materialises on first touch, the driver
      handle opens on first use
    - **Probe once:** quote character and limit style are detected from the
      driver when the handle is registered, then stored in the config
    - **Resettable:** ``reset_config()``, ``reset_db()``, ``clear_cache()``
      and ``reset()`` give tests a clean slate

Architecture:
    ::

        ConnectionRegistry
        ├── _configs      {name: ConnectionConfig}
        ├── _handles      {name: DriverConnection}
        ├── _query_log    {name: [bound sql, ...]}
        ├── last_query    newest logged statement on any connection
        ├── last_statement newest prepared statement on any connection
        └── default_cache InMemoryQueryCache shared by all connections

        for_table(t, name) ─▶ setup_db(name) ─▶ open_driver(config) ─▶ set_db()
                                                                       │
                                       probe quote char / limit style ◀┘

Examples:
    >>> registry = ConnectionRegistry()
    >>> registry.configure("sqlite::memory:")
    >>> registry.configure("logging", True)
    >>> registry.raw_execute("CREATE TABLE widget (id INTEGER PRIMARY KEY, name TEXT)")
    True
    >>> registry.for_table("widget").create({"name": "Fred"}).save()
    True
    >>> registry.get_last_query()
    "INSERT INTO `widget` (`name`) VALUES ('Fred')"

Guardrails:
    ❌ DON'T: Share one registry between processes
    ✅ DO: Give each process (and each test) its own registry, or reset it

Tags:
    connection, registry, configuration, query-log, rowsmith

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from rowsmith.core.cache import MISS, CallbackQueryCache, InMemoryQueryCache, QueryCache
from rowsmith.core.dialect import Dialect, detect_dialect
from rowsmith.core.drivers import open_driver
from rowsmith.core.errors import MissingConfigError
from rowsmith.core.logging import get_logger
from rowsmith.core.protocols import DriverConnection, DriverStatement, ParamType
from rowsmith.core.settings import DEFAULT_CONNECTION_NAME, ConnectionConfig, RowsmithSettings
from rowsmith.core.sqltext import substitute_literals

if TYPE_CHECKING:
    from rowsmith.core.orm import Record

logger = get_logger(__name__)

_UNSET: Any = object()


class ConnectionRegistry:
    """Per-name configuration, driver handles, query log and query cache."""

    def __init__(self, settings: RowsmithSettings | None = None) -> None:
        self.settings = settings if settings is not None else RowsmithSettings()
        self._configs: dict[str, ConnectionConfig] = {}
        self._handles: dict[str, DriverConnection | None] = {}
        self._query_log: dict[str, list[str]] = {}
        self.last_query: str | None = None
        self.last_statement: DriverStatement | None = None
        self.default_cache = InMemoryQueryCache()

    # =====================================================================
    # Configuration
    # =====================================================================

    def setup_config(self, connection_name: str = DEFAULT_CONNECTION_NAME) -> ConnectionConfig:
        """Return the config for ``connection_name``, creating defaults if new."""
        if connection_name not in self._configs:
            self._configs[connection_name] = ConnectionConfig.from_settings(self.settings)
        return self._configs[connection_name]

    def configure(
        self,
        key: str | Mapping[str, Any],
        value: Any = _UNSET,
        connection_name: str = DEFAULT_CONNECTION_NAME,
    ) -> None:
        """Set one option, many options, or the connection string.

        - ``configure("sqlite:app.db")`` sets the connection string
        - ``configure("id_column", "pk")`` sets one option
        - ``configure({"logging": True, "caching": True})`` sets several
        """
        config = self.setup_config(connection_name)
        if isinstance(key, Mapping):
            config.update_many(key)
        elif value is _UNSET:
            config.update("connection_string", key)
        else:
            config.update(key, value)

    def get_config(
        self,
        key: str | None = None,
        connection_name: str = DEFAULT_CONNECTION_NAME,
    ) -> Any:
        """Read one option, or the whole :class:`ConnectionConfig`.

        Raises:
            MissingConfigError: ``connection_name`` was never referenced, or
                ``key`` is not an option name.
        """
        config = self._configs.get(connection_name)
        if config is None:
            raise MissingConfigError(
                connection_name, f"No configuration for connection: {connection_name}"
            ).with_context(connection=connection_name)
        if key is None:
            return config
        return config.get(key)

    def reset_config(self) -> None:
        self._configs.clear()

    # =====================================================================
    # Driver handles
    # =====================================================================

    def setup_db(self, connection_name: str = DEFAULT_CONNECTION_NAME) -> None:
        if self._handles.get(connection_name) is None:
            config = self.setup_config(connection_name)
            self.set_db(open_driver(config), connection_name)

    def set_db(self, db: DriverConnection | None, connection_name: str = DEFAULT_CONNECTION_NAME) -> None:
        """Register a driver handle and probe its dialect facts.

        Passing ``None`` forgets the handle; the next use opens a new one.
        """
        config = self.setup_config(connection_name)
        self._handles[connection_name] = db
        if db is None:
            return

        detected = detect_dialect(db.driver_name)
        if config.identifier_quote_character is None:
            config.identifier_quote_character = detected.identifier_quote_character
        if config.limit_clause_style is None:
            config.limit_clause_style = detected.limit_clause_style

        logger.debug(
            "driver_opened",
            connection=connection_name,
            driver=db.driver_name,
            quote_character=config.identifier_quote_character,
            limit_style=config.limit_clause_style,
        )

    def get_db(self, connection_name: str = DEFAULT_CONNECTION_NAME) -> DriverConnection:
        self.setup_db(connection_name)
        return self._handles[connection_name]

    def reset_db(self) -> None:
        self._handles.clear()

    def connection_names(self) -> list[str]:
        return list(self._handles)

    def dialect(self, connection_name: str = DEFAULT_CONNECTION_NAME) -> Dialect:
        """Dialect facts for a connection, with configured overrides applied."""
        db = self.get_db(connection_name)
        config = self._configs[connection_name]
        return detect_dialect(db.driver_name).with_overrides(
            identifier_quote_character=config.identifier_quote_character,
            limit_clause_style=config.limit_clause_style,
        )

    def for_table(self, table_name: str, connection_name: str = DEFAULT_CONNECTION_NAME) -> Record:
        """Start a query (or a new row) against ``table_name``."""
        from rowsmith.core.orm import Record

        self.setup_db(connection_name)
        return Record(table_name, connection_name=connection_name, registry=self)

    # =====================================================================
    # Execution
    # =====================================================================

    def raw_execute(
        self,
        query: str,
        parameters: Any = None,
        connection_name: str = DEFAULT_CONNECTION_NAME,
    ) -> bool:
        """Execute arbitrary SQL; results are available via ``last_statement``."""
        self.setup_db(connection_name)
        return self.execute(query, parameters, connection_name)

    def execute(
        self,
        query: str,
        parameters: Any = None,
        connection_name: str = DEFAULT_CONNECTION_NAME,
    ) -> bool:
        """Prepare, bind, execute and log one statement.

        List parameters bind to 1-based positions, mapping parameters bind by
        name. Driver errors propagate unchanged.
        """
        if parameters is None:
            parameters = []
        statement = self.get_db(connection_name).prepare(query)
        self.last_statement = statement
        started = time.perf_counter()

        if isinstance(parameters, Mapping):
            items = list(parameters.items())
        else:
            items = [(position, value) for position, value in enumerate(parameters, start=1)]
        for key, value in items:
            statement.bind(key, value, ParamType.of(value))

        result = statement.execute()
        elapsed = time.perf_counter() - started
        self.log_query(query, parameters, connection_name, elapsed)

        logger.debug(
            "query_executed",
            connection=connection_name,
            elapsed_ms=round(elapsed * 1000, 3),
            params=len(items),
        )
        return result

    # =====================================================================
    # Query log
    # =====================================================================

    def log_query(
        self,
        query: str,
        parameters: Any,
        connection_name: str,
        elapsed: float,
    ) -> bool:
        """Append the bound statement to the query log when logging is on.

        Named parameters are not substituted; only positional values are
        rendered into the text, quoted by the driver.
        """
        config = self.setup_config(connection_name)
        if not config.logging:
            return False

        if isinstance(parameters, Mapping):
            positional = [v for k, v in parameters.items() if isinstance(k, int)]
        else:
            positional = list(parameters)

        if positional:
            db = self.get_db(connection_name)
            bound_query = substitute_literals(query, [db.quote(v) for v in positional])
        else:
            bound_query = query

        self.last_query = bound_query
        self._query_log.setdefault(connection_name, []).append(bound_query)

        if config.logger is not None:
            config.logger(bound_query, elapsed)
        return True

    def get_last_query(self, connection_name: str | None = None) -> str | None:
        """Newest logged statement, across all connections when no name is given."""
        if connection_name is None:
            return self.last_query
        log = self._query_log.get(connection_name)
        if not log:
            return ""
        return log[-1]

    def get_query_log(self, connection_name: str = DEFAULT_CONNECTION_NAME) -> list[str]:
        return list(self._query_log.get(connection_name, []))

    # =====================================================================
    # Query cache
    # =====================================================================

    def cache_for(self, connection_name: str = DEFAULT_CONNECTION_NAME) -> QueryCache:
        """Cache backend in effect for a connection."""
        config = self.setup_config(connection_name)
        if config.query_cache is not None:
            return config.query_cache
        hooks = {
            "create_cache_key": config.create_cache_key,
            "check_query_cache": config.check_query_cache,
            "cache_query_result": config.cache_query_result,
            "clear_cache": config.clear_cache,
        }
        if any(hook is not None for hook in hooks.values()):
            return CallbackQueryCache(self.default_cache, **hooks)
        return self.default_cache

    def create_cache_key(
        self,
        query: str,
        parameters: Any,
        table_name: str | None = None,
        connection_name: str = DEFAULT_CONNECTION_NAME,
    ) -> str:
        return self.cache_for(connection_name).fingerprint(query, parameters, table_name, connection_name)

    def check_query_cache(
        self,
        cache_key: str,
        table_name: str | None = None,
        connection_name: str = DEFAULT_CONNECTION_NAME,
    ) -> Any:
        """Cached rows for ``cache_key``, or :data:`~rowsmith.core.cache.MISS`."""
        rows = self.cache_for(connection_name).lookup(cache_key, table_name, connection_name)
        if rows is MISS:
            logger.debug("query_cache_miss", connection=connection_name, table=table_name)
        else:
            logger.debug("query_cache_hit", connection=connection_name, table=table_name)
        return rows

    def cache_query_result(
        self,
        cache_key: str,
        rows: list[dict[str, Any]],
        table_name: str | None = None,
        connection_name: str = DEFAULT_CONNECTION_NAME,
    ) -> None:
        self.cache_for(connection_name).store(cache_key, rows, table_name, connection_name)

    def clear_cache(
        self,
        table_name: str | None = None,
        connection_name: str = DEFAULT_CONNECTION_NAME,
    ) -> None:
        """Empty the default cache, then run any custom clear for the connection."""
        self.default_cache.clear()
        config = self._configs.get(connection_name)
        if config is not None:
            if config.query_cache is not None:
                config.query_cache.clear(table_name, connection_name)
            elif config.clear_cache is not None:
                config.clear_cache(table_name, connection_name)
        logger.debug("query_cache_cleared", connection=connection_name, table=table_name)

    # =====================================================================
    # Reset
    # =====================================================================

    def reset(self) -> None:
        """Forget configuration, handles, query log and cached results."""
        self.reset_config()
        self.reset_db()
        self.default_cache.clear()
        self._query_log.clear()
        self.last_query = None
        self.last_statement = None

    def __repr__(self) -> str:
        return f"ConnectionRegistry(connections={sorted(self._configs)})"


# =========================================================================
# Default registry
# =========================================================================

_default_registry: ConnectionRegistry | None = None


def get_registry() -> ConnectionRegistry:
    """Return the process-wide default registry, creating it on first use."""
    global _default_registry
    if _default_registry is None:
        _default_registry = ConnectionRegistry()
    return _default_registry


def set_registry(registry: ConnectionRegistry | None) -> None:
    """Replace the default registry (``None`` recreates it lazily)."""
    global _default_registry
    _default_registry = registry


def configure(key: str | Mapping[str, Any], value: Any = _UNSET, connection_name: str = DEFAULT_CONNECTION_NAME) -> None:
    get_registry().configure(key, value, connection_name)


def get_config(key: str | None = None, connection_name: str = DEFAULT_CONNECTION_NAME) -> Any:
    return get_registry().get_config(key, connection_name)


def reset_config() -> None:
    get_registry().reset_config()


def for_table(table_name: str, connection_name: str = DEFAULT_CONNECTION_NAME) -> Record:
    return get_registry().for_table(table_name, connection_name)


def set_db(db: DriverConnection | None, connection_name: str = DEFAULT_CONNECTION_NAME) -> None:
    get_registry().set_db(db, connection_name)


def get_db(connection_name: str = DEFAULT_CONNECTION_NAME) -> DriverConnection:
    return get_registry().get_db(connection_name)


def reset_db() -> None:
    get_registry().reset_db()


def raw_execute(query: str, parameters: Any = None, connection_name: str = DEFAULT_CONNECTION_NAME) -> bool:
    return get_registry().raw_execute(query, parameters, connection_name)


def get_last_statement() -> DriverStatement | None:
    return get_registry().last_statement


def get_last_query(connection_name: str | None = None) -> str | None:
    return get_registry().get_last_query(connection_name)


def get_query_log(connection_name: str = DEFAULT_CONNECTION_NAME) -> list[str]:
    return get_registry().get_query_log(connection_name)


def get_connection_names() -> list[str]:
    return get_registry().connection_names()


def clear_cache(table_name: str | None = None, connection_name: str = DEFAULT_CONNECTION_NAME) -> None:
    get_registry().clear_cache(table_name, connection_name)


__all__ = [
    "ConnectionRegistry",
    "get_registry",
    "set_registry",
    "configure",
    "get_config",
    "reset_config",
    "for_table",
    "set_db",
    "get_db",
    "reset_db",
    "raw_execute",
    "get_last_statement",
    "get_last_query",
    "get_query_log",
    "get_connection_names",
    "clear_cache",
]
