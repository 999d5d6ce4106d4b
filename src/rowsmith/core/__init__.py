"""Rowsmith Core -- fluent SQL building and row persistence.

Architecture::

    Layer 1 -- Errors, Logging & Contracts
        errors.py          Structured error hierarchy (RowsmithError, IdentityError)
        logging.py         structlog configuration and context binding
        protocols.py       Driver contract (DriverConnection, DriverStatement)
        settings.py        ConnectionConfig + RowsmithSettings (pydantic)

    Layer 2 -- SQL Text
        dialect.py         Quote character, LIMIT/TOP, ROWS/TO, RETURNING
        quoting.py         IdentifierQuoter
        sqltext.py         Placeholder scanning outside quoted text
        conditions.py      WHERE / HAVING accumulation
        query.py           QueryBuilder (SELECT / INSERT / UPDATE / DELETE)

    Layer 3 -- Runtime
        drivers.py         DB-API / sqlite3 / SQLAlchemy driver handles
        cache.py           Query-result cache (in-memory, callback hooks)
        registry.py        ConnectionRegistry + default-registry functions
        orm.py             Record (builder + row entity)
        result.py          ResultSet (list-like, broadcast calls)
"""

from rowsmith.core.cache import MISS, CallbackQueryCache, InMemoryQueryCache, QueryCache
from rowsmith.core.conditions import Condition, ConditionBuilder, ConditionKind
from rowsmith.core.dialect import (
    LIMIT_STYLE_LIMIT,
    LIMIT_STYLE_TOP_N,
    Dialect,
    detect_dialect,
    register_dialect,
)
from rowsmith.core.drivers import DBAPIDriver, SqliteDriver, open_driver
from rowsmith.core.errors import (
    ConfigError,
    ErrorCategory,
    IdentityError,
    InvalidConfigError,
    MethodMissingError,
    MissingConfigError,
    RowsmithError,
)
from rowsmith.core.orm import Record
from rowsmith.core.protocols import DriverConnection, DriverStatement, ParamType
from rowsmith.core.query import QueryBuilder
from rowsmith.core.quoting import IdentifierQuoter
from rowsmith.core.registry import (
    ConnectionRegistry,
    clear_cache,
    configure,
    for_table,
    get_config,
    get_connection_names,
    get_db,
    get_last_query,
    get_last_statement,
    get_query_log,
    get_registry,
    raw_execute,
    reset_config,
    reset_db,
    set_db,
    set_registry,
)
from rowsmith.core.result import ResultSet
from rowsmith.core.settings import DEFAULT_CONNECTION_NAME, ConnectionConfig, RowsmithSettings

__all__ = [
    # errors
    "RowsmithError",
    "ErrorCategory",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "IdentityError",
    "MethodMissingError",
    # contracts
    "DriverConnection",
    "DriverStatement",
    "ParamType",
    # sql text
    "Dialect",
    "LIMIT_STYLE_LIMIT",
    "LIMIT_STYLE_TOP_N",
    "detect_dialect",
    "register_dialect",
    "IdentifierQuoter",
    "Condition",
    "ConditionBuilder",
    "ConditionKind",
    "QueryBuilder",
    # runtime
    "DBAPIDriver",
    "SqliteDriver",
    "open_driver",
    "MISS",
    "QueryCache",
    "InMemoryQueryCache",
    "CallbackQueryCache",
    "ConnectionConfig",
    "RowsmithSettings",
    "DEFAULT_CONNECTION_NAME",
    "ConnectionRegistry",
    "Record",
    "ResultSet",
    # default registry
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
