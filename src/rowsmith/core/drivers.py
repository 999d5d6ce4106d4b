"""
Driver handles: PEP 249 connections adapted to the rowsmith driver contract.

The registry only ever sees :class:`~rowsmith.core.protocols.DriverConnection`
objects. This module builds them from a connection string.

Supported connection strings
----------------------------
======================  ===========================================  ==========
Form                    Example                                      Backend
======================  ===========================================  ==========
``sqlite::memory:``     ``sqlite::memory:``                          SQLite RAM
``sqlite:<path>``       ``sqlite:/var/data/app.db``                  SQLite file
SQLAlchemy URL          ``postgresql://user:pw@host/db``             any
======================  ===========================================  ==========

SQLAlchemy URLs are opened through ``create_engine(url).raw_connection()``,
so any backend with an installed SQLAlchemy dialect and DB-API module works.
The driver tag used for dialect detection comes from the SQLAlchemy dialect
name (``postgresql`` → ``pgsql``, ``mssql`` → ``sqlsrv``).

Usage::

    from rowsmith.core.drivers import SqliteDriver

    driver = SqliteDriver(":memory:")
    stmt = driver.prepare("SELECT ? AS answer")
    stmt.bind(1, 42, ParamType.INT)
    stmt.execute()
    stmt.fetch_row()       # {'answer': 42}
"""

from __future__ import annotations

import sqlite3
from typing import Any

from rowsmith.core.logging import get_logger
from rowsmith.core.protocols import ParamType
from rowsmith.core.settings import ConnectionConfig
from rowsmith.core.sqltext import replace_placeholders

logger = get_logger(__name__)

SQLITE_PREFIX = "sqlite:"
SQLITE_MEMORY = ":memory:"

# SQLAlchemy dialect name → rowsmith driver tag
_SA_DRIVER_TAGS = {
    "postgresql": "pgsql",
    "mssql": "sqlsrv",
}


_READ_VERBS = ("SELECT", "WITH", "PRAGMA", "SHOW", "EXPLAIN", "VALUES")


def _is_read(sql: str) -> bool:
    words = sql.lstrip(" (\n\t").split(None, 1)
    return bool(words) and words[0].upper() in _READ_VERBS


def _placeholder_for(paramstyle: str):
    """Return ``index -> placeholder`` for a DB-API paramstyle."""
    if paramstyle in ("format", "pyformat"):
        return lambda i: "%s"
    if paramstyle == "numeric":
        return lambda i: f":{i + 1}"
    if paramstyle == "named":
        return lambda i: f":p{i + 1}"
    return lambda i: "?"


class DBAPIStatement:
    """One prepared statement on a :class:`DBAPIDriver`.

    Values are collected by :meth:`bind` and handed to ``cursor.execute``
    in one go. Positional binds are 1-based like the driver contract;
    string keys are passed through as named parameters.
    """

    def __init__(self, driver: DBAPIDriver, sql: str) -> None:
        self.driver = driver
        self.sql = sql
        self.positional: dict[int, Any] = {}
        self.named: dict[str, Any] = {}
        self.types: dict[int | str, ParamType] = {}
        self.cursor: Any = None
        self._columns: list[str] | None = None

    def bind(self, key: int | str, value: Any, param_type: ParamType) -> None:
        if isinstance(key, int):
            self.positional[key] = value
        else:
            self.named[key.lstrip(":")] = value
        self.types[key] = param_type

    def _compile(self) -> tuple[str, Any]:
        if self.named:
            return self.sql, dict(self.named)

        values = [self.positional[k] for k in sorted(self.positional)]
        paramstyle = self.driver.paramstyle
        if paramstyle == "qmark":
            return self.sql, values

        sql = self.sql
        if paramstyle in ("format", "pyformat"):
            sql = sql.replace("%", "%%")
        sql = replace_placeholders(sql, _placeholder_for(paramstyle))
        if paramstyle == "named":
            return sql, {f"p{i + 1}": v for i, v in enumerate(values)}
        return sql, values

    def execute(self) -> bool:
        sql, params = self._compile()
        self.cursor = self.driver.connection.cursor()
        self.cursor.execute(sql, params)
        self.driver.last_cursor = self.cursor

        description = self.cursor.description
        self._columns = None if description is None else [column[0] for column in description]
        # INSERT ... RETURNING has a description but still needs a commit
        if description is None or not _is_read(self.sql):
            self.driver.commit()
        return True

    def fetch_row(self) -> dict[str, Any] | None:
        if self.cursor is None or self._columns is None:
            return None
        row = self.cursor.fetchone()
        if row is None:
            return None
        return dict(zip(self._columns, row))

    @property
    def row_count(self) -> int:
        return -1 if self.cursor is None else self.cursor.rowcount


class DBAPIDriver:
    """Adapter: PEP 249 connection → ``DriverConnection`` protocol.

    ``?`` placeholders outside quoted text are rewritten to the module's
    paramstyle, so generated SQL is the same for every backend.
    """

    def __init__(self, connection: Any, driver_name: str, *, paramstyle: str = "qmark") -> None:
        self.connection = connection
        self._driver_name = driver_name
        self.paramstyle = paramstyle
        self.last_cursor: Any = None

    @property
    def driver_name(self) -> str:
        return self._driver_name

    def prepare(self, sql: str) -> DBAPIStatement:
        return DBAPIStatement(self, sql)

    def last_insert_id(self) -> Any:
        if self.last_cursor is None:
            return None
        return getattr(self.last_cursor, "lastrowid", None)

    def quote(self, value: Any) -> str:
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            value = int(value)
        return "'" + str(value).replace("'", "''") + "'"

    def commit(self) -> None:
        self.connection.commit()

    def close(self) -> None:
        self.connection.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(driver={self._driver_name!r}, paramstyle={self.paramstyle!r})"


class SqliteDriver(DBAPIDriver):
    """SQLite via the standard library, in autocommit mode."""

    def __init__(self, path: str = SQLITE_MEMORY, **connect_args: Any) -> None:
        connect_args.setdefault("check_same_thread", False)
        connection = sqlite3.connect(path, isolation_level=None, **connect_args)
        super().__init__(connection, "sqlite", paramstyle=sqlite3.paramstyle)
        self.path = path

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self.connection


# ── Factory ──────────────────────────────────────────────────────────────


def _open_sqlalchemy(config: ConnectionConfig) -> DBAPIDriver:
    from sqlalchemy import create_engine
    from sqlalchemy.engine import make_url

    url = make_url(config.connection_string)
    if config.username is not None:
        url = url.set(username=config.username)
    if config.password is not None:
        url = url.set(password=config.password)

    engine = create_engine(url, connect_args=dict(config.driver_options or {}))
    raw = engine.raw_connection()
    tag = _SA_DRIVER_TAGS.get(engine.dialect.name, engine.dialect.name)
    paramstyle = getattr(engine.dialect.dbapi, "paramstyle", "qmark")
    return DBAPIDriver(raw, tag, paramstyle=paramstyle)


def open_driver(config: ConnectionConfig) -> DBAPIDriver:
    """Open a driver handle for ``config.connection_string``.

    Args:
        config: Connection options; ``username``, ``password`` and
            ``driver_options`` are applied to SQLAlchemy URLs.

    Returns:
        A handle satisfying :class:`~rowsmith.core.protocols.DriverConnection`.
    """
    dsn = config.connection_string
    if dsn.startswith(SQLITE_PREFIX) and not dsn.startswith("sqlite://"):
        path = dsn[len(SQLITE_PREFIX):] or SQLITE_MEMORY
        driver: DBAPIDriver = SqliteDriver(path, **(config.driver_options or {}))
    else:
        driver = _open_sqlalchemy(config)
    logger.debug("driver_handle_created", driver=driver.driver_name, dsn=_redact(dsn))
    return driver


def _redact(dsn: str) -> str:
    """Hide the password part of a URL for logging."""
    if "://" not in dsn or "@" not in dsn:
        return dsn
    scheme, rest = dsn.split("://", 1)
    credentials, host = rest.rsplit("@", 1)
    user = credentials.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"


__all__ = [
    "DBAPIStatement",
    "DBAPIDriver",
    "SqliteDriver",
    "open_driver",
]
