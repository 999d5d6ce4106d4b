"""
Canonical protocol definitions for rowsmith.

The query builder never talks to a database module directly. It talks to a
*driver handle* shaped like the protocols below, which keeps SQL generation
testable with a recording fake and lets any PEP 249 module plug in through
:mod:`rowsmith.core.drivers`.

Architecture:
    ::

        DriverConnection
        ├── prepare(sql)        → DriverStatement
        ├── driver_name         → dialect tag ("sqlite", "pgsql", "sqlsrv", ...)
        ├── last_insert_id()    → generated key of the last INSERT
        └── quote(value)        → literal text, used for the query log only

        DriverStatement
        ├── bind(key, value, param_type)   1-based position or name
        ├── execute()           → bool
        └── fetch_row()         → dict | None (None once exhausted)

Guardrails:
    ❌ DON'T: Use ``quote()`` to build executed SQL
    ✅ DO: Bind every value; ``quote()`` only renders the human-readable log

Tags:
    protocol, driver, database, rowsmith, contracts

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol, runtime_checkable


class ParamType(str, Enum):
    """Binding tag for a parameter value.

    Drivers that distinguish types on bind (``NULL``, booleans, integers)
    receive the tag; everything else is bound as a string-like value.
    """

    NULL = "null"
    BOOL = "bool"
    INT = "int"
    STR = "str"

    @classmethod
    def of(cls, value: Any) -> ParamType:
        if value is None:
            return cls.NULL
        # bool before int: bool is an int subclass
        if isinstance(value, bool):
            return cls.BOOL
        if isinstance(value, int):
            return cls.INT
        return cls.STR


@runtime_checkable
class DriverStatement(Protocol):
    """A prepared statement produced by :meth:`DriverConnection.prepare`."""

    def bind(self, key: int | str, value: Any, param_type: ParamType) -> None:
        """Bind ``value`` to a 1-based position or a named placeholder."""
        ...

    def execute(self) -> bool:
        """Execute with the bound values. Driver errors propagate unchanged."""
        ...

    def fetch_row(self) -> dict[str, Any] | None:
        """Return the next row as a column → value mapping, or ``None``."""
        ...


@runtime_checkable
class DriverConnection(Protocol):
    """An open database handle, one per connection name."""

    @property
    def driver_name(self) -> str:
        """Dialect tag used for quote-character and limit-style detection."""
        ...

    def prepare(self, sql: str) -> DriverStatement:
        ...

    def last_insert_id(self) -> Any:
        ...

    def quote(self, value: Any) -> str:
        """Render ``value`` as an SQL literal (log rendering only)."""
        ...


__all__ = [
    "ParamType",
    "DriverStatement",
    "DriverConnection",
]
