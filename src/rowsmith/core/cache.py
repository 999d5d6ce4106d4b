"""
Query-result caching keyed by statement text and bound values.

A read that hits the cache never reaches the driver. The cache stores the raw
row dicts a statement produced; hydration into records happens afterwards, so
a hit and a miss yield identical objects.

Manifesto:
    Caching is opt-in per connection and deliberately blunt: reads populate,
    writes never do, and invalidation is a whole-cache clear. Callers that
    need finer control plug in their own backend.

    - **Protocol-based:** ``QueryCache`` defines the contract
    - **Partitioned:** ``InMemoryQueryCache`` keeps one bucket per connection
    - **Hookable:** any subset of four callbacks replaces the default steps

Architecture:
    ::

        QueryCache (Protocol)
        ├── InMemoryQueryCache   default, per-connection buckets
        └── CallbackQueryCache   wraps user callbacks, falls back to default

        API: fingerprint(sql, values, table, connection) → key
             lookup(key, table, connection)              → rows | MISS
             store(key, rows, table, connection)
             clear(table, connection)

Examples:
    >>> cache = InMemoryQueryCache()
    >>> key = cache.fingerprint("SELECT * FROM `w` WHERE `id` = ?", [5], "w", "default")
    >>> cache.lookup(key, "w", "default") is MISS
    True
    >>> cache.store(key, [{"id": 5}], "w", "default")
    >>> cache.lookup(key, "w", "default")
    [{'id': 5}]

Guardrails:
    ❌ DON'T: Expect writes to invalidate selectively
    ✅ DO: Enable ``caching_auto_clear`` or call ``clear_cache()`` after writes

Tags:
    cache, caching, query-cache, in-memory, rowsmith, protocol

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


class _Miss:
    """Sentinel type for a cache miss (a cached empty list is a hit)."""

    _instance: _Miss | None = None

    def __new__(cls) -> _Miss:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"

    def __reduce__(self) -> str:
        return "MISS"


MISS = _Miss()


def _stringify(value: Any) -> str:
    if value is None or value is False:
        return ""
    if value is True:
        return "1"
    return str(value)


def default_fingerprint(sql: str, values: Any) -> str:
    """``sha1(sql + ":" + ",".join(values))``.

    ``None`` and ``False`` stringify to ``""``, ``True`` to ``"1"``. Named
    parameters (a mapping) contribute their values in insertion order.
    """
    if isinstance(values, dict):
        values = list(values.values())
    elif values is None:
        values = []
    payload = sql + ":" + ",".join(_stringify(v) for v in values)
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()


@runtime_checkable
class QueryCache(Protocol):
    """Contract for a query-result cache backend."""

    def fingerprint(self, sql: str, values: Any, table: str | None, connection: str) -> str:
        """Compute the cache key for a statement."""
        ...

    def lookup(self, key: str, table: str | None, connection: str) -> Any:
        """Return the cached rows, or :data:`MISS`."""
        ...

    def store(self, key: str, rows: list[dict[str, Any]], table: str | None, connection: str) -> None:
        ...

    def clear(self, table: str | None, connection: str) -> None:
        ...


# ------------------------------------------------------------------ #
# In-Memory Cache
# ------------------------------------------------------------------ #


class InMemoryQueryCache:
    """Process-local cache with one bucket per connection name.

    ``clear()`` empties every bucket: a write on one connection may be
    visible through another that points at the same database.
    """

    def __init__(self) -> None:
        self._buckets: dict[str, dict[str, list[dict[str, Any]]]] = {}

    def fingerprint(self, sql: str, values: Any, table: str | None, connection: str) -> str:
        return default_fingerprint(sql, values)

    def lookup(self, key: str, table: str | None, connection: str) -> Any:
        return self._buckets.get(connection, {}).get(key, MISS)

    def store(self, key: str, rows: list[dict[str, Any]], table: str | None, connection: str) -> None:
        self._buckets.setdefault(connection, {})[key] = rows

    def clear(self, table: str | None = None, connection: str | None = None) -> None:
        self._buckets.clear()

    def size(self, connection: str | None = None) -> int:
        """Number of cached statements, for one connection or in total."""
        if connection is not None:
            return len(self._buckets.get(connection, {}))
        return sum(len(bucket) for bucket in self._buckets.values())

    def __repr__(self) -> str:
        return f"InMemoryQueryCache(connections={len(self._buckets)}, entries={self.size()})"


# ------------------------------------------------------------------ #
# Callback Cache
# ------------------------------------------------------------------ #


class CallbackQueryCache:
    """Routes each cache step to a user callback when one is configured.

    Callback signatures:

    - ``create_cache_key(sql, values, table, connection) -> str``
    - ``check_query_cache(key, table, connection) -> rows | None | MISS``
    - ``cache_query_result(key, rows, table, connection) -> None``
    - ``clear_cache(table, connection) -> None``

    A ``check_query_cache`` result of ``None`` or ``False`` counts as a
    miss. Steps without a callback go to ``fallback``. ``clear`` only runs
    the custom hook; the registry clears the default cache itself.
    """

    def __init__(
        self,
        fallback: QueryCache,
        *,
        create_cache_key: Callable[..., str] | None = None,
        check_query_cache: Callable[..., Any] | None = None,
        cache_query_result: Callable[..., Any] | None = None,
        clear_cache: Callable[..., Any] | None = None,
    ) -> None:
        self.fallback = fallback
        self.create_cache_key = create_cache_key
        self.check_query_cache = check_query_cache
        self.cache_query_result = cache_query_result
        self.clear_cache = clear_cache

    def fingerprint(self, sql: str, values: Any, table: str | None, connection: str) -> str:
        if self.create_cache_key is not None:
            return self.create_cache_key(sql, values, table, connection)
        return self.fallback.fingerprint(sql, values, table, connection)

    def lookup(self, key: str, table: str | None, connection: str) -> Any:
        if self.check_query_cache is None:
            return self.fallback.lookup(key, table, connection)
        rows = self.check_query_cache(key, table, connection)
        return MISS if rows is None or rows is False else rows

    def store(self, key: str, rows: list[dict[str, Any]], table: str | None, connection: str) -> None:
        if self.cache_query_result is not None:
            self.cache_query_result(key, rows, table, connection)
        else:
            self.fallback.store(key, rows, table, connection)

    def clear(self, table: str | None, connection: str) -> None:
        if self.clear_cache is not None:
            self.clear_cache(table, connection)

    def __repr__(self) -> str:
        hooks = [
            name
            for name in ("create_cache_key", "check_query_cache", "cache_query_result", "clear_cache")
            if getattr(self, name) is not None
        ]
        return f"CallbackQueryCache(hooks={hooks})"


__all__ = [
    "MISS",
    "QueryCache",
    "InMemoryQueryCache",
    "CallbackQueryCache",
    "default_fingerprint",
]
