"""
Fluent query builder and row entity in one object.

``Record`` is what :func:`rowsmith.for_table` returns. Before a query runs it
is a builder: every ``where_*``, ``select*``, ``join*``, ``order_by_*`` call
returns the same instance so calls chain. The ``find_*`` methods execute the
query and return new ``Record`` instances hydrated from the fetched rows;
those track which columns changed so ``save()`` writes back only what is
dirty.

Manifesto:
    - **One fluent surface:** build, fetch, mutate and save through one type
    - **Dirty tracking:** INSERT/UPDATE touch only the columns that changed
    - **Explicit identity:** UPDATE/DELETE refuse to run without a full key
    - **Bounded operations:** any unknown attribute raises
      :class:`~rowsmith.core.errors.MethodMissingError`

Architecture:
    ::

        for_table("widget") ─▶ Record (builder)
                                  │  where / select / join / order / limit
                                  ▼
                               _run() ── cache? ──▶ registry.execute()
                                  │                      │
                                  ▼                      ▼
                        [Record(row), ...]         query log / last_statement
                                  │
                                  │  set / set_expr / del record[...]
                                  ▼
                               save() ─▶ INSERT (new) | UPDATE (dirty) | no-op

Examples:
    >>> person = for_table("person").where("name", "Fred").find_one()
    >>> person["age"] = 41
    >>> person.save()
    True
    >>> for_table("person").where_gt("age", 30).order_by_asc("name").find_many()
    [<Record person {...}>, ...]
    >>> for_table("person").count()
    12

Guardrails:
    ❌ DON'T: Reuse a builder expecting WHERE conditions to reset after a read
    ✅ DO: Start a new chain with ``for_table()`` for an unrelated query

    ❌ DON'T: Access columns as attributes (``person.name``)
    ✅ DO: Use item access (``person["name"]``) or ``get()``

Tags:
    orm, active-record, query-builder, dirty-tracking, rowsmith

Doc-Types:
    - API Reference
    - Usage Guide
"""

from __future__ import annotations

import math
import numbers
import re
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal
from typing import Any

from rowsmith.core.cache import MISS
from rowsmith.core.conditions import ConditionKind
from rowsmith.core.errors import IdentityError, MethodMissingError
from rowsmith.core.logging import get_logger
from rowsmith.core.query import QueryBuilder
from rowsmith.core.registry import ConnectionRegistry, get_registry
from rowsmith.core.result import ResultSet
from rowsmith.core.settings import DEFAULT_CONNECTION_NAME, ConnectionConfig

logger = get_logger(__name__)

WHERE = ConditionKind.WHERE
HAVING = ConditionKind.HAVING

IdColumn = str | list[str]

# Numeric text as databases print it: no "_" separators, no inf/nan
_INTEGER_TEXT = re.compile(r"\s*[+-]?\d+\s*\Z")
_NUMERIC_TEXT = re.compile(r"\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*\Z")


def coerce_aggregate(value: Any) -> Any:
    """Turn an aggregate result into ``int`` or ``float`` where it is numeric.

    Drivers hand back aggregates as ``int``, ``float``, ``Decimal`` or plain
    numeric strings. Values equal to an integer come back as ``int`` (integer
    strings are parsed exactly, never through ``float``); other numbers come
    back as ``float``. Non-numeric values pass through unchanged; ``None``
    becomes ``0``.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (str, bytes)):
        try:
            text = value.decode("ascii") if isinstance(value, bytes) else value
        except UnicodeDecodeError:
            return value
        if _INTEGER_TEXT.match(text):
            return int(text)
        if not _NUMERIC_TEXT.match(text):
            return value
        number: Any = Decimal(text.strip())
    elif isinstance(value, (numbers.Real, Decimal)):
        number = value
    else:
        return value

    finite = number.is_finite() if isinstance(number, Decimal) else math.isfinite(number)
    if not finite:
        return value
    if number == int(number):
        return int(number)
    return float(number)


class Record:
    """A query under construction, and a row once hydrated.

    Args:
        table_name: Table this record belongs to.
        data: Initial column values (not marked dirty).
        connection_name: Named connection to run against.
        registry: Registry holding that connection; the default registry
            when omitted.
    """

    def __init__(
        self,
        table_name: str,
        data: Mapping[str, Any] | None = None,
        connection_name: str = DEFAULT_CONNECTION_NAME,
        registry: ConnectionRegistry | None = None,
    ) -> None:
        self.table_name = table_name
        self.connection_name = connection_name
        self._registry = registry if registry is not None else get_registry()
        self._registry.setup_config(connection_name)

        self._data: dict[str, Any] = dict(data or {})
        self._dirty: dict[str, Any] = {}
        self._expr: set[str] = set()
        self._is_new = False
        self._instance_id_column: IdColumn | None = None
        self._query: QueryBuilder | None = None

    # =====================================================================
    # Plumbing
    # =====================================================================

    @property
    def registry(self) -> ConnectionRegistry:
        return self._registry

    @property
    def config(self) -> ConnectionConfig:
        return self._registry.setup_config(self.connection_name)

    @property
    def query(self) -> QueryBuilder:
        """Clause state for this chain, created on first use."""
        if self._query is None:
            self._query = QueryBuilder(self.table_name, self._registry.dialect(self.connection_name))
        return self._query

    def _instance_from_row(self, row: Mapping[str, Any]) -> Record:
        instance = self._registry.for_table(self.table_name, self.connection_name)
        instance.use_id_column(self._instance_id_column)
        return instance.hydrate(row)

    # =====================================================================
    # Lifecycle
    # =====================================================================

    def create(self, data: Mapping[str, Any] | None = None) -> Record:
        """Mark this record as new; any ``data`` given is set and marked dirty."""
        self._is_new = True
        if data is not None:
            return self.hydrate(data).force_all_dirty()
        return self

    def hydrate(self, data: Mapping[str, Any] | None = None) -> Record:
        """Replace the column values without marking anything dirty."""
        self._data = dict(data or {})
        return self

    def force_all_dirty(self) -> Record:
        self._dirty = dict(self._data)
        return self

    def use_id_column(self, id_column: IdColumn | None) -> Record:
        """Override the primary key column(s) for this instance only.

        A compound key is given as a list (or tuple) of column names.
        """
        if isinstance(id_column, tuple):
            id_column = list(id_column)
        self._instance_id_column = id_column
        return self

    def is_new(self) -> bool:
        return self._is_new

    def is_dirty(self, key: str) -> bool:
        return key in self._dirty

    # =====================================================================
    # Fetching
    # =====================================================================

    def find_one(self, id: Any = None) -> Record | None:
        """Fetch the first matching row, or ``None`` when nothing matches.

        With ``id`` the query is narrowed to that primary key first.
        """
        if id is not None:
            self.where_id_is(id)
        self.limit(1)
        rows = self._run()
        if not rows:
            return None
        return self._instance_from_row(rows[0])

    def find_many(self) -> list[Record] | ResultSet:
        """All matching rows; a :class:`ResultSet` if ``return_result_sets`` is on."""
        if self.config.return_result_sets:
            return self.find_result_set()
        return self._find_many_list()

    def _find_many_list(self) -> list[Record]:
        return [self._instance_from_row(row) for row in self._run()]

    def find_result_set(self) -> ResultSet:
        return ResultSet(self._find_many_list())

    def find_array(self) -> list[dict[str, Any]]:
        """All matching rows as plain dicts."""
        return [dict(row) for row in self._run()]

    def _run(self) -> list[dict[str, Any]]:
        query = self.query
        sql = query.build_select()
        values = query.values
        caching = self.config.caching

        cache_key = None
        if caching:
            cache_key = self._registry.create_cache_key(sql, values, self.table_name, self.connection_name)
            cached = self._registry.check_query_cache(cache_key, self.table_name, self.connection_name)
            if cached is not MISS:
                query.reset_after_run()
                return cached

        self._registry.execute(sql, values, self.connection_name)
        statement = self._registry.last_statement

        rows = []
        while (row := statement.fetch_row()) is not None:
            rows.append(row)

        if caching:
            self._registry.cache_query_result(cache_key, rows, self.table_name, self.connection_name)

        query.reset_after_run()
        return rows

    # =====================================================================
    # Aggregates
    # =====================================================================

    def count(self, column: str = "*") -> Any:
        return self.call_aggregate("count", column)

    def max(self, column: str) -> Any:
        return self.call_aggregate("max", column)

    def min(self, column: str) -> Any:
        return self.call_aggregate("min", column)

    def avg(self, column: str) -> Any:
        return self.call_aggregate("avg", column)

    def sum(self, column: str) -> Any:
        return self.call_aggregate("sum", column)

    def call_aggregate(self, function: str, column: str) -> Any:
        """Run ``FUNCTION(column) AS function`` and return the coerced scalar."""
        alias = function.lower()
        function = function.upper()
        query = self.query
        if column != "*":
            column = query.quote(column)

        saved = query.save_result_columns()
        query.result_columns = []
        query.using_default_result_columns = False
        query.select_expr(f"{function}({column})", alias)
        try:
            result = self.find_one()
        finally:
            query.restore_result_columns(saved)

        if result is None:
            return 0
        return coerce_aggregate(result.get(alias))

    # =====================================================================
    # Result columns / raw SQL
    # =====================================================================

    def raw_query(self, query: str, parameters: Any = None) -> Record:
        """Run ``query`` verbatim instead of the built SELECT."""
        self.query.raw_query(query, parameters)
        return self

    def table_alias(self, alias: str) -> Record:
        self.query.set_alias(alias)
        return self

    def select(self, column: str, alias: str | None = None) -> Record:
        self.query.select(column, alias)
        return self

    def select_expr(self, expr: str, alias: str | None = None) -> Record:
        self.query.select_expr(expr, alias)
        return self

    def select_many(self, *columns: Any) -> Record:
        """``select_many("name", {"n": "nick"}, ["age", "height"])``."""
        self.query.select_many(*columns)
        return self

    def select_many_expr(self, *columns: Any) -> Record:
        self.query.select_many_expr(*columns)
        return self

    def distinct(self) -> Record:
        self.query.distinct()
        return self

    # =====================================================================
    # Joins
    # =====================================================================

    def join(self, table: str, constraint: Any, table_alias: str | None = None) -> Record:
        self.query.add_join_source("", table, constraint, table_alias)
        return self

    def inner_join(self, table: str, constraint: Any, table_alias: str | None = None) -> Record:
        self.query.add_join_source("INNER", table, constraint, table_alias)
        return self

    def left_outer_join(self, table: str, constraint: Any, table_alias: str | None = None) -> Record:
        self.query.add_join_source("LEFT OUTER", table, constraint, table_alias)
        return self

    def right_outer_join(self, table: str, constraint: Any, table_alias: str | None = None) -> Record:
        self.query.add_join_source("RIGHT OUTER", table, constraint, table_alias)
        return self

    def full_outer_join(self, table: str, constraint: Any, table_alias: str | None = None) -> Record:
        self.query.add_join_source("FULL OUTER", table, constraint, table_alias)
        return self

    def raw_join(
        self,
        table: str,
        constraint: Any,
        table_alias: str | None = None,
        parameters: Sequence[Any] = (),
    ) -> Record:
        self.query.raw_join(table, constraint, table_alias, parameters)
        return self

    # =====================================================================
    # Conditions (shared WHERE / HAVING plumbing)
    # =====================================================================

    def _simple(self, kind: ConditionKind, column: Any, operator: str, value: Any) -> Record:
        self.query.add_simple_condition(kind, column, operator, value)
        return self

    def _placeholder(self, kind: ConditionKind, column: Any, operator: str, values: Any) -> Record:
        self.query.conditions.add_placeholder_condition(kind, column, operator, values, self._expr)
        return self

    def _no_value(self, kind: ConditionKind, column: str | Iterable[str], operator: str) -> Record:
        self.query.conditions.add_no_value_condition(kind, column, operator)
        return self

    def _raw(self, kind: ConditionKind, clause: str, parameters: Any) -> Record:
        self.query.conditions.add_condition(kind, clause, parameters)
        return self

    def _compound_id_values(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return {key: value.get(key) for key in self.id_column_name}

    # =====================================================================
    # WHERE
    # =====================================================================

    def where(self, column: Any, value: Any = None) -> Record:
        """``WHERE column = ?``; a mapping adds one ANDed condition per entry."""
        return self.where_equal(column, value)

    def where_equal(self, column: Any, value: Any = None) -> Record:
        return self._simple(WHERE, column, "=", value)

    def where_not_equal(self, column: Any, value: Any = None) -> Record:
        return self._simple(WHERE, column, "!=", value)

    def where_id_is(self, id: Any) -> Record:
        """Narrow to a primary key; compound keys take a ``{column: value}`` mapping."""
        id_column = self.id_column_name
        if isinstance(id_column, list):
            return self.where(self._compound_id_values(id))
        return self.where(id_column, id)

    def where_any_is(self, values: Sequence[Mapping[str, Any]], operator: Any = "=") -> Record:
        """OR together AND-groups: ``((a = ? AND b = ?) OR (a = ?))``.

        ``operator`` is one operator for every column or a column → operator
        mapping; columns missing from the mapping use ``=``.
        """
        self.query.conditions.any_is(WHERE, values, operator)
        return self

    def where_id_in(self, ids: Sequence[Any]) -> Record:
        id_column = self.id_column_name
        if isinstance(id_column, list):
            return self.where_any_is([self._compound_id_values(i) for i in ids])
        return self.where_in(id_column, ids)

    def where_like(self, column: Any, value: Any = None) -> Record:
        return self._simple(WHERE, column, "LIKE", value)

    def where_not_like(self, column: Any, value: Any = None) -> Record:
        return self._simple(WHERE, column, "NOT LIKE", value)

    def where_gt(self, column: Any, value: Any = None) -> Record:
        return self._simple(WHERE, column, ">", value)

    def where_lt(self, column: Any, value: Any = None) -> Record:
        return self._simple(WHERE, column, "<", value)

    def where_gte(self, column: Any, value: Any = None) -> Record:
        return self._simple(WHERE, column, ">=", value)

    def where_lte(self, column: Any, value: Any = None) -> Record:
        return self._simple(WHERE, column, "<=", value)

    def where_in(self, column: Any, values: Any = None) -> Record:
        return self._placeholder(WHERE, column, "IN", values)

    def where_not_in(self, column: Any, values: Any = None) -> Record:
        return self._placeholder(WHERE, column, "NOT IN", values)

    def where_null(self, column: str | Iterable[str]) -> Record:
        return self._no_value(WHERE, column, "IS NULL")

    def where_not_null(self, column: str | Iterable[str]) -> Record:
        return self._no_value(WHERE, column, "IS NOT NULL")

    def where_raw(self, clause: str, parameters: Any = ()) -> Record:
        """Add a literal WHERE fragment; ``parameters`` fill its ``?`` marks."""
        return self._raw(WHERE, clause, parameters)

    # =====================================================================
    # HAVING
    # =====================================================================

    def having(self, column: Any, value: Any = None) -> Record:
        return self.having_equal(column, value)

    def having_equal(self, column: Any, value: Any = None) -> Record:
        return self._simple(HAVING, column, "=", value)

    def having_not_equal(self, column: Any, value: Any = None) -> Record:
        return self._simple(HAVING, column, "!=", value)

    def having_id_is(self, id: Any) -> Record:
        id_column = self.id_column_name
        if isinstance(id_column, list):
            return self.having(self._compound_id_values(id))
        return self.having(id_column, id)

    def having_like(self, column: Any, value: Any = None) -> Record:
        return self._simple(HAVING, column, "LIKE", value)

    def having_not_like(self, column: Any, value: Any = None) -> Record:
        return self._simple(HAVING, column, "NOT LIKE", value)

    def having_gt(self, column: Any, value: Any = None) -> Record:
        return self._simple(HAVING, column, ">", value)

    def having_lt(self, column: Any, value: Any = None) -> Record:
        return self._simple(HAVING, column, "<", value)

    def having_gte(self, column: Any, value: Any = None) -> Record:
        return self._simple(HAVING, column, ">=", value)

    def having_lte(self, column: Any, value: Any = None) -> Record:
        return self._simple(HAVING, column, "<=", value)

    def having_in(self, column: Any, values: Any = None) -> Record:
        return self._placeholder(HAVING, column, "IN", values)

    def having_not_in(self, column: Any, values: Any = None) -> Record:
        return self._placeholder(HAVING, column, "NOT IN", values)

    def having_null(self, column: str | Iterable[str]) -> Record:
        return self._no_value(HAVING, column, "IS NULL")

    def having_not_null(self, column: str | Iterable[str]) -> Record:
        return self._no_value(HAVING, column, "IS NOT NULL")

    def having_raw(self, clause: str, parameters: Any = ()) -> Record:
        return self._raw(HAVING, clause, parameters)

    # =====================================================================
    # Ordering / grouping / paging
    # =====================================================================

    def order_by_desc(self, column: str) -> Record:
        self.query.add_order_by(column, "DESC")
        return self

    def order_by_asc(self, column: str) -> Record:
        self.query.add_order_by(column, "ASC")
        return self

    def order_by_expr(self, clause: str) -> Record:
        self.query.order_by_expr(clause)
        return self

    def group_by(self, column: str) -> Record:
        self.query.add_group_by(column)
        return self

    def group_by_expr(self, expr: str) -> Record:
        self.query.group_by_expr(expr)
        return self

    def limit(self, limit: int) -> Record:
        self.query.limit(limit)
        return self

    def offset(self, offset: int) -> Record:
        self.query.offset(offset)
        return self

    # =====================================================================
    # Column access
    # =====================================================================

    def as_dict(self, *keys: str) -> dict[str, Any]:
        """Column values, optionally limited to ``keys`` (row order kept)."""
        if not keys:
            return dict(self._data)
        return {k: v for k, v in self._data.items() if k in keys}

    def get(self, key: str | Sequence[str]) -> Any:
        """One column value, or ``{column: value}`` for a list of columns."""
        if isinstance(key, (list, tuple)):
            return {column: self._data.get(column) for column in key}
        return self._data.get(key)

    def set(self, key: str | Mapping[str, Any], value: Any = None) -> Record:
        """Set one column, or several from a mapping, and mark them dirty."""
        return self._set_property(key, value, expr=False)

    def set_expr(self, key: str | Mapping[str, Any], value: Any = None) -> Record:
        """Like :meth:`set`, but the value is raw SQL inlined into the statement."""
        return self._set_property(key, value, expr=True)

    def _set_property(self, key: str | Mapping[str, Any], value: Any, expr: bool) -> Record:
        items = key.items() if isinstance(key, Mapping) else [(key, value)]
        for field, field_value in items:
            self._data[field] = field_value
            self._dirty[field] = field_value
            if expr:
                self._expr.add(field)
            else:
                self._expr.discard(field)
        return self

    def __getitem__(self, key: str) -> Any:
        return self.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __delitem__(self, key: str) -> None:
        self._data.pop(key, None)
        self._dirty.pop(key, None)
        self._expr.discard(key)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    # =====================================================================
    # Identity
    # =====================================================================

    @property
    def id_column_name(self) -> IdColumn:
        """Instance override, then the per-table override, then ``id_column``."""
        if self._instance_id_column is not None:
            return self._instance_id_column
        config = self.config
        if self.table_name in config.id_column_overrides:
            return config.id_column_overrides[self.table_name]
        return config.id_column

    def _id_columns(self) -> list[str]:
        id_column = self.id_column_name
        return list(id_column) if isinstance(id_column, list) else [id_column]

    def id(self, strict: bool = False) -> Any:
        """Primary key value; ``{column: value}`` for a compound key.

        Raises:
            IdentityError: ``strict`` is set and the key (or part of it) is null.
        """
        id_column = self.id_column_name
        value = self.get(id_column)
        if strict:
            if isinstance(id_column, list):
                null_columns = [c for c in id_column if value[c] is None]
                if null_columns:
                    raise IdentityError.null_parts(id_column, null_columns).with_context(
                        connection=self.connection_name, table=self.table_name
                    )
            elif value is None:
                raise IdentityError.missing(id_column).with_context(
                    connection=self.connection_name, table=self.table_name
                )
        return value

    def count_null_id_columns(self) -> int:
        return sum(1 for column in self._id_columns() if self._data.get(column) is None)

    # =====================================================================
    # Persistence
    # =====================================================================

    def save(self) -> bool:
        """INSERT a new record or UPDATE a persisted one's dirty columns.

        Generated keys are back-filled after INSERT: from the RETURNING row
        where the dialect supports it, otherwise ``last_insert_id()`` goes into
        the first key column.
        """
        values = [v for k, v in self._dirty.items() if k not in self._expr]
        id_columns = self._id_columns()
        query = self.query

        if not self._is_new:
            if not values and not self._expr:
                return True
            id_value = self.id(strict=True)
            sql = query.build_update(self._dirty, self._expr, id_columns)
            if isinstance(id_value, dict):
                values.extend(id_value.values())
            else:
                values.append(id_value)
        else:
            sql = query.build_insert(self._dirty, self._expr, returning=id_columns)

        success = self._registry.execute(sql, values, self.connection_name)
        if self.config.caching_auto_clear:
            self._registry.clear_cache(self.table_name, self.connection_name)

        if self._is_new:
            self._is_new = False
            if self.count_null_id_columns():
                self._backfill_id(id_columns)
            logger.debug(
                "record_inserted",
                table=self.table_name,
                connection=self.connection_name,
                id=self.id(),
            )
        else:
            logger.debug(
                "record_updated",
                table=self.table_name,
                connection=self.connection_name,
                columns=list(self._dirty),
            )

        self._dirty = {}
        self._expr = set()
        return success

    def _backfill_id(self, id_columns: list[str]) -> None:
        if self.query.dialect.supports_returning:
            row = self._registry.last_statement.fetch_row()
            if row:
                self._data.update(row)
            return
        # Compound keys: only the first column is back-filled
        self._data[id_columns[0]] = self._registry.get_db(self.connection_name).last_insert_id()

    def delete(self) -> bool:
        """DELETE this row by primary key."""
        id_value = self.id(strict=True)
        sql = self.query.build_delete(self._id_columns())
        parameters = list(id_value.values()) if isinstance(id_value, dict) else [id_value]

        success = self._registry.execute(sql, parameters, self.connection_name)
        if self.config.caching_auto_clear:
            self._registry.clear_cache(self.table_name, self.connection_name)
        logger.debug("record_deleted", table=self.table_name, connection=self.connection_name, id=id_value)
        return success

    def delete_many(self) -> bool:
        """DELETE every row matching the accumulated WHERE conditions."""
        query = self.query
        sql = query.build_delete_many()
        success = self._registry.execute(sql, query.values, self.connection_name)
        if self.config.caching_auto_clear:
            self._registry.clear_cache(self.table_name, self.connection_name)
        return success

    # =====================================================================
    # Dunder
    # =====================================================================

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        raise MethodMissingError(name, type(self).__name__)

    def __getstate__(self) -> dict[str, Any]:
        state = self.__dict__.copy()
        state.pop("_registry", None)
        return state

    def __setstate__(self, state: dict[str, Any]) -> None:
        self.__dict__.update(state)
        self._registry = get_registry()

    def __repr__(self) -> str:
        return f"<Record {self.table_name} {self._data!r}>"


__all__ = [
    "Record",
    "coerce_aggregate",
]
