"""
SQL statement assembly.

``QueryBuilder`` owns the clause state of one statement under construction
(result columns, joins, conditions, grouping, ordering, limit/offset) and
renders SELECT, INSERT, UPDATE and DELETE text from it. It never executes
anything; :class:`~rowsmith.core.orm.Record` hands the rendered SQL and the
value list to the connection registry.

Manifesto:
    - **Fixed clause order:** SELECT, JOIN, WHERE, GROUP BY, HAVING,
      ORDER BY, LIMIT, OFFSET; empty pieces are dropped
    - **Dialect facts, not branches:** quote character, TOP vs LIMIT,
      ROWS/TO keywords and RETURNING come from :class:`Dialect`
    - **Escape hatch:** ``raw_query()`` bypasses assembly entirely

Architecture:
    ::

        QueryBuilder(table, dialect)
        ├── IdentifierQuoter(dialect.identifier_quote_character)
        ├── ConditionBuilder   WHERE / HAVING fragments
        ├── result_columns     ["*"] until the first select()
        ├── join_sources       [(sql, values), ...]
        ├── group_by / order_by / limit / offset / distinct / alias
        │
        ├── build_select()     → sql   (sets .values)
        ├── build_insert()     → sql
        ├── build_update()     → sql
        ├── build_delete()     → sql
        └── build_delete_many()→ sql   (sets .values)

Examples:
    >>> from rowsmith.core.dialect import detect_dialect
    >>> qb = QueryBuilder("widget", detect_dialect("sqlite"))
    >>> _ = qb.where("name", "Fred").limit(1)
    >>> qb.build_select(), qb.values
    ('SELECT * FROM `widget` WHERE `name` = ? LIMIT 1', ['Fred'])
    >>> qb = QueryBuilder("widget", detect_dialect("sqlsrv"))
    >>> qb.limit(5).build_select()
    'SELECT TOP 5 * FROM "widget"'

Tags:
    sql, query-builder, select, insert, update, delete, rowsmith

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping, Sequence
from typing import Any

from rowsmith.core.conditions import ConditionBuilder, ConditionKind, create_placeholders
from rowsmith.core.dialect import Dialect
from rowsmith.core.quoting import IdentifierQuoter

WHERE = ConditionKind.WHERE
HAVING = ConditionKind.HAVING

DEFAULT_RESULT_COLUMNS = ("*",)

JoinConstraint = str | Sequence[str]


def join_if_not_empty(glue: str, pieces: Iterable[str | None]) -> str:
    """Join the pieces that are non-empty after trimming."""
    filtered = []
    for piece in pieces:
        if piece is None:
            continue
        piece = piece.strip()
        if piece:
            filtered.append(piece)
    return glue.join(filtered)


def normalise_select_many(columns: Iterable[Any]) -> list[tuple[str | None, str]]:
    """Flatten ``select_many`` arguments into ``(alias, column)`` pairs.

    Accepts plain names, lists of names and ``{alias: column}`` mappings,
    in any mix: ``select_many({"n": "name"}, "age", ["a", "b"])``.
    """
    result: list[tuple[str | None, str]] = []
    for column in columns:
        if isinstance(column, Mapping):
            result.extend((alias, col) for alias, col in column.items())
        elif isinstance(column, (list, tuple)):
            result.extend((None, col) for col in column)
        else:
            result.append((None, column))
    return result


class QueryBuilder:
    """Clause state and SQL rendering for one table on one dialect."""

    def __init__(self, table_name: str, dialect: Dialect) -> None:
        self.table_name = table_name
        self.dialect = dialect
        self.quoter = IdentifierQuoter(dialect.identifier_quote_character)
        self.conditions = ConditionBuilder(self.quoter)

        self.table_alias: str | None = None
        self.result_columns: list[str] = list(DEFAULT_RESULT_COLUMNS)
        self.using_default_result_columns = True
        self.join_sources: list[tuple[str, list[Any]]] = []
        self.is_distinct = False
        self.order_by: list[str] = []
        self.group_by: list[str] = []
        self.limit_value: int | None = None
        self.offset_value: int | None = None

        self.is_raw_query = False
        self.raw_sql = ""
        self.raw_parameters: Any = []

        # Values bound to the most recently built statement
        self.values: Any = []

    def quote(self, identifier: str | Sequence[str]) -> str:
        return self.quoter.quote(identifier)

    # -- Raw mode ----------------------------------------------------------

    def raw_query(self, sql: str, parameters: Any = None) -> QueryBuilder:
        """Use ``sql`` verbatim; every other clause is ignored from now on."""
        self.is_raw_query = True
        self.raw_sql = sql
        self.raw_parameters = parameters if parameters is not None else []
        return self

    # -- Result columns ----------------------------------------------------

    def add_result_column(self, expr: str, alias: str | None = None) -> QueryBuilder:
        if alias is not None:
            expr = f"{expr} AS {self.quote(alias)}"
        if self.using_default_result_columns:
            self.result_columns = [expr]
            self.using_default_result_columns = False
        else:
            self.result_columns.append(expr)
        return self

    def select(self, column: str, alias: str | None = None) -> QueryBuilder:
        return self.add_result_column(self.quote(column), alias)

    def select_expr(self, expr: str, alias: str | None = None) -> QueryBuilder:
        return self.add_result_column(expr, alias)

    def select_many(self, *columns: Any) -> QueryBuilder:
        for alias, column in normalise_select_many(columns):
            self.select(column, alias)
        return self

    def select_many_expr(self, *columns: Any) -> QueryBuilder:
        for alias, column in normalise_select_many(columns):
            self.select_expr(column, alias)
        return self

    def distinct(self) -> QueryBuilder:
        self.is_distinct = True
        return self

    def set_alias(self, alias: str) -> QueryBuilder:
        self.table_alias = alias
        return self

    def save_result_columns(self) -> tuple[list[str], bool]:
        return list(self.result_columns), self.using_default_result_columns

    def restore_result_columns(self, saved: tuple[list[str], bool]) -> None:
        self.result_columns, self.using_default_result_columns = list(saved[0]), saved[1]

    def reset_after_run(self) -> None:
        """Clear per-execution state so the builder can be reused."""
        self.values = []
        self.result_columns = list(DEFAULT_RESULT_COLUMNS)
        self.using_default_result_columns = True

    # -- Joins -------------------------------------------------------------

    def _build_constraint(self, constraint: JoinConstraint) -> str:
        if isinstance(constraint, str):
            return constraint
        first_column, operator, second_column = constraint
        return f"{self.quote(first_column)} {operator} {self.quote(second_column)}"

    def add_join_source(
        self,
        join_operator: str,
        table: str,
        constraint: JoinConstraint,
        table_alias: str | None = None,
    ) -> QueryBuilder:
        """Add ``<OPERATOR> JOIN <table>[ alias] ON <constraint>``.

        ``constraint`` is either compiled in as-is (a string) or a
        ``(first_column, operator, second_column)`` triple whose columns are
        quoted, e.g. ``("user.id", "=", "profile.user_id")``.
        """
        join_operator = f"{join_operator} JOIN".strip()
        table = self.quote(table)
        if table_alias is not None:
            table += f" {self.quote(table_alias)}"
        sql = f"{join_operator} {table} ON {self._build_constraint(constraint)}"
        self.join_sources.append((sql, []))
        return self

    def raw_join(
        self,
        table: str,
        constraint: JoinConstraint,
        table_alias: str | None = None,
        parameters: Sequence[Any] = (),
    ) -> QueryBuilder:
        """Add ``<table>[ alias] ON <constraint>`` with externally bound values.

        ``table`` is used as given (it may be a subquery or carry its own JOIN
        keyword); ``parameters`` are bound ahead of the WHERE values.
        """
        if table_alias is not None:
            table += f" {self.quote(table_alias)}"
        sql = f"{table} ON {self._build_constraint(constraint)}"
        self.join_sources.append((sql, list(parameters)))
        return self

    # -- Conditions --------------------------------------------------------

    def _qualifier(self) -> str | None:
        """Table (or alias) used to disambiguate columns once joins exist."""
        if not self.join_sources:
            return None
        return self.table_alias if self.table_alias is not None else self.table_name

    def add_simple_condition(
        self, kind: ConditionKind, column: Any, operator: str, value: Any = None
    ) -> QueryBuilder:
        self.conditions.add_simple_condition(
            kind, column, operator, value, qualifier=self._qualifier()
        )
        return self

    def where(self, column: Any, value: Any = None) -> QueryBuilder:
        return self.add_simple_condition(WHERE, column, "=", value)

    # -- Grouping / ordering / paging --------------------------------------

    def add_order_by(self, column: str, ordering: str) -> QueryBuilder:
        self.order_by.append(f"{self.quote(column)} {ordering}")
        return self

    def order_by_expr(self, clause: str) -> QueryBuilder:
        self.order_by.append(clause)
        return self

    def add_group_by(self, column: str) -> QueryBuilder:
        self.group_by.append(self.quote(column))
        return self

    def group_by_expr(self, expr: str) -> QueryBuilder:
        self.group_by.append(expr)
        return self

    def limit(self, limit: int | None) -> QueryBuilder:
        self.limit_value = limit
        return self

    def offset(self, offset: int | None) -> QueryBuilder:
        self.offset_value = offset
        return self

    # -- SELECT ------------------------------------------------------------

    def build_select(self) -> str:
        """Render the SELECT statement and set :attr:`values` to match it."""
        if self.is_raw_query:
            self.values = self.raw_parameters
            return self.raw_sql

        where_sql, where_values = self.conditions.render(WHERE)
        having_sql, having_values = self.conditions.render(HAVING)

        values: list[Any] = []
        for _, join_values in self.join_sources:
            values.extend(join_values)
        values.extend(where_values)
        values.extend(having_values)
        self.values = values

        return join_if_not_empty(" ", [
            self._build_select_start(),
            self._build_join(),
            where_sql,
            self._build_group_by(),
            having_sql,
            self._build_order_by(),
            self._build_limit(),
            self._build_offset(),
        ])

    def _build_select_start(self) -> str:
        fragment = "SELECT "
        result_columns = ", ".join(self.result_columns)

        if self.limit_value is not None and self.dialect.uses_top:
            fragment += f"TOP {self.limit_value} "

        if self.is_distinct:
            result_columns = "DISTINCT " + result_columns

        fragment += f"{result_columns} FROM {self.quote(self.table_name)}"

        if self.table_alias is not None:
            fragment += " " + self.quote(self.table_alias)
        return fragment

    def _build_join(self) -> str:
        return " ".join(sql for sql, _ in self.join_sources)

    def _build_group_by(self) -> str:
        if not self.group_by:
            return ""
        return "GROUP BY " + ", ".join(self.group_by)

    def _build_order_by(self) -> str:
        if not self.order_by:
            return ""
        return "ORDER BY " + ", ".join(self.order_by)

    def _build_limit(self) -> str:
        if self.limit_value is None or self.dialect.uses_top:
            return ""
        return f"{self.dialect.limit_keyword} {self.limit_value}"

    def _build_offset(self) -> str:
        if self.offset_value is None:
            return ""
        return f"{self.dialect.offset_keyword} {self.offset_value}"

    # -- Writes ------------------------------------------------------------

    def build_insert(
        self,
        fields: Mapping[str, Any],
        expr_fields: Collection[str] = (),
        returning: Sequence[str] | None = None,
    ) -> str:
        """``INSERT INTO t (a, b) VALUES (?, NOW())[ RETURNING k]``.

        Columns follow ``fields`` order; expression fields are inlined.
        ``returning`` is only rendered when the dialect supports it.
        """
        query = ["INSERT INTO", self.quote(self.table_name)]
        query.append("(" + ", ".join(self.quote(key) for key in fields) + ")")
        query.append("VALUES")
        query.append(f"({create_placeholders(fields, expr_fields)})")
        if returning and self.dialect.supports_returning:
            query.append("RETURNING " + self.quote(list(returning)))
        return " ".join(query)

    def build_update(
        self,
        fields: Mapping[str, Any],
        expr_fields: Collection[str],
        id_columns: Sequence[str],
    ) -> str:
        """``UPDATE t SET a = ?, b = NOW() WHERE k1 = ? AND k2 = ?``."""
        field_list = []
        for key, value in fields.items():
            rendered = str(value) if key in expr_fields else "?"
            field_list.append(f"{self.quote(key)} = {rendered}")
        query = [f"UPDATE {self.quote(self.table_name)} SET", ", ".join(field_list)]
        query.extend(self._id_column_conditions(id_columns))
        return " ".join(query)

    def build_delete(self, id_columns: Sequence[str]) -> str:
        """``DELETE FROM t WHERE k1 = ? AND k2 = ?``."""
        query = ["DELETE FROM", self.quote(self.table_name)]
        query.extend(self._id_column_conditions(id_columns))
        return " ".join(query)

    def build_delete_many(self) -> str:
        """``DELETE FROM t WHERE ...`` from the accumulated WHERE conditions."""
        where_sql, where_values = self.conditions.render(WHERE)
        self.values = where_values
        return join_if_not_empty(" ", ["DELETE FROM", self.quote(self.table_name), where_sql])

    def _id_column_conditions(self, id_columns: Sequence[str]) -> list[str]:
        query = ["WHERE"]
        for i, key in enumerate(id_columns):
            if i:
                query.append("AND")
            query.append(self.quote(key))
            query.append("= ?")
        return query

    def __repr__(self) -> str:
        return f"QueryBuilder(table={self.table_name!r}, dialect={self.dialect.name!r})"


__all__ = [
    "QueryBuilder",
    "join_if_not_empty",
    "normalise_select_many",
    "DEFAULT_RESULT_COLUMNS",
]
