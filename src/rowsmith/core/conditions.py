"""
WHERE / HAVING condition accumulation.

Conditions are stored as ``Condition(fragment, values)`` pairs in the order
they were added and rendered by joining the fragments with ``AND``. Nothing
is ever reordered, so the bound values line up with the ``?`` placeholders
in the rendered text.

Manifesto:
    - **Append-only:** insertion order is AND order
    - **Quoted once:** column names are quoted when the condition is added
    - **Bound, not inlined:** values become ``?`` placeholders; only fields
      explicitly flagged as raw expressions are inlined

Architecture:
    ::

        ConditionBuilder
        ├── add_condition(kind, fragment, values)       raw fragment
        ├── add_simple_condition(kind, col|map, op, v)  `col` op ?
        ├── add_placeholder_condition(kind, ..., vals)  `col` IN (?, ?, ?)
        ├── add_no_value_condition(kind, col|list, op)  `col` IS NULL
        ├── any_is(kind, [maps], op|map)                ((a = ? AND b = ?) OR (...))
        └── render(kind)  → ("WHERE f1 AND f2", [values...])

Examples:
    >>> from rowsmith.core.quoting import IdentifierQuoter
    >>> b = ConditionBuilder(IdentifierQuoter("`"))
    >>> _ = b.add_simple_condition("where", "name", "=", "Fred")
    >>> _ = b.add_no_value_condition("where", "deleted_at", "IS NULL")
    >>> b.render("where")
    ('WHERE `name` = ? AND `deleted_at` IS NULL', ['Fred'])

Tags:
    sql, where, having, conditions, rowsmith

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from rowsmith.core.quoting import IdentifierQuoter


class ConditionKind(str, Enum):
    """Which condition list a fragment belongs to."""

    WHERE = "where"
    HAVING = "having"

    @property
    def keyword(self) -> str:
        return self.value.upper()


@dataclass
class Condition:
    """One SQL fragment and the values bound to its placeholders."""

    fragment: str
    values: list[Any] = field(default_factory=list)


def create_placeholders(values: Any, expr_fields: Collection[str] = ()) -> str:
    """Return ``"?, ?, ?"`` for ``values``.

    When ``values`` is a mapping, entries whose key is an expression field
    are inlined as raw SQL instead of producing a placeholder.
    """
    if isinstance(values, Mapping):
        parts = [str(v) if k in expr_fields else "?" for k, v in values.items()]
    else:
        parts = ["?" for _ in values]
    return ", ".join(parts)


def bound_values(values: Any, expr_fields: Collection[str] = ()) -> list[Any]:
    """Values that need binding, i.e. everything not inlined as an expression."""
    if isinstance(values, Mapping):
        return [v for k, v in values.items() if k not in expr_fields]
    return list(values)


class ConditionBuilder:
    """Accumulates WHERE and HAVING conditions for one statement."""

    def __init__(self, quoter: IdentifierQuoter) -> None:
        self.quoter = quoter
        self._conditions: dict[ConditionKind, list[Condition]] = {
            ConditionKind.WHERE: [],
            ConditionKind.HAVING: [],
        }

    def conditions(self, kind: ConditionKind | str) -> list[Condition]:
        return self._conditions[ConditionKind(kind)]

    def add_condition(
        self,
        kind: ConditionKind | str,
        fragment: str,
        values: Any = (),
    ) -> ConditionBuilder:
        if isinstance(values, (list, tuple)):
            values = list(values)
        else:
            values = [values]
        self.conditions(kind).append(Condition(fragment, values))
        return self

    def add_simple_condition(
        self,
        kind: ConditionKind | str,
        column: str | Mapping[str, Any],
        operator: str,
        value: Any = None,
        *,
        qualifier: str | None = None,
    ) -> ConditionBuilder:
        """Add ``<col> <operator> ?`` for one column or for each mapping entry.

        ``qualifier`` (the table name or alias) is prefixed to columns that
        are not already qualified; callers pass it when joins are present.
        """
        pairs = column.items() if isinstance(column, Mapping) else [(column, value)]
        for key, val in pairs:
            if qualifier is not None and "." not in key:
                key = f"{qualifier}.{key}"
            quoted = self.quoter.quote(key)
            self.add_condition(kind, f"{quoted} {operator} ?", [val])
        return self

    def add_placeholder_condition(
        self,
        kind: ConditionKind | str,
        column: str | Mapping[str, Any],
        operator: str,
        values: Any = None,
        expr_fields: Collection[str] = (),
    ) -> ConditionBuilder:
        """Add ``<col> <operator> (?, ?, ...)``, e.g. for IN / NOT IN."""
        data = column if isinstance(column, Mapping) else {column: values}
        for key, vals in data.items():
            quoted = self.quoter.quote(key)
            placeholders = create_placeholders(vals, expr_fields)
            self.add_condition(
                kind,
                f"{quoted} {operator} ({placeholders})",
                bound_values(vals, expr_fields),
            )
        return self

    def add_no_value_condition(
        self,
        kind: ConditionKind | str,
        column: str | Iterable[str],
        operator: str,
    ) -> ConditionBuilder:
        """Add ``<col> <operator>`` with nothing bound (IS NULL, IS NOT NULL)."""
        columns = [column] if isinstance(column, str) else list(column)
        for name in columns:
            self.add_condition(kind, f"{self.quoter.quote(name)} {operator}")
        return self

    def any_is(
        self,
        kind: ConditionKind | str,
        values: Sequence[Mapping[str, Any]],
        operator: str | Mapping[str, str] = "=",
    ) -> ConditionBuilder:
        """OR together AND-groups, one group per mapping in ``values``.

        ``operator`` applies to every column, or maps column → operator; a
        column missing from that mapping uses ``=``.
        """
        query = ["(("]
        data: list[Any] = []
        for i, item in enumerate(values):
            if i:
                query.append(") OR (")
            for j, (key, value) in enumerate(item.items()):
                if isinstance(operator, str):
                    op = operator
                else:
                    op = operator.get(key, "=")
                if j:
                    query.append("AND")
                query.append(self.quoter.quote(key))
                query.append(f"{op} ?")
                data.append(value)
        query.append("))")
        return self.add_condition(kind, " ".join(query), data)

    def render(self, kind: ConditionKind | str) -> tuple[str, list[Any]]:
        """Render ``WHERE``/``HAVING`` plus the values in placeholder order."""
        kind = ConditionKind(kind)
        conditions = self._conditions[kind]
        if not conditions:
            return "", []
        values: list[Any] = []
        for condition in conditions:
            values.extend(condition.values)
        fragments = " AND ".join(c.fragment for c in conditions)
        return f"{kind.keyword} {fragments}", values

    def clear(self, kind: ConditionKind | str | None = None) -> None:
        kinds = list(ConditionKind) if kind is None else [ConditionKind(kind)]
        for k in kinds:
            self._conditions[k] = []

    def __bool__(self) -> bool:
        return any(self._conditions.values())

    def __repr__(self) -> str:
        counts = {k.value: len(v) for k, v in self._conditions.items()}
        return f"ConditionBuilder({counts})"


__all__ = [
    "ConditionKind",
    "Condition",
    "ConditionBuilder",
    "create_placeholders",
    "bound_values",
]
