"""Recording driver double for SQL-shape tests.

``MockDriver`` satisfies the driver contract without a database: it records
every prepared statement with its bindings, answers every fetch with a copy
of ``rows``, and reports a fixed ``insert_id``. Literal quoting mimics what
the query log expects from a real driver (``5`` renders as ``'5'``).
"""

from __future__ import annotations

from typing import Any

from rowsmith.core.protocols import ParamType


class MockStatement:
    def __init__(self, driver: MockDriver, sql: str) -> None:
        self.driver = driver
        self.sql = sql
        self.bindings: dict[int | str, tuple[Any, ParamType]] = {}
        self.executed = False
        self._pending: list[dict[str, Any]] = []

    def bind(self, key: int | str, value: Any, param_type: ParamType) -> None:
        self.bindings[key] = (value, param_type)

    def execute(self) -> bool:
        self.executed = True
        self.driver.executed.append(self)
        self._pending = [dict(row) for row in self.driver.rows]
        return True

    def fetch_row(self) -> dict[str, Any] | None:
        if not self._pending:
            return None
        return self._pending.pop(0)

    def __repr__(self) -> str:
        return f"MockStatement({self.sql!r})"


class MockDriver:
    def __init__(
        self,
        driver_name: str = "sqlite",
        rows: list[dict[str, Any]] | None = None,
        insert_id: Any = 0,
    ) -> None:
        self._driver_name = driver_name
        self.rows = rows or []
        self.insert_id = insert_id
        self.prepared: list[MockStatement] = []
        self.executed: list[MockStatement] = []

    @property
    def driver_name(self) -> str:
        return self._driver_name

    def prepare(self, sql: str) -> MockStatement:
        statement = MockStatement(self, sql)
        self.prepared.append(statement)
        return statement

    def last_insert_id(self) -> Any:
        return self.insert_id

    def quote(self, value: Any) -> str:
        return "'" + str(value).replace("'", "''") + "'"

    @property
    def executed_sql(self) -> list[str]:
        return [statement.sql for statement in self.executed]
