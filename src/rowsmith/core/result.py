"""Ordered collections of records with broadcast calls.

``find_result_set()`` (and ``find_many()`` when ``return_result_sets`` is on)
returns a :class:`ResultSet`. It behaves like a list of
:class:`~rowsmith.core.orm.Record` and can also apply one record operation to
every member::

    people = for_table("person").where_lt("age", 18).find_result_set()
    people.set("minor", True).save()
    len(people), people[0]["name"]

Only the operations listed in :data:`BROADCAST_METHODS` are broadcast; any
other attribute raises :class:`~rowsmith.core.errors.MethodMissingError`.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

from rowsmith.core.errors import MethodMissingError

if TYPE_CHECKING:
    from rowsmith.core.orm import Record

BROADCAST_METHODS = frozenset({
    "set",
    "set_expr",
    "save",
    "delete",
    "use_id_column",
    "force_all_dirty",
    "hydrate",
    "create",
})


def _to_plain(item: Any) -> Any:
    if hasattr(item, "as_dict"):
        return item.as_dict()
    if hasattr(item, "__dict__"):
        return vars(item)
    return item


class ResultSet:
    """A list-like container of records."""

    def __init__(self, results: Iterable[Record] | None = None) -> None:
        self._results: list[Record] = list(results or [])

    @property
    def results(self) -> list[Record]:
        return self._results

    def set_results(self, results: Iterable[Record]) -> ResultSet:
        self._results = list(results)
        return self

    def as_list(self) -> list[Record]:
        return list(self._results)

    def as_json(self, **kwargs: Any) -> str:
        """Serialise every member's column values as a JSON array."""
        kwargs.setdefault("default", str)
        return json.dumps([_to_plain(item) for item in self._results], **kwargs)

    # -- Broadcast ---------------------------------------------------------

    def _broadcast(self, method: str) -> Any:
        def call(*args: Any, **kwargs: Any) -> ResultSet:
            for record in self._results:
                getattr(record, method)(*args, **kwargs)
            return self

        call.__name__ = method
        return call

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        if name in BROADCAST_METHODS:
            return self._broadcast(name)
        raise MethodMissingError(name, type(self).__name__)

    # -- Sequence protocol -------------------------------------------------

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._results)

    def __getitem__(self, index: int | slice) -> Any:
        if isinstance(index, slice):
            return ResultSet(self._results[index])
        return self._results[index]

    def __setitem__(self, index: int, value: Record) -> None:
        self._results[index] = value

    def __delitem__(self, index: int) -> None:
        del self._results[index]

    def __contains__(self, item: object) -> bool:
        return item in self._results

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResultSet):
            return NotImplemented
        return self._results == other._results

    __hash__ = None  # type: ignore[assignment]

    def __getstate__(self) -> dict[str, Any]:
        return {"results": self._results}

    def __setstate__(self, state: dict[str, Any]) -> None:
        self._results = list(state["results"])

    def __repr__(self) -> str:
        return f"ResultSet({self._results!r})"


__all__ = ["ResultSet", "BROADCAST_METHODS"]
