"""Tests for ``rowsmith.core.result`` -- ResultSet container and broadcast."""

from __future__ import annotations

import json
import pickle

import pytest

from rowsmith.core.errors import MethodMissingError
from rowsmith.core.result import BROADCAST_METHODS, ResultSet


@pytest.fixture
def people(registry):
    return ResultSet([
        registry.for_table("person").hydrate({"id": 1, "name": "Fred"}),
        registry.for_table("person").hydrate({"id": 2, "name": "Joe"}),
    ])


class TestContainer:
    def test_len_iter_index(self, people):
        assert len(people) == 2
        assert [p["name"] for p in people] == ["Fred", "Joe"]
        assert people[1]["id"] == 2

    def test_slice_is_result_set(self, people):
        first = people[:1]
        assert isinstance(first, ResultSet)
        assert len(first) == 1

    def test_set_and_delete_item(self, people, registry):
        replacement = registry.for_table("person").hydrate({"id": 3})
        people[0] = replacement
        assert people[0] is replacement
        del people[0]
        assert len(people) == 1

    def test_contains(self, people):
        assert people[0] in people

    def test_empty(self):
        assert len(ResultSet()) == 0
        assert ResultSet().as_list() == []

    def test_set_results(self, people):
        records = people.as_list()
        assert ResultSet().set_results(records).results == records

    def test_as_list_is_a_copy(self, people):
        people.as_list().clear()
        assert len(people) == 2

    def test_equality_and_unhashable(self, people):
        assert people == ResultSet(people.as_list())
        with pytest.raises(TypeError):
            hash(people)


class TestSerialisation:
    def test_as_json(self, people):
        assert json.loads(people.as_json()) == [{"id": 1, "name": "Fred"}, {"id": 2, "name": "Joe"}]

    def test_pickle(self, people):
        clone = pickle.loads(pickle.dumps(people))
        assert [p.as_dict() for p in clone] == [p.as_dict() for p in people]


class TestBroadcast:
    def test_set_applies_to_every_member(self, people):
        people.set("age", 30)
        assert [p["age"] for p in people] == [30, 30]
        assert all(p.is_dirty("age") for p in people)

    def test_returns_self_for_chaining(self, people):
        assert people.set("age", 1) is people

    def test_save_each(self, people, registry):
        people.set("name", "X").save()
        assert registry.get_query_log() == [
            "UPDATE `person` SET `name` = 'X' WHERE `id` = '1'",
            "UPDATE `person` SET `name` = 'X' WHERE `id` = '2'",
        ]

    def test_delete_each(self, people, registry):
        people.delete()
        assert len(registry.get_query_log()) == 2

    def test_unknown_method(self, people):
        with pytest.raises(MethodMissingError, match=r"Method frobnicate\(\) does not exist in class ResultSet"):
            people.frobnicate()

    def test_broadcast_set(self):
        assert {"set", "save", "delete"} <= BROADCAST_METHODS
