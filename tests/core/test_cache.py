"""Tests for ``rowsmith.core.cache`` and query caching through the registry."""

from __future__ import annotations

import hashlib
import pickle

import pytest

from rowsmith.core.cache import (
    MISS,
    CallbackQueryCache,
    InMemoryQueryCache,
    QueryCache,
    default_fingerprint,
)
from tests._support.mock_driver import MockDriver


class TestFingerprint:
    def test_matches_sha1_of_joined_values(self):
        expected = hashlib.sha1(b"SELECT * FROM `w` WHERE `a` = ? AND `b` = ?:5,x").hexdigest()
        assert default_fingerprint("SELECT * FROM `w` WHERE `a` = ? AND `b` = ?", [5, "x"]) == expected

    def test_none_false_true(self):
        expected = hashlib.sha1(b"q:,,1").hexdigest()
        assert default_fingerprint("q", [None, False, True]) == expected

    def test_named_values_in_order(self):
        assert default_fingerprint("q", {"a": 1, "b": 2}) == default_fingerprint("q", [1, 2])

    def test_no_values(self):
        assert default_fingerprint("q", None) == hashlib.sha1(b"q:").hexdigest()


class TestMiss:
    def test_falsy_singleton(self):
        assert not MISS
        assert type(MISS)() is MISS

    def test_pickles_to_same_object(self):
        assert pickle.loads(pickle.dumps(MISS)) is MISS


class TestInMemoryQueryCache:
    def test_satisfies_protocol(self):
        assert isinstance(InMemoryQueryCache(), QueryCache)

    def test_store_and_lookup(self):
        cache = InMemoryQueryCache()
        cache.store("k", [{"id": 1}], "w", "default")
        assert cache.lookup("k", "w", "default") == [{"id": 1}]

    def test_empty_result_is_a_hit(self):
        cache = InMemoryQueryCache()
        cache.store("k", [], "w", "default")
        assert cache.lookup("k", "w", "default") == []

    def test_partitioned_by_connection(self):
        cache = InMemoryQueryCache()
        cache.store("k", [{"id": 1}], "w", "one")
        assert cache.lookup("k", "w", "two") is MISS
        assert cache.size("one") == 1
        assert cache.size() == 1

    def test_clear_empties_every_connection(self):
        cache = InMemoryQueryCache()
        cache.store("k", [], "w", "one")
        cache.store("k", [], "w", "two")
        cache.clear("w", "one")
        assert cache.size() == 0


class TestCallbackQueryCache:
    def test_missing_hooks_fall_back(self):
        fallback = InMemoryQueryCache()
        cache = CallbackQueryCache(fallback)
        cache.store("k", [{"id": 1}], "w", "default")
        assert fallback.lookup("k", "w", "default") == [{"id": 1}]
        assert cache.fingerprint("q", [1], "w", "default") == default_fingerprint("q", [1])

    def test_none_from_check_is_miss(self):
        cache = CallbackQueryCache(InMemoryQueryCache(), check_query_cache=lambda key, table, conn: None)
        assert cache.lookup("k", "w", "default") is MISS

    def test_false_from_check_is_miss(self):
        cache = CallbackQueryCache(InMemoryQueryCache(), check_query_cache=lambda key, table, conn: False)
        assert cache.lookup("k", "w", "default") is MISS

    def test_empty_rows_from_check_is_hit(self):
        cache = CallbackQueryCache(InMemoryQueryCache(), check_query_cache=lambda key, table, conn: [])
        assert cache.lookup("k", "w", "default") == []

    def test_clear_runs_only_custom_hook(self):
        cleared = []
        fallback = InMemoryQueryCache()
        fallback.store("k", [], "w", "default")
        cache = CallbackQueryCache(fallback, clear_cache=lambda table, conn: cleared.append((table, conn)))
        cache.clear("w", "default")
        assert cleared == [("w", "default")]
        assert fallback.size() == 1


@pytest.fixture
def caching_registry(registry, mock_db):
    mock_db.rows = [{"id": 1, "name": "Fred"}]
    registry.configure("caching", True)
    return registry


class TestRegistryCaching:
    def test_identical_query_executes_once(self, caching_registry, mock_db):
        first = caching_registry.for_table("widget").where("name", "Fred").find_one()
        second = caching_registry.for_table("widget").where("name", "Fred").find_one()
        assert len(mock_db.executed) == 1
        assert first.as_dict() == second.as_dict()

    def test_hit_does_not_touch_query_log(self, caching_registry):
        caching_registry.for_table("widget").where("id", 1).find_many()
        caching_registry.for_table("widget").where("id", 2).find_many()
        caching_registry.for_table("widget").where("id", 1).find_many()
        assert caching_registry.get_last_query() == "SELECT * FROM `widget` WHERE `id` = '2'"

    def test_hit_resets_builder(self, caching_registry):
        caching_registry.for_table("widget").select("name").find_many()
        widgets = caching_registry.for_table("widget").select("name")
        widgets.find_many()
        assert widgets.query.result_columns == ["*"]

    def test_different_values_miss(self, caching_registry, mock_db):
        caching_registry.for_table("widget").where("id", 1).find_many()
        caching_registry.for_table("widget").where("id", 2).find_many()
        assert len(mock_db.executed) == 2

    def test_connections_cached_separately(self, caching_registry, mock_db):
        other = MockDriver("sqlite", rows=[{"id": 2}])
        caching_registry.set_db(other, "other")
        caching_registry.configure("caching", True, "other")
        caching_registry.for_table("widget").find_many()
        rows = caching_registry.for_table("widget", "other").find_array()
        assert rows == [{"id": 2}]
        assert len(other.executed) == 1

    def test_disabled_by_default(self, registry, mock_db):
        registry.for_table("widget").find_many()
        registry.for_table("widget").find_many()
        assert len(mock_db.executed) == 2

    def test_auto_clear_after_save(self, caching_registry, mock_db):
        caching_registry.configure("caching_auto_clear", True)
        widget = caching_registry.for_table("widget").find_one()
        widget.set("name", "Jim").save()
        caching_registry.for_table("widget").find_one()
        assert mock_db.executed_sql.count("SELECT * FROM `widget` LIMIT 1") == 2

    def test_auto_clear_after_delete(self, caching_registry, mock_db):
        caching_registry.configure("caching_auto_clear", True)
        caching_registry.for_table("widget").find_many()
        caching_registry.for_table("widget").hydrate({"id": 1}).delete()
        caching_registry.for_table("widget").find_many()
        assert mock_db.executed_sql.count("SELECT * FROM `widget`") == 2

    def test_no_auto_clear_keeps_stale_rows(self, caching_registry, mock_db):
        caching_registry.for_table("widget").find_many()
        caching_registry.for_table("widget").where("id", 1).delete_many()
        caching_registry.for_table("widget").find_many()
        assert mock_db.executed_sql.count("SELECT * FROM `widget`") == 1

    def test_manual_clear(self, caching_registry, mock_db):
        caching_registry.for_table("widget").find_many()
        caching_registry.clear_cache()
        caching_registry.for_table("widget").find_many()
        assert len(mock_db.executed) == 2


class TestCustomCacheHooks:
    def test_callbacks_replace_default_steps(self, caching_registry, mock_db):
        store: dict[str, list] = {}
        calls = []

        def create_key(sql, values, table, connection):
            calls.append(("key", table, connection))
            return f"{connection}:{sql}:{values}"

        def check(key, table, connection):
            return store.get(key)

        def save(key, rows, table, connection):
            store[key] = rows

        caching_registry.configure({
            "create_cache_key": create_key,
            "check_query_cache": check,
            "cache_query_result": save,
        })
        caching_registry.for_table("widget").find_many()
        caching_registry.for_table("widget").find_many()

        assert len(mock_db.executed) == 1
        assert list(store) == ["default:SELECT * FROM `widget`:[]"]
        assert calls[0] == ("key", "widget", "default")
        assert caching_registry.default_cache.size() == 0

    def test_check_hook_returning_false_runs_query(self, caching_registry, mock_db):
        caching_registry.configure("check_query_cache", lambda key, table, connection: False)
        records = caching_registry.for_table("widget").find_many()

        assert len(mock_db.executed) == 1
        assert [r["name"] for r in records] == ["Fred"]

    def test_clear_hook_receives_table_and_connection(self, caching_registry):
        cleared = []
        caching_registry.configure("clear_cache", lambda table, conn: cleared.append((table, conn)))
        caching_registry.configure("caching_auto_clear", True)
        caching_registry.for_table("widget").create({"name": "x"}).save()
        assert cleared == [("widget", "default")]

    def test_query_cache_object(self, caching_registry, mock_db):
        backend = InMemoryQueryCache()
        caching_registry.configure("query_cache", backend)
        caching_registry.for_table("widget").find_many()
        caching_registry.for_table("widget").find_many()
        assert backend.size("default") == 1
        assert caching_registry.default_cache.size() == 0
        assert len(mock_db.executed) == 1

        caching_registry.clear_cache("widget")
        assert backend.size() == 0
