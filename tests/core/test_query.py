"""Tests for ``rowsmith.core.query`` -- statement assembly without a database."""

from __future__ import annotations

import pytest

from rowsmith.core.conditions import ConditionKind
from rowsmith.core.dialect import detect_dialect
from rowsmith.core.query import QueryBuilder, join_if_not_empty, normalise_select_many

HAVING = ConditionKind.HAVING


@pytest.fixture
def qb() -> QueryBuilder:
    return QueryBuilder("widget", detect_dialect("sqlite"))


class TestHelpers:
    def test_join_if_not_empty(self):
        assert join_if_not_empty(" ", ["SELECT *", "", "  ", None, " LIMIT 1 "]) == "SELECT * LIMIT 1"

    def test_normalise_select_many(self):
        pairs = normalise_select_many(["a", {"bee": "b"}, ["c", "d"]])
        assert pairs == [(None, "a"), ("bee", "b"), (None, "c"), (None, "d")]


class TestSelect:
    def test_default_select(self, qb):
        assert qb.build_select() == "SELECT * FROM `widget`"
        assert qb.values == []

    def test_where_and_limit(self, qb):
        qb.where("name", "Fred").limit(1)
        assert qb.build_select() == "SELECT * FROM `widget` WHERE `name` = ? LIMIT 1"
        assert qb.values == ["Fred"]

    def test_top_n_dialect(self):
        qb = QueryBuilder("widget", detect_dialect("sqlsrv"))
        assert qb.limit(5).build_select() == 'SELECT TOP 5 * FROM "widget"'

    def test_top_n_with_distinct(self):
        qb = QueryBuilder("widget", detect_dialect("mssql"))
        qb.distinct().select("name").limit(3)
        assert qb.build_select() == 'SELECT TOP 3 DISTINCT "name" FROM "widget"'

    def test_firebird_keywords(self):
        qb = QueryBuilder("widget", detect_dialect("firebird"))
        assert qb.limit(5).offset(10).build_select() == 'SELECT * FROM "widget" ROWS 5 TO 10'

    def test_full_clause_order(self, qb):
        (
            qb.select("widget.name")
            .add_join_source("INNER", "user", ("user.id", "=", "widget.user_id"))
            .where("name", "Fred")
            .add_group_by("name")
            .add_simple_condition(HAVING, "total", ">", 2)
            .add_order_by("name", "ASC")
            .limit(10)
            .offset(5)
        )
        assert qb.build_select() == (
            "SELECT `widget`.`name` FROM `widget` "
            "INNER JOIN `user` ON `user`.`id` = `widget`.`user_id` "
            "WHERE `widget`.`name` = ? "
            "GROUP BY `name` "
            "HAVING `widget`.`total` > ? "
            "ORDER BY `name` ASC "
            "LIMIT 10 OFFSET 5"
        )
        assert qb.values == ["Fred", 2]

    def test_join_qualifier_uses_alias(self, qb):
        qb.set_alias("w").add_join_source("LEFT OUTER", "user", "`u`.`id` = `w`.`user_id`", "u")
        qb.where("name", "Fred")
        assert qb.build_select() == (
            "SELECT * FROM `widget` `w` LEFT OUTER JOIN `user` `u` ON `u`.`id` = `w`.`user_id` "
            "WHERE `w`.`name` = ?"
        )

    def test_plain_join_keyword(self, qb):
        qb.add_join_source("", "user", ("user.id", "=", "widget.user_id"))
        assert qb.build_select() == "SELECT * FROM `widget` JOIN `user` ON `user`.`id` = `widget`.`user_id`"

    def test_raw_join_values_come_first(self, qb):
        qb.raw_join(
            "JOIN (SELECT * FROM `user` WHERE `age` > ?)",
            "`u`.`id` = `widget`.`user_id`",
            "u",
            [18],
        ).where("widget.name", "Fred")
        assert qb.build_select() == (
            "SELECT * FROM `widget` JOIN (SELECT * FROM `user` WHERE `age` > ?) `u` "
            "ON `u`.`id` = `widget`.`user_id` WHERE `widget`.`name` = ?"
        )
        assert qb.values == [18, "Fred"]

    def test_select_alias(self, qb):
        assert qb.select("name", "n").build_select() == "SELECT `name` AS `n` FROM `widget`"

    def test_first_column_replaces_star(self, qb):
        qb.select("a").select_expr("COUNT(*)", "c")
        assert qb.build_select() == "SELECT `a`, COUNT(*) AS `c` FROM `widget`"

    def test_select_many(self, qb):
        qb.select_many("a", {"bee": "b"}, ["c", "d"])
        assert qb.build_select() == "SELECT `a`, `b` AS `bee`, `c`, `d` FROM `widget`"

    def test_select_many_expr(self, qb):
        qb.select_many_expr({"n": "COUNT(*)"}, "MAX(age)")
        assert qb.build_select() == "SELECT COUNT(*) AS `n`, MAX(age) FROM `widget`"

    def test_group_and_order_expressions(self, qb):
        qb.group_by_expr("YEAR(added)").order_by_expr("RAND()")
        assert qb.build_select() == "SELECT * FROM `widget` GROUP BY YEAR(added) ORDER BY RAND()"

    def test_raw_query_ignores_builder_state(self, qb):
        qb.where("name", "Fred").limit(5)
        qb.raw_query("SELECT 1 FROM t WHERE x = ?", [3])
        assert qb.build_select() == "SELECT 1 FROM t WHERE x = ?"
        assert qb.values == [3]

    def test_build_twice_does_not_duplicate_values(self, qb):
        qb.where("a", 1)
        qb.build_select()
        qb.build_select()
        assert qb.values == [1]

    def test_reset_after_run(self, qb):
        qb.select("name").where("a", 1)
        qb.build_select()
        qb.reset_after_run()
        assert qb.values == []
        assert qb.build_select() == "SELECT * FROM `widget` WHERE `a` = ?"


class TestWrites:
    def test_insert_with_expression(self, qb):
        sql = qb.build_insert({"name": "Fred", "age": 10, "added": "NOW()"}, {"added"}, returning=["id"])
        assert sql == "INSERT INTO `widget` (`name`, `age`, `added`) VALUES (?, ?, NOW())"

    def test_insert_returning_on_postgres(self):
        qb = QueryBuilder("widget", detect_dialect("pgsql"))
        sql = qb.build_insert({"name": "Fred"}, returning=["k1", "k2"])
        assert sql == 'INSERT INTO "widget" ("name") VALUES (?) RETURNING "k1", "k2"'

    def test_update_compound_key(self, qb):
        sql = qb.build_update({"name": "Fred", "updated": "NOW()"}, {"updated"}, ["k1", "k2"])
        assert sql == "UPDATE `widget` SET `name` = ?, `updated` = NOW() WHERE `k1` = ? AND `k2` = ?"

    def test_delete(self, qb):
        assert qb.build_delete(["id"]) == "DELETE FROM `widget` WHERE `id` = ?"

    def test_delete_many(self, qb):
        qb.add_simple_condition(ConditionKind.WHERE, "age", "<", 18)
        assert qb.build_delete_many() == "DELETE FROM `widget` WHERE `age` < ?"
        assert qb.values == [18]

    def test_delete_many_without_conditions(self, qb):
        assert qb.build_delete_many() == "DELETE FROM `widget`"
