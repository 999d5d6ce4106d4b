"""Tests for ``rowsmith.core.dialect`` -- driver-tag detection."""

from __future__ import annotations

import pytest

from rowsmith.core.dialect import (
    LIMIT_STYLE_LIMIT,
    LIMIT_STYLE_TOP_N,
    Dialect,
    detect_dialect,
    detect_identifier_quote_character,
    detect_limit_clause_style,
    register_dialect,
)


class TestDetection:
    @pytest.mark.parametrize(
        "driver", ["pgsql", "postgresql", "sqlsrv", "dblib", "mssql", "sybase", "firebird"]
    )
    def test_double_quote_family(self, driver):
        assert detect_identifier_quote_character(driver) == '"'

    @pytest.mark.parametrize("driver", ["mysql", "sqlite", "sqlite2", "whatever"])
    def test_backtick_otherwise(self, driver):
        assert detect_identifier_quote_character(driver) == "`"

    @pytest.mark.parametrize("driver", ["sqlsrv", "dblib", "mssql"])
    def test_top_n_family(self, driver):
        assert detect_limit_clause_style(driver) == LIMIT_STYLE_TOP_N

    @pytest.mark.parametrize("driver", ["mysql", "pgsql", "sybase", "firebird", "unknown"])
    def test_limit_otherwise(self, driver):
        assert detect_limit_clause_style(driver) == LIMIT_STYLE_LIMIT

    def test_case_insensitive(self):
        assert detect_dialect("PGSQL").supports_returning is True

    def test_none_means_sqlite(self):
        assert detect_dialect(None).name == "sqlite"

    def test_firebird_keywords(self):
        d = detect_dialect("firebird")
        assert (d.limit_keyword, d.offset_keyword) == ("ROWS", "TO")

    def test_only_postgres_returns(self):
        assert detect_dialect("pgsql").supports_returning
        assert not detect_dialect("mysql").supports_returning


class TestDialect:
    def test_with_overrides(self):
        d = detect_dialect("pgsql").with_overrides(identifier_quote_character="`", limit_clause_style="top")
        assert d.identifier_quote_character == "`"
        assert d.uses_top
        assert d.supports_returning

    def test_with_overrides_none_keeps_detected(self):
        d = detect_dialect("sqlsrv").with_overrides()
        assert d == detect_dialect("sqlsrv")

    def test_register_dialect(self):
        register_dialect("Fakedb", Dialect(name="fakedb", identifier_quote_character="'"))
        assert detect_identifier_quote_character("fakedb") == "'"
