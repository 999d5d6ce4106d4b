"""Tests for ``rowsmith.core.errors``."""

from __future__ import annotations

import pytest

from rowsmith.core.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    IdentityError,
    InvalidConfigError,
    MethodMissingError,
    MissingConfigError,
    RowsmithError,
)


class TestErrorContext:
    def test_to_dict_skips_none(self):
        ctx = ErrorContext(table="widget", metadata={"extra": 1})
        assert ctx.to_dict() == {"table": "widget", "extra": 1}


class TestRowsmithError:
    def test_defaults(self):
        err = RowsmithError("boom")
        assert err.category == ErrorCategory.INTERNAL
        assert str(err) == "boom"
        assert err.context.to_dict() == {}

    def test_with_context(self):
        err = RowsmithError("boom").with_context(connection="default", table="widget", attempt=2)
        assert err.context.connection == "default"
        assert err.context.metadata == {"attempt": 2}

    def test_cause_chained(self):
        cause = ValueError("bad")
        err = RowsmithError("boom", cause=cause)
        assert err.__cause__ is cause
        assert err.to_dict()["cause"] == "bad"

    def test_to_dict(self):
        err = IdentityError.missing("id").with_context(table="widget")
        data = err.to_dict()
        assert data["error_type"] == "IdentityError"
        assert data["category"] == "IDENTITY"
        assert data["context"] == {"table": "widget"}
        assert data["id_columns"] == ["id"]

    def test_repr(self):
        assert repr(RowsmithError("boom")) == "RowsmithError('boom', category=INTERNAL)"


class TestConfigErrors:
    def test_missing(self):
        err = MissingConfigError("id_column")
        assert isinstance(err, ConfigError)
        assert err.category == ErrorCategory.CONFIG
        assert str(err) == "Missing configuration: id_column"

    def test_invalid(self):
        err = InvalidConfigError("caching", "maybe")
        assert err.key == "caching"
        assert str(err) == "Invalid configuration for caching: 'maybe'"


class TestIdentityError:
    def test_missing_message(self):
        assert str(IdentityError.missing()) == "Primary key ID missing from row or is null"

    def test_null_parts(self):
        err = IdentityError.null_parts(["a", "b"], ["b"])
        assert err.partial
        assert str(err) == "Primary key ID contains null value(s)"


class TestMethodMissingError:
    def test_message(self):
        err = MethodMissingError("frobnicate", "Record")
        assert str(err) == "Method frobnicate() does not exist in class Record"
        assert err.category == ErrorCategory.CAPABILITY

    def test_is_attribute_error(self):
        with pytest.raises(AttributeError):
            raise MethodMissingError("x", "Record")
