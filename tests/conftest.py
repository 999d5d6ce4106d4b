"""
Shared pytest fixtures for rowsmith tests.

This module provides:
- ``registry``: an isolated ConnectionRegistry on a recording MockDriver,
  with the query log switched on
- ``mock_db``: that MockDriver, for canned rows and executed-statement checks
- ``sqlite_registry``: an isolated registry on a real in-memory SQLite
  database holding a ``widget`` table
- automatic reset of the process-wide default registry after every test
"""

from __future__ import annotations

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Ensure rowsmith package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from rowsmith.core.registry import ConnectionRegistry, set_registry
from tests._support.factories import make_settings
from tests._support.mock_driver import MockDriver


@pytest.fixture(autouse=True)
def _reset_default_registry() -> Generator[None, None, None]:
    yield
    set_registry(None)


@pytest.fixture
def mock_db() -> MockDriver:
    return MockDriver("sqlite")


@pytest.fixture
def registry(mock_db: MockDriver) -> ConnectionRegistry:
    reg = ConnectionRegistry(make_settings())
    reg.set_db(mock_db)
    reg.configure("logging", True)
    return reg


@pytest.fixture
def sqlite_registry() -> ConnectionRegistry:
    reg = ConnectionRegistry(make_settings())
    reg.configure("sqlite::memory:")
    reg.configure("logging", True)
    reg.raw_execute(
        "CREATE TABLE widget ("
        " id INTEGER PRIMARY KEY AUTOINCREMENT,"
        " name TEXT,"
        " age INTEGER,"
        " price REAL"
        ")"
    )
    return reg
