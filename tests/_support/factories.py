"""Factories for objects tests build repeatedly."""

from __future__ import annotations

from rowsmith.core.settings import RowsmithSettings


def make_settings(**overrides) -> RowsmithSettings:
    """Settings that ignore any ``.env`` file in the working directory."""
    return RowsmithSettings(_env_file=None, **overrides)
