"""Test-support helpers shared across rowsmith test suites."""
