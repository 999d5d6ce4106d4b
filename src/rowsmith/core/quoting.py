"""Identifier quoting.

Table and column names are quoted with the connection's identifier quote
character. Dotted names (``table.column``) are quoted part by part, ``*`` is
left alone, and an embedded quote character is escaped by doubling it::

    >>> q = IdentifierQuoter("`")
    >>> q.quote("widget.name")
    '`widget`.`name`'
    >>> q.quote("widget.*")
    '`widget`.*'
    >>> IdentifierQuoter('"').quote('odd"name')
    '"odd""name"'
"""

from __future__ import annotations

from collections.abc import Sequence


class IdentifierQuoter:
    """Quotes identifiers with one fixed quote character."""

    def __init__(self, quote_character: str = "`") -> None:
        self.quote_character = quote_character

    def quote(self, identifier: str | Sequence[str]) -> str:
        """Quote one identifier, or a list of them joined with ``", "``."""
        if isinstance(identifier, (list, tuple)):
            return ", ".join(self.quote_one(part) for part in identifier)
        return self.quote_one(identifier)

    def quote_one(self, identifier: str) -> str:
        return ".".join(self.quote_part(part) for part in identifier.split("."))

    def quote_part(self, part: str) -> str:
        if part == "*":
            return part
        q = self.quote_character
        return q + part.replace(q, q + q) + q

    def __repr__(self) -> str:
        return f"IdentifierQuoter({self.quote_character!r})"


__all__ = ["IdentifierQuoter"]
