"""SQL dialect facts, detected from the driver name.

Rowsmith generates one SQL shape for every backend and varies only a handful
of dialect facts:

- the character that quotes identifiers (backtick or double quote),
- where the row limit goes (trailing ``LIMIT n`` or ``SELECT TOP n``),
- the keywords used for limit/offset (Firebird says ``ROWS`` / ``TO``),
- whether INSERT can hand back generated keys with ``RETURNING``.

Manifesto:
    Dialect differences are data, not code paths. The query builder asks a
    :class:`Dialect` for a keyword instead of branching on driver names, so
    supporting another backend is one ``register_dialect()`` call.

Architecture::

    driver handle ──driver_name──▶ detect_dialect() ──▶ Dialect
                                                          │
         ConnectionConfig overrides (quote char, limit) ──┤
                                                          ▼
                                        QueryBuilder / IdentifierQuoter

    ┌──────────┬───────┬───────┬──────────┬───────────┐
    │ tag      │ quote │ limit │ keywords │ RETURNING │
    ├──────────┼───────┼───────┼──────────┼───────────┤
    │ sqlite   │   `   │ limit │ LIMIT/.. │    no     │
    │ mysql    │   `   │ limit │ LIMIT/.. │    no     │
    │ pgsql    │   "   │ limit │ LIMIT/.. │    yes    │
    │ sqlsrv   │   "   │ top   │ TOP      │    no     │
    │ sybase   │   "   │ limit │ LIMIT/.. │    no     │
    │ firebird │   "   │ limit │ ROWS/TO  │    no     │
    └──────────┴───────┴───────┴──────────┴───────────┘

Examples:
    >>> from rowsmith.core.dialect import detect_dialect
    >>> d = detect_dialect("sqlsrv")
    >>> d.identifier_quote_character, d.limit_clause_style
    ('"', 'top')
    >>> detect_dialect("sqlite").identifier_quote_character
    '`'

Tags:
    dialect, sql, portability, rowsmith

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass

LIMIT_STYLE_LIMIT = "limit"
LIMIT_STYLE_TOP_N = "top"

DEFAULT_DRIVER_NAME = "sqlite"


@dataclass(frozen=True)
class Dialect:
    """Immutable set of dialect facts for one driver tag."""

    name: str
    identifier_quote_character: str = "`"
    limit_clause_style: str = LIMIT_STYLE_LIMIT
    limit_keyword: str = "LIMIT"
    offset_keyword: str = "OFFSET"
    supports_returning: bool = False

    @property
    def uses_top(self) -> bool:
        return self.limit_clause_style == LIMIT_STYLE_TOP_N

    def with_overrides(
        self,
        *,
        identifier_quote_character: str | None = None,
        limit_clause_style: str | None = None,
    ) -> Dialect:
        """Return a copy with explicitly configured values applied."""
        return Dialect(
            name=self.name,
            identifier_quote_character=identifier_quote_character or self.identifier_quote_character,
            limit_clause_style=limit_clause_style or self.limit_clause_style,
            limit_keyword=self.limit_keyword,
            offset_keyword=self.offset_keyword,
            supports_returning=self.supports_returning,
        )


# =========================================================================
# Registry / Factory
# =========================================================================


def _double_quoted(name: str, **kwargs) -> Dialect:
    return Dialect(name=name, identifier_quote_character='"', **kwargs)


_POSTGRES = _double_quoted("pgsql", supports_returning=True)
_MSSQL = _double_quoted("sqlsrv", limit_clause_style=LIMIT_STYLE_TOP_N)

# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": Dialect(name="sqlite"),
    "sqlite2": Dialect(name="sqlite2"),
    "mysql": Dialect(name="mysql"),
    "pgsql": _POSTGRES,
    "postgresql": _POSTGRES,  # alias (SQLAlchemy name)
    "postgres": _POSTGRES,    # alias
    "sqlsrv": _MSSQL,
    "dblib": _MSSQL,
    "mssql": _MSSQL,
    "sybase": _double_quoted("sybase"),
    "firebird": _double_quoted("firebird", limit_keyword="ROWS", offset_keyword="TO"),
}


def detect_dialect(driver_name: str | None) -> Dialect:
    """Return the dialect facts for a driver tag.

    Unknown tags fall back to backtick quoting and a trailing ``LIMIT``,
    which is what MySQL and SQLite accept.

    Args:
        driver_name: Tag reported by the driver handle (case-insensitive).
    """
    key = (driver_name or DEFAULT_DRIVER_NAME).lower()
    if key in _DIALECTS:
        return _DIALECTS[key]
    return Dialect(name=key)


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register dialect facts for a custom driver tag.

    Useful for third-party drivers or test doubles.

    Args:
        name: Lookup key (lower-cased automatically).
        dialect: Facts to report for that tag.
    """
    _DIALECTS[name.lower()] = dialect


def detect_identifier_quote_character(driver_name: str | None) -> str:
    return detect_dialect(driver_name).identifier_quote_character


def detect_limit_clause_style(driver_name: str | None) -> str:
    return detect_dialect(driver_name).limit_clause_style


__all__ = [
    "LIMIT_STYLE_LIMIT",
    "LIMIT_STYLE_TOP_N",
    "Dialect",
    "detect_dialect",
    "register_dialect",
    "detect_identifier_quote_character",
    "detect_limit_clause_style",
]
