"""Placeholder scanning that skips over quoted SQL text.

Both the query log (which substitutes quoted literals for ``?``) and the
DB-API driver adapter (which rewrites ``?`` into the module's paramstyle)
must leave a ``?`` inside a string literal or a quoted identifier untouched.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator

_QUOTES = ("'", '"', "`")


def iter_segments(sql: str) -> Iterator[tuple[str, bool]]:
    """Yield ``(text, quoted)`` segments of ``sql``.

    A quoted segment includes its delimiters. A doubled delimiter inside a
    quoted segment is an escaped quote, not the end of the segment. An
    unterminated quote runs to the end of the string.
    """
    start = 0
    i = 0
    length = len(sql)
    while i < length:
        ch = sql[i]
        if ch not in _QUOTES:
            i += 1
            continue
        if i > start:
            yield sql[start:i], False
        end = i + 1
        while end < length:
            if sql[end] == ch:
                if end + 1 < length and sql[end + 1] == ch:
                    end += 2
                    continue
                break
            end += 1
        end = min(end + 1, length)
        yield sql[i:end], True
        start = i = end
    if start < length:
        yield sql[start:], False


def replace_placeholders(
    sql: str,
    replacement: Callable[[int], str],
    placeholder: str = "?",
) -> str:
    """Replace each unquoted ``placeholder`` with ``replacement(index)``.

    ``index`` counts placeholders from zero in order of appearance.
    """
    out: list[str] = []
    index = 0
    for text, quoted in iter_segments(sql):
        if quoted or placeholder not in text:
            out.append(text)
            continue
        pieces = text.split(placeholder)
        out.append(pieces[0])
        for piece in pieces[1:]:
            out.append(replacement(index))
            out.append(piece)
            index += 1
    return "".join(out)


def count_placeholders(sql: str, placeholder: str = "?") -> int:
    return sum(text.count(placeholder) for text, quoted in iter_segments(sql) if not quoted)


def substitute_literals(sql: str, literals: list[str]) -> str:
    """Inline already-quoted literals into ``sql`` for display.

    Placeholders beyond the supplied literals are left as they are.
    """

    def _literal(index: int) -> str:
        return literals[index] if index < len(literals) else "?"

    return replace_placeholders(sql, _literal)


__all__ = [
    "iter_segments",
    "replace_placeholders",
    "count_placeholders",
    "substitute_literals",
]
