"""
String escaping and identifier quoting for dynamically built SQL.

Some MySQL-protocol backends (Doris in particular) do not support prepared
statements, so every value written by a SQL sink is placed into a fixed
statement template as an escaped single-quoted literal. Identifiers come
from operator configuration, never from record payloads.
"""

# Order matters: the backslash must be doubled first, otherwise the
# backslashes introduced by the later substitutions would be doubled too.
_ESCAPES: tuple[tuple[str, str], ...] = (
    ("\\", "\\\\"),
    ("'", "''"),
    ("\0", "\\0"),
    ("\n", "\\n"),
    ("\r", "\\r"),
    ("\x1a", "\\Z"),
)

_UNESCAPES: dict[str, str] = {
    "0": "\0",
    "n": "\n",
    "r": "\r",
    "Z": "\x1a",
    "t": "\t",
    "b": "\b",
}


def escape_sql_string(value: str) -> str:
    """
    Escape a value for use inside a single-quoted SQL string literal.

    Args:
        value: Raw string.

    Returns:
        Escaped text; wrap it in single quotes to form the literal.
    """
    for raw, escaped in _ESCAPES:
        value = value.replace(raw, escaped)
    return value


def unescape_sql_string(text: str) -> str:
    """
    Decode the body of a single-quoted literal the way MySQL reads it.

    Args:
        text: Literal body without the surrounding quotes.

    Returns:
        The original string value.
    """
    out: list[str] = []
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if ch == "\\" and i + 1 < length:
            nxt = text[i + 1]
            out.append(_UNESCAPES.get(nxt, nxt))
            i += 2
        elif ch == "'" and i + 1 < length and text[i + 1] == "'":
            out.append("'")
            i += 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def sql_literal(value: str | None) -> str:
    """Return ``'<escaped value>'``, or ``NULL`` for None."""
    if value is None:
        return "NULL"
    return f"'{escape_sql_string(value)}'"


def quote_identifier(name: str, quote: str = "`") -> str:
    """
    Quote a possibly dotted identifier such as ``schema.table``.

    Each segment is wrapped in ``quote`` with embedded quote characters
    doubled.

    Args:
        name: Identifier from configuration.
        quote: Dialect identifier-quote character.

    Returns:
        The quoted identifier.
    """
    return ".".join(
        f"{quote}{segment.replace(quote, quote * 2)}{quote}"
        for segment in name.split(".")
    )
