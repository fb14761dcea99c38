"""Quote-aware tokenizer for command lines.

Splits on whitespace but respects quoted strings (single and double quotes).
Quoted spans glue onto adjacent characters of the same token, so
``--name="New York"`` is the single token ``--name=New York``.
"""

from __future__ import annotations

_QUOTES = ('"', "'")


def _consume_quoted(s: str, i: int, quote_char: str, buf: list[str]) -> int:
    """Append the quoted span starting at *i* to *buf*.

    Returns the index just past the closing quote. Inside the span a
    backslash escapes the next character literally. An unclosed quote runs
    to the end of *s*.
    """
    n = len(s)
    i += 1  # skip opening quote
    while i < n:
        ch = s[i]
        if ch == quote_char:
            return i + 1  # skip closing quote
        if ch == "\\" and i + 1 < n:
            buf.append(s[i + 1])
            i += 2
            continue
        buf.append(ch)
        i += 1
    return i


def tokenize(line: str) -> list[str]:
    """Split *line* on whitespace, respecting quoted substrings.

    Empty quoted spans produce empty tokens; trailing whitespace does not.

    Examples
    --------
    >>> tokenize('add language en "Old English"')
    ['add', 'language', 'en', 'Old English']
    >>> tokenize("add country be --name='Kingdom of Belgium'")
    ['add', 'country', 'be', '--name=Kingdom of Belgium']
    >>> tokenize('add language en ""')
    ['add', 'language', 'en', '']
    """
    tokens: list[str] = []
    buf: list[str] = []
    started = False
    i = 0
    n = len(line)

    while i < n:
        ch = line[i]
        if ch in _QUOTES:
            i = _consume_quoted(line, i, ch, buf)
            started = True
        elif ch.isspace():
            if started:
                tokens.append("".join(buf))
                buf = []
                started = False
            i += 1
        else:
            buf.append(ch)
            started = True
            i += 1

    if started:
        tokens.append("".join(buf))
    return tokens


def is_named(token: str) -> bool:
    """Return True if *token* is a named argument (starts with ``--``)."""
    return token.startswith("--")


def parse_named(token: str) -> tuple[str, str] | None:
    """Split ``--key=value`` into ``(key, value)``.

    Returns None when the token carries no ``=``.
    """
    body = token[2:]
    key, sep, value = body.partition("=")
    if not sep:
        return None
    return key, value


def is_comment(line: str) -> bool:
    """Return True if a stripped *line* should be skipped by batch runs."""
    return not line or line.startswith("#")
