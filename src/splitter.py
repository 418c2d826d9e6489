"""Quote-aware line splitting.

The host splits a raw input line on ``;`` before each piece goes through the
tokenizer and parser. Delimiters inside a double-quoted span are kept, and
inside such a span the escape character protects the following character,
so ``"a \\" ; b"`` stays in one piece. Outside a span the escape character
protects the next character too, so ``\\"`` never opens a span and ``\\;``
never splits.
"""
from __future__ import annotations

from typing import List

QUOTE = '"'


def split_outside_quotes(line: str, delimiter: str = " ", escape: str = "\\") -> List[str]:
    if not delimiter:
        raise ValueError("delimiter must not be empty")
    parts: List[str] = []
    buf: List[str] = []
    i = 0
    n = len(line)
    while i < n:
        if line.startswith(delimiter, i):
            parts.append("".join(buf))
            buf.clear()
            i += len(delimiter)
        elif line[i] == QUOTE:
            buf.append(line[i])
            i += 1
            while i < n and line[i] != QUOTE:
                if line[i] == escape and i + 1 < n:
                    buf.append(line[i])
                    i += 1
                buf.append(line[i])
                i += 1
            # Closing quote, if the span was terminated
            if i < n:
                buf.append(line[i])
                i += 1
        elif line[i] == escape and i + 1 < n:
            buf.append(line[i:i + 2])
            i += 2
        else:
            buf.append(line[i])
            i += 1
    if buf:
        parts.append("".join(buf))
    return parts


def split_statements(line: str) -> List[str]:
    """Split on ``;`` and drop blank pieces, trimming the rest."""
    return [part.strip() for part in split_outside_quotes(line, ";") if part.strip()]
