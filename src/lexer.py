"""Tokenizer for the ash command language.

The tokenizer walks a source string one character at a time and hands out
tokens on demand through ``Tokenizer.next_token``. Iterating a tokenizer
yields every token up to and including the final ``EOF``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List

from errors import LexError

logger = logging.getLogger(__name__)


class TokenKind(Enum):
    UNIT = "Unit"
    VARIABLE = "Variable"
    EQUALS = "Equals"
    AND = "And"
    OR = "Or"
    PIPE = "Pipe"
    LEFT_PAREN = "LeftParen"
    RIGHT_PAREN = "RightParen"
    SEMICOLON = "Semicolon"
    EOF = "Eof"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: str
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.kind} {self.value!r} at {self.line}:{self.column}"


# Characters that end a unit or a variable name. Whitespace is handled by
# str.isspace() so tabs and carriage returns count too.
ILLEGAL_CHARACTERS = frozenset("=|&;()\n")

_SINGLE_CHAR_TOKENS = {
    "=": TokenKind.EQUALS,
    ";": TokenKind.SEMICOLON,
    "(": TokenKind.LEFT_PAREN,
    ")": TokenKind.RIGHT_PAREN,
}

_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
}


def is_illegal_character(ch: str) -> bool:
    return ch in ILLEGAL_CHARACTERS or ch.isspace()


def contains_illegal_characters(s: str) -> bool:
    return any(is_illegal_character(ch) for ch in s)


class Tokenizer:
    """Breaks one source line into tokens recognized by the parser."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.position = 0
        self.line = 1
        self.column = 1

    # --- cursor helpers ---
    def _at_end(self) -> bool:
        return self.position >= len(self.source)

    @property
    def _current(self) -> str:
        return self.source[self.position]

    def _peek(self, offset: int = 1) -> str:
        idx = self.position + offset
        return self.source[idx] if idx < len(self.source) else ""

    def _advance(self) -> None:
        if self._current == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.position += 1

    def _skip_blanks_and_comments(self) -> None:
        while not self._at_end():
            if self._current.isspace():
                self._advance()
            elif self._current == "#":
                while not self._at_end() and self._current != "\n":
                    self._advance()
            else:
                break

    # --- public API ---
    def next_token(self) -> Token:
        self._skip_blanks_and_comments()
        if self._at_end():
            return Token(TokenKind.EOF, "", self.line, self.column)

        ch = self._current
        line, column = self.line, self.column

        kind = _SINGLE_CHAR_TOKENS.get(ch)
        if kind is not None:
            self._advance()
            return Token(kind, ch, line, column)

        if ch == "&":
            if self._peek() != "&":
                raise LexError("invalid operator '&'", line, column)
            self._advance()
            self._advance()
            return Token(TokenKind.AND, "&&", line, column)

        if ch == "|":
            if self._peek() == "|":
                self._advance()
                self._advance()
                return Token(TokenKind.OR, "||", line, column)
            self._advance()
            return Token(TokenKind.PIPE, "|", line, column)

        if ch == "$":
            self._advance()
            chars: List[str] = ["$"]
            while not self._at_end() and not is_illegal_character(self._current):
                chars.append(self._current)
                self._advance()
            return Token(TokenKind.VARIABLE, "".join(chars), line, column)

        return self._collect_unit()

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.kind is TokenKind.EOF:
                return

    # --- units ---
    def _collect_unit(self) -> Token:
        line, column = self.line, self.column
        chars: List[str] = []
        while not self._at_end() and not is_illegal_character(self._current):
            if self._current == '"':
                quote_line, quote_column = self.line, self.column
                self._advance()
                while not self._at_end() and self._current != '"':
                    chars.append(self._escape())
                    self._advance()
                if self._at_end():
                    raise LexError("unterminated quoted unit", quote_line, quote_column)
                self._advance()
            else:
                chars.append(self._escape())
                self._advance()
        return Token(TokenKind.UNIT, "".join(chars), line, column)

    def _escape(self) -> str:
        """Return the text for the character under the cursor.

        A backslash consumes the following character as well; the cursor is
        left on that character so the caller's advance moves past it.
        """
        ch = self._current
        if ch != "\\":
            return ch
        line, column = self.line, self.column
        self._advance()
        if self._at_end():
            raise LexError("singular backslash", line, column)
        nxt = self._current
        return _ESCAPES.get(nxt, "\\" + nxt)


def tokenize(source: str) -> List[Token]:
    tokens = list(Tokenizer(source))
    logger.debug("tokens: %s", tokens)
    return tokens
