"""Recursive-descent parser for ash.

Grammar, loosest binding first::

    program     := statement (';' statement)* ';'?
    statement   := assignment | expression
    assignment  := Unit '=' (Unit | Variable)
    expression  := or
    or          := and ('||' and)*
    and         := pipe ('&&' pipe)*
    pipe        := primary ('|' primary)*
    primary     := '(' expression ')' | command
    command     := (Unit | Variable) (Unit | Variable)*
"""
from __future__ import annotations

import logging
from typing import Iterable, List

from errors import ParseError
from lexer import Token, TokenKind, Tokenizer
from syntax_tree import (
    Assignment,
    Binary,
    Command,
    Expression,
    ExpressionStatement,
    Program,
    Statement,
    format_tree,
)

logger = logging.getLogger(__name__)

_WORD_KINDS = (TokenKind.UNIT, TokenKind.VARIABLE)


class Parser:
    def __init__(self, tokens: Iterable[Token]) -> None:
        # Read the whole stream up front; lookahead needs random access.
        self.tokens: List[Token] = []
        for token in tokens:
            if token.kind is TokenKind.EOF:
                self.eof = token
                break
            self.tokens.append(token)
        else:
            last = self.tokens[-1] if self.tokens else None
            self.eof = Token(TokenKind.EOF, "", last.line if last else 1, last.column + len(last.value) if last else 1)
        self.position = 0

    # --- cursor helpers ---
    @property
    def current(self) -> Token:
        if self.position < len(self.tokens):
            return self.tokens[self.position]
        return self.eof

    def _peek_kind(self, offset: int) -> TokenKind:
        idx = self.position + offset
        return self.tokens[idx].kind if idx < len(self.tokens) else TokenKind.EOF

    def _at_end(self) -> bool:
        return self.position >= len(self.tokens)

    def _check(self, *kinds: TokenKind) -> bool:
        return self.current.kind in kinds

    def _consume(self, *kinds: TokenKind) -> Token:
        token = self.current
        if token.kind not in kinds:
            expected = ", ".join(str(k) for k in kinds)
            raise ParseError(f"expected {expected}, got {token.kind} {token.value!r}", token)
        self.position += 1
        return token

    # --- grammar ---
    def parse(self) -> Program:
        statements: List[Statement] = []
        while not self._at_end():
            statements.append(self._statement())
            if self._at_end():
                break
            self._consume(TokenKind.SEMICOLON)
        program = Program(tuple(statements))
        logger.debug("parsed: %s", format_tree(program))
        return program

    def _statement(self) -> Statement:
        if self._peek_kind(1) is TokenKind.EQUALS:
            return self._assignment()
        return ExpressionStatement(self._expression())

    def _assignment(self) -> Assignment:
        variable = self._consume(TokenKind.UNIT)
        self._consume(TokenKind.EQUALS)
        value = self._consume(*_WORD_KINDS)
        return Assignment(variable, value)

    def _expression(self) -> Expression:
        return self._or()

    def _or(self) -> Expression:
        lhs = self._and()
        while self._check(TokenKind.OR):
            op = self._consume(TokenKind.OR)
            lhs = Binary(op, lhs, self._and())
        return lhs

    def _and(self) -> Expression:
        lhs = self._pipe()
        while self._check(TokenKind.AND):
            op = self._consume(TokenKind.AND)
            lhs = Binary(op, lhs, self._pipe())
        return lhs

    def _pipe(self) -> Expression:
        lhs = self._primary()
        while self._check(TokenKind.PIPE):
            op = self._consume(TokenKind.PIPE)
            lhs = Binary(op, lhs, self._primary())
        return lhs

    def _primary(self) -> Expression:
        if self._check(TokenKind.LEFT_PAREN):
            self._consume(TokenKind.LEFT_PAREN)
            expr = self._expression()
            self._consume(TokenKind.RIGHT_PAREN)
            return expr
        if self._check(*_WORD_KINDS):
            return self._command()
        token = self.current
        raise ParseError(f"unexpected {token.kind} {token.value!r}", token)

    def _command(self) -> Command:
        executable = self._consume(*_WORD_KINDS)
        arguments: List[Token] = []
        while self._check(*_WORD_KINDS):
            arguments.append(self._consume(*_WORD_KINDS))
        return Command(executable, tuple(arguments))


def parse(source: str) -> Program:
    """Tokenize and parse one line of source."""
    return Parser(Tokenizer(source)).parse()
