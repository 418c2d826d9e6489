"""Tests for the parser and the AST helpers."""

import dataclasses

import pytest

from errors import InternalError, ParseError
from grammar import Parser, parse
from lexer import TokenKind, tokenize
from syntax_tree import (
    Assignment,
    Binary,
    Command,
    ExpressionStatement,
    NodeVisitor,
    Program,
    format_tree,
)


def tree(source: str) -> str:
    return format_tree(parse(source))


class TestCommands:
    def test_simple_command(self):
        program = parse("echo hi there")
        assert len(program.statements) == 1
        stmt = program.statements[0]
        assert isinstance(stmt, ExpressionStatement)
        assert isinstance(stmt.expr, Command)
        assert stmt.expr.executable.value == "echo"
        assert [a.value for a in stmt.expr.arguments] == ["hi", "there"]

    def test_command_without_arguments(self):
        cmd = parse("ls").statements[0].expr
        assert cmd.arguments == ()

    def test_variable_executable_and_arguments(self):
        cmd = parse("$editor $file notes").statements[0].expr
        assert cmd.executable.kind is TokenKind.VARIABLE
        assert [a.kind for a in cmd.arguments] == [TokenKind.VARIABLE, TokenKind.UNIT]

    def test_quoted_argument_is_one_token(self):
        cmd = parse('echo "a b" c').statements[0].expr
        assert [a.value for a in cmd.arguments] == ["a b", "c"]


class TestPrecedence:
    def test_pipe_binds_tighter_than_and_than_or(self):
        assert tree("a | b && c || d") == "(|| (&& (| (cmd a) (cmd b)) (cmd c)) (cmd d))"

    def test_and_binds_tighter_than_or(self):
        assert tree("a || b && c") == "(|| (cmd a) (&& (cmd b) (cmd c)))"

    def test_pipes_are_left_associative(self):
        assert tree("a | b | c") == "(| (| (cmd a) (cmd b)) (cmd c))"

    def test_parentheses_override_precedence(self):
        assert tree("(a || b) && c") == "(&& (|| (cmd a) (cmd b)) (cmd c))"
        assert tree("a | (b && c)") == "(| (cmd a) (&& (cmd b) (cmd c)))"

    def test_binary_keeps_operator_token(self):
        expr = parse("a && b").statements[0].expr
        assert isinstance(expr, Binary)
        assert expr.op.kind is TokenKind.AND
        assert expr.op.column == 3


class TestAssignments:
    def test_assignment(self):
        stmt = parse("x = 5").statements[0]
        assert isinstance(stmt, Assignment)
        assert stmt.variable.value == "x"
        assert stmt.value.value == "5"

    def test_assignment_without_spaces(self):
        stmt = parse("x=5").statements[0]
        assert isinstance(stmt, Assignment)

    def test_assignment_from_variable(self):
        stmt = parse("y = $x").statements[0]
        assert stmt.value.kind is TokenKind.VARIABLE

    def test_quoted_target_is_still_parsed(self):
        stmt = parse('"a b" = 1').statements[0]
        assert isinstance(stmt, Assignment)
        assert stmt.variable.value == "a b"

    def test_missing_value(self):
        with pytest.raises(ParseError):
            parse("x =")

    def test_variable_target_is_rejected(self):
        with pytest.raises(ParseError) as exc:
            parse("$x = 1")
        assert exc.value.token.kind is TokenKind.VARIABLE

    def test_equals_later_in_command_is_a_parse_error(self):
        with pytest.raises(ParseError):
            parse("echo a = b")


class TestStatements:
    def test_semicolon_separated_statements(self):
        program = parse("x = 1; echo $x")
        assert len(program.statements) == 2
        assert isinstance(program.statements[0], Assignment)

    def test_trailing_semicolon(self):
        assert len(parse("a;").statements) == 1

    def test_empty_program(self):
        program = parse("")
        assert program == Program(())
        assert format_tree(program) == "<empty>"

    def test_comment_only_program(self):
        assert parse("# hello").statements == ()

    def test_parser_accepts_token_list(self):
        program = Parser(tokenize("a b")).parse()
        assert format_tree(program) == "(cmd a b)"


class TestParseErrors:
    @pytest.mark.parametrize("source", ["(a", "a )", "&& a", "| a", "a |", "a ||", "()", ";", "a (b)"])
    def test_malformed_input(self, source):
        with pytest.raises(ParseError):
            parse(source)

    def test_unmatched_paren_reports_eof(self):
        with pytest.raises(ParseError) as exc:
            parse("(a")
        assert exc.value.token.kind is TokenKind.EOF
        assert "RightParen" in str(exc.value)

    def test_error_names_offending_token_and_position(self):
        with pytest.raises(ParseError) as exc:
            parse("a )")
        assert exc.value.token.kind is TokenKind.RIGHT_PAREN
        assert "')'" in str(exc.value)
        assert "1:3" in str(exc.value)

    def test_unexpected_operator(self):
        with pytest.raises(ParseError, match="unexpected And"):
            parse("&& a")


class TestNodes:
    def test_nodes_are_immutable(self):
        cmd = parse("ls").statements[0].expr
        with pytest.raises(dataclasses.FrozenInstanceError):
            cmd.arguments = ()  # type: ignore[misc]

    def test_nodes_compare_by_value(self):
        assert parse("echo a") == parse("echo a")

    def test_visitor_rejects_foreign_objects(self):
        with pytest.raises(InternalError):
            NodeVisitor().visit("not a node")  # type: ignore[arg-type]

    def test_custom_visitor(self):
        class CountCommands(NodeVisitor[int]):
            def visit_program(self, node):
                return sum(self.visit(s) for s in node.statements)

            def visit_expression_statement(self, node):
                return self.visit(node.expr)

            def visit_assignment(self, node):
                return 0

            def visit_binary(self, node):
                return self.visit(node.left) + self.visit(node.right)

            def visit_command(self, node):
                return 1

        assert CountCommands().visit(parse("x = 1; a | b && (c || d)")) == 4

    def test_format_assignment(self):
        assert tree("x = 5") == "(= x 5)"
