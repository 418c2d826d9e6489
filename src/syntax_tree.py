"""AST node set for ash.

Nodes are frozen dataclasses and carry no behaviour. Consumers subclass
``NodeVisitor`` and implement one ``visit_*`` method per node kind;
``NodeVisitor.visit`` does the dispatch.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Tuple, TypeVar, Union

from errors import InternalError
from lexer import Token


@dataclass(frozen=True)
class Command:
    """An executable token followed by zero or more argument tokens."""
    executable: Token
    arguments: Tuple[Token, ...] = ()


@dataclass(frozen=True)
class Binary:
    """Two expressions joined by ``&&``, ``||`` or ``|``."""
    op: Token
    left: "Expression"
    right: "Expression"


@dataclass(frozen=True)
class Assignment:
    variable: Token
    value: Token


@dataclass(frozen=True)
class ExpressionStatement:
    expr: "Expression"


@dataclass(frozen=True)
class Program:
    statements: Tuple["Statement", ...] = ()


Expression = Union[Binary, Command]
Statement = Union[Assignment, ExpressionStatement]
Node = Union[Program, Assignment, ExpressionStatement, Binary, Command]

T = TypeVar("T")


class NodeVisitor(Generic[T]):
    def visit(self, node: Node) -> T:
        match node:
            case Program():
                return self.visit_program(node)
            case ExpressionStatement():
                return self.visit_expression_statement(node)
            case Assignment():
                return self.visit_assignment(node)
            case Binary():
                return self.visit_binary(node)
            case Command():
                return self.visit_command(node)
            case _:
                raise InternalError(f"unknown AST node {node!r}")

    def visit_program(self, node: Program) -> T:
        raise NotImplementedError

    def visit_expression_statement(self, node: ExpressionStatement) -> T:
        raise NotImplementedError

    def visit_assignment(self, node: Assignment) -> T:
        raise NotImplementedError

    def visit_binary(self, node: Binary) -> T:
        raise NotImplementedError

    def visit_command(self, node: Command) -> T:
        raise NotImplementedError


# --- Formatting (debug / test aid) ---

class TreeFormatter(NodeVisitor[str]):
    """Render a tree as a compact s-expression, e.g. ``(| (cmd ls) (cmd wc -l))``."""

    def visit_program(self, node: Program) -> str:
        return "\n".join(self.visit(s) for s in node.statements) or "<empty>"

    def visit_expression_statement(self, node: ExpressionStatement) -> str:
        return self.visit(node.expr)

    def visit_assignment(self, node: Assignment) -> str:
        return f"(= {node.variable.value} {node.value.value})"

    def visit_binary(self, node: Binary) -> str:
        return f"({node.op.value} {self.visit(node.left)} {self.visit(node.right)})"

    def visit_command(self, node: Command) -> str:
        parts = [node.executable.value] + [a.value for a in node.arguments]
        return "(cmd " + " ".join(parts) + ")"


def format_tree(node: Node) -> str:
    return TreeFormatter().visit(node)
