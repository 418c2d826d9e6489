from __future__ import annotations

import io
import logging
import re
import signal
import subprocess
import sys
from contextlib import redirect_stdout
from dataclasses import dataclass
from typing import Dict, List, Optional, TextIO

from command import BuiltinTable
from errors import (
    ArgumentError,
    InternalError,
    LexError,
    ParseError,
    ProcessSpawnError,
    ShellError,
    ShellRuntimeError,
)
from grammar import parse
from lexer import Token, TokenKind, contains_illegal_characters
from splitter import split_statements
from syntax_tree import (
    Assignment,
    Binary,
    Command,
    ExpressionStatement,
    Node,
    NodeVisitor,
    Program,
)

logger = logging.getLogger(__name__)

# Name part of a $variable token; anything after it is kept verbatim.
_VAR_NAME = re.compile(r"\$(\w+)")

# Bytes that are not valid UTF-8 survive a pipe as lone surrogates and are
# written back unchanged to the next process.
PIPE_ENCODING = "utf-8"


@dataclass
class EvalContext:
    """Mutable evaluation state owned by exactly one session.

    ``capturing_output`` / ``feeding_input`` and ``pipe_buffer`` only carry
    values while a ``|`` is being evaluated; the buffer is empty otherwise.
    """
    exit_code: int = 0
    error_message: str = ""
    capturing_output: bool = False
    feeding_input: bool = False
    pipe_buffer: str = ""


@dataclass
class RunResult:
    exit_code: int
    stdout: Optional[str] = None


class ProcessRunner:
    """Spawn an external program and block until it exits.

    Lifecycle:
    - ``run()`` starts ``executable`` with ``args`` as its argv.
    - With ``capture_stdout`` the program's stdout is collected and returned
      instead of going to the terminal.
    - With ``stdin_payload`` the text is written to the program's stdin,
      which is then closed.
    """

    def run(
        self,
        executable: str,
        args: List[str],
        capture_stdout: bool = False,
        stdin_payload: Optional[str] = None,
    ) -> RunResult:
        argv = [executable, *args]
        logger.debug("spawn %r capture=%s stdin=%s", argv, capture_stdout, stdin_payload is not None)
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.PIPE if stdin_payload is not None else None,
                stdout=subprocess.PIPE if capture_stdout else None,
                encoding=PIPE_ENCODING,
                errors="surrogateescape",
            )
        except FileNotFoundError:
            raise ProcessSpawnError(f"command not found: {executable}") from None
        except PermissionError:
            raise ProcessSpawnError(f"permission denied: {executable}", exit_code=126) from None
        except OSError as e:
            raise ProcessSpawnError(f"cannot run {executable}: {e.strerror or e}", exit_code=126) from None

        try:
            stdout, _ = proc.communicate(input=stdin_payload)
        except KeyboardInterrupt:
            # The terminal delivered SIGINT to the child as well; reap it.
            proc.kill()
            proc.wait()
            return RunResult(128 + signal.SIGINT, None)
        except BaseException:
            proc.kill()
            proc.wait()
            raise

        code = proc.returncode
        if code < 0:
            code = 128 - code
        return RunResult(code, stdout if capture_stdout else None)


class ShellSession:
    """Holds session-wide shell context: variables, evaluation state, collaborators."""

    def __init__(
        self,
        environment: Optional[Dict[str, str]] = None,
        builtins: Optional[BuiltinTable] = None,
        runner: Optional[ProcessRunner] = None,
    ) -> None:
        self.environment: Dict[str, str] = dict(environment) if environment else {}
        self.context = EvalContext()
        self.builtins = builtins if builtins is not None else BuiltinTable()
        self.runner = runner if runner is not None else ProcessRunner()
        self.evaluator = Evaluator(self)

    @property
    def last_exit_code(self) -> int:
        return self.context.exit_code

    def get_var(self, name: str) -> Optional[str]:
        return self.environment.get(name)

    def set_var(self, name: str, value: str) -> None:
        self.environment[name] = value


class Evaluator(NodeVisitor[int]):
    """Reduce an AST to an exit code, running built-ins and external programs."""

    def __init__(self, session: ShellSession) -> None:
        self.session = session

    @property
    def context(self) -> EvalContext:
        return self.session.context

    def evaluate(self, node: Node) -> int:
        code = self.visit(node)
        self.context.exit_code = code
        return code

    # --- statements ---
    def visit_program(self, node: Program) -> int:
        code = 0
        for statement in node.statements:
            self.context.error_message = ""
            code = self.visit(statement)
            self.context.exit_code = code
        return code

    def visit_expression_statement(self, node: ExpressionStatement) -> int:
        return self.visit(node.expr)

    def visit_assignment(self, node: Assignment) -> int:
        target = node.variable
        if not target.value or contains_illegal_characters(target.value):
            return self._fail(ShellRuntimeError(
                f"trying to assign to a unit that contains illegal characters: {target.value!r}",
                target.line, target.column,
            ))
        self.session.set_var(target.value, self.substitute(node.value))
        return 0

    # --- expressions ---
    def visit_binary(self, node: Binary) -> int:
        kind = node.op.kind
        if kind is TokenKind.AND:
            lhs = self.visit(node.left)
            return self.visit(node.right) if lhs == 0 else lhs
        if kind is TokenKind.OR:
            lhs = self.visit(node.left)
            return self.visit(node.right) if lhs != 0 else lhs
        if kind is TokenKind.PIPE:
            return self._pipe(node)
        raise InternalError(f"invalid operator {node.op.value!r}", node.op.line, node.op.column)

    def _pipe(self, node: Binary) -> int:
        """Run ``left | right``; ``&&`` and ``||`` leave the pipe flags alone."""
        ctx = self.context
        capturing, feeding = ctx.capturing_output, ctx.feeding_input
        sink = io.StringIO()
        try:
            # Left side keeps whatever input an enclosing pipe is feeding.
            ctx.capturing_output = True
            with redirect_stdout(sink):
                self.visit(node.left)
            ctx.capturing_output = capturing
            ctx.feeding_input = True
            ctx.pipe_buffer = sink.getvalue()
            return self.visit(node.right)
        finally:
            ctx.capturing_output, ctx.feeding_input = capturing, feeding
            ctx.pipe_buffer = ""

    def visit_command(self, node: Command) -> int:
        executable = self.substitute(node.executable)
        args = [self.substitute(t) for t in node.arguments]
        payload = self._take_input()

        if executable in self.session.builtins:
            stdin: TextIO = io.StringIO(payload) if payload is not None else sys.stdin
            try:
                return self.session.builtins.invoke(
                    executable, args,
                    stdin=stdin,
                    stdout=sys.stdout,
                    environment=self.session.environment,
                )
            except (ArgumentError, ShellRuntimeError) as e:
                return self._fail(e)

        # Keep built-in output ordered ahead of the child's.
        sys.stdout.flush()
        try:
            result = self.session.runner.run(
                executable, args,
                capture_stdout=self.context.capturing_output,
                stdin_payload=payload,
            )
        except ProcessSpawnError as e:
            return self._fail(e)
        if result.stdout is not None:
            sys.stdout.write(result.stdout)
        return result.exit_code

    # --- helpers ---
    def substitute(self, token: Token) -> str:
        """Resolve a ``$name`` token against the environment.

        Only ``Variable`` tokens are looked up; unknown names are left as
        written. Characters after the name are appended unchanged.
        """
        if token.kind is not TokenKind.VARIABLE:
            return token.value
        match = _VAR_NAME.match(token.value)
        if match is None:
            return token.value
        value = self.session.get_var(match.group(1))
        if value is None:
            return token.value
        return value + token.value[match.end():]

    def _take_input(self) -> Optional[str]:
        """Hand the pipe buffer to one consumer; later readers get empty input."""
        ctx = self.context
        if not ctx.feeding_input:
            return None
        payload = ctx.pipe_buffer
        ctx.pipe_buffer = ""
        return payload

    def _fail(self, error: ShellError) -> int:
        self.context.error_message = str(error)
        logger.debug("command failed (%d): %s", error.exit_code, error)
        return error.exit_code


def _report(message: str) -> None:
    sys.stderr.write(f"ash: {message}\n")
    sys.stderr.flush()


def execute_line(line: str, session: ShellSession) -> int:
    """Run one line of input, which may hold several ``;``-separated statements.

    A lex or parse error aborts only its own statement; the rest still run.
    Returns the exit code of the last statement evaluated.
    """
    if line.lstrip().startswith("#"):
        return session.context.exit_code

    code = session.context.exit_code
    for segment in split_statements(line):
        try:
            program = parse(segment)
        except (LexError, ParseError) as e:
            _report(str(e))
            session.context.error_message = str(e)
            code = session.context.exit_code = 2
            continue
        code = session.evaluator.evaluate(program)
        if session.context.error_message:
            _report(session.context.error_message)
    return code


def execute_file(path: str, session: ShellSession) -> int:
    """Run every line of a script file in ``session``."""
    code = 0
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            code = execute_line(line.rstrip("\r\n"), session)
    return code
