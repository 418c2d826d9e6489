"""Error taxonomy for ash.

Structural errors (``LexError``, ``ParseError``) abort the current line.
Value-level errors (``ArgumentError``, ``ShellRuntimeError``,
``ProcessSpawnError``) are turned into an exit code by the evaluator.
"""
from __future__ import annotations

from typing import Optional


class ShellError(Exception):
    """Base class for every error raised by the shell itself."""

    exit_code: int = 2

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None) -> None:
        self.message = message
        self.line = line
        self.column = column
        if line is not None and column is not None:
            message = f"{message} at {line}:{column}"
        super().__init__(message)


class LexError(ShellError):
    """Malformed token: unterminated quote, dangling backslash, bare '&'."""


class ParseError(ShellError):
    """Unexpected or missing token."""

    def __init__(self, message: str, token=None) -> None:
        self.token = token
        if token is None:
            super().__init__(message)
        else:
            super().__init__(message, token.line, token.column)


class ArgumentError(ShellError):
    """Wrong argument count or shape for a built-in."""

    exit_code = 1


class ShellRuntimeError(ShellError):
    """Value-level failure inside a built-in or an assignment."""

    exit_code = 2


class ProcessSpawnError(ShellError):
    """External executable not found or could not be started."""

    def __init__(self, message: str, exit_code: int = 127) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class InternalError(ShellError):
    """A defect in the shell: an AST shape the evaluator cannot handle."""


class ShellExit(SystemExit):
    """Raised by the ``exit`` built-in to end the session."""

    def __init__(self, code: int = 0) -> None:
        super().__init__(code)
        self.exit_code = code
