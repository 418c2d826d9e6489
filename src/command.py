"""Built-in command table for ash.

A built-in receives a ``BuiltinCall`` and returns an exit code. It reads
piped input only from ``call.stdin`` and writes only to ``call.stdout``; it
never touches the evaluator's pipe state. Bad arity raises ``ArgumentError``,
bad values raise ``ShellRuntimeError``.
"""
from __future__ import annotations

import os
import shutil
import stat
import sys
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, TextIO, Tuple

from errors import ArgumentError, ShellExit, ShellRuntimeError


@dataclass
class BuiltinCall:
    name: str
    args: List[str]
    stdin: TextIO
    stdout: TextIO
    environment: Dict[str, str] = field(default_factory=dict)


Builtin = Callable[[BuiltinCall], int]


@dataclass(frozen=True)
class HelpContext:
    command: str
    description: str
    usage: str


HELP_CONTEXTS: Tuple[HelpContext, ...] = (
    HelpContext("help", "Shows the name and description of every command.", "help [command]"),
    HelpContext(
        "echo",
        "Prints the succeeding arguments and a new line. Quotes escaped with a backslash are printed as-is.",
        "echo [text...]",
    ),
    HelpContext(
        "strfmt",
        "Formats and prints the text according to the format string, like C printf. "
        "Un-escapes escape sequences (like \\n, \\t) in the format.",
        "strfmt <format> [arg1, [arg2, [...]]]",
    ),
    HelpContext("chdir", "Changes the current directory. Also available as cd.", "chdir <directory>"),
    HelpContext(
        "list",
        "Lists the files in the current directory, or optionally, in the directory specified.",
        "list [-a] [-l] [-h] [directory]",
    ),
    HelpContext("exit", "Exits the shell.", "exit [code]"),
)

builtin_commands: Dict[str, Builtin] = {}


def builtin(*names: str) -> Callable[[Builtin], Builtin]:
    def register(fn: Builtin) -> Builtin:
        for name in names:
            builtin_commands[name] = fn
        return fn
    return register


def _write_help(ctx: HelpContext, out: TextIO) -> None:
    out.write(f"{ctx.command}: {ctx.description}\n    Usage: {ctx.usage}\n")


@builtin("help")
def builtin_help(call: BuiltinCall) -> int:
    if len(call.args) > 1:
        raise ArgumentError("too many arguments for help")
    if not call.args:
        for ctx in HELP_CONTEXTS:
            _write_help(ctx, call.stdout)
            call.stdout.write("\n")
        return 0
    for ctx in HELP_CONTEXTS:
        if ctx.command == call.args[0]:
            _write_help(ctx, call.stdout)
            return 0
    raise ShellRuntimeError(f'command "{call.args[0]}" not found in help database')


@builtin("echo")
def builtin_echo(call: BuiltinCall) -> int:
    call.stdout.write(" ".join(call.args) + "\n")
    return 0


@builtin("chdir", "cd")
def builtin_chdir(call: BuiltinCall) -> int:
    if len(call.args) > 1:
        raise ArgumentError(f"too many arguments for {call.name}")
    if not call.args:
        raise ArgumentError(f"too few arguments for {call.name}")
    try:
        os.chdir(os.path.expanduser(call.args[0]))
    except OSError as e:
        raise ShellRuntimeError(f"{call.name}: {e.strerror or e}: {call.args[0]}") from e
    call.environment["PWD"] = os.getcwd()
    return 0


@builtin("exit")
def builtin_exit(call: BuiltinCall) -> int:
    if len(call.args) > 1:
        raise ArgumentError("too many arguments for exit")
    code = 0
    if call.args:
        try:
            code = int(call.args[0])
        except ValueError:
            raise ShellRuntimeError("argument for exit must be an integer") from None
    raise ShellExit(code)


# ---- strfmt: printf-style formatting ----

_FORMAT_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "\\": "\\", '"': '"', "0": "\0"}

# Integer width in bits per length modifier
_INT_WIDTHS = {"hh": 8, "h": 16, "": 32, "l": 64, "ll": 64}


def unescape(text: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text) and text[i + 1] in _FORMAT_ESCAPES:
            out.append(_FORMAT_ESCAPES[text[i + 1]])
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _parse_int(arg: str, modifier: str, signed: bool) -> int:
    try:
        value = int(arg, 0) if arg.lower().startswith(("0x", "-0x")) else int(arg)
    except ValueError:
        raise ShellRuntimeError(f"invalid integer argument '{arg}'") from None
    bits = _INT_WIDTHS[modifier]
    low, high = (-(1 << (bits - 1)), (1 << (bits - 1)) - 1) if signed else (0, (1 << bits) - 1)
    if not low <= value <= high:
        raise ShellRuntimeError(f"integer argument '{arg}' out of range")
    return value


def format_printf(fmt: str, args: List[str]) -> str:
    fmt = unescape(fmt)
    out: List[str] = []
    remaining = list(args)

    def take() -> str:
        if not remaining:
            raise ShellRuntimeError("not enough arguments for format string")
        return remaining.pop(0)

    i = 0
    n = len(fmt)
    while i < n:
        ch = fmt[i]
        if ch != "%" or i + 1 >= n:
            out.append(ch)
            i += 1
            continue
        i += 1
        modifier = ""
        for candidate in ("hh", "ll", "h", "l"):
            if fmt.startswith(candidate, i):
                modifier = candidate
                i += len(candidate)
                break
        if i >= n:
            out.append("%" + modifier)
            break
        conv = fmt[i]
        i += 1
        if conv == "%":
            out.append("%")
        elif conv == "s":
            out.append(take())
        elif conv == "c":
            arg = take()
            if len(arg) != 1:
                raise ShellRuntimeError(f"invalid character argument '{arg}'")
            out.append(arg)
        elif conv in ("d", "i"):
            out.append(str(_parse_int(take(), modifier, signed=True)))
        elif conv == "u":
            out.append(str(_parse_int(take(), modifier, signed=False)))
        elif conv in ("x", "X"):
            value = _parse_int(take(), modifier, signed=True)
            # Negative numbers print as two's complement of the modifier's width
            value &= (1 << _INT_WIDTHS[modifier]) - 1
            out.append(format(value, conv))
        elif conv == "f":
            arg = take()
            try:
                out.append("%f" % float(arg))
            except ValueError:
                raise ShellRuntimeError(f"invalid float argument '{arg}'") from None
        else:
            out.append("%" + modifier + conv)
    return "".join(out)


@builtin("strfmt")
def builtin_strfmt(call: BuiltinCall) -> int:
    if not call.args:
        raise ArgumentError("too few arguments for strfmt")
    call.stdout.write(format_printf(call.args[0], call.args[1:]) + "\n")
    return 0


# ---- list: directory listing ----

_SIZE_SUFFIXES = ("B", "K", "M", "G", "T", "P", "E")
_LIST_FLAGS = set("lah")


def bytes_to_string(byte_count: int) -> str:
    if byte_count == 0:
        return "0" + _SIZE_SUFFIXES[0]
    count = abs(byte_count)
    place = 0
    while count >= 1000 ** (place + 1) and place < len(_SIZE_SUFFIXES) - 1:
        place += 1
    num = round(count / 1000 ** place, 1)
    sign = "-" if byte_count < 0 else ""
    return f"{sign}{num:g}{_SIZE_SUFFIXES[place]}"


def _parse_list_args(args: List[str]) -> Tuple[str, bool, bool, bool]:
    if len(args) > 4:
        raise ArgumentError("too many arguments for list")
    flags: set[str] = set()
    directory: Optional[str] = None
    for arg in args:
        if arg.startswith("-") and len(arg) > 1:
            unknown = set(arg[1:]) - _LIST_FLAGS
            if unknown:
                raise ArgumentError(f"unknown flag for list: -{''.join(sorted(unknown))}")
            flags.update(arg[1:])
        elif directory is None:
            directory = arg
        else:
            raise ArgumentError("list accepts only one directory")
    return directory or os.getcwd(), "l" in flags, "a" in flags, "h" in flags


def _long_listing(directory: str, names: List[str], human: bool) -> List[str]:
    rows: List[Tuple[str, str, str, str]] = []
    for name in names:
        st = os.lstat(os.path.join(directory, name))
        mtime = time.strftime("%Y/%m/%d %H:%M:%S", time.localtime(st.st_mtime))
        if stat.S_ISDIR(st.st_mode):
            size = ""
        else:
            size = bytes_to_string(st.st_size) if human else str(st.st_size)
        rows.append((stat.filemode(st.st_mode), name, mtime, size))
    name_len = max([len("Name")] + [len(r[1]) for r in rows])
    header = f"{'Mode':<10} | {'Name':<{name_len}} | {'Date Modified':<19} | Size"
    lines = [header, "-" * len(header)]
    for mode, name, mtime, size in rows:
        lines.append(f"{mode:<10} | {name:<{name_len}} | {mtime:<19} | {size}")
    return lines


def _short_listing(names: List[str]) -> List[str]:
    if not names:
        return []
    width = max(len(name) for name in names) + 2
    per_line = max(1, shutil.get_terminal_size().columns // width)
    return [
        "".join(name.ljust(width) for name in names[i:i + per_line]).rstrip()
        for i in range(0, len(names), per_line)
    ]


@builtin("list")
def builtin_list(call: BuiltinCall) -> int:
    directory, long_format, show_all, human = _parse_list_args(call.args)
    try:
        names = sorted(os.listdir(directory))
        if not show_all:
            names = [name for name in names if not name.startswith(".")]
        lines = _long_listing(directory, names, human) if long_format else _short_listing(names)
    except OSError as e:
        raise ShellRuntimeError(f"list: {e.strerror or e}: {directory}") from e
    for line in lines:
        call.stdout.write(line + "\n")
    return 0


class BuiltinTable:
    """Name to built-in mapping consulted by the evaluator before any process is spawned."""

    def __init__(self, commands: Optional[Dict[str, Builtin]] = None) -> None:
        self._commands: Dict[str, Builtin] = dict(builtin_commands if commands is None else commands)

    def __contains__(self, name: str) -> bool:
        return name in self._commands

    def names(self) -> List[str]:
        return sorted(self._commands)

    def register(self, name: str, fn: Builtin) -> None:
        self._commands[name] = fn

    def invoke(
        self,
        name: str,
        args: List[str],
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
        environment: Optional[Dict[str, str]] = None,
    ) -> int:
        fn = self._commands[name]
        call = BuiltinCall(
            name=name,
            args=list(args),
            stdin=stdin if stdin is not None else sys.stdin,
            stdout=stdout if stdout is not None else sys.stdout,
            environment=environment if environment is not None else {},
        )
        return fn(call)
