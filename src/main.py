#!/usr/bin/env python3

# Entry of ash

from __future__ import annotations

import argparse
import getpass
import logging
import os
import socket
import sys
from pathlib import Path
from typing import Dict, List, Optional

try:
    import readline  # type: ignore
except Exception:  # pragma: no cover - fallback when readline unavailable
    readline = None

READLINE_ACTIVE = bool(readline)

VERSION = "1.1.0"
PROMPT = "ash> "
DEFAULT_PROMPT_FMT = "%u:%m@%c ~% "
RC_VERSION_LINE = "#RC VERSION 001"

from errors import ShellExit
from ops import ShellSession, execute_file, execute_line

# Built-in variables read by the host. The order of these won't change.
BUILTIN_VARIABLES = [
    "prompt_fmt",
    "prompt_fmt_u_color",
    "prompt_fmt_m_color",
    "prompt_fmt_c_color",
    "prompt_fmt_e_success_color",
    "prompt_fmt_e_fail_color",
    "quiet_startup",
]

DEFAULT_RC_VALUES = {
    "prompt_fmt": f'"{DEFAULT_PROMPT_FMT}"',
    "prompt_fmt_u_color": "blue",
    "prompt_fmt_m_color": "cyan",
    "prompt_fmt_c_color": "magenta",
    "prompt_fmt_e_success_color": "green",
    "prompt_fmt_e_fail_color": "red",
    "quiet_startup": "false",
}

ANSI_COLORS = {
    "black": "30",
    "red": "31",
    "green": "32",
    "yellow": "33",
    "blue": "34",
    "magenta": "35",
    "cyan": "36",
    "white": "37",
    "gray": "90",
    "grey": "90",
}

logger = logging.getLogger(__name__)


# --- Simple color utilities (no deps) ---
def _use_color(stream=None) -> bool:
    stream = stream or sys.stdout
    return stream.isatty() and os.environ.get("NO_COLOR") is None


def colorize(text: str, color: Optional[str], enabled: bool = True) -> str:
    code = ANSI_COLORS.get((color or "").lower())
    if not enabled or code is None:
        return text
    return f"\033[{code}m{text}\033[0m"


def render_prompt(env: Dict[str, str], last_exit: int, color: Optional[bool] = None) -> str:
    """Expand ``prompt_fmt``: %u user, %m host, %c cwd, %e last exit code, %nl newline."""
    fmt = env.get("prompt_fmt")
    if fmt is None:
        return PROMPT
    if color is None:
        color = _use_color()
    try:
        user = getpass.getuser()
    except Exception:
        user = "?"
    exit_color = env.get("prompt_fmt_e_success_color" if last_exit == 0 else "prompt_fmt_e_fail_color")
    return (
        fmt.replace("%nl", "\n")
        .replace("%u", colorize(f"[{user}]", env.get("prompt_fmt_u_color"), color))
        .replace("%m", colorize(f"[{socket.gethostname()}]", env.get("prompt_fmt_m_color"), color))
        .replace("%c", colorize(f"[{os.getcwd()}]", env.get("prompt_fmt_c_color"), color))
        .replace("%e", colorize(f"[{last_exit}]", exit_color, color))
    )


def default_rc_path() -> Path:
    override = os.environ.get("ASH_RC")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".ashrc"


def write_default_rc(path: Path) -> None:
    lines = [RC_VERSION_LINE] + [f"{name} = {DEFAULT_RC_VALUES[name]}" for name in BUILTIN_VARIABLES]
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def load_rc(path: Path, session: ShellSession) -> int:
    """Run the rc file, creating it with defaults first if it does not exist."""
    if not path.exists():
        try:
            write_default_rc(path)
        except OSError as e:
            print(f"ash: cannot create {path}: {e}", file=sys.stderr)
            return 1
    logger.debug("loading rc file %s", path)
    return execute_file(str(path), session)


def is_quiet(session: ShellSession, flag: bool) -> bool:
    if flag:
        return True
    return session.environment.get("quiet_startup", "false").strip().lower() == "true"


def print_banner() -> None:
    print(f"ASH (Application shell) version {VERSION}")
    print('To hide this message, run ash with the -q flag or set "quiet_startup = true" in your rc file.')
    print()
    print('To see the names and descriptions of every built-in command, type "help" then press ENTER.')
    print()


def setup_readline() -> None:
    if not READLINE_ACTIVE:
        return
    try:
        readline.parse_and_bind("set editing-mode emacs")
        readline.parse_and_bind("Control-l: clear-screen")
    except Exception:
        pass


def repl(session: ShellSession) -> int:
    setup_readline()

    while True:
        try:
            line = input(render_prompt(session.environment, session.last_exit_code))
        except EOFError:
            # Ctrl-D on empty line -> exit
            print()
            break
        except KeyboardInterrupt:
            # Ctrl-C at prompt -> new line and continue
            print()
            continue

        if not line.strip():
            continue

        try:
            execute_line(line, session)
        except ShellExit as e:
            return e.exit_code
        except KeyboardInterrupt:
            print()
            session.context.exit_code = 130
        except Exception as e:
            print(f"ash: internal error: {e}", file=sys.stderr)
            logger.debug("internal error", exc_info=True)
            session.context.exit_code = 2

    return session.last_exit_code


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="ash",
        description="ash - the application shell",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ash                          # Interactive shell, runs ~/.ashrc first
  ash -q                       # Skip the startup banner
  ash -e "x = 5" -e "echo $x"  # Run commands after the rc file
  ash script.ash               # Run a script and exit
""",
    )
    parser.add_argument("script", nargs="?", help="Run the lines of this file and exit")
    parser.add_argument("--quiet", "-q", action="store_true", help="Don't show the startup banner")
    parser.add_argument(
        "--execute", "-e",
        metavar="CMD",
        action="append",
        default=[],
        help="Execute a command after the rc file is read (may be repeated)",
    )
    parser.add_argument("--rc", metavar="PATH", help="Use this rc file instead of ~/.ashrc ($ASH_RC)")
    parser.add_argument("--no-rc", action="store_true", help="Don't read or create an rc file")
    parser.add_argument("--debug", action="store_true", help="Log tokens, trees and spawned commands to stderr")
    parser.add_argument("--version", "-v", action="version", version=f"ash {VERSION}")
    return parser.parse_args(args)


def run(args: argparse.Namespace) -> int:
    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    session = ShellSession(environment={"PWD": os.getcwd()})
    try:
        if not args.no_rc:
            load_rc(Path(args.rc).expanduser() if args.rc else default_rc_path(), session)

        for command in args.execute:
            execute_line(command, session)

        if args.script:
            try:
                return execute_file(args.script, session)
            except OSError as e:
                print(f"ash: {args.script}: {e.strerror or e}", file=sys.stderr)
                return 127
    except ShellExit as e:
        return e.exit_code

    if not is_quiet(session, args.quiet):
        print_banner()
    return repl(session)


def main() -> None:
    sys.exit(run(parse_args()))


if __name__ == "__main__":
    main()
