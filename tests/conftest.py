import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Ensure we can import modules from src/
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from errors import ProcessSpawnError  # noqa: E402
from ops import ProcessRunner, RunResult, ShellSession  # noqa: E402


class FakeRunner(ProcessRunner):
    """Process runner double: records every call and never spawns anything.

    ``codes`` maps executable -> exit code, ``outputs`` maps executable ->
    stdout text returned when the evaluator asks for capture. Executables
    listed in ``missing`` fail to spawn.
    """

    def __init__(
        self,
        codes: Optional[Dict[str, int]] = None,
        outputs: Optional[Dict[str, str]] = None,
        missing: tuple = ("missing",),
    ) -> None:
        self.codes = dict(codes or {})
        self.outputs = dict(outputs or {})
        self.missing = missing
        self.calls: List[tuple] = []

    def run(self, executable, args, capture_stdout=False, stdin_payload=None):
        self.calls.append((executable, list(args), capture_stdout, stdin_payload))
        if executable in self.missing:
            raise ProcessSpawnError(f"command not found: {executable}")
        output = self.outputs.get(executable, "")
        return RunResult(self.codes.get(executable, 0), output if capture_stdout else None)

    def executed(self) -> List[str]:
        return [call[0] for call in self.calls]


@pytest.fixture()
def sandbox(tmp_path, monkeypatch):
    # Work in an isolated temp directory
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("ASH_RC", raising=False)
    return tmp_path


@pytest.fixture()
def session(sandbox):
    """A session that runs real processes."""
    return ShellSession()


@pytest.fixture()
def fake_runner():
    return FakeRunner(
        codes={"false_cmd": 1, "true_cmd": 0},
        outputs={"produce": "data\n"},
    )


@pytest.fixture()
def fake_session(sandbox, fake_runner):
    """A session whose external commands go to ``fake_runner``."""
    return ShellSession(runner=fake_runner)
