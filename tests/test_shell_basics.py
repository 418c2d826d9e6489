"""End-to-end tests that spawn real processes through a ShellSession."""

import shutil

import pytest

from ops import execute_line

pytestmark = pytest.mark.skipif(shutil.which("sh") is None, reason="needs a POSIX userland")


def test_external_command_output(session, capfd):
    assert execute_line("sh -c \"echo from sh\"", session) == 0
    assert capfd.readouterr().out == "from sh\n"


def test_pipe_between_processes(session, capfd):
    execute_line("echo hello | tr a-z A-Z", session)
    assert capfd.readouterr().out == "HELLO\n"


def test_pipe_byte_count(session, capfd):
    execute_line("printf abc | wc -c", session)
    assert capfd.readouterr().out.strip() == "3"


def test_chained_pipes(session, capfd):
    execute_line("echo hello | tr a-z A-Z | tr L X", session)
    assert capfd.readouterr().out == "HEXXO\n"


def test_captured_output_stays_in_the_pipe(session, capfd):
    execute_line("sh -c \"echo hidden\" | wc -l", session)
    out = capfd.readouterr().out
    assert "hidden" not in out
    assert out.strip() == "1"


@pytest.mark.parametrize("code", [0, 1, 3, 42])
def test_exit_code_of_process(session, code):
    assert execute_line(f"sh -c \"exit {code}\"", session) == code
    assert session.last_exit_code == code


def test_killed_by_signal(session):
    assert execute_line("sh -c \"kill -TERM $$\"", session) == 128 + 15


def test_conditionals_with_real_processes(session, capfd):
    assert execute_line("false || echo a", session) == 0
    assert execute_line("false && echo b", session) == 1
    assert execute_line("true && echo c", session) == 0
    assert capfd.readouterr().out == "a\nc\n"


def test_grouping(session, capfd):
    assert execute_line("(false || echo a) && echo b", session) == 0
    assert capfd.readouterr().out == "a\nb\n"


def test_output_order_between_builtins_and_processes(session, capfd):
    execute_line("echo first; sh -c \"echo second\"; echo third", session)
    assert capfd.readouterr().out == "first\nsecond\nthird\n"


def test_command_not_found(session, capfd):
    assert execute_line("definitely-not-a-command-xyz", session) == 127
    assert "command not found: definitely-not-a-command-xyz" in capfd.readouterr().err


def test_permission_denied(session, sandbox, capfd):
    script = sandbox / "script.sh"
    script.write_text("#!/bin/sh\necho nope\n")
    script.chmod(0o644)
    assert execute_line("./script.sh", session) == 126
    assert "permission denied" in capfd.readouterr().err


def test_variable_reaches_process_argv(session, capfd):
    execute_line("msg = \"two words\"", session)
    execute_line("sh -c \"echo $1\" sh $msg", session)
    assert capfd.readouterr().out == "two words\n"


def test_binary_data_through_a_pipe(session, sandbox, capfd):
    (sandbox / "blob").write_bytes(b"\xff\xfe\x00abc")
    assert execute_line("cat blob | wc -c", session) == 0
    assert capfd.readouterr().out.strip() == "6"


def test_binary_data_survives_two_pipes(session, sandbox, capfd):
    (sandbox / "blob").write_bytes(b"\xff\x80tail\n")
    execute_line("cat blob | cat | wc -c", session)
    assert capfd.readouterr().out.strip() == "7"
