"""Command-line runner tests."""

import pytest

from backend.tinybasic.__main__ import build_parser, main


@pytest.fixture
def program(tmp_path):
    def write(code):
        path = tmp_path / "prog.bas"
        path.write_text(code)
        return str(path)
    return write


def test_run_prints_to_stdout(program, capsys):
    rc = main(["run", program('10 for i=1 to 3\n20 print "i=",i\n30 next i\n')])
    assert rc == 0
    assert capsys.readouterr().out == "i= 1\ni= 2\ni= 3\n"


def test_seeded_variables_and_dump(program, capsys):
    rc = main(["run", program("10 b=a*a\n"), "--var", "a=7", "--dump-vars"])
    assert rc == 0
    err = capsys.readouterr().err
    assert "a = 7" in err
    assert "b = 49" in err


def test_program_error_exit_status(program, capsys):
    rc = main(["run", program("10 print 1\n20 goto 5\n")])
    assert rc == 1
    captured = capsys.readouterr()
    assert captured.out == "1\n"
    assert "UNKNOWN_LINE at line 20" in captured.err


def test_step_limit(program, capsys):
    rc = main(["run", program("10 goto 10"), "--max-steps", "20"])
    assert rc == 1
    assert "step limit 20" in capsys.readouterr().err


def test_lenient_stacks(program):
    assert main(["run", program("10 gosub 10"), "--lenient-stacks"]) == 0
    assert main(["run", program("10 gosub 10")]) == 1


def test_poke_goes_to_memory_map(program, capsys):
    rc = main(["run", program("10 poke 4, 260\n20 peek 4, a\n30 print a")])
    assert rc == 0
    assert capsys.readouterr().out == "4\n"


def test_bad_var_argument_rejected():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["run", "x.bas", "--var", "A=1"])
