import io

import pytest

from stackvm import cli


def write_script(tmp_path, text, name="prog.svm"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_cli_runs_script(tmp_path, capsys):
    script = write_script(tmp_path, "PUSH 2\nPUSH 3\nADD\nPRINT\n")
    assert cli.main([str(script)]) == 0
    captured = capsys.readouterr()
    assert captured.out == "5\n"
    assert captured.err == ""


def test_cli_print_stack(tmp_path, capsys):
    script = write_script(tmp_path, "PUSH 1\nPUSH 2.5\n")
    assert cli.main([str(script), "--print-stack"]) == 0
    assert capsys.readouterr().out == "stack: [1, 2.5]\n"


def test_cli_reports_runtime_error(tmp_path, capsys):
    script = write_script(tmp_path, "PUSH 1\nPRINT\nPUSH 0\nDIV\n")
    assert cli.main([str(script)]) == 1
    captured = capsys.readouterr()
    assert captured.out == "1\n"
    assert f"{script}:4: division by zero" in captured.err
    assert "traceback:" not in captured.err


def test_cli_stack_flag_prints_traceback(tmp_path, capsys):
    script = write_script(tmp_path, "GET nope\n")
    assert cli.main([str(script), "--stack"]) == 1
    err = capsys.readouterr().err
    assert "traceback:" in err
    assert "at instruction 0: GET nope" in err
    assert "undefined variable 'nope'" in err


def test_cli_parse_error_runs_nothing(tmp_path, capsys):
    script = write_script(tmp_path, "PUSH 1\nPRINT\nFROB\n")
    assert cli.main([str(script)]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert f"{script}:3: unknown instruction 'FROB'" in captured.err


def test_cli_input_file(tmp_path, capsys):
    script = write_script(tmp_path, "Input x\nGET x\nPUSH 2\nMUL\nPRINT\n")
    data = write_script(tmp_path, "21\n", name="input.txt")
    assert cli.main([str(script), "--input", str(data)]) == 0
    assert capsys.readouterr().out == "42\n"


def test_cli_reads_stdin_for_input(tmp_path, capsys, monkeypatch):
    script = write_script(tmp_path, "Input x\nGET x\nPRINT\n")
    monkeypatch.setattr("sys.stdin", io.StringIO("8\n"))
    assert cli.main([str(script)]) == 0
    assert capsys.readouterr().out == "8\n"


def test_cli_missing_script_file(tmp_path, capsys):
    assert cli.main([str(tmp_path / "absent.svm")]) == 1
    assert "cannot read" in capsys.readouterr().err


def test_cli_missing_input_file(tmp_path, capsys):
    script = write_script(tmp_path, "PUSH 1\n")
    assert cli.main([str(script), "--input", str(tmp_path / "nope.txt")]) == 1
    assert "cannot read" in capsys.readouterr().err


def test_cli_usage_errors(monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 2
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["x.svm", "--repl"])
    assert excinfo.value.code == 2


def test_cli_trace_logs_each_step(tmp_path, caplog, capsys):
    script = write_script(tmp_path, "PUSH 4\nPRINT\n")
    caplog.set_level("DEBUG", logger="stackvm")
    assert cli.main([str(script), "--trace"]) == 0
    messages = [record.getMessage() for record in caplog.records]
    assert any("line 1: PUSH 4" in message for message in messages)
    assert capsys.readouterr().out == "4\n"


def test_cli_repl_mode(monkeypatch, capsys):
    from stackvm import repl

    lines = iter(["PUSH 3", "PRINT", ":quit"])
    monkeypatch.setattr(repl.ReplSession, "_read_line", lambda self, prompt: next(lines))
    assert cli.main(["--repl"]) == 0
    assert "3\n" in capsys.readouterr().out
