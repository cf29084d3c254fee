import io

from stackvm.interpreter import Interpreter
from stackvm.repl import ReplSession


def make_session(**kwargs):
    return ReplSession(enable_readline=False, **kwargs)


def test_repl_executes_lines_with_shared_state(capsys):
    session = make_session()
    session.process_line("PUSH 2")
    session.process_line("SET x 5")
    session.process_line("MUL x")
    session.process_line("PRINT")
    assert capsys.readouterr().out == "10\n"
    assert session.interpreter.stack == [10.0]


def test_repl_buffers_if_block_until_endif(capsys):
    session = make_session()
    session.process_line("PUSH 0")
    session.process_line("IF")
    assert session.is_incomplete()
    session.process_line("PUSH 1")
    session.process_line("PRINT")
    session.process_line("ELSE")
    session.process_line("PUSH 2")
    session.process_line("PRINT")
    assert capsys.readouterr().out == ""
    session.process_line("ENDIF")
    assert not session.is_incomplete()
    assert capsys.readouterr().out == "2\n"


def test_repl_empty_line_closes_block(capsys):
    session = make_session()
    session.process_line("PUSH 1")
    session.process_line("if")
    session.process_line("PUSH 7")
    session.process_line("PRINT")
    session.process_line("")
    assert capsys.readouterr().out == "7\n"


def test_repl_reports_errors_and_keeps_going(capsys):
    session = make_session()
    session.process_line("GET nothing")
    captured = capsys.readouterr()
    assert "<repl>:1: undefined variable 'nothing'" in captured.err
    session.process_line("PUSH 1")
    session.process_line("PRINT")
    assert capsys.readouterr().out == "1\n"


def test_repl_stack_and_vars_commands(capsys):
    session = make_session()
    session.process_line(":vars")
    assert capsys.readouterr().out == "No variables.\n"
    session.process_line("PUSH 1.5")
    session.process_line("SET b 2")
    session.process_line("SET a 1")
    session.process_line(":stack")
    session.process_line(":vars")
    assert capsys.readouterr().out == "stack: [1.5]\nVariables:\n  a = 1\n  b = 2\n"


def test_repl_reset_command(capsys):
    session = make_session()
    session.process_line("PUSH 1")
    session.process_line(":reset")
    assert session.interpreter.stack == []
    assert "State cleared." in capsys.readouterr().out


def test_repl_trace_command(capsys):
    session = make_session()
    session.process_line(":trace")
    session.process_line(":trace on")
    session.process_line("PUSH 4")
    out = capsys.readouterr().out
    assert "Trace: off" in out
    assert "Trace on" in out
    assert "  [pc=0] line 1: PUSH 4 stack=[4]" in out
    session.process_line(":trace maybe")
    assert "Invalid trace mode" in capsys.readouterr().out


def test_repl_unknown_command_and_quit(capsys):
    session = make_session()
    assert session.process_line(":frob") is None
    assert "Unknown command: :frob" in capsys.readouterr().out
    assert session.process_line(":q") is True
    assert session.process_line(":quit") is True


def test_repl_help(capsys):
    make_session().process_line(":help")
    assert ":stack" in capsys.readouterr().out


def test_repl_run_loop_until_eof(monkeypatch, capsys):
    session = make_session(interpreter=Interpreter(input_stream=io.StringIO("9\n"), source_name="<repl>"))
    lines = iter(["Input n", "GET n", "PRINT"])

    def fake_read(prompt):
        try:
            return next(lines)
        except StopIteration:
            raise EOFError from None

    monkeypatch.setattr(session, "_read_line", fake_read)
    session.run()
    assert "9\n" in capsys.readouterr().out


def test_repl_completion():
    session = make_session()
    session.interpreter.variables["price"] = 1.0
    assert session._complete("pu", 0) == "PUSH"
    assert session._complete("pr", 0) == "PRINT"
    assert session._complete("pr", 1) == "price"
    assert session._complete("pr", 2) is None
