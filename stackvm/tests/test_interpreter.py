import io

import pytest

from stackvm.interpreter import Interpreter, execute
from stackvm.vm_errors import (
    DivisionByZero,
    InputError,
    StackUnderflow,
    UndefinedVariable,
)


def run(lines, stdin=""):
    out = io.StringIO()
    vm = Interpreter(input_stream=io.StringIO(stdin), output_stream=out)
    vm.execute(lines)
    return vm, out.getvalue()


@pytest.mark.parametrize("v1, v2", [(2, 3), (-7, 4), (0.5, 0.25), (1e10, 1)])
def test_push_push_add_leaves_single_sum(v1, v2):
    vm, _ = run([f"PUSH {v1}", f"PUSH {v2}", "ADD"])
    assert vm.stack == [v1 + v2]


def test_stack_operands_are_first_then_second():
    vm, _ = run(["PUSH 10", "PUSH 4", "SUB", "PUSH 3", "PUSH 2", "DIV"])
    assert vm.stack == [6.0, 1.5]


def test_mul_pops_two():
    vm, _ = run(["PUSH 1", "PUSH 6", "PUSH 7", "MUL"])
    assert vm.stack == [1.0, 42.0]


def test_explicit_operands_do_not_touch_stack():
    vm, _ = run(["PUSH 99", "ADD 2 3", "SUB 2 3", "MUL 4 2.5", "DIV 9 2"])
    assert vm.stack == [99.0, 5.0, -1.0, 10.0, 4.5]


def test_single_explicit_operand_is_right_hand_side():
    vm, _ = run(["PUSH 10", "SUB 3"])
    assert vm.stack == [7.0]


def test_operands_may_name_variables():
    vm, _ = run(["SET x 6", "SET y 4", "MUL x y", "ADD x 1"])
    assert vm.stack == [24.0, 7.0]


def test_undefined_variable_operand():
    with pytest.raises(UndefinedVariable) as excinfo:
        run(["ADD missing 1"])
    assert excinfo.value.name == "missing"


def test_division_by_zero_performs_no_push():
    vm = Interpreter(output_stream=io.StringIO())
    with pytest.raises(DivisionByZero):
        vm.execute(["PUSH 8", "PUSH 0", "DIV"])
    assert vm.stack == [8.0, 0.0]


def test_division_by_zero_with_explicit_operands():
    vm = Interpreter(output_stream=io.StringIO())
    with pytest.raises(DivisionByZero):
        vm.execute(["PUSH 1", "DIV 5 0"])
    assert vm.stack == [1.0]


def test_arithmetic_underflow_leaves_stack_untouched():
    vm = Interpreter(output_stream=io.StringIO())
    with pytest.raises(StackUnderflow):
        vm.execute(["PUSH 1", "ADD"])
    assert vm.stack == [1.0]


def test_print_writes_top_and_keeps_it():
    vm, out = run(["PUSH 3", "PUSH 4.5", "PRINT"])
    assert out == "4.5\n"
    assert vm.stack == [3.0, 4.5]
    assert vm.output == [4.5]


def test_print_formats_integral_values_without_fraction():
    _, out = run(["PUSH 10", "PRINT", "PUSH -3.0", "PRINT", "DIV 1 4", "PRINT"])
    assert out == "10\n-3\n0.25\n"


def test_print_on_empty_stack_underflows():
    with pytest.raises(StackUnderflow):
        run(["PRINT"])


def test_set_then_get_pushes_value():
    vm, _ = run(["SET answer 42", "GET answer"])
    assert vm.stack == [42.0]
    assert vm.variables == {"answer": 42.0}


def test_set_overwrites_previous_binding():
    vm, _ = run(["SET x 1", "SET x 2", "GET x"])
    assert vm.stack == [2.0]


def test_set_without_value_pops_stack():
    vm, _ = run(["PUSH 5", "PUSH 9", "SET x"])
    assert vm.variables["x"] == 9.0
    assert vm.stack == [5.0]


def test_set_without_value_on_empty_stack():
    with pytest.raises(StackUnderflow):
        run(["SET x"])


def test_get_unbound_name_fails():
    with pytest.raises(UndefinedVariable):
        run(["GET nothing"])


def test_input_binds_parsed_number():
    vm, _ = run(["Input n", "GET n", "PRINT"], stdin="  12.5  \n")
    assert vm.variables["n"] == 12.5


def test_input_opcode_is_case_insensitive():
    vm, _ = run(["INPUT a", "input b", "push 1"], stdin="1\n2\n")
    assert vm.variables == {"a": 1.0, "b": 2.0}
    assert vm.stack == [1.0]


def test_input_end_of_stream():
    with pytest.raises(InputError):
        run(["Input n"], stdin="")


def test_input_rejects_non_numeric_line():
    with pytest.raises(InputError) as excinfo:
        run(["Input n"], stdin="twelve\n")
    assert "twelve" in str(excinfo.value)


def test_input_reads_sys_stdin_by_default(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("7\n"))
    vm = Interpreter()
    vm.execute(["Input x", "GET x", "PRINT"])
    assert capsys.readouterr().out == "7\n"


def test_state_persists_across_execute_calls():
    vm = Interpreter(output_stream=io.StringIO())
    vm.execute(["PUSH 2", "SET x 3"])
    vm.execute(["GET x", "MUL"])
    assert vm.stack == [6.0]


def test_output_before_error_is_kept():
    out = io.StringIO()
    vm = Interpreter(output_stream=out)
    with pytest.raises(UndefinedVariable):
        vm.execute(["PUSH 1", "PRINT", "GET y", "PUSH 2", "PRINT"])
    assert out.getvalue() == "1\n"


def test_step_and_snapshot():
    from stackvm.parser import parse

    vm = Interpreter(output_stream=io.StringIO())
    vm.load(parse(["PUSH 1", "PUSH 2", "ADD"]))
    assert vm.step() is None
    snapshot = vm.snapshot_state()
    assert snapshot.pc == 1
    assert snapshot.stack == (1.0,)
    assert snapshot.current_instruction == "PUSH 2"
    assert vm.run() == []
    assert vm.step() == "halt"
    assert vm.snapshot_state().halted


def test_max_steps_guard():
    from stackvm.vm_errors import ExecutionError

    vm = Interpreter(output_stream=io.StringIO(), max_steps=2)
    with pytest.raises(ExecutionError, match="step limit"):
        vm.execute(["PUSH 1", "PUSH 2", "PUSH 3"])


def test_recorded_events():
    vm = Interpreter(output_stream=io.StringIO(), record_events=True)
    vm.execute(["PUSH 0", "IF", "PUSH 1", "ELSE", "PUSH 2"])
    events = vm.drain_events()
    assert [event.pc for event in events] == [0, 1, 4]
    assert events[1].next_pc == 4
    assert events[-1].stack == (2.0,)
    assert vm.drain_events() == []


def test_trace_logging(caplog):
    caplog.set_level("DEBUG", logger="stackvm")
    execute(["PUSH 1", "PRINT"], output_stream=io.StringIO())
    messages = [record.getMessage() for record in caplog.records]
    assert any("line 1: PUSH 1" in message for message in messages)
    assert any("line 2: PRINT" in message for message in messages)


def test_reset_clears_state():
    vm, _ = run(["PUSH 1", "SET x 2", "PRINT"])
    vm.reset()
    assert vm.stack == []
    assert vm.variables == {}
    assert vm.output == []


def test_input_rejects_overflowing_number():
    with pytest.raises(InputError, match="1e999"):
        run(["Input n"], stdin="1e999\n")


def test_arithmetic_overflow_is_not_an_error():
    _, out = run(["PUSH 1e308", "MUL 10", "PRINT"])
    assert out == "inf\n"
