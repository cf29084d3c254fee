from __future__ import annotations

import logging
import sys
import time
from typing import IO, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .instructions import Instruction, Opcode, Operand
from .parser import parse
from .value_utils import format_value, is_number, try_parse_number
from .vm_errors import (
    DivisionByZero,
    ExecutionError,
    InputError,
    StackUnderflow,
    UndefinedVariable,
)
from .vm_events import StepEvent, TraceFrame, VMStateSnapshot

logger = logging.getLogger(__name__)


def _divide(lhs: float, rhs: float) -> float:
    if rhs == 0:
        raise DivisionByZero("division by zero")
    return lhs / rhs


_BINARY_OPERATIONS: Dict[Opcode, Callable[[float, float], float]] = {
    Opcode.ADD: lambda lhs, rhs: lhs + rhs,
    Opcode.SUB: lambda lhs, rhs: lhs - rhs,
    Opcode.MUL: lambda lhs, rhs: lhs * rhs,
    Opcode.DIV: _divide,
}


class Interpreter:
    """Walks a parsed instruction list against an operand stack and a variable environment.

    The stack and the variables live on the instance and survive between
    calls to `execute`; the program counter does not.
    """

    def __init__(
        self,
        *,
        input_stream: Optional[IO[str]] = None,
        output_stream: Optional[IO[str]] = None,
        source_name: str = "<script>",
        record_events: bool = False,
        max_steps: Optional[int] = None,
    ):
        self.instructions: List[Instruction] = []
        self.stack: List[float] = []
        self.variables: Dict[str, float] = {}
        self.output: List[float] = []
        self.pc = 0
        self.steps = 0
        self.source_name = source_name
        self.record_events = record_events
        self.max_steps = max_steps
        self._input_stream = input_stream
        self._output_stream = output_stream
        self._event_buffer: List[StepEvent] = []
        self._handlers = {
            Opcode.PUSH: self._op_PUSH,
            Opcode.ADD: self._op_BINARY,
            Opcode.SUB: self._op_BINARY,
            Opcode.MUL: self._op_BINARY,
            Opcode.DIV: self._op_BINARY,
            Opcode.PRINT: self._op_PRINT,
            Opcode.SET: self._op_SET,
            Opcode.GET: self._op_GET,
            Opcode.INPUT: self._op_INPUT,
            Opcode.IF: self._op_IF,
            Opcode.ELSE: self._op_ELSE,
            Opcode.ENDIF: self._op_ENDIF,
        }

    # Streams are looked up lazily so a redirected sys.stdout/sys.stdin is honoured.
    @property
    def input_stream(self) -> IO[str]:
        return self._input_stream if self._input_stream is not None else sys.stdin

    @property
    def output_stream(self) -> IO[str]:
        return self._output_stream if self._output_stream is not None else sys.stdout

    # -------------------- Public API --------------------
    def execute(self, lines: Iterable[str]) -> None:
        """Parse and run a whole script.

        Parse errors are raised before anything runs. Runtime errors abort the
        rest of the script; output already written stays written.
        """
        program = parse(lines, source_name=self.source_name)
        self.load(program)
        try:
            self.run()
        except ExecutionError as exc:
            logger.info("execution aborted at line %s: %s", exc.line_number, exc)
            raise
        finally:
            self._flush()

    def load(self, instructions: Sequence[Instruction]) -> None:
        self.instructions = list(instructions)
        self.pc = 0
        self.steps = 0

    def reset(self) -> None:
        """Clear all runtime state, keeping the loaded program."""
        self.stack.clear()
        self.variables.clear()
        self.output.clear()
        self._event_buffer.clear()
        self.pc = 0
        self.steps = 0

    @property
    def halted(self) -> bool:
        return self.pc >= len(self.instructions)

    def step(self) -> Optional[str]:
        """Executes a single instruction."""
        if self.halted:
            return "halt"
        if self.max_steps is not None and self.steps >= self.max_steps:
            raise self._error(ExecutionError, f"step limit of {self.max_steps} exceeded")

        inst = self.instructions[self.pc]
        pc = self.pc
        logger.debug("[pc=%d] line %d: %s  stack=%s", pc, inst.line, inst, self.stack)

        handler = self._handlers[inst.opcode]
        try:
            control = handler(inst)
        except ExecutionError:
            raise
        except Exception as exc:
            raise self._wrap_runtime_error(exc) from exc

        self.steps += 1
        if control != "jump":
            self.pc += 1
        if self.record_events:
            self._event_buffer.append(
                StepEvent(
                    pc=pc,
                    line=inst.line,
                    instruction=str(inst),
                    stack=tuple(self.stack),
                    next_pc=self.pc,
                    timestamp=time.time(),
                )
            )
        return None

    def run(self) -> List[float]:
        while self.step() != "halt":
            pass
        return self.output

    def drain_events(self) -> List[StepEvent]:
        events = list(self._event_buffer)
        self._event_buffer.clear()
        return events

    def snapshot_state(self) -> VMStateSnapshot:
        current = None
        if not self.halted:
            current = str(self.instructions[self.pc])
        return VMStateSnapshot(
            pc=self.pc,
            stack=tuple(self.stack),
            variables=dict(self.variables),
            output=list(self.output),
            current_instruction=current,
            halted=self.halted,
            steps=self.steps,
        )

    # -------------------- Error helpers --------------------
    def _capture_traceback(self) -> List[TraceFrame]:
        if 0 <= self.pc < len(self.instructions):
            inst = self.instructions[self.pc]
            file = inst.location.file if inst.location is not None else self.source_name
            return [TraceFrame(file, inst.line, self.pc, inst.text or str(inst))]
        return [TraceFrame(self.source_name, 0, self.pc)]

    def _error(self, error_cls, message: str) -> ExecutionError:
        return error_cls(message, self._capture_traceback())

    def _wrap_runtime_error(self, exc: Exception) -> ExecutionError:
        message = str(exc) or exc.__class__.__name__
        return ExecutionError(message, self._capture_traceback())

    # -------------------- Stack helpers --------------------
    def _require(self, count: int, inst: Instruction) -> None:
        if len(self.stack) < count:
            raise self._error(
                StackUnderflow,
                f"stack underflow: {inst.opcode.name} needs {count} value(s), found {len(self.stack)}",
            )

    def _pop(self, inst: Instruction) -> float:
        self._require(1, inst)
        return self.stack.pop()

    def _resolve(self, operand: Operand) -> float:
        if isinstance(operand, float):
            return operand
        try:
            return self.variables[operand]
        except KeyError:
            raise UndefinedVariable(operand, self._capture_traceback()) from None

    def _binary_operands(self, inst: Instruction) -> Tuple[float, float, int]:
        """Collect (lhs, rhs) without touching the stack.

        Operands written on the line are used as given; the missing ones come
        from the top of the stack, which holds the right-hand side.
        """
        explicit = [self._resolve(arg) for arg in inst.args]
        needed = 2 - len(explicit)
        self._require(needed, inst)
        popped = self.stack[len(self.stack) - needed:] if needed else []
        lhs, rhs = popped + explicit
        return lhs, rhs, needed

    def _flush(self) -> None:
        flush = getattr(self.output_stream, "flush", None)
        if flush is not None:
            flush()

    # -------------------- Opcode handlers --------------------
    def _op_PUSH(self, inst: Instruction):
        self.stack.append(inst.args[0])

    def _op_BINARY(self, inst: Instruction):
        lhs, rhs, needed = self._binary_operands(inst)
        try:
            result = _BINARY_OPERATIONS[inst.opcode](lhs, rhs)
        except DivisionByZero as exc:
            raise self._error(DivisionByZero, f"{exc}: {format_value(lhs)} / {format_value(rhs)}") from None
        if needed:
            del self.stack[-needed:]
        self.stack.append(result)

    def _op_PRINT(self, inst: Instruction):
        self._require(1, inst)
        value = self.stack[-1]
        self.output_stream.write(format_value(value) + "\n")
        self.output.append(value)

    def _op_SET(self, inst: Instruction):
        name = inst.args[0]
        if len(inst.args) > 1:
            value = inst.args[1]
        else:
            value = self._pop(inst)
        self.variables[name] = value

    def _op_GET(self, inst: Instruction):
        self.stack.append(self._resolve(inst.args[0]))

    def _op_INPUT(self, inst: Instruction):
        name = inst.args[0]
        self._flush()
        try:
            line = self.input_stream.readline()
        except (OSError, ValueError) as exc:
            raise self._error(InputError, f"failed to read input for '{name}': {exc}") from exc
        if not line:
            raise self._error(InputError, f"end of input while reading '{name}'")
        text = line.strip()
        if not is_number(text):
            raise self._error(InputError, f"invalid number for '{name}': {text!r}")
        self.variables[name] = try_parse_number(text)

    def _op_IF(self, inst: Instruction):
        condition = self._pop(inst)
        if condition != 0:
            logger.debug("IF on line %d taken (condition %s)", inst.line, format_value(condition))
            return None
        end_index = inst.end_index if inst.end_index is not None else len(self.instructions)
        if inst.else_index is not None:
            logger.debug("IF on line %d falls through to ELSE", inst.line)
            self.pc = inst.else_index + 1
        else:
            logger.debug("IF on line %d skipped", inst.line)
            self.pc = end_index
        return "jump"

    def _op_ELSE(self, inst: Instruction):
        # Only reached at the end of a taken IF block.
        self.pc = inst.end_index if inst.end_index is not None else len(self.instructions)
        return "jump"

    def _op_ENDIF(self, inst: Instruction):
        pass


def execute(lines: Iterable[str], **kwargs) -> Interpreter:
    """Run ``lines`` on a fresh interpreter and return it for inspection."""
    interpreter = Interpreter(**kwargs)
    interpreter.execute(lines)
    return interpreter


__all__ = ["Interpreter", "execute"]
