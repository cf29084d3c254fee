from __future__ import annotations

import curses
from dataclasses import dataclass
from typing import List, Optional

from .debug import format_error
from .event_format import format_stack, format_step_event
from .instructions import Instruction
from .interpreter import Interpreter
from .value_utils import format_value
from .vm_errors import ExecutionError


@dataclass
class _VMState:
    vm: Interpreter
    step: int = 0
    halted: bool = False
    error: Optional[ExecutionError] = None


class VMVisualizer:
    """Curses-based headless visualizer for the stack interpreter.

    Controls:
      - SPACE / p : toggle auto-run
      - n / →     : single-step
      - r         : reset interpreter state
      - e         : toggle step log visibility
      - q         : quit

    Designed for environments without pygame but with a terminal.
    """

    def __init__(self, interpreter: Interpreter, max_steps: Optional[int] = None):
        self._program: List[Instruction] = list(interpreter.instructions)
        interpreter.record_events = True
        self.state = _VMState(vm=interpreter, halted=interpreter.halted)
        self.max_steps = max_steps
        self.auto_run = False
        self.message = "Press SPACE to run/pause, n to step, q to quit."
        self.event_log: List[str] = []
        self.show_events = True

    # ---------------------------- public API ----------------------------- #
    def run(self) -> None:  # pragma: no cover - interactive utility
        curses.wrapper(self._main)

    # --------------------------- internal helpers ------------------------ #
    def _main(self, stdscr: "curses._CursesWindow") -> None:  # pragma: no cover - interactive utility
        curses.curs_set(0)
        stdscr.nodelay(False)
        while True:
            self._draw(stdscr)
            stdscr.timeout(120 if (self.auto_run and not self.state.halted) else -1)
            key = stdscr.getch()
            if key == -1:
                if self.auto_run and not self.state.halted:
                    self._advance(auto=True)
                continue

            if not self._handle_key(key):
                break

    def _handle_key(self, key: int) -> bool:
        """Apply one key press; return False when the viewer should close."""
        if key in (ord("q"), ord("Q")):
            return False
        if key in (ord(" "), ord("p"), ord("P")):
            if self.state.halted:
                self.message = "Program halted. Press r to reset or q to quit."
            else:
                self.auto_run = not self.auto_run
                self.message = "Running..." if self.auto_run else "Paused."
            return True
        if key in (ord("n"), curses.KEY_RIGHT):
            self._advance(auto=False)
            return True
        if key in (ord("r"), ord("R")):
            self._reset()
            return True
        if key in (ord("e"), ord("E")):
            self.show_events = not self.show_events
            self.message = "Step log visible." if self.show_events else "Step log hidden."
            return True
        self.message = f"Unhandled key: {key}."
        return True

    def _advance(self, auto: bool) -> None:
        if self.state.halted:
            self.auto_run = False
            return
        if self.max_steps is not None and self.state.step >= self.max_steps:
            self.auto_run = False
            self.message = "Reached max steps; press r to reset or q to quit."
            return
        try:
            control = self.state.vm.step()
        except ExecutionError as exc:
            self.state.error = exc
            self.state.halted = True
            self.auto_run = False
            self.message = f"Error: {format_error(exc)}"
            return
        finally:
            self._consume_events()
        self.state.step += 1

        if control == "halt" or self.state.vm.halted:
            self.state.halted = True
            self.auto_run = False
            self.message = "Halted. Press r to reset or q to quit."
        elif auto:
            self.message = "Running..."

    def _consume_events(self) -> None:
        for event in self.state.vm.drain_events():
            self.event_log.append(format_step_event(event))
        if len(self.event_log) > 200:
            self.event_log = self.event_log[-200:]

    def _reset(self) -> None:
        vm = self.state.vm
        vm.reset()
        vm.load(self._program)
        self.state = _VMState(vm=vm, halted=vm.halted)
        self.auto_run = False
        self.message = "Reset. Press SPACE to run or n to step."
        self.event_log.clear()

    def _instruction_lines(self, view_height: int) -> List[tuple]:
        """Return ``(text, is_cursor)`` pairs for the window around the pc."""
        if not self._program:
            return [("<no instructions>", False)]
        pc_index = min(self.state.vm.pc, len(self._program) - 1)
        start = max(0, pc_index - view_height // 2)
        end = min(len(self._program), start + view_height)
        lines = []
        for idx in range(start, end):
            is_cursor = idx == self.state.vm.pc
            prefix = "→" if is_cursor else " "
            inst = self._program[idx]
            lines.append((f"{prefix}{idx:03d} L{inst.line:<4} {inst}", is_cursor))
        return lines

    def _draw(self, stdscr: "curses._CursesWindow") -> None:  # pragma: no cover - interactive utility
        stdscr.erase()
        height, width = stdscr.getmaxyx()
        self._write(stdscr, 0, 0, "Instructions (SPACE: run/pause, n: step, r: reset, q: quit)")

        inst_view_height = min(12, max(1, height - 12))
        row = 2
        for text, is_cursor in self._instruction_lines(inst_view_height):
            attr = curses.A_REVERSE if is_cursor else curses.A_NORMAL
            self._write(stdscr, row, 0, text, attr)
            row += 1

        row += 1
        self._write(
            stdscr,
            row,
            0,
            f"Step: {self.state.step} | PC: {self.state.vm.pc} | Auto: {self.auto_run} | Halted: {self.state.halted}",
        )

        snapshot = self.state.vm.snapshot_state()
        row += 2
        self._write(stdscr, row, 0, f"Stack: {format_stack(snapshot.stack)}")

        row += 2
        self._write(stdscr, row, 0, "Variables:")
        for i, name in enumerate(sorted(snapshot.variables)):
            self._write(stdscr, row + 1 + i, 2, f"{name} = {format_value(snapshot.variables[name])}")
        row = min(height - 6, row + 2 + max(1, len(snapshot.variables)))

        self._write(stdscr, row, 0, "Output:")
        output_repr = ", ".join(format_value(value) for value in snapshot.output)
        self._write(stdscr, row + 1, 2, output_repr or "<empty>")

        if self.show_events:
            recent = list(reversed(self.event_log[-5:]))
            self._write(stdscr, 2, 60, "Steps:")
            for i, line in enumerate(recent):
                self._write(stdscr, 3 + i, 62, line)
        else:
            self._write(stdscr, 2, 60, "Steps: <hidden>")

        self._write(stdscr, height - 2, 0, self.message[: width - 1])
        stdscr.refresh()

    def _write(self, stdscr: "curses._CursesWindow", y: int, x: int, text: str, attr: int = curses.A_NORMAL) -> None:  # pragma: no cover - interactive utility
        height, width = stdscr.getmaxyx()
        if 0 <= y < height:
            try:
                stdscr.addnstr(y, x, text, max(0, width - x - 1), attr)
            except curses.error:
                pass


__all__ = ["VMVisualizer"]
