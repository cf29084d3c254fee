from __future__ import annotations

import atexit
import sys
from pathlib import Path
from typing import List, Optional

from .debug import format_error
from .event_format import format_stack, format_step_event
from .instructions import Opcode
from .interpreter import Interpreter
from .parser import strip_comment
from .value_utils import format_value
from .vm_errors import ExecutionError

try:  # pragma: no cover - platform specific
    import readline  # type: ignore
except ImportError:  # pragma: no cover - Windows fallback
    readline = None  # type: ignore


_HISTORY_FILE = Path.home() / ".stackvm_history"
_COMPLETIONS = sorted(opcode.name for opcode in Opcode)


class ReplSession:
    MAIN_PROMPT = "> "
    CONTINUATION_PROMPT = "... "

    def __init__(
        self,
        *,
        interpreter: Optional[Interpreter] = None,
        trace: bool = False,
        enable_readline: bool = True,
    ) -> None:
        self.interpreter = interpreter or Interpreter(source_name="<repl>")
        self.trace = trace
        self._buffer: list[str] = []
        self._enable_readline = enable_readline
        self._configure_readline()

    # ------------------------------------------------------------------ public API
    def run(self) -> None:
        while True:
            prompt = self.CONTINUATION_PROMPT if self._buffer else self.MAIN_PROMPT
            try:
                line = self._read_line(prompt)
            except EOFError:
                print()
                break
            except KeyboardInterrupt:
                print()
                self._buffer.clear()
                continue
            result = self.process_line(line)
            if result is True:
                break

    def process_line(self, line: str) -> Optional[bool]:
        if not self._buffer:
            command_result = self._try_command(line)
            if command_result is not None:
                return command_result
        text = strip_comment(line).strip()
        first = text.split()[0].upper() if text else ""

        if self._buffer:
            # Inside an IF block: an empty line or ENDIF closes it.
            if first == "ENDIF":
                self._buffer.append(text)
            elif text:
                self._buffer.append(text)
                return None
            lines = list(self._buffer)
            self._buffer.clear()
            self._execute(lines)
            return None

        if not text:
            return None
        if first == "IF":
            self._buffer.append(text)
            return None
        self._execute([text])
        return None

    def is_incomplete(self) -> bool:
        return bool(self._buffer)

    # ------------------------------------------------------------------ helpers
    def _execute(self, lines: List[str]) -> None:
        self.interpreter.record_events = self.trace
        try:
            self.interpreter.execute(lines)
        except ExecutionError as exc:
            self._print_events()
            print(format_error(exc), file=sys.stderr)
            return
        self._print_events()

    def _print_events(self) -> None:
        events = self.interpreter.drain_events()
        if not self.trace:
            return
        for event in events:
            print(f"  {format_step_event(event)}")

    def _try_command(self, line: str) -> Optional[bool]:
        stripped = line.strip()
        if not stripped.startswith(":"):
            return None
        parts = stripped[1:].split()
        if not parts:
            return None
        command, *args = parts
        if command in {"quit", "q"}:
            return True
        if command == "help":
            self._print_help()
            return None
        if command == "stack":
            print(f"stack: {format_stack(self.interpreter.stack)}")
            return None
        if command == "vars":
            self._print_variables()
            return None
        if command == "reset":
            self.interpreter.reset()
            print("State cleared.")
            return None
        if command == "trace":
            self._handle_trace_command(args)
            return None
        print(f"Unknown command: :{command}")
        return None

    def _handle_trace_command(self, args: list[str]) -> None:
        if not args:
            print(f"Trace: {'on' if self.trace else 'off'}")
            return
        value = args[0].lower()
        if value not in {"on", "off"}:
            print(f"Invalid trace mode '{value}'. Available: off, on")
            return
        self.trace = value == "on"
        print(f"Trace {value}")

    def _print_variables(self) -> None:
        variables = self.interpreter.variables
        if not variables:
            print("No variables.")
            return
        print("Variables:")
        for name in sorted(variables):
            print(f"  {name} = {format_value(variables[name])}")

    def _print_help(self) -> None:
        print("Commands:")
        print("  :help             Show this help message")
        print("  :quit / :q        Exit the REPL")
        print("  :stack            Show the operand stack")
        print("  :vars             List variables")
        print("  :reset            Clear the stack and variables")
        print("  :trace on|off     Print each executed instruction")
        print("An IF line opens a block; finish it with ENDIF or an empty line.")

    def _configure_readline(self) -> None:
        if not self._enable_readline or readline is None:
            return
        if not sys.stdin.isatty():  # pragma: no cover - interactive only
            return
        try:
            readline.parse_and_bind("tab: complete")
            readline.set_completer(self._complete)
            if _HISTORY_FILE.exists():
                readline.read_history_file(str(_HISTORY_FILE))
        except OSError:  # pragma: no cover - unreadable history
            return
        atexit.register(self._save_history)

    def _complete(self, text: str, state: int) -> Optional[str]:
        prefix = text.upper()
        candidates = [name for name in _COMPLETIONS if name.startswith(prefix)]
        candidates.extend(sorted(name for name in self.interpreter.variables if name.startswith(text)))
        if state < len(candidates):
            return candidates[state]
        return None

    def _save_history(self) -> None:  # pragma: no cover - interactive only
        if readline is None:
            return
        try:
            readline.write_history_file(str(_HISTORY_FILE))
        except OSError:
            pass

    def _read_line(self, prompt: str) -> str:
        return input(prompt)


__all__ = ["ReplSession"]
