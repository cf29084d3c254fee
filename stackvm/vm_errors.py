from __future__ import annotations

from typing import Sequence

from .vm_events import TraceFrame


class ExecutionError(RuntimeError):
    """Error raised while parsing or executing a script, with source frames attached."""

    def __init__(self, message: str, frames: Sequence[TraceFrame] = ()):
        super().__init__(message)
        self.message = message
        self.frames = list(frames)

    @property
    def frame(self) -> TraceFrame | None:
        return self.frames[0] if self.frames else None

    @property
    def line_number(self) -> int | None:
        frame = self.frame
        return frame.line if frame is not None else None

    @property
    def line_text(self) -> str | None:
        frame = self.frame
        return frame.text if frame is not None else None


class ParseError(ExecutionError):
    """Malformed numeric literal or malformed instruction line."""


class UnknownInstruction(ExecutionError):
    pass


class StackUnderflow(ExecutionError):
    pass


class UndefinedVariable(ExecutionError):
    def __init__(self, name: str, frames: Sequence[TraceFrame] = ()):
        super().__init__(f"undefined variable '{name}'", frames)
        self.name = name


class DivisionByZero(ExecutionError):
    pass


class InputError(ExecutionError):
    pass


class StructuralError(ExecutionError):
    """IF/ELSE/ENDIF lines that do not form a valid conditional block."""


__all__ = [
    "DivisionByZero",
    "ExecutionError",
    "InputError",
    "ParseError",
    "StackUnderflow",
    "StructuralError",
    "UndefinedVariable",
    "UnknownInstruction",
]
