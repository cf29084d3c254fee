from __future__ import annotations

from .value_utils import format_value
from .vm_events import StepEvent


def format_stack(stack) -> str:
    return "[" + ", ".join(format_value(value) for value in stack) + "]"


def format_step_event(event: object) -> str:
    if isinstance(event, StepEvent):
        jump = "" if event.next_pc == event.pc + 1 else f" -> pc={event.next_pc}"
        return f"[pc={event.pc}] line {event.line}: {event.instruction}{jump} stack={format_stack(event.stack)}"
    return str(event)


__all__ = ["format_stack", "format_step_event"]
