from __future__ import annotations

from typing import Sequence

from ..vm_errors import ExecutionError
from ..vm_events import TraceFrame


def format_location(frame: TraceFrame | None) -> str:
    if frame is None:
        return "<unknown>"
    return f"{frame.file}:{frame.line}"


def format_error(error: ExecutionError) -> str:
    """Render an error as ``file:line: message`` for the CLI and REPL."""
    frame = error.frame
    if frame is None:
        return error.message
    return f"{format_location(frame)}: {error.message}"


def format_traceback(frames: Sequence[TraceFrame]) -> str:
    lines = ["traceback:"]
    for frame in frames:
        lines.append(f"\t{format_location(frame)}: at instruction {frame.pc}: {frame.text}")
    return "\n".join(lines)


__all__ = ["format_error", "format_location", "format_traceback"]
