from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping, Sequence


@dataclass(frozen=True)
class TraceFrame:
    """Source position of the instruction an error was raised from."""

    file: str
    line: int
    pc: int
    text: str = ""


@dataclass(frozen=True)
class StepEvent:
    pc: int
    line: int
    instruction: str
    stack: Sequence[float]
    next_pc: int
    timestamp: float


@dataclass
class VMStateSnapshot:
    pc: int
    stack: Sequence[float]
    variables: Mapping[str, float]
    output: List[float] = field(default_factory=list)
    current_instruction: str | None = None
    halted: bool = False
    steps: int = 0


__all__ = ["StepEvent", "TraceFrame", "VMStateSnapshot"]
