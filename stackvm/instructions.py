from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Tuple, Union


@dataclass(frozen=True)
class SourceLocation:
    file: str
    line: int


class Opcode(Enum):
    PUSH = auto()    # PUSH value
    ADD = auto()     # ADD [lhs [rhs]]
    SUB = auto()     # SUB [lhs [rhs]]
    MUL = auto()     # MUL [lhs [rhs]]
    DIV = auto()     # DIV [lhs [rhs]]
    PRINT = auto()
    SET = auto()     # SET name [value]
    GET = auto()     # GET name
    INPUT = auto()   # INPUT name

    IF = auto()
    ELSE = auto()
    ENDIF = auto()

    @classmethod
    def lookup(cls, token: str) -> Optional["Opcode"]:
        """Return the opcode named by ``token`` regardless of its case."""
        return cls.__members__.get(token.upper())


ARITHMETIC_OPCODES = frozenset({Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.DIV})

Operand = Union[float, str]


@dataclass(frozen=True)
class Instruction:
    opcode: Opcode
    args: Tuple[Operand, ...] = ()  # numeric literals already converted to float
    location: SourceLocation | None = None
    text: str = ""
    # Resolved by the parser for IF/ELSE: where the ELSE sits and the first
    # index past the conditional block.
    else_index: int | None = None
    end_index: int | None = None

    @property
    def line(self) -> int:
        return self.location.line if self.location is not None else 0

    def __str__(self):
        if self.text:
            return self.text
        return f"{self.opcode.name} {' '.join(map(str, self.args))}".rstrip()


__all__ = [
    "ARITHMETIC_OPCODES",
    "Instruction",
    "Opcode",
    "Operand",
    "SourceLocation",
]
