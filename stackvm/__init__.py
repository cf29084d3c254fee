from .instructions import Instruction, Opcode, SourceLocation
from .interpreter import Interpreter, execute
from .parser import parse
from .runtime import read_program, run_script, run_source
from .vm_errors import (
    DivisionByZero,
    ExecutionError,
    InputError,
    ParseError,
    StackUnderflow,
    StructuralError,
    UndefinedVariable,
    UnknownInstruction,
)

__all__ = [
    "execute",
    "parse",
    "read_program",
    "run_script",
    "run_source",
    "Interpreter",
    "Instruction",
    "Opcode",
    "SourceLocation",
    "ExecutionError",
    "ParseError",
    "UnknownInstruction",
    "StackUnderflow",
    "UndefinedVariable",
    "DivisionByZero",
    "InputError",
    "StructuralError",
]
