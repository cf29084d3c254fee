from __future__ import annotations

import dataclasses
from typing import Iterable, List, Optional

from .instructions import ARITHMETIC_OPCODES, Instruction, Opcode, Operand, SourceLocation
from .value_utils import is_identifier, is_number, try_parse_number
from .vm_errors import ParseError, StructuralError, UnknownInstruction
from .vm_events import TraceFrame

COMMENT_PREFIX = "#"


def strip_comment(line: str) -> str:
    index = line.find(COMMENT_PREFIX)
    if index >= 0:
        return line[:index]
    return line


def parse(script_lines: Iterable[str], *, source_name: str = "<script>") -> List[Instruction]:
    """Turn raw script lines into instructions with IF/ELSE block spans resolved.

    Blank and comment-only lines are dropped; every instruction keeps the
    1-based line number it came from.
    """
    program: List[Instruction] = []
    for line_number, raw in enumerate(script_lines, start=1):
        text = strip_comment(raw).strip()
        if not text:
            continue
        location = SourceLocation(source_name, line_number)
        program.append(parse_line(text, location, pc=len(program)))
    return resolve_blocks(program)


def parse_line(text: str, location: SourceLocation, *, pc: int = 0) -> Instruction:
    parts = text.split()
    frames = [TraceFrame(location.file, location.line, pc, text)]
    opcode = Opcode.lookup(parts[0])
    if opcode is None:
        raise UnknownInstruction(f"unknown instruction '{parts[0]}'", frames)
    name = opcode.name
    args = parts[1:]

    def arity(low: int, high: int) -> None:
        if low <= len(args) <= high:
            return
        expected = str(low) if low == high else f"{low} to {high}"
        raise ParseError(f"{name} takes {expected} argument(s), got {len(args)}", frames)

    def number(token: str) -> float:
        if not is_number(token):
            raise ParseError(f"{name}: malformed numeric literal '{token}'", frames)
        return try_parse_number(token)

    def variable(token: str) -> str:
        if not is_identifier(token):
            raise ParseError(f"{name}: invalid variable name '{token}'", frames)
        return token

    def operand(token: str) -> Operand:
        if is_number(token):
            return number(token)
        if is_identifier(token):
            return token
        raise ParseError(f"{name}: operand '{token}' is neither a number nor a variable name", frames)

    if opcode == Opcode.PUSH:
        arity(1, 1)
        operands: tuple = (number(args[0]),)
    elif opcode in ARITHMETIC_OPCODES:
        arity(0, 2)
        operands = tuple(operand(token) for token in args)
    elif opcode == Opcode.SET:
        arity(1, 2)
        operands = (variable(args[0]),) + tuple(number(token) for token in args[1:])
    elif opcode in (Opcode.GET, Opcode.INPUT):
        arity(1, 1)
        operands = (variable(args[0]),)
    else:
        # PRINT, IF, ELSE, ENDIF
        arity(0, 0)
        operands = ()

    return Instruction(opcode, operands, location, text)


def resolve_blocks(program: List[Instruction]) -> List[Instruction]:
    """Pair IF/ELSE/ENDIF lines and record jump targets on them.

    Conditionals do not nest. A block without ENDIF runs to the end of the
    program, so any IF after it is nested inside it.
    """
    resolved = list(program)
    open_if: Optional[int] = None
    else_index: Optional[int] = None

    def fail(message: str, index: int) -> StructuralError:
        instr = resolved[index]
        location = instr.location or SourceLocation("<script>", 0)
        return StructuralError(message, [TraceFrame(location.file, location.line, index, instr.text)])

    def close(end_index: int) -> None:
        assert open_if is not None
        resolved[open_if] = dataclasses.replace(
            resolved[open_if], else_index=else_index, end_index=end_index
        )
        if else_index is not None:
            resolved[else_index] = dataclasses.replace(resolved[else_index], end_index=end_index)

    for index, instr in enumerate(resolved):
        if instr.opcode == Opcode.IF:
            if open_if is not None:
                raise fail(
                    f"nested IF is not supported (block opened on line {resolved[open_if].line} is still open)",
                    index,
                )
            open_if, else_index = index, None
        elif instr.opcode == Opcode.ELSE:
            if open_if is None:
                raise fail("ELSE without IF", index)
            if else_index is not None:
                raise fail(f"second ELSE for IF on line {resolved[open_if].line}", index)
            else_index = index
        elif instr.opcode == Opcode.ENDIF:
            if open_if is None:
                raise fail("ENDIF without IF", index)
            close(index + 1)
            open_if, else_index = None, None

    if open_if is not None:
        close(len(resolved))
    return resolved


__all__ = ["parse", "parse_line", "resolve_blocks", "strip_comment"]
