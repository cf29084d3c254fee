from __future__ import annotations

import pathlib
from typing import IO, List, Optional, Sequence

from .interpreter import Interpreter


def split_lines(source: str) -> List[str]:
    """Split script text into lines in source order.

    Blank lines are kept so line numbers stay accurate; the parser skips them.
    """
    return source.splitlines()


def read_program(path: str) -> List[str]:
    data = pathlib.Path(path).read_text(encoding="utf-8")
    return split_lines(data)


def run_lines(
    lines: Sequence[str],
    interpreter: Optional[Interpreter] = None,
    *,
    source_name: str = "<string>",
    input_stream: Optional[IO[str]] = None,
    output_stream: Optional[IO[str]] = None,
) -> List[float]:
    """Execute script lines and return the values PRINT wrote, in order."""
    if interpreter is None:
        interpreter = Interpreter(
            input_stream=input_stream,
            output_stream=output_stream,
            source_name=source_name,
        )
    start = len(interpreter.output)
    interpreter.execute(lines)
    return interpreter.output[start:]


def run_source(source: str, interpreter: Optional[Interpreter] = None, **kwargs) -> List[float]:
    return run_lines(split_lines(source), interpreter, **kwargs)


def run_script(path: str, interpreter: Optional[Interpreter] = None, **kwargs) -> List[float]:
    lines = read_program(path)
    if interpreter is not None:
        interpreter.source_name = path
        return run_lines(lines, interpreter)
    return run_lines(lines, source_name=path, **kwargs)


__all__ = ["read_program", "run_lines", "run_script", "run_source", "split_lines"]
