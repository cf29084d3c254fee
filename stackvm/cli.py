from __future__ import annotations

import argparse
import contextlib
import logging
import sys
from typing import IO, Optional

from .debug import format_error, format_traceback
from .event_format import format_stack
from .interpreter import Interpreter
from .parser import parse
from .repl import ReplSession
from .runtime import read_program
from .vm_errors import ExecutionError

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="stackvm", description="Run stack machine instruction scripts")
    parser.add_argument("script", nargs="?", help="Path to the instruction script")
    parser.add_argument("--trace", action="store_true", help="Log every executed instruction to stderr")
    parser.add_argument("--stack", action="store_true", help="Print a source traceback on error")
    parser.add_argument(
        "--print-stack",
        action="store_true",
        help="Print the operand stack after a successful run",
    )
    parser.add_argument("--input", dest="input_path", help="Read Input values from FILE instead of stdin")
    parser.add_argument("--repl", action="store_true", help="Start an interactive REPL session")
    parser.add_argument(
        "--visualize",
        nargs="?",
        const="gui",
        choices=["gui", "curses"],
        help="Step through the script visually (optional mode: gui or curses)",
    )
    args = parser.parse_args(argv)
    _configure_logging(args.trace)

    if args.repl and args.script:
        parser.error("--repl cannot be combined with a script")
    if args.visualize and args.repl:
        parser.error("--visualize cannot be combined with --repl")
    if args.repl or (not args.script and sys.stdin.isatty()):
        session = ReplSession(trace=args.trace)
        session.run()
        return 0
    if not args.script:
        parser.error("missing script path")

    try:
        lines = read_program(args.script)
    except OSError as exc:
        print(f"stackvm: cannot read {args.script}: {exc.strerror or exc}", file=sys.stderr)
        return 1

    with contextlib.ExitStack() as resources:
        input_stream: Optional[IO[str]] = None
        if args.input_path:
            try:
                input_stream = resources.enter_context(open(args.input_path, encoding="utf-8"))
            except OSError as exc:
                print(f"stackvm: cannot read {args.input_path}: {exc.strerror or exc}", file=sys.stderr)
                return 1
        interpreter = Interpreter(input_stream=input_stream, source_name=args.script)
        try:
            if args.visualize:
                return _visualize(interpreter, lines, args.visualize)
            interpreter.execute(lines)
        except ExecutionError as exc:
            if args.stack:
                print(format_traceback(exc.frames), file=sys.stderr)
            print(f"stackvm: {format_error(exc)}", file=sys.stderr)
            return 1

    if args.print_stack:
        print(f"stack: {format_stack(interpreter.stack)}")
    return 0


def _configure_logging(trace: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if trace else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    if trace:
        logging.getLogger("stackvm").setLevel(logging.DEBUG)


def _visualize(interpreter: Interpreter, lines: list[str], mode: str) -> int:
    interpreter.load(parse(lines, source_name=interpreter.source_name))

    vm_class = None
    gui_exc: Exception | None = None
    if mode == "gui":
        try:
            from .visualizer import VMVisualizer as vm_class  # type: ignore
        except ImportError as e:  # pragma: no cover - pygame missing/unavailable
            gui_exc = e
            mode = "curses"

    if mode == "curses":
        try:
            from .visualizer_headless import VMVisualizer as vm_class  # type: ignore
        except ImportError as headless_exc:  # pragma: no cover
            if gui_exc is not None:
                print(
                    "Visualizer unavailable. GUI error: "
                    f"{gui_exc}; Headless error: {headless_exc}",
                    file=sys.stderr,
                )
            else:
                print(f"Visualizer unavailable: {headless_exc}", file=sys.stderr)
            return 1

    assert vm_class is not None
    visualizer = vm_class(interpreter)
    visualizer.run()
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
