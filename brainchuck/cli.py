from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .codegen import Codegen
from .config import DEFAULT_STRATEGY, DEFAULT_TAPE_SIZE
from .execution import ExecutionError, emit_text, run
from .interpreter import BrainfuckInterpreter, StepLimitExceeded
from .parser import STRATEGIES, ParseError, parse

logger = logging.getLogger(__name__)


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    source_path = Path(source)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {source}")
    return source_path.read_text(encoding="utf-8")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Brainfuck compiler and JIT runner backed by LLVM")
    parser.add_argument(
        "source",
        help='The source file to read the program from. Use "-" to read it from stdin',
    )
    parser.add_argument(
        "-p",
        "--print-code",
        action="store_true",
        help="Print IR code instead of running the program",
    )
    parser.add_argument(
        "--tape-size",
        type=int,
        default=DEFAULT_TAPE_SIZE,
        help=f"Number of cells on the tape (default: {DEFAULT_TAPE_SIZE})",
    )
    parser.add_argument(
        "--strategy",
        choices=sorted(STRATEGIES),
        default=DEFAULT_STRATEGY,
        help=f"Parser implementation (default: {DEFAULT_STRATEGY})",
    )
    parser.add_argument(
        "--interpret",
        action="store_true",
        help="Run the command tree with the reference interpreter instead of the JIT",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Step budget for --interpret (default: unlimited). The JIT does not count steps",
    )
    parser.add_argument(
        "--show-result",
        action="store_true",
        help="Print the final pointer and cell value to stderr after running",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)
    if args.max_steps is not None and not (args.interpret or args.print_code):
        parser.error("--max-steps requires --interpret")
    _configure_logging(args.verbose)

    try:
        source_text = _read_source(args.source)
    except OSError as exc:
        print(f"Error reading program: {exc}", file=sys.stderr)
        return 1

    try:
        program = parse(source_text, strategy=args.strategy)
    except ParseError as exc:
        print(f"Error parsing program: {exc}", file=sys.stderr)
        return 1

    try:
        if args.print_code:
            module = Codegen().compile(program, tape_size=args.tape_size)
            sys.stdout.write(emit_text(module))
            sys.stdout.write("\n")
            return 0
        if args.interpret:
            result = BrainfuckInterpreter(tape_size=args.tape_size, max_steps=args.max_steps).run(program)
        else:
            result = run(Codegen().compile(program, tape_size=args.tape_size))
    except (ExecutionError, StepLimitExceeded, ValueError) as exc:
        print(f"Program execution failed: {exc}", file=sys.stderr)
        return 1

    sys.stdout.flush()
    logger.debug("Program finished with %s", result)
    if args.show_result:
        print(f"pointer={result.pointer} value={result.value}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
