from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Type

from parsimonious.exceptions import ParseError as GrammarMismatch
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from .config import DEFAULT_STRATEGY, MAX_NESTING_DEPTH
from .recursion import recursion_headroom

logger = logging.getLogger(__name__)


class ParseError(Exception):
    """Base class for errors raised while building the command tree."""


class BrokenLoopError(ParseError):
    """A ``[`` without a matching ``]`` or a ``]`` without an opening ``[``."""

    def __init__(self, bracket: str, position: int) -> None:
        self.bracket = bracket
        self.position = position
        super().__init__(f"Unmatched '{bracket}' at position {position}")


class NestingTooDeepError(ParseError):
    def __init__(self, position: int, limit: int) -> None:
        self.position = position
        self.limit = limit
        super().__init__(f"Loop at position {position} is nested deeper than {limit} levels")


# === Command tree ===


class Command:
    pass


@dataclass(frozen=True)
class IncrementPointer(Command):
    pass


@dataclass(frozen=True)
class DecrementPointer(Command):
    pass


@dataclass(frozen=True)
class IncrementData(Command):
    pass


@dataclass(frozen=True)
class DecrementData(Command):
    pass


@dataclass(frozen=True)
class Input(Command):
    pass


@dataclass(frozen=True)
class Output(Command):
    pass


@dataclass(frozen=True)
class Loop(Command):
    body: Tuple[Command, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "body", tuple(self.body))


INSTRUCTIONS: Dict[str, Type[Command]] = {
    ">": IncrementPointer,
    "<": DecrementPointer,
    "+": IncrementData,
    "-": DecrementData,
    ",": Input,
    ".": Output,
}


# === Nesting ===


def nesting_depth(source: str) -> int:
    """Deepest loop nesting in ``source``.

    Unmatched brackets are left for the parsers to report. Raises
    ``NestingTooDeepError`` at the first ``[`` past ``MAX_NESTING_DEPTH``.
    """
    depth = deepest = 0
    for index, char in enumerate(source):
        if char == "[":
            depth += 1
            if depth > MAX_NESTING_DEPTH:
                raise NestingTooDeepError(index, MAX_NESTING_DEPTH)
            deepest = max(deepest, depth)
        elif char == "]" and depth:
            depth -= 1
    return deepest


# === Recursive-descent parser ===


class Parser:
    FRAMES_PER_LEVEL = 2

    def parse(self, source: str) -> List[Command]:
        depth = nesting_depth(source)
        self.source = source
        self.pos = 0
        with recursion_headroom(depth * self.FRAMES_PER_LEVEL):
            return self._parse_commands(open_bracket=None)

    def _peek(self) -> Optional[str]:
        if self.pos >= len(self.source):
            return None
        return self.source[self.pos]

    def _advance(self) -> Optional[str]:
        char = self._peek()
        if char is not None:
            self.pos += 1
        return char

    def _parse_commands(self, open_bracket: Optional[int]) -> List[Command]:
        commands: List[Command] = []
        while self.pos < len(self.source):
            char = self._advance()
            if char == "]":
                if open_bracket is None:
                    raise BrokenLoopError("]", self.pos - 1)
                return commands
            if char == "[":
                body = self._parse_commands(open_bracket=self.pos - 1)
                commands.append(Loop(body=body))
            elif char in INSTRUCTIONS:
                commands.append(INSTRUCTIONS[char]())
        if open_bracket is not None:
            raise BrokenLoopError("[", open_bracket)
        return commands


# === Grammar-driven parser ===


BRAINFUCK_GRAMMAR = Grammar(
    r"""
    program     = command*
    command     = loop / instruction / comment
    loop        = "[" program "]"
    instruction = ">" / "<" / "+" / "-" / "," / "."
    comment     = ~r"[^\[\]<>+\-,.]+"
    """
)


class _CommandTreeBuilder(NodeVisitor):
    def visit_program(self, node, visited_children):
        return [child for child in visited_children if child is not None]

    def visit_command(self, node, visited_children):
        return visited_children[0]

    def visit_loop(self, node, visited_children):
        _, body, _ = visited_children
        return Loop(body=body)

    def visit_instruction(self, node, visited_children):
        return INSTRUCTIONS[node.text]()

    def visit_comment(self, node, visited_children):
        return None

    def generic_visit(self, node, visited_children):
        return visited_children or node


class GrammarParser:
    # Matching and visiting both recurse through program, command and loop.
    FRAMES_PER_LEVEL = 10

    def parse(self, source: str) -> List[Command]:
        depth = nesting_depth(source)
        with recursion_headroom(depth * self.FRAMES_PER_LEVEL):
            try:
                tree = BRAINFUCK_GRAMMAR.parse(source)
            except GrammarMismatch as exc:
                raise self._locate_imbalance(source, exc.pos) from exc
            return _CommandTreeBuilder().visit(tree)

    def _locate_imbalance(self, source: str, fallback: int) -> BrokenLoopError:
        # The PEG match only knows where it stopped; find the bracket at fault.
        stack: List[int] = []
        for index, char in enumerate(source):
            if char == "[":
                stack.append(index)
            elif char == "]":
                if not stack:
                    return BrokenLoopError("]", index)
                stack.pop()
        if stack:
            return BrokenLoopError("[", stack.pop())
        return BrokenLoopError("[", fallback)


STRATEGIES = {
    "descent": Parser,
    "grammar": GrammarParser,
}


def parse(source: str, strategy: str = DEFAULT_STRATEGY) -> List[Command]:
    try:
        parser_class = STRATEGIES[strategy]
    except KeyError as exc:
        raise ValueError(f"Unknown parser strategy '{strategy}'") from exc
    program = parser_class().parse(source)
    logger.debug("Parsed %d top-level commands with the %s parser", len(program), strategy)
    return program


def count_commands(program: Sequence[Command]) -> int:
    """Number of commands in the tree, loop nodes included."""
    total = 0
    pending = [program]
    while pending:
        commands = pending.pop()
        total += len(commands)
        pending.extend(command.body for command in commands if isinstance(command, Loop))
    return total


def loop_depth(program: Sequence[Command]) -> int:
    """Deepest loop nesting in an already built tree."""
    deepest = 0
    pending = [(program, 0)]
    while pending:
        commands, depth = pending.pop()
        deepest = max(deepest, depth)
        pending.extend((command.body, depth + 1) for command in commands if isinstance(command, Loop))
    return deepest


__all__ = [
    "BRAINFUCK_GRAMMAR",
    "BrokenLoopError",
    "Command",
    "DecrementData",
    "DecrementPointer",
    "GrammarParser",
    "IncrementData",
    "IncrementPointer",
    "Input",
    "INSTRUCTIONS",
    "Loop",
    "NestingTooDeepError",
    "Output",
    "ParseError",
    "Parser",
    "STRATEGIES",
    "count_commands",
    "loop_depth",
    "nesting_depth",
    "parse",
]
