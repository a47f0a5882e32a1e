from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .config import DEFAULT_TAPE_SIZE, validate_tape_size
from .parser import (
    Command,
    DecrementData,
    DecrementPointer,
    IncrementData,
    IncrementPointer,
    Input,
    Loop,
    Output,
    loop_depth,
)
from .recursion import recursion_headroom
from .runtime import ByteStreams, ProgramResult, StandardStreams

POINTER_MASK = 0xFFFF
CELL_MASK = 0xFF


class StepLimitExceeded(RuntimeError):
    """Raised when Brainfuck execution exceeds the configured step budget."""


@dataclass
class BrainfuckInterpreter:
    """Walks the command tree directly, with the same machine model as the JIT."""

    FRAMES_PER_LEVEL = 2

    tape_size: int = DEFAULT_TAPE_SIZE
    max_steps: Optional[int] = None

    tape: List[int] = field(init=False, repr=False)
    pointer: int = field(init=False, repr=False)
    steps: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        validate_tape_size(self.tape_size)
        self.reset()

    def reset(self) -> None:
        self.tape = [0] * self.tape_size
        self.pointer = 0
        self.steps = 0

    def run(self, program: Sequence[Command], streams: Optional[ByteStreams] = None) -> ProgramResult:
        self.reset()
        streams = streams if streams is not None else StandardStreams()
        with recursion_headroom(loop_depth(program) * self.FRAMES_PER_LEVEL):
            self._execute(program, streams)
        return ProgramResult(pointer=self.pointer, value=self.tape[self._index()])

    def _index(self) -> int:
        return self.pointer % self.tape_size

    def _tick(self) -> None:
        if self.max_steps is not None and self.steps >= self.max_steps:
            raise StepLimitExceeded("Brainfuck program exceeded allowed step count")
        self.steps += 1

    def _execute(self, commands: Sequence[Command], streams: ByteStreams) -> None:
        for command in commands:
            if isinstance(command, Loop):
                self._tick()
                while self.tape[self._index()] != 0:
                    self._execute(command.body, streams)
                    self._tick()
                continue
            self._tick()
            self._execute_instruction(command, streams)

    def _execute_instruction(self, command: Command, streams: ByteStreams) -> None:
        if isinstance(command, IncrementPointer):
            self.pointer = (self.pointer + 1) & POINTER_MASK
        elif isinstance(command, DecrementPointer):
            self.pointer = (self.pointer - 1) & POINTER_MASK
        elif isinstance(command, IncrementData):
            self.tape[self._index()] = (self.tape[self._index()] + 1) & CELL_MASK
        elif isinstance(command, DecrementData):
            self.tape[self._index()] = (self.tape[self._index()] - 1) & CELL_MASK
        elif isinstance(command, Output):
            streams.write_byte(self.tape[self._index()])
        elif isinstance(command, Input):
            self.tape[self._index()] = streams.read_byte() & CELL_MASK
        else:
            raise TypeError(f"Unsupported command: {command!r}")


__all__ = [
    "BrainfuckInterpreter",
    "StepLimitExceeded",
]
