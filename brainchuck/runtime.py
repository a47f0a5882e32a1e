from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Optional, Protocol

# Symbol names of the capabilities the generated code calls. They follow the
# C library so the emitted IR can also be linked against libc.
OUTPUT_SYMBOL = "putchar"
INPUT_SYMBOL = "getchar"


@dataclass(frozen=True)
class ProgramResult:
    """Final machine state: the data pointer and the cell it points at."""

    pointer: int
    value: int


class ByteStreams(Protocol):
    def read_byte(self) -> int:
        ...

    def write_byte(self, value: int) -> None:
        ...


class StandardStreams:
    """Process standard input/output. End of input reads as 0."""

    def __init__(self, stdin: Optional[BinaryIO] = None, stdout: Optional[BinaryIO] = None) -> None:
        self._stdin = stdin
        self._stdout = stdout

    # Resolved on use so redirections of sys.stdin/sys.stdout are honoured.
    @property
    def stdin(self) -> BinaryIO:
        return self._stdin if self._stdin is not None else sys.stdin.buffer

    @property
    def stdout(self) -> BinaryIO:
        return self._stdout if self._stdout is not None else sys.stdout.buffer

    def read_byte(self) -> int:
        data = self.stdin.read(1)
        if not data:
            return 0
        return data[0]

    def write_byte(self, value: int) -> None:
        self.stdout.write(bytes([value & 0xFF]))
        self.stdout.flush()


class BufferedStreams:
    """In-memory streams: input comes from a byte string, output is collected."""

    def __init__(self, input_data: Iterable[int] = b"") -> None:
        self.input_data = bytes(input_data)
        self.position = 0
        self.output = bytearray()

    def read_byte(self) -> int:
        if self.position >= len(self.input_data):
            return 0
        value = self.input_data[self.position]
        self.position += 1
        return value

    def write_byte(self, value: int) -> None:
        self.output.append(value & 0xFF)

    def output_text(self) -> str:
        return self.output.decode("latin-1")


__all__ = [
    "BufferedStreams",
    "ByteStreams",
    "INPUT_SYMBOL",
    "OUTPUT_SYMBOL",
    "ProgramResult",
    "StandardStreams",
]
