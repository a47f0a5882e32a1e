from __future__ import annotations

DEFAULT_TAPE_SIZE = 50
MAX_TAPE_SIZE = 0xFFFF

DEFAULT_STRATEGY = "descent"
DEFAULT_ENTRY_POINT = "main"

# Deepest loop nesting either parser accepts.
MAX_NESTING_DEPTH = 1000

# Target machine optimisation level used by the JIT (0-3).
DEFAULT_OPT_LEVEL = 3


def validate_tape_size(tape_size: int) -> int:
    if not (1 <= tape_size <= MAX_TAPE_SIZE):
        raise ValueError(f"Tape size must be between 1 and {MAX_TAPE_SIZE}, got {tape_size}")
    return tape_size


__all__ = [
    "DEFAULT_ENTRY_POINT",
    "DEFAULT_OPT_LEVEL",
    "DEFAULT_STRATEGY",
    "DEFAULT_TAPE_SIZE",
    "MAX_NESTING_DEPTH",
    "MAX_TAPE_SIZE",
    "validate_tape_size",
]
