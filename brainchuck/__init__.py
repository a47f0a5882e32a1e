from .codegen import Codegen
from .execution import (
    Engine,
    EngineCreationError,
    EntryPointNotFoundError,
    ExecutionError,
    JitEngine,
    emit_text,
    run,
)
from .interpreter import BrainfuckInterpreter, StepLimitExceeded
from .parser import BrokenLoopError, Command, Loop, NestingTooDeepError, ParseError, parse
from .runtime import BufferedStreams, ProgramResult, StandardStreams

__all__ = [
    "BrainfuckInterpreter",
    "BrokenLoopError",
    "BufferedStreams",
    "Codegen",
    "Command",
    "Engine",
    "EngineCreationError",
    "EntryPointNotFoundError",
    "ExecutionError",
    "JitEngine",
    "Loop",
    "NestingTooDeepError",
    "ParseError",
    "ProgramResult",
    "StandardStreams",
    "StepLimitExceeded",
    "emit_text",
    "parse",
    "run",
]
