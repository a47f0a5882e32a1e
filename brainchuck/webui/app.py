from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel, Field, validator

from brainchuck.codegen import Codegen
from brainchuck.config import DEFAULT_STRATEGY, DEFAULT_TAPE_SIZE, MAX_TAPE_SIZE
from brainchuck.execution import ExecutionError, emit_text, run
from brainchuck.interpreter import BrainfuckInterpreter, StepLimitExceeded
from brainchuck.parser import STRATEGIES, Command, ParseError, count_commands, parse
from brainchuck.runtime import BufferedStreams, ProgramResult

logger = logging.getLogger(__name__)

ENGINES = ("jit", "interpreter")


def _string_to_input_bytes(data: str) -> bytes:
    # One byte per character; anything past U+00FF is rejected by RunRequest.
    return data.encode("latin-1")


class CompileRequest(BaseModel):
    code: str = ""
    tape_size: int = Field(default=DEFAULT_TAPE_SIZE, ge=1, le=MAX_TAPE_SIZE)
    strategy: str = DEFAULT_STRATEGY

    @validator("strategy")
    def validate_strategy(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in STRATEGIES:
            raise ValueError(f"strategy must be one of {', '.join(sorted(STRATEGIES))}")
        return normalized


class CompileResponse(BaseModel):
    ir: str
    command_count: int


class RunRequest(CompileRequest):
    input: str = ""
    engine: str = "jit"
    max_steps: Optional[int] = Field(default=None, ge=1)

    @validator("engine")
    def validate_engine(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in ENGINES:
            raise ValueError("engine must be either 'jit' or 'interpreter'")
        return normalized

    @validator("input")
    def validate_input(cls, value: str) -> str:
        try:
            value.encode("latin-1")
        except UnicodeEncodeError as exc:
            raise ValueError(
                f"input character {value[exc.start]!r} at position {exc.start} does not fit in a byte"
            ) from exc
        return value

    @validator("max_steps")
    def validate_max_steps(cls, value: Optional[int], values) -> Optional[int]:
        if value is not None and values.get("engine") == "jit":
            raise ValueError("max_steps is only supported by the interpreter engine")
        return value


class RunResponse(BaseModel):
    pointer: int
    value: int
    output: str


def create_app() -> FastAPI:
    app = FastAPI(title="brainchuck API", version="0.1.0")

    def _parse_or_422(payload: CompileRequest) -> List[Command]:
        try:
            return parse(payload.code, strategy=payload.strategy)
        except ParseError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc

    @app.post("/api/compile", response_model=CompileResponse)
    def compile_program(payload: CompileRequest) -> CompileResponse:
        program = _parse_or_422(payload)
        module = Codegen().compile(program, tape_size=payload.tape_size)
        return CompileResponse(ir=emit_text(module), command_count=count_commands(program))

    @app.post("/api/run", response_model=RunResponse)
    def run_program(payload: RunRequest) -> RunResponse:
        program = _parse_or_422(payload)
        streams = BufferedStreams(_string_to_input_bytes(payload.input))
        result: ProgramResult
        try:
            if payload.engine == "interpreter":
                interpreter = BrainfuckInterpreter(tape_size=payload.tape_size, max_steps=payload.max_steps)
                result = interpreter.run(program, streams=streams)
            else:
                module = Codegen().compile(program, tape_size=payload.tape_size)
                result = run(module, streams=streams)
        except StepLimitExceeded as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=str(exc),
            ) from exc
        except ExecutionError as exc:
            logger.error("Execution failed: %s", exc)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=str(exc),
            ) from exc
        return RunResponse(pointer=result.pointer, value=result.value, output=streams.output_text())

    return app


__all__ = ["create_app"]
