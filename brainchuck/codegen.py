from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Iterator, List, Optional, Sequence

from llvmlite import ir

from .config import DEFAULT_ENTRY_POINT, DEFAULT_STRATEGY, DEFAULT_TAPE_SIZE, validate_tape_size
from .parser import (
    Command,
    DecrementData,
    DecrementPointer,
    IncrementData,
    IncrementPointer,
    Input,
    Loop,
    Output,
    count_commands,
    parse,
)
from .runtime import INPUT_SYMBOL, OUTPUT_SYMBOL

logger = logging.getLogger(__name__)

I8 = ir.IntType(8)
I16 = ir.IntType(16)
I32 = ir.IntType(32)
I64 = ir.IntType(64)

# {pointer, value} as returned by the entry function.
RESULT_TYPE = ir.LiteralStructType([I16, I8])


# === Compile-time state ===


@dataclass(frozen=True)
class State:
    """Symbolic machine state threaded through emission.

    ``pointer`` is the SSA value of the data pointer. ``cell`` is the value of
    the cell under the pointer when it is already in a register; ``dirty``
    means that value has not been written back to the tape yet.
    """

    pointer: ir.Value
    cell: Optional[ir.Value] = None
    dirty: bool = False


@dataclass
class ProgramContext:
    builder: ir.IRBuilder
    function: ir.Function
    cells: ir.Value
    pointer: ir.Value
    putchar: ir.Function
    getchar: ir.Function
    tape_size: int


@dataclass
class _LoopFrame:
    """A loop whose body is still being emitted; the root frame has no blocks."""

    commands: Iterator[Command]
    check_block: Optional[ir.Block] = None
    body_block: Optional[ir.Block] = None
    continuation: Optional[ir.Block] = None


# === Code Generator ===


class Codegen:
    def __init__(self, module_name: str = "brainchuck", entry_point: str = DEFAULT_ENTRY_POINT) -> None:
        self.module_name = module_name
        self.entry_point = entry_point

    def compile(self, program: Sequence[Command], tape_size: int = DEFAULT_TAPE_SIZE) -> ir.Module:
        validate_tape_size(tape_size)
        module = ir.Module(name=self.module_name)
        ctx = self._create_context(module, tape_size)

        state = self._load_state(ctx)
        state = self._emit_commands(program, state, ctx)
        state = self._flush(state, ctx)
        state = self._load_cell(state, ctx)

        result = ir.Constant(RESULT_TYPE, ir.Undefined)
        result = ctx.builder.insert_value(result, state.pointer, 0, name="result")
        result = ctx.builder.insert_value(result, state.cell, 1, name="result")
        ctx.builder.ret(result)

        logger.debug(
            "Generated module %r for %d commands (tape size %d, %d blocks)",
            self.module_name,
            count_commands(program),
            tape_size,
            len(ctx.function.blocks),
        )
        return module

    def compile_source(
        self,
        source: str,
        tape_size: int = DEFAULT_TAPE_SIZE,
        strategy: str = DEFAULT_STRATEGY,
    ) -> ir.Module:
        return self.compile(parse(source, strategy=strategy), tape_size=tape_size)

    # --- Setup ---

    def _create_context(self, module: ir.Module, tape_size: int) -> ProgramContext:
        function = ir.Function(module, ir.FunctionType(RESULT_TYPE, []), name=self.entry_point)
        builder = ir.IRBuilder(function.append_basic_block("entry"))

        tape_type = ir.ArrayType(I8, tape_size)
        cells = builder.alloca(tape_type, name="cells")
        builder.store(ir.Constant(tape_type, None), cells)
        pointer = builder.alloca(I16, name="pointer")
        builder.store(ir.Constant(I16, 0), pointer)

        putchar = ir.Function(module, ir.FunctionType(I32, [I32]), name=OUTPUT_SYMBOL)
        getchar = ir.Function(module, ir.FunctionType(I32, []), name=INPUT_SYMBOL)

        return ProgramContext(
            builder=builder,
            function=function,
            cells=cells,
            pointer=pointer,
            putchar=putchar,
            getchar=getchar,
            tape_size=tape_size,
        )

    # --- State helpers ---

    def _load_state(self, ctx: ProgramContext) -> State:
        return State(pointer=ctx.builder.load(ctx.pointer, name="ptr"))

    def _cell_address(self, state: State, ctx: ProgramContext) -> ir.Value:
        builder = ctx.builder
        index = builder.urem(state.pointer, ir.Constant(I16, ctx.tape_size), name="index")
        offset = builder.zext(index, I64, name="offset")
        return builder.gep(ctx.cells, [ir.Constant(I64, 0), offset], inbounds=True, name="cell_addr")

    def _load_cell(self, state: State, ctx: ProgramContext) -> State:
        if state.cell is not None:
            return state
        cell = ctx.builder.load(self._cell_address(state, ctx), name="cell")
        return replace(state, cell=cell, dirty=False)

    def _flush_cell(self, state: State, ctx: ProgramContext) -> State:
        if state.dirty:
            ctx.builder.store(state.cell, self._cell_address(state, ctx))
        return replace(state, dirty=False)

    def _flush(self, state: State, ctx: ProgramContext) -> State:
        state = self._flush_cell(state, ctx)
        ctx.builder.store(state.pointer, ctx.pointer)
        return state

    # --- Emission ---

    def _emit_commands(self, commands: Sequence[Command], state: State, ctx: ProgramContext) -> State:
        # Open loops live on an explicit stack so nesting depth never meets
        # Python's recursion limit.
        stack: List[_LoopFrame] = [_LoopFrame(iter(commands))]
        while stack:
            frame = stack[-1]
            command = next(frame.commands, None)
            if command is None:
                stack.pop()
                if frame.check_block is not None:
                    state = self._close_loop(frame, state, ctx)
            elif isinstance(command, Loop):
                stack.append(self._open_loop(command, state, ctx))
                state = self._load_state(ctx)
            else:
                state = self._emit_command(command, state, ctx)
        return state

    def _emit_command(self, command: Command, state: State, ctx: ProgramContext) -> State:
        builder = ctx.builder
        if isinstance(command, (IncrementPointer, DecrementPointer)):
            # A pending write belongs to the cell under the old pointer.
            state = self._flush_cell(state, ctx)
            step = builder.add if isinstance(command, IncrementPointer) else builder.sub
            return State(pointer=step(state.pointer, ir.Constant(I16, 1), name="ptr"))
        if isinstance(command, (IncrementData, DecrementData)):
            state = self._load_cell(state, ctx)
            step = builder.add if isinstance(command, IncrementData) else builder.sub
            return replace(state, cell=step(state.cell, ir.Constant(I8, 1), name="cell"), dirty=True)
        if isinstance(command, Output):
            state = self._load_cell(state, ctx)
            value = builder.zext(state.cell, I32, name="out")
            builder.call(ctx.putchar, [value])
            return state
        if isinstance(command, Input):
            value = builder.call(ctx.getchar, [], name="in")
            return replace(state, cell=builder.trunc(value, I8, name="cell"), dirty=True)
        raise TypeError(f"Unsupported command: {command!r}")

    def _open_loop(self, loop: Loop, state: State, ctx: ProgramContext) -> _LoopFrame:
        builder = ctx.builder
        self._flush(state, ctx)
        frame = _LoopFrame(
            commands=iter(loop.body),
            check_block=ctx.function.append_basic_block("loop_check"),
            body_block=ctx.function.append_basic_block("loop_body"),
            continuation=ctx.function.append_basic_block("continuation"),
        )
        builder.branch(frame.check_block)
        builder.position_at_end(frame.body_block)
        return frame

    def _close_loop(self, frame: _LoopFrame, body_state: State, ctx: ProgramContext) -> State:
        builder = ctx.builder
        self._flush(body_state, ctx)
        builder.branch(frame.check_block)

        # The body may have moved the pointer or changed the cell.
        builder.position_at_end(frame.check_block)
        state = self._load_cell(self._load_state(ctx), ctx)
        is_zero = builder.icmp_unsigned("==", state.cell, ir.Constant(I8, 0), name="is_zero")
        builder.cbranch(is_zero, frame.continuation, frame.body_block)

        builder.position_at_end(frame.continuation)
        return state


__all__ = [
    "Codegen",
    "ProgramContext",
    "RESULT_TYPE",
    "State",
]
