from __future__ import annotations

import ctypes
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

from llvmlite import binding as llvm
from llvmlite import ir

from .codegen import RESULT_TYPE
from .config import DEFAULT_ENTRY_POINT, DEFAULT_OPT_LEVEL
from .runtime import INPUT_SYMBOL, OUTPUT_SYMBOL, ByteStreams, ProgramResult, StandardStreams

logger = logging.getLogger(__name__)


class ExecutionError(Exception):
    """Base class for failures of the execution backend."""


class EngineCreationError(ExecutionError):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Failed to create JIT engine: {message}")


class EntryPointNotFoundError(ExecutionError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Error looking up function: '{name}' is not defined in the module")


class _ResultRecord(ctypes.Structure):
    _fields_ = [("pointer", ctypes.c_uint16), ("value", ctypes.c_uint8)]


_OUTPUT_CALLBACK = ctypes.CFUNCTYPE(ctypes.c_int32, ctypes.c_int32)
_INPUT_CALLBACK = ctypes.CFUNCTYPE(ctypes.c_int32)
_TRAMPOLINE = ctypes.CFUNCTYPE(None, ctypes.POINTER(_ResultRecord))

# llvm.add_symbol writes to a process-wide table.
_symbol_lock = threading.Lock()
_init_lock = threading.Lock()
_llvm_ready = False


def _initialize_llvm() -> None:
    global _llvm_ready
    if _llvm_ready:
        return
    with _init_lock:
        if _llvm_ready:
            return
        try:
            llvm.initialize()
        except RuntimeError as exc:
            # Newer llvmlite releases initialise the core themselves and reject this call.
            logger.debug("Skipping llvm.initialize(): %s", exc)
        llvm.initialize_native_target()
        llvm.initialize_native_asmprinter()
        _llvm_ready = True


@dataclass
class CompiledProgram:
    """Native entry point plus everything that must stay alive while it runs."""

    name: str
    address: int
    streams: ByteStreams
    engine: Any = field(repr=False)
    callbacks: Tuple[Any, ...] = field(default=(), repr=False)


class Engine(ABC):
    @abstractmethod
    def compile_entry_point(
        self,
        module: ir.Module,
        name: str = DEFAULT_ENTRY_POINT,
        streams: Optional[ByteStreams] = None,
    ) -> CompiledProgram:
        raise NotImplementedError

    @abstractmethod
    def invoke(self, compiled: CompiledProgram) -> ProgramResult:
        raise NotImplementedError


class JitEngine(Engine):
    """Compiles modules to native code with LLVM's MCJIT."""

    def __init__(self, opt_level: int = DEFAULT_OPT_LEVEL) -> None:
        self.opt_level = opt_level

    def compile_entry_point(
        self,
        module: ir.Module,
        name: str = DEFAULT_ENTRY_POINT,
        streams: Optional[ByteStreams] = None,
    ) -> CompiledProgram:
        _initialize_llvm()
        streams = streams if streams is not None else StandardStreams()

        try:
            llvm_module = llvm.parse_assembly(str(module))
            llvm_module.verify()
        except RuntimeError as exc:
            raise EngineCreationError(str(exc)) from exc

        try:
            llvm_module.get_function(name)
        except NameError as exc:
            raise EntryPointNotFoundError(name) from exc

        trampoline_name = f"{name}_trampoline"
        callbacks = _capability_callbacks(streams)
        try:
            llvm_module.link_in(llvm.parse_assembly(str(_build_trampoline(name, trampoline_name))))
            target_machine = llvm.Target.from_default_triple().create_target_machine(opt=self.opt_level)
            llvm_module.triple = target_machine.triple
            llvm_module.data_layout = str(target_machine.target_data)
            with _symbol_lock:
                llvm.add_symbol(OUTPUT_SYMBOL, ctypes.cast(callbacks[0], ctypes.c_void_p).value)
                llvm.add_symbol(INPUT_SYMBOL, ctypes.cast(callbacks[1], ctypes.c_void_p).value)
                engine = llvm.create_mcjit_compiler(llvm_module, target_machine)
                engine.finalize_object()
        except RuntimeError as exc:
            raise EngineCreationError(str(exc)) from exc

        address = engine.get_function_address(trampoline_name)
        if not address:
            raise EntryPointNotFoundError(name)
        logger.debug("Compiled entry point %r at 0x%x (opt level %d)", name, address, self.opt_level)
        return CompiledProgram(
            name=name,
            address=address,
            streams=streams,
            engine=engine,
            callbacks=callbacks,
        )

    def invoke(self, compiled: CompiledProgram) -> ProgramResult:
        entry = _TRAMPOLINE(compiled.address)
        record = _ResultRecord()
        entry(ctypes.byref(record))
        result = ProgramResult(pointer=record.pointer, value=record.value)
        logger.debug("Entry point %r returned %s", compiled.name, result)
        return result


def _build_trampoline(entry_name: str, trampoline_name: str) -> ir.Module:
    # Struct returns by value do not follow the C ABI ctypes expects, so the
    # result is written through an out pointer instead.
    module = ir.Module(name=trampoline_name)
    entry = ir.Function(module, ir.FunctionType(RESULT_TYPE, []), name=entry_name)
    trampoline = ir.Function(
        module,
        ir.FunctionType(ir.VoidType(), [RESULT_TYPE.as_pointer()]),
        name=trampoline_name,
    )
    builder = ir.IRBuilder(trampoline.append_basic_block("entry"))
    builder.store(builder.call(entry, [], name="result"), trampoline.args[0])
    builder.ret_void()
    return module


def _capability_callbacks(streams: ByteStreams) -> Tuple[Any, Any]:
    @_OUTPUT_CALLBACK
    def write(value: int) -> int:
        streams.write_byte(value & 0xFF)
        return value & 0xFF

    @_INPUT_CALLBACK
    def read() -> int:
        return streams.read_byte()

    return write, read


def emit_text(module: ir.Module) -> str:
    return str(module)


def run(
    module: ir.Module,
    streams: Optional[ByteStreams] = None,
    engine: Optional[Engine] = None,
    entry: str = DEFAULT_ENTRY_POINT,
) -> ProgramResult:
    engine = engine if engine is not None else JitEngine()
    compiled = engine.compile_entry_point(module, entry, streams=streams)
    return engine.invoke(compiled)


__all__ = [
    "CompiledProgram",
    "Engine",
    "EngineCreationError",
    "EntryPointNotFoundError",
    "ExecutionError",
    "JitEngine",
    "ProgramResult",
    "emit_text",
    "run",
]
