"""Execution engine for Macaroni programs.

A program is a flat instruction sequence walked by one or more frames. Each
frame owns a position and a return stack; all frames share the program and
the global `Environment`. Higher-order primitives (`map`, `sort`, `index`)
launch a fresh frame at a label and drive it to termination while their own
frame is paused mid-instruction, exchanging data through the `_` variable.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field
from typing import Final, TextIO

import jax

from .errors import MacaroniRuntimeError, MacaroniStructureError
from .primitives import PRIMITIVES, Primitive
from .program import LabelMarker, Literal, Operation, Program, Reference, parse
from .values import Number, Slot, Value, validate_value

logger = logging.getLogger(__name__)

CALLBACK_SLOT: Final = "_"
UNSET_VALUE: Final = Number(0.0)

_ENV_SEED: Final[str | None] = os.environ.get("MACARONI_SEED")


class Environment(MutableMapping[str, Value]):
    """Global variable store shared by every frame and every run of an engine."""

    def __init__(self, data: Mapping[str, Value] | None = None) -> None:
        self._data: dict[str, Value] = {}
        if data is not None:
            for name, value in data.items():
                self[name] = value

    def __getitem__(self, key: str) -> Value:
        return self._data[key]

    def __setitem__(self, key: str, value: Value) -> None:
        validate_value(value, where=f"env[{key!r}]")
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def lookup(self, name: str) -> Value:
        """Current value of `name`, or Number 0 if it was never assigned."""
        return self._data.get(name, UNSET_VALUE)


@dataclass
class Frame:
    position: int
    returns: list[int] = field(default_factory=list)
    last: Slot | None = None


def _default_seed() -> int:
    if _ENV_SEED is not None:
        return int(_ENV_SEED)
    return time.time_ns() % (2**32)


class Macaroni:
    """Stateful engine: variables persist across successive `run` calls."""

    def __init__(
        self,
        env: Environment | Mapping[str, Value] | None = None,
        *,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
        seed: int | None = None,
    ) -> None:
        self.env = env if isinstance(env, Environment) else Environment(env)
        self.stdin = stdin
        self.stdout = stdout
        self._key = jax.random.key(_default_seed() if seed is None else seed)
        self._primitives: dict[str, Primitive] = PRIMITIVES
        self._program: Program | None = None
        self._frames: list[Frame] = []

    @property
    def frames(self) -> tuple[Frame, ...]:
        return tuple(self._frames)

    @property
    def active_frame(self) -> Frame:
        if not self._frames:
            raise MacaroniRuntimeError("no frame is executing")
        return self._frames[-1]

    @property
    def program(self) -> Program:
        if self._program is None:
            raise MacaroniRuntimeError("no program is executing")
        return self._program

    def run(self, source: str) -> Value | None:
        """Tokenize, assemble and execute `source`; return the last value produced."""
        return self.execute(parse(source))

    def execute(self, program: Program) -> Value | None:
        logger.debug("executing program of %d instructions", len(program))
        outer = self._program
        depth = len(self._frames)
        self._program = program
        try:
            frame = self._drive(Frame(0))
        finally:
            # A fatal error leaves frames behind; drop them so the engine stays usable.
            del self._frames[depth:]
            self._program = outer
        return None if frame.last is None else frame.last.value

    def _drive(self, frame: Frame) -> Frame:
        self._frames.append(frame)
        program = self.program
        while 0 <= frame.position < len(program):
            self._step(frame)
        self._frames.pop()
        return frame

    def _step(self, frame: Frame) -> None:
        instruction = self.program[frame.position]
        if isinstance(instruction, LabelMarker):
            frame.position += 2
        elif isinstance(instruction, Operation):
            frame.last = self._apply(frame)
        else:
            frame.last = self._resolve(instruction)
            frame.position += 1

    def _resolve(self, instruction: Literal | Reference) -> Slot:
        if isinstance(instruction, Literal):
            return Slot(instruction.value)
        return Slot(self.env.lookup(instruction.name), instruction.name)

    def _apply(self, frame: Frame) -> Slot | None:
        program = self.program
        operation = program[frame.position]
        assert isinstance(operation, Operation)
        frame.position += 1

        args: list[Slot] = []
        while len(args) < operation.arity:
            if frame.position >= len(program):
                raise MacaroniStructureError(
                    f"unexpected end of program: {operation.name} expects "
                    f"{operation.arity} arguments, found {len(args)}"
                )
            instruction = program[frame.position]
            if isinstance(instruction, Operation):
                nested = self._apply(frame)
                if nested is None:
                    raise MacaroniStructureError(
                        f"{instruction.name} produces no value but is used as an argument of {operation.name}"
                    )
                args.append(Slot(nested.value))
            elif isinstance(instruction, LabelMarker):
                raise MacaroniStructureError(
                    f"instruction {frame.position}: a label cannot be an argument of {operation.name}"
                )
            else:
                args.append(self._resolve(instruction))
                frame.position += 1

        result = self._primitives[operation.name](self, tuple(args))
        if result is None or isinstance(result, Slot):
            return result
        return Slot(result)

    # -- services used by primitives ------------------------------------------

    def resolve_label(self, name: str) -> int:
        return self.program.find_label(name)

    def call_at(self, start: int, argument: Value) -> Value:
        """Run a callback frame from `start` with `argument` in `_`; return `_` afterwards."""
        self.env[CALLBACK_SLOT] = argument
        logger.debug("callback at instruction %d, frame depth %d", start, len(self._frames) + 1)
        self._drive(Frame(start))
        return self.env.lookup(CALLBACK_SLOT)

    def call_label(self, name: str, argument: Value) -> Value:
        return self.call_at(self.resolve_label(name), argument)

    def jump(self, name: str) -> None:
        target = self.resolve_label(name)
        frame = self.active_frame
        logger.debug("goto %s: %d -> %d", name, frame.position, target)
        frame.returns.append(frame.position)
        frame.position = target

    def return_(self) -> None:
        frame = self.active_frame
        if frame.returns:
            frame.position = frame.returns.pop()
        else:
            frame.position = len(self.program)

    def write(self, text: str) -> None:
        stream = sys.stdout if self.stdout is None else self.stdout
        stream.write(text)
        stream.flush()

    def read_line(self) -> str:
        stream = sys.stdin if self.stdin is None else self.stdin
        return stream.readline()

    def next_key(self):
        self._key, subkey = jax.random.split(self._key)
        return subkey


def run(source: str, env: Environment | Mapping[str, Value] | None = None) -> Value | None:
    """One-shot evaluation on a fresh engine (sharing `env` if one is given)."""
    return Macaroni(env).run(source)
