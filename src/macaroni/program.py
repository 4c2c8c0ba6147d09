"""Assembly of tokens into the flat Macaroni instruction sequence.

No tree is built: operator nesting and control flow are both decided at
evaluation time by position in the sequence. Assembly only classifies
each token and binds operator names to their fixed arity.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final, Union

from .errors import MacaroniLabelError, MacaroniSyntaxError
from .lexer import Token, tokenize
from .values import Number, Value, string_to_array


OPERATOR_ARITIES: Final[dict[str, int]] = {
    "add": 2,
    "multiply": 2,
    "floor": 1,
    "pow": 2,
    "tobase": 2,
    "frombase": 2,
    "concat": 2,
    "wrap": 1,
    "unwrap": 1,
    "length": 1,
    "slice": 4,
    "transpose": 1,
    "flatten": 2,
    "each": 2,
    "sort": 2,
    "map": 2,
    "index": 2,
    "print": 1,
    "read": 0,
    "rand": 0,
    "time": 0,
    "set": 2,
    "goto": 1,
    "return": 0,
}

LABEL_KEYWORD: Final = "label"


@dataclass(frozen=True)
class Literal:
    value: Value
    pos: int = -1


@dataclass(frozen=True)
class Reference:
    name: str
    pos: int = -1


@dataclass(frozen=True)
class Operation:
    name: str
    arity: int
    pos: int = -1


@dataclass(frozen=True)
class LabelMarker:
    pos: int = -1


Instruction = Union[Literal, Reference, Operation, LabelMarker]


@dataclass(frozen=True)
class Program:
    instructions: tuple[Instruction, ...]
    _labels: dict[str, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __len__(self) -> int:
        return len(self.instructions)

    def __getitem__(self, index: int) -> Instruction:
        return self.instructions[index]

    def __iter__(self):
        return iter(self.instructions)

    def find_label(self, name: str) -> int:
        """Position of the first `LabelMarker` whose following Reference is `name`.

        The whole program is scanned regardless of which frame asks, so every
        label is visible from everywhere.
        """
        cached = self._labels.get(name)
        if cached is not None:
            return cached
        for i, instruction in enumerate(self.instructions[:-1]):
            if not isinstance(instruction, LabelMarker):
                continue
            target = self.instructions[i + 1]
            if isinstance(target, Reference) and target.name == name:
                self._labels[name] = i
                return i
        raise MacaroniLabelError(name)

    def labels(self) -> list[str]:
        names: list[str] = []
        for i, instruction in enumerate(self.instructions[:-1]):
            target = self.instructions[i + 1]
            if isinstance(instruction, LabelMarker) and isinstance(target, Reference):
                names.append(target.name)
        return names


def _classify(token: Token, arities: dict[str, int]) -> Instruction:
    if token.kind == "NUMBER":
        return Literal(Number(float(token.text)), token.pos)
    if token.kind == "STRING":
        return Literal(string_to_array(token.text), token.pos)
    arity = arities.get(token.text)
    if arity is not None:
        return Operation(token.text, arity, token.pos)
    return Reference(token.text, token.pos)


def assemble(tokens: list[Token], arities: dict[str, int] | None = None) -> Program:
    table = OPERATOR_ARITIES if arities is None else arities
    out: list[Instruction] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        i += 1
        if tok.kind == "EOF":
            break
        if tok.kind == "LABEL":
            out.extend((LabelMarker(tok.pos), Reference(tok.text, tok.pos)))
            continue
        if tok.kind == "JUMP":
            out.extend((Operation("goto", table["goto"], tok.pos), Reference(tok.text, tok.pos)))
            continue
        if tok.kind == "WORD" and tok.text == LABEL_KEYWORD:
            name = tokens[i] if i < len(tokens) else None
            if name is None or name.kind != "WORD":
                found = None if name is None or name.kind == "EOF" else name.text
                raise MacaroniSyntaxError("label must be followed by a name", tok.pos, tok.end, found=found)
            out.extend((LabelMarker(tok.pos), Reference(name.text, name.pos)))
            i += 1
            continue
        out.append(_classify(tok, table))
    return Program(tuple(out))


def parse(source: str) -> Program:
    return assemble(tokenize(source))
