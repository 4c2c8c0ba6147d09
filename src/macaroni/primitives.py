"""Built-in operator library for the Macaroni engine.

Every primitive receives the engine and its gathered argument slots and
returns a value, a slot (when the result keeps a name), or ``None`` for
operators that produce nothing.
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from functools import cmp_to_key
from typing import TYPE_CHECKING, Callable, Final, Union

import jax
import jax.numpy as jnp

from .errors import MacaroniDomainError, MacaroniStructureError, MacaroniTypeError
from .program import OPERATOR_ARITIES
from .values import Array, Number, Slot, Value, array_to_string, is_truthy, string_to_array

if TYPE_CHECKING:
    from .evaluator import Macaroni

# Numbers are IEEE doubles; keep jax from silently narrowing to float32.
jax.config.update("jax_enable_x64", True)

DIGITS: Final[str] = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
TOBASE_PRECISION: Final[int] = 10
TOBASE_EPSILON: Final[float] = 1e-6

Result = Union[Value, Slot, None]
Impl = Callable[["Macaroni", tuple[Slot, ...]], Result]


@dataclass(frozen=True)
class Primitive:
    name: str
    arity: int
    impl: Impl

    def __call__(self, vm: "Macaroni", args: tuple[Slot, ...]) -> Result:
        return self.impl(vm, args)


PRIMITIVES: dict[str, Primitive] = {}


def _primitive(name: str) -> Callable[[Impl], Impl]:
    def register(impl: Impl) -> Impl:
        PRIMITIVES[name] = Primitive(name, OPERATOR_ARITIES[name], impl)
        return impl

    return register


def _number(slot: Slot, where: str) -> float:
    if not isinstance(slot.value, Number):
        raise MacaroniTypeError(f"{where} requires a Number, got an Array")
    return slot.value.value


def _array(slot: Slot, where: str) -> Array:
    if not isinstance(slot.value, Array):
        raise MacaroniTypeError(f"{where} requires an Array, got a Number")
    return slot.value


def _integer(slot: Slot, where: str) -> int:
    n = _number(slot, where)
    if not math.isfinite(n):
        raise MacaroniDomainError(f"{where} requires a finite number, got {n}")
    return int(n)


def _name(slot: Slot, where: str) -> str:
    if slot.name is None:
        raise MacaroniStructureError(f"{where} requires a name argument, got a bare value")
    return slot.name


def _base(slot: Slot, where: str) -> int:
    base = _integer(slot, where)
    if not 2 <= base <= len(DIGITS):
        raise MacaroniDomainError(f"{where} base must be between 2 and {len(DIGITS)}, got {base}")
    return base


# -- arithmetic ---------------------------------------------------------------

_NUMERIC_BINARY_OPS: Final[dict[str, Callable]] = {
    "add": jnp.add,
    "multiply": jnp.multiply,
    "pow": jnp.power,
}


def _register_numeric_binary(name: str, kernel: Callable) -> None:
    def impl(vm: "Macaroni", args: tuple[Slot, ...]) -> Value:
        left = _number(args[0], name)
        right = _number(args[1], name)
        return Number(float(kernel(left, right)))

    _primitive(name)(impl)


for _op_name, _kernel in _NUMERIC_BINARY_OPS.items():
    _register_numeric_binary(_op_name, _kernel)


@_primitive("floor")
def _floor(vm, args):
    return Number(float(jnp.floor(_number(args[0], "floor"))))


# -- base conversion ----------------------------------------------------------

def to_base(n: float, base: int) -> str:
    """Render `n` in `base` with at most TOBASE_PRECISION fractional digits."""
    if not math.isfinite(n):
        raise MacaroniDomainError(f"tobase cannot render {n}")
    magnitude = abs(n)
    ipart = math.floor(magnitude)
    fpart = magnitude - ipart

    digits: list[str] = []
    while ipart:
        ipart, digit = divmod(ipart, base)
        digits.append(DIGITS[digit])
    text = "".join(reversed(digits)) or "0"
    if n < 0:
        text = "-" + text

    if fpart > TOBASE_EPSILON:
        frac: list[str] = []
        for _ in range(TOBASE_PRECISION):
            if fpart <= TOBASE_EPSILON:
                break
            fpart *= base
            digit = math.floor(fpart)
            frac.append(DIGITS[digit])
            fpart -= digit
        text += "." + "".join(frac)
    return text


def _digit_value(ch: str, base: int) -> int:
    value = DIGITS.find(ch.upper())
    if value < 0 or value >= base:
        raise MacaroniDomainError(f"frombase: {ch!r} is not a digit in base {base}")
    return value


def from_base(text: str, base: int) -> float:
    negative = text.startswith("-")
    body = text[1:] if negative else text
    whole, _, frac = body.partition(".")
    if "." in frac:
        raise MacaroniDomainError(f"frombase: more than one '.' in {text!r}")
    if not whole and not frac:
        raise MacaroniDomainError(f"frombase: no digits in {text!r}")

    value = 0.0
    for ch in whole:
        value = value * base + _digit_value(ch, base)
    scale = 1.0
    for ch in frac:
        scale /= base
        value += _digit_value(ch, base) * scale
    return -value if negative else value


@_primitive("tobase")
def _tobase(vm, args):
    n = _number(args[0], "tobase")
    return string_to_array(to_base(n, _base(args[1], "tobase")))


@_primitive("frombase")
def _frombase(vm, args):
    text = array_to_string(_array(args[0], "frombase"), where="frombase")
    return Number(from_base(text, _base(args[1], "frombase")))


# -- array algebra ------------------------------------------------------------

@_primitive("concat")
def _concat(vm, args):
    return Array(_array(args[0], "concat").items + _array(args[1], "concat").items)


@_primitive("wrap")
def _wrap(vm, args):
    return Array((args[0].value,))


@_primitive("unwrap")
def _unwrap(vm, args):
    arr = _array(args[0], "unwrap")
    if len(arr) != 1:
        raise MacaroniDomainError(f"unwrap requires an Array of exactly 1 element, got {len(arr)}")
    return arr[0]


@_primitive("length")
def _length(vm, args):
    return Number(len(_array(args[0], "length")))


def slice_items(items: tuple[Value, ...], start: int, stop: int, step: int) -> tuple[Value, ...]:
    """Forward walks [start, stop); backward walks the same half-open range from the top."""
    if step == 0:
        raise MacaroniDomainError("slice step must be non-zero")
    out: list[Value] = []
    if step > 0:
        if start < 0:
            raise MacaroniDomainError(f"slice start must be non-negative, got {start}")
        i = start
        while i < stop and i < len(items):
            out.append(items[i])
            i += step
    else:
        i = min(start, len(items)) - 1
        while i >= stop and i >= 0:
            out.append(items[i])
            i += step
    return tuple(out)


@_primitive("slice")
def _slice(vm, args):
    arr = _array(args[0], "slice")
    start, stop, step = (_integer(slot, "slice") for slot in args[1:])
    return Array(slice_items(arr.items, start, stop, step))


@_primitive("transpose")
def _transpose(vm, args):
    rows = [_array(Slot(item), "transpose element") for item in _array(args[0], "transpose")]
    width = max((len(row) for row in rows), default=0)
    return Array(tuple(Array(tuple(row[i] for row in rows if i < len(row))) for i in range(width)))


def _flatten_once(items: tuple[Value, ...]) -> tuple[Value, ...]:
    out: list[Value] = []
    for item in items:
        if isinstance(item, Array):
            out.extend(item.items)
        else:
            out.append(item)
    return tuple(out)


def _has_nested(items: tuple[Value, ...]) -> bool:
    return any(isinstance(item, Array) for item in items)


@_primitive("flatten")
def _flatten(vm, args):
    items = _array(args[0], "flatten").items
    depth = _integer(args[1], "flatten")
    if depth < 0:
        raise MacaroniDomainError(f"flatten depth must be non-negative, got {depth}")
    if depth == 0:
        while _has_nested(items):
            items = _flatten_once(items)
    else:
        for _ in range(depth):
            if not _has_nested(items):
                break
            items = _flatten_once(items)
    return Array(items)


@_primitive("each")
def _each(vm, args):
    items = _array(args[0], "each").items
    n = _integer(args[1], "each")
    if n > 0:
        return Array(tuple(Array(items[i : i + n]) for i in range(len(items) - n + 1)))
    if n < 0:
        size = -n
        return Array(tuple(Array(items[i : i + size]) for i in range(0, len(items), size)))
    raise MacaroniDomainError("each size must be non-zero")


# -- callbacks ----------------------------------------------------------------

@_primitive("sort")
def _sort(vm, args):
    items = _array(args[0], "sort").items
    start = vm.resolve_label(_name(args[1], "sort"))

    def compare(a: Value, b: Value) -> int:
        verdict = vm.call_at(start, Array((a, b)))
        if not isinstance(verdict, Number):
            raise MacaroniTypeError("sort comparator must leave a Number in _")
        if verdict.value < 0:
            return -1
        if verdict.value > 0:
            return 1
        return 0

    return Array(tuple(sorted(items, key=cmp_to_key(compare))))


@_primitive("map")
def _map(vm, args):
    items = _array(args[0], "map").items
    start = vm.resolve_label(_name(args[1], "map"))
    return Array(tuple(vm.call_at(start, item) for item in items))


@_primitive("index")
def _index(vm, args):
    items = _array(args[0], "index").items
    start = vm.resolve_label(_name(args[1], "index"))
    return Array(tuple(Number(i) for i, item in enumerate(items) if is_truthy(vm.call_at(start, item))))


# -- I/O ----------------------------------------------------------------------

@_primitive("print")
def _print(vm, args):
    vm.write(array_to_string(args[0].value, where="print"))
    return None


@_primitive("read")
def _read(vm, args):
    return string_to_array(vm.read_line())


@_primitive("rand")
def _rand(vm, args):
    return Number(float(jax.random.uniform(vm.next_key(), dtype=jnp.float64)))


@_primitive("time")
def _time(vm, args):
    return Number(time.time())


# -- state and control --------------------------------------------------------

@_primitive("set")
def _set(vm, args):
    name = _name(args[0], "set")
    value = args[1].value
    vm.env[name] = value
    return Slot(value, name)


@_primitive("goto")
def _goto(vm, args):
    vm.jump(_name(args[0], "goto"))
    return None


@_primitive("return")
def _return(vm, args):
    vm.return_()
    return None
