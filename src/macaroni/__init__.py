"""macaroni public API."""

import logging

from .errors import (
    MacaroniDomainError,
    MacaroniError,
    MacaroniLabelError,
    MacaroniRuntimeError,
    MacaroniStructureError,
    MacaroniSyntaxError,
    MacaroniTypeError,
)
from .evaluator import Environment, Frame, Macaroni, run
from .lexer import Token, tokenize
from .program import Program, assemble, parse
from .values import Array, Number, Slot, Value, format_value, from_python, to_python

__version__ = "0.0.1"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "run",
    "Macaroni",
    "Environment",
    "Frame",
    "tokenize",
    "Token",
    "parse",
    "assemble",
    "Program",
    "Number",
    "Array",
    "Slot",
    "Value",
    "to_python",
    "from_python",
    "format_value",
    "MacaroniError",
    "MacaroniSyntaxError",
    "MacaroniRuntimeError",
    "MacaroniStructureError",
    "MacaroniTypeError",
    "MacaroniLabelError",
    "MacaroniDomainError",
]
