"""Structured error types for lexing/assembly versus execution failures."""

from __future__ import annotations


class MacaroniError(Exception):
    """Base class for every fatal Macaroni error."""


class MacaroniSyntaxError(MacaroniError, SyntaxError):
    """Lexical or assembly failure; raised before any instruction executes."""

    def __init__(
        self,
        message: str,
        start: int,
        end: int,
        found: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.start = start
        self.end = end
        self.found = found

    def __str__(self) -> str:
        found = ""
        if self.found is not None:
            found = f"; found {self.found!r}"
        return f"{self.message} at span [{self.start}, {self.end}){found}"


class MacaroniRuntimeError(MacaroniError):
    """Generic failure while a program is executing."""


class MacaroniStructureError(MacaroniRuntimeError):
    """Instruction stream shape is invalid where it is being consumed."""


class MacaroniTypeError(MacaroniRuntimeError):
    """Number given where an Array is required, or the reverse."""


class MacaroniLabelError(MacaroniRuntimeError):
    """A jump or callback names a label that is not declared anywhere."""

    def __init__(self, label: str) -> None:
        super().__init__(f"unknown label {label!r}")
        self.label = label


class MacaroniDomainError(MacaroniRuntimeError):
    """Argument has the right kind but a value the operator cannot accept."""
