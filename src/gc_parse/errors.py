"""Exceptions raised while reconstructing and parsing GC logs."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model import GCModel


class ParseError(Exception):
    """A logical line could not be turned into an event."""

    def __init__(
        self,
        message: str,
        line: str,
        index: int = 0,
        line_number: int = 0,
        outcome: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.index = index
        self.line_number = line_number
        self.outcome = outcome

    def __str__(self) -> str:
        return (
            f"{self.message} (line {self.line_number}, position {self.index}): {self.line!r}"
        )


class StructuralMismatchError(ParseError):
    """A merged, mixed or adaptive-size line matched only partially."""


class GCLogReadError(Exception):
    """The input failed for a reason other than end of input.

    ``model`` holds every event read before the failure.
    """

    def __init__(self, message: str, model: GCModel | None = None) -> None:
        super().__init__(message)
        self.model = model
