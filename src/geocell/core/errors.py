"""
Error types raised by the cell codec, the covering planner and the search orchestrator.

Errors raised by range-query collaborators are never wrapped: they propagate as-is.
"""

from __future__ import annotations

from typing import Any


class GeoCellError(Exception):
    """Base class for all library errors."""


class RangeError(GeoCellError, ValueError):
    """An argument is outside its valid domain (level, latitude, token, ...)."""

    def __init__(self, param: str, value: Any, message: str | None = None):
        self.param = param
        self.value = value
        super().__init__(message or f"{param} out of range: {value!r}")


class TokenFormatError(RangeError):
    """A token is empty, too long, or contains non-hex characters."""


class PreconditionError(GeoCellError, RuntimeError):
    """A navigation step is not possible (parent of a face cell, children of a leaf)."""


class CoverageTooLargeError(GeoCellError):
    """The covering for a query would exceed the configured cell cap."""

    def __init__(self, cell_count: int, max_cells: int, level: int, *, estimated: bool = False):
        self.cell_count = cell_count
        self.max_cells = max_cells
        self.level = level
        self.estimated = estimated
        kind = "estimated" if estimated else "actual"
        super().__init__(
            f"covering at level {level} needs {cell_count} cells ({kind}), cap is {max_cells}; "
            "reduce the radius or use a coarser level"
        )


class SearchCancelledError(GeoCellError):
    """A proximity search was cancelled by the caller or hit its timeout."""
