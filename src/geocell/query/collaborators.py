"""
Contracts between the search orchestrator and the data-access layer.

The orchestrator never talks to a database directly. It calls a `RangeQuery`
collaborator once per covering cell (plus once per continuation page) and turns the
returned raw records into typed items with a `RecordMapper`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class RangeQueryPage:
    """One page of raw records for a single cell."""

    records: list[Any] = field(default_factory=list)
    # Opaque store cursor for the next page of the same cell; None when the cell is exhausted.
    cursor: Any = None
    # Items the store examined (may exceed len(records) when the store filters server-side).
    scanned_count: int | None = None


class RangeQuery(Protocol):
    def query_cell(
        self,
        token: str,
        *,
        conditions: Mapping[str, Any],
        cursor: Any = None,
        limit: int | None = None,
    ) -> RangeQueryPage:
        """Return records whose stored cell token equals `token` and that match `conditions`."""
        ...


RecordMapper = Callable[[Any], T]
