"""
In-memory range-query store.

A reference `RangeQuery` implementation: records are bucketed by their stored cell
token, equality conditions are applied per record, and cursors are integer offsets
into the bucket. Useful for tests, the CLI, and small datasets.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Any, Iterable, Mapping

from geocell.core.errors import RangeError
from geocell.query.collaborators import RangeQueryPage
from geocell.s2.encoder import encode


def _get(record: Any, key: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(key)
    return getattr(record, key, None)


class InMemoryCellStore:
    def __init__(
        self,
        records: Iterable[Any] = (),
        *,
        token_attribute: str = "s2_cell",
        page_size: int | None = None,
    ):
        if page_size is not None and page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.token_attribute = token_attribute
        self.page_size = page_size
        self._buckets: dict[str, list[Any]] = defaultdict(list)
        self._lock = threading.Lock()
        self.calls: list[str] = []
        for record in records:
            self.add(record)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        *,
        level: int,
        token_attribute: str = "s2_cell",
        page_size: int | None = None,
        lat_key: str = "lat",
        lon_key: str = "lon",
    ) -> InMemoryCellStore:
        """Index plain mappings by the cell of their coordinates at `level`."""
        store = cls(token_attribute=token_attribute, page_size=page_size)
        for record in records:
            row = dict(record)
            row[token_attribute] = encode(float(row[lat_key]), float(row[lon_key]), level)
            store.add(row)
        return store

    def add(self, record: Any) -> None:
        token = _get(record, self.token_attribute)
        if not token:
            raise ValueError(f"record has no '{self.token_attribute}' attribute: {record!r}")
        self._buckets[str(token)].append(record)

    def __len__(self) -> int:
        return sum(len(b) for b in self._buckets.values())

    def query_cell(
        self,
        token: str,
        *,
        conditions: Mapping[str, Any],
        cursor: Any = None,
        limit: int | None = None,
    ) -> RangeQueryPage:
        with self._lock:
            self.calls.append(token)
        bucket = self._buckets.get(token, [])

        start = 0 if cursor is None else int(cursor)
        if start < 0 or start > len(bucket):
            raise RangeError("cursor", cursor, f"cursor out of range for cell {token}: {cursor!r}")

        sizes = [s for s in (limit, self.page_size) if s is not None]
        end = len(bucket) if not sizes else min(len(bucket), start + min(sizes))

        window = bucket[start:end]
        records = [r for r in window if all(_get(r, k) == v for k, v in conditions.items())]
        next_cursor = str(end) if end < len(bucket) else None
        return RangeQueryPage(records=records, cursor=next_cursor, scanned_count=len(window))
