"""
Proximity search orchestration.

Flow:
1) plan a covering (radius, bounding box, or caller-supplied tokens),
2) issue one range query per covering cell through the `RangeQuery` collaborator,
3) map raw records to items, locate each item, and post-filter exactly,
4) sort by distance from the search center.

Two modes:
- non-paginated (default): cells are queried concurrently on a thread pool and each
  cell is drained page by page; results are merged in covering order, so the output
  does not depend on completion order.
- paginated (`page_size` given): cells are queried sequentially and the response
  carries a `ContinuationToken` for the next call.

Failure semantics: planner errors are raised before any query; the first collaborator
error is re-raised unchanged and the remaining work is abandoned; timeouts and caller
cancellation raise `SearchCancelledError`. No partial results are returned.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from functools import partial
from typing import Any, Callable, Generic, Mapping, Sequence, TypeVar

from geocell.config.settings import Settings, get_settings
from geocell.core.errors import RangeError, SearchCancelledError
from geocell.core.geo import DistanceUnit, GeoBounds, GeoPoint, from_meters, haversine_m, to_meters
from geocell.covering.planner import plan_bounds_covering, plan_radius_covering
from geocell.query.collaborators import RangeQuery, RecordMapper
from geocell.query.response import ContinuationToken, SpatialQueryResponse
from geocell.s2.cell_id import check_cell_id
from geocell.s2.encoder import decode
from geocell.s2.token import cell_id_to_token, token_to_cell_id

logger = logging.getLogger(__name__)

T = TypeVar("T")

_POLL_INTERVAL_SECONDS = 0.05


def _get(item: Any, key: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(key)
    return getattr(item, key, None)


def default_location_of(item: Any, *, token_attribute: str = "s2_cell") -> GeoPoint | None:
    """Locate an item: stored exact coordinates first, then the center of its stored cell."""
    location = _get(item, "location")
    if isinstance(location, GeoPoint):
        return location
    for lat_key, lon_key in (("lat", "lon"), ("latitude", "longitude")):
        lat = _get(item, lat_key)
        lon = _get(item, lon_key)
        if lat is not None and lon is not None:
            return GeoPoint(float(lat), float(lon))
    token = _get(item, token_attribute)
    if token:
        return decode(str(token))
    return None


class ProximitySearch(Generic[T]):
    def __init__(
        self,
        range_query: RangeQuery,
        *,
        record_mapper: RecordMapper[T] | None = None,
        location_of: Callable[[T], GeoPoint | None] | None = None,
        settings: Settings | None = None,
    ):
        self.range_query = range_query
        self.settings = settings or get_settings()
        self.record_mapper: Callable[[Any], T] = record_mapper or (lambda record: record)
        self.location_of = location_of or partial(
            default_location_of, token_attribute=self.settings.query.token_attribute
        )

    # Public entrypoints -------------------------------------------------

    def search_radius(
        self,
        center: GeoPoint,
        radius: float,
        *,
        unit: DistanceUnit | None = None,
        level: int | None = None,
        conditions: Mapping[str, Any] | None = None,
        max_cells: int | None = None,
        page_size: int | None = None,
        continuation_token: ContinuationToken | str | None = None,
        timeout_seconds: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SpatialQueryResponse[T]:
        """Items within `radius` of `center`, nearest first."""
        unit = unit or self.settings.query.distance_unit
        covering = plan_radius_covering(
            center, radius, settings=self.settings, unit=unit, level=level, max_cells=max_cells
        )
        radius_m = to_meters(radius, unit)
        return self._run(
            covering.tokens,
            center=center,
            unit=unit,
            accept=lambda point: haversine_m(center, point) <= radius_m,
            conditions=conditions,
            page_size=page_size,
            continuation_token=continuation_token,
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
        )

    def search_bounds(
        self,
        bounds: GeoBounds,
        *,
        unit: DistanceUnit | None = None,
        level: int | None = None,
        conditions: Mapping[str, Any] | None = None,
        max_cells: int | None = None,
        page_size: int | None = None,
        continuation_token: ContinuationToken | str | None = None,
        timeout_seconds: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SpatialQueryResponse[T]:
        """Items inside `bounds`, sorted by distance from the box center."""
        covering = plan_bounds_covering(bounds, settings=self.settings, level=level, max_cells=max_cells)
        return self._run(
            covering.tokens,
            center=covering.center,
            unit=unit or self.settings.query.distance_unit,
            accept=bounds.contains,
            conditions=conditions,
            page_size=page_size,
            continuation_token=continuation_token,
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
        )

    def search_cells(
        self,
        tokens: Sequence[str],
        *,
        center: GeoPoint | None = None,
        radius: float | None = None,
        unit: DistanceUnit | None = None,
        conditions: Mapping[str, Any] | None = None,
        page_size: int | None = None,
        continuation_token: ContinuationToken | str | None = None,
        timeout_seconds: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SpatialQueryResponse[T]:
        """Query a caller-supplied covering; filter by radius when `center` and `radius` are given."""
        if radius is not None and center is None:
            raise RangeError("center", None, "radius filtering requires a center")
        normalized = [cell_id_to_token(check_cell_id(token_to_cell_id(t))) for t in tokens]
        if len(normalized) > self.settings.covering.absolute_max_cells:
            raise RangeError(
                "tokens",
                len(normalized),
                f"at most {self.settings.covering.absolute_max_cells} cells per search, got {len(normalized)}",
            )
        unit = unit or self.settings.query.distance_unit
        accept: Callable[[GeoPoint], bool] = lambda point: True
        if center is not None and radius is not None:
            radius_m = to_meters(radius, unit)
            accept = lambda point: haversine_m(center, point) <= radius_m
        return self._run(
            normalized,
            center=center,
            unit=unit,
            accept=accept,
            conditions=conditions,
            page_size=page_size,
            continuation_token=continuation_token,
            timeout_seconds=timeout_seconds,
            cancel_event=cancel_event,
        )

    # Execution ----------------------------------------------------------

    def _run(
        self,
        tokens: list[str],
        *,
        center: GeoPoint | None,
        unit: DistanceUnit,
        accept: Callable[[GeoPoint], bool],
        conditions: Mapping[str, Any] | None,
        page_size: int | None,
        continuation_token: ContinuationToken | str | None,
        timeout_seconds: float | None,
        cancel_event: threading.Event | None,
    ) -> SpatialQueryResponse[T]:
        conditions = dict(conditions or {})
        timeout = timeout_seconds if timeout_seconds is not None else self.settings.query.timeout_seconds
        deadline = None if timeout is None else time.monotonic() + timeout

        if isinstance(continuation_token, str):
            continuation_token = ContinuationToken.from_base64(continuation_token)

        if page_size is None:
            if continuation_token is not None:
                raise RangeError("continuation_token", continuation_token, "continuation tokens require page_size")
            logger.info(
                "Proximity search: %d cells, concurrency=%d",
                len(tokens),
                min(self.settings.query.max_concurrency, max(1, len(tokens))),
            )
            items, scanned = self._fan_out(tokens, conditions, deadline, timeout, cancel_event)
            next_token = None
            cells_queried = len(tokens)
        else:
            if page_size < 1:
                raise RangeError("page_size", page_size, f"page_size must be >= 1, got {page_size}")
            logger.info("Paginated proximity search: %d cells, page_size=%d", len(tokens), page_size)
            items, scanned, next_token, cells_queried = self._paginate(
                tokens, conditions, page_size, continuation_token, deadline, timeout, cancel_event
            )

        return self._finish(
            items,
            center=center,
            unit=unit,
            accept=accept,
            next_token=next_token,
            cells_queried=cells_queried,
            scanned=scanned,
        )

    def _check_cancelled(
        self, deadline: float | None, timeout: float | None, cancel_event: threading.Event | None
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("Proximity search cancelled by caller")
            raise SearchCancelledError("search cancelled by caller")
        if deadline is not None and time.monotonic() >= deadline:
            logger.warning("Proximity search timed out after %ss", timeout)
            raise SearchCancelledError(f"search timed out after {timeout}s")

    def _query_pages(
        self,
        token: str,
        conditions: Mapping[str, Any],
        abort: threading.Event,
        cancel_event: threading.Event | None,
    ) -> tuple[list[T], int]:
        """Drain every page of one cell."""
        items: list[T] = []
        scanned = 0
        cursor: Any = None
        limit = self.settings.query.request_page_size
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise SearchCancelledError("search cancelled by caller")
            # The search already failed; whatever is returned here is discarded.
            if abort.is_set():
                return items, scanned
            page = self.range_query.query_cell(token, conditions=conditions, cursor=cursor, limit=limit)
            items.extend(self.record_mapper(record) for record in page.records)
            scanned += page.scanned_count if page.scanned_count is not None else len(page.records)
            cursor = page.cursor
            if cursor is None:
                return items, scanned

    def _fan_out(
        self,
        tokens: list[str],
        conditions: Mapping[str, Any],
        deadline: float | None,
        timeout: float | None,
        cancel_event: threading.Event | None,
    ) -> tuple[list[T], int]:
        if not tokens:
            return [], 0

        abort = threading.Event()
        workers = min(self.settings.query.max_concurrency, len(tokens))
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="geocell-search")
        futures: list[Future[tuple[list[T], int]]] = [
            executor.submit(self._query_pages, token, conditions, abort, cancel_event) for token in tokens
        ]
        try:
            pending = set(futures)
            while pending:
                self._check_cancelled(deadline, timeout, cancel_event)
                wait_for = _POLL_INTERVAL_SECONDS
                if deadline is not None:
                    wait_for = max(0.0, min(wait_for, deadline - time.monotonic()))
                done, pending = wait(pending, timeout=wait_for, return_when=FIRST_EXCEPTION)
                for future in done:
                    error = future.exception()
                    if isinstance(error, SearchCancelledError):
                        self._check_cancelled(deadline, timeout, cancel_event)
                        raise error
                    if error is not None:
                        logger.warning("Range query failed; aborting search: %s", error)
                        raise error
        finally:
            abort.set()
            executor.shutdown(wait=False, cancel_futures=True)

        # A cancel or timeout that lands after the last page still fails the search.
        self._check_cancelled(deadline, timeout, cancel_event)

        items: list[T] = []
        scanned = 0
        for future in futures:
            cell_items, cell_scanned = future.result()
            items.extend(cell_items)
            scanned += cell_scanned
        return items, scanned

    def _paginate(
        self,
        tokens: list[str],
        conditions: Mapping[str, Any],
        page_size: int,
        continuation_token: ContinuationToken | None,
        deadline: float | None,
        timeout: float | None,
        cancel_event: threading.Event | None,
    ) -> tuple[list[T], int, ContinuationToken | None, int]:
        index, cursor = (continuation_token.cell_index, continuation_token.cursor) if continuation_token else (0, None)
        if index > len(tokens):
            raise RangeError(
                "continuation_token", continuation_token, "continuation token does not match this covering"
            )

        items: list[T] = []
        scanned = 0
        cells_queried = 0
        current_cell = -1
        while index < len(tokens):
            self._check_cancelled(deadline, timeout, cancel_event)
            if index != current_cell:
                current_cell = index
                cells_queried += 1
            page = self.range_query.query_cell(
                tokens[index], conditions=conditions, cursor=cursor, limit=page_size - len(items)
            )
            self._check_cancelled(deadline, timeout, cancel_event)
            items.extend(self.record_mapper(record) for record in page.records)
            scanned += page.scanned_count if page.scanned_count is not None else len(page.records)

            if page.cursor is not None:
                cursor = page.cursor
            else:
                index += 1
                cursor = None

            if len(items) >= page_size:
                if index >= len(tokens):
                    return items, scanned, None, cells_queried
                return items, scanned, ContinuationToken(cell_index=index, cursor=cursor), cells_queried
        return items, scanned, None, cells_queried

    def _finish(
        self,
        items: list[T],
        *,
        center: GeoPoint | None,
        unit: DistanceUnit,
        accept: Callable[[GeoPoint], bool],
        next_token: ContinuationToken | None,
        cells_queried: int,
        scanned: int,
    ) -> SpatialQueryResponse[T]:
        kept: list[tuple[float | None, int, T]] = []
        for position, item in enumerate(items):
            point = self.location_of(item)
            if point is None:
                logger.debug("Skipping item without a location: %r", item)
                continue
            if not accept(point):
                continue
            distance = None if center is None else from_meters(haversine_m(center, point), unit)
            kept.append((distance, position, item))

        if center is not None:
            kept.sort(key=lambda row: (row[0], row[1]))

        return SpatialQueryResponse(
            items=[row[2] for row in kept],
            distances=[row[0] for row in kept],
            continuation_token=next_token,
            total_cells_queried=cells_queried,
            total_items_scanned=scanned,
        )
