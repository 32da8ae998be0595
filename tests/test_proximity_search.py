import threading
import time
from dataclasses import dataclass

import pytest

from geocell.config.settings import get_settings
from geocell.core.errors import CoverageTooLargeError, RangeError, SearchCancelledError, TokenFormatError
from geocell.core.geo import GeoBounds, GeoPoint, haversine_m
from geocell.query.collaborators import RangeQueryPage
from geocell.query.memory_store import InMemoryCellStore
from geocell.query.orchestrator import ProximitySearch, default_location_of
from geocell.query.response import ContinuationToken
from geocell.s2.encoder import decode, encode

CENTER = GeoPoint(37.7749, -122.4194)
LEVEL = 14


def _records() -> list[dict]:
    rows = []
    for a in range(-10, 11):
        for b in range(-10, 11):
            rows.append(
                {
                    "id": f"p{a}_{b}",
                    "lat": CENTER.lat + a * 0.002,
                    "lon": CENTER.lon + b * 0.002,
                    "kind": "cafe" if (a + b) % 2 == 0 else "park",
                }
            )
    return rows


def _within(rows: list[dict], radius_m: float) -> set[str]:
    return {r["id"] for r in rows if haversine_m(CENTER, GeoPoint(r["lat"], r["lon"])) <= radius_m}


def _settings(**query):
    settings = get_settings()
    return settings.model_copy(update={"query": settings.query.model_copy(update=query)})


class ExplodingStore:
    def __init__(self, inner: InMemoryCellStore, bad_token: str, error: Exception):
        self.inner = inner
        self.bad_token = bad_token
        self.error = error

    def query_cell(self, token, *, conditions, cursor=None, limit=None):
        if token == self.bad_token:
            raise self.error
        return self.inner.query_cell(token, conditions=conditions, cursor=cursor, limit=limit)


class SlowStore:
    def __init__(self, delay: float):
        self.delay = delay

    def query_cell(self, token, *, conditions, cursor=None, limit=None):
        time.sleep(self.delay)
        return RangeQueryPage(records=[], cursor=None, scanned_count=0)


def test_radius_search_matches_brute_force_and_is_sorted():
    rows = _records()
    store = InMemoryCellStore.from_records(rows, level=LEVEL)
    search = ProximitySearch(store, settings=_settings())

    response = search.search_radius(CENTER, 1.0, unit="kilometers", level=LEVEL)

    assert {item["id"] for item in response.items} == _within(rows, 1000)
    assert response.distances == sorted(response.distances)
    assert all(d <= 1.0 for d in response.distances)
    assert response.continuation_token is None
    assert response.total_cells_queried == len(set(store.calls))
    assert response.total_items_scanned >= len(response.items)


def test_units_are_equivalent():
    store = InMemoryCellStore.from_records(_records(), level=LEVEL)
    search = ProximitySearch(store, settings=_settings())
    km = search.search_radius(CENTER, 1.0, unit="kilometers", level=LEVEL)
    m = search.search_radius(CENTER, 1000, unit="meters", level=LEVEL)
    miles = search.search_radius(CENTER, 1000 / 1609.344, unit="miles", level=LEVEL)
    ids = [item["id"] for item in km.items]
    assert [item["id"] for item in m.items] == ids
    assert [item["id"] for item in miles.items] == ids
    assert m.distances[-1] == pytest.approx(km.distances[-1] * 1000)


def test_result_order_does_not_depend_on_concurrency():
    rows = _records()
    sequential = ProximitySearch(InMemoryCellStore.from_records(rows, level=LEVEL), settings=_settings(max_concurrency=1))
    parallel = ProximitySearch(InMemoryCellStore.from_records(rows, level=LEVEL), settings=_settings(max_concurrency=16))
    a = sequential.search_radius(CENTER, 1.5, level=LEVEL)
    b = parallel.search_radius(CENTER, 1.5, level=LEVEL)
    assert [i["id"] for i in a.items] == [i["id"] for i in b.items]
    assert a.total_items_scanned == b.total_items_scanned


def test_store_pages_are_drained_per_cell():
    rows = _records()
    paged = InMemoryCellStore.from_records(rows, level=LEVEL, page_size=1)
    search = ProximitySearch(paged, settings=_settings())
    response = search.search_radius(CENTER, 1.0, level=LEVEL)
    assert {item["id"] for item in response.items} == _within(rows, 1000)
    assert len(paged.calls) > response.total_cells_queried


def test_equality_conditions_are_forwarded():
    rows = _records()
    search = ProximitySearch(InMemoryCellStore.from_records(rows, level=LEVEL), settings=_settings())
    response = search.search_radius(CENTER, 1.0, level=LEVEL, conditions={"kind": "cafe"})
    expected = {r["id"] for r in rows if r["kind"] == "cafe"} & _within(rows, 1000)
    assert {item["id"] for item in response.items} == expected


@dataclass(frozen=True)
class Place:
    name: str
    location: GeoPoint


def test_record_mapper_is_called_once_per_record():
    calls = []

    def mapper(record: dict) -> Place:
        calls.append(record["id"])
        return Place(record["id"], GeoPoint(record["lat"], record["lon"]))

    store = InMemoryCellStore.from_records(_records(), level=LEVEL)
    search = ProximitySearch(store, record_mapper=mapper, settings=_settings())
    response = search.search_radius(CENTER, 0.5, level=LEVEL)

    assert all(isinstance(item, Place) for item in response.items)
    assert len(calls) == len(set(calls)) == response.total_items_scanned


def test_paginated_search_walks_the_whole_covering():
    rows = _records()
    search = ProximitySearch(InMemoryCellStore.from_records(rows, level=LEVEL), settings=_settings())

    seen: list[str] = []
    token = None
    pages = 0
    while True:
        response = search.search_radius(CENTER, 1.0, level=LEVEL, page_size=7, continuation_token=token)
        seen.extend(item["id"] for item in response.items)
        pages += 1
        if response.continuation_token is None:
            break
        # Tokens survive a trip through a client as opaque strings.
        token = response.continuation_token.to_base64()
        assert pages < 500

    assert pages > 1
    assert len(seen) == len(set(seen))
    assert set(seen) == _within(rows, 1000)


def test_continuation_token_round_trip_and_errors():
    token = ContinuationToken(cell_index=3, cursor="12")
    assert ContinuationToken.from_base64(token.to_base64()) == token
    with pytest.raises(TokenFormatError):
        ContinuationToken.from_base64("not-a-token")

    search = ProximitySearch(InMemoryCellStore(), settings=_settings())
    with pytest.raises(RangeError):
        search.search_radius(CENTER, 1.0, level=LEVEL, continuation_token=token)


def test_oversized_covering_fails_before_any_query():
    store = InMemoryCellStore.from_records(_records(), level=16)
    search = ProximitySearch(store, settings=_settings())
    with pytest.raises(CoverageTooLargeError):
        search.search_radius(CENTER, 5.0, level=16, max_cells=100)
    assert store.calls == []


def test_collaborator_error_propagates_unchanged():
    store = InMemoryCellStore.from_records(_records(), level=LEVEL)
    boom = ConnectionError("store unavailable")
    search = ProximitySearch(
        ExplodingStore(store, encode(CENTER.lat, CENTER.lon, LEVEL), boom), settings=_settings()
    )
    with pytest.raises(ConnectionError) as exc:
        search.search_radius(CENTER, 1.0, level=LEVEL)
    assert exc.value is boom


def test_timeout_raises_search_cancelled():
    search = ProximitySearch(SlowStore(0.5), settings=_settings(max_concurrency=2))
    started = time.monotonic()
    with pytest.raises(SearchCancelledError):
        search.search_radius(CENTER, 1.0, level=LEVEL, timeout_seconds=0.05)
    assert time.monotonic() - started < 0.5


def test_cancel_event_raises_search_cancelled():
    cancel = threading.Event()
    cancel.set()
    search = ProximitySearch(SlowStore(0.01), settings=_settings())
    with pytest.raises(SearchCancelledError):
        search.search_radius(CENTER, 1.0, level=LEVEL, cancel_event=cancel)
    with pytest.raises(SearchCancelledError):
        search.search_radius(CENTER, 1.0, level=LEVEL, page_size=5, cancel_event=cancel)


class CancelAfterFirstPageStore:
    """Sets `cancel` while serving the first page of a cell that has more pages."""

    def __init__(self, inner: InMemoryCellStore, cancel: threading.Event):
        self.inner = inner
        self.cancel = cancel

    def query_cell(self, token, *, conditions, cursor=None, limit=None):
        page = self.inner.query_cell(token, conditions=conditions, cursor=cursor, limit=limit)
        self.cancel.set()
        return page


class StallAfterFirstPageStore:
    """Returns one page with a cursor, then blocks on the follow-up request."""

    def __init__(self, delay: float):
        self.delay = delay

    def query_cell(self, token, *, conditions, cursor=None, limit=None):
        if cursor is None:
            return RangeQueryPage(records=[{"id": "first", "lat": 0.0, "lon": 0.0}], cursor="1", scanned_count=1)
        time.sleep(self.delay)
        return RangeQueryPage(records=[{"id": "second", "lat": 0.0, "lon": 0.0}], cursor=None, scanned_count=1)


def _two_record_cell() -> tuple[InMemoryCellStore, str]:
    rows = [{"id": 1, "lat": 0.0, "lon": 0.0}, {"id": 2, "lat": 0.0, "lon": 0.0}]
    store = InMemoryCellStore.from_records(rows, level=LEVEL, page_size=1)
    return store, encode(0.0, 0.0, LEVEL)


def test_cancel_during_cell_paging_raises_instead_of_returning_partial_results():
    store, token = _two_record_cell()
    cancel = threading.Event()
    search = ProximitySearch(CancelAfterFirstPageStore(store, cancel), settings=_settings())

    with pytest.raises(SearchCancelledError):
        search.search_cells([token], cancel_event=cancel)
    # The second page of the cell was never requested.
    assert store.calls == [token]


def test_cancel_during_paginated_query_raises():
    store, token = _two_record_cell()
    cancel = threading.Event()
    search = ProximitySearch(CancelAfterFirstPageStore(store, cancel), settings=_settings())

    with pytest.raises(SearchCancelledError):
        search.search_cells([token], page_size=5, cancel_event=cancel)


def test_timeout_while_a_cell_is_mid_paging_raises():
    token = encode(0.0, 0.0, LEVEL)
    search = ProximitySearch(StallAfterFirstPageStore(0.5), settings=_settings())
    started = time.monotonic()
    with pytest.raises(SearchCancelledError):
        search.search_cells([token], timeout_seconds=0.1)
    assert time.monotonic() - started < 0.5


def test_bounds_search_filters_to_the_box():
    rows = _records()
    box = GeoBounds(CENTER.lat - 0.005, CENTER.lat + 0.005, CENTER.lon - 0.003, CENTER.lon + 0.009)
    search = ProximitySearch(InMemoryCellStore.from_records(rows, level=LEVEL), settings=_settings())
    response = search.search_bounds(box, level=LEVEL)
    expected = {r["id"] for r in rows if box.contains(GeoPoint(r["lat"], r["lon"]))}
    assert {item["id"] for item in response.items} == expected


def test_search_cells_with_caller_covering():
    rows = _records()
    search = ProximitySearch(InMemoryCellStore.from_records(rows, level=LEVEL), settings=_settings())
    token = encode(CENTER.lat, CENTER.lon, LEVEL)
    response = search.search_cells([token])
    assert response.total_cells_queried == 1
    assert {item["id"] for item in response.items} == {
        r["id"] for r in rows if encode(r["lat"], r["lon"], LEVEL) == token
    }
    with pytest.raises(RangeError):
        search.search_cells([token], radius=1.0)


def test_location_prefers_exact_coordinates_then_cell_center():
    token = encode(CENTER.lat, CENTER.lon, 12)
    assert default_location_of({"lat": 1.5, "lon": 2.5, "s2_cell": token}) == GeoPoint(1.5, 2.5)
    assert default_location_of({"latitude": 1.5, "longitude": 2.5}) == GeoPoint(1.5, 2.5)
    assert default_location_of(Place("x", GeoPoint(3, 4))) == GeoPoint(3, 4)
    assert default_location_of({"s2_cell": token}) == decode(token)
    assert default_location_of({"name": "nowhere"}) is None
