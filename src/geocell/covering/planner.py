"""
Coverage planning: turn a radius or bounding-box query into same-level cell tokens.

Algorithm (both query shapes):
1) reject invalid levels/caps and obviously oversized queries using an area estimate,
2) seed with the center cell plus a grid of sample points over the query box,
3) flood-fill over cell neighbors, keeping every cell whose bounds intersect the box,
4) fail as soon as the kept set exceeds the cap, otherwise sort by distance to the center.

The result always covers the query region; it is not minimal. Cells are compared by
bounding box only, so a few corner cells of a radius covering may not touch the disk.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass

from geocell.config.settings import Settings
from geocell.core.errors import CoverageTooLargeError, RangeError
from geocell.core.geo import EARTH_RADIUS_M, DistanceUnit, GeoBounds, GeoPoint, haversine_m, to_meters
from geocell.s2.bounds import cell_id_bounds
from geocell.s2.cell_id import MAX_LEVEL, cell_id_to_latlon, check_level, latlon_to_cell_id
from geocell.s2.navigation import neighbors
from geocell.s2.token import cell_id_to_token

logger = logging.getLogger(__name__)

DEFAULT_MAX_CELLS = 100
ABSOLUTE_MAX_CELLS = 500
DEFAULT_SAMPLE_GRID_SIZE = 8

# Average cell edge at level 0: sqrt(surface area / 6 faces).
_LEVEL0_EDGE_KM = (EARTH_RADIUS_M / 1000.0) * math.sqrt(4 * math.pi / 6)
_KM_PER_DEGREE_LAT = math.pi * (EARTH_RADIUS_M / 1000.0) / 180.0


@dataclass(frozen=True)
class Covering:
    """A planned covering: the tokens to query, in distance order."""

    level: int
    tokens: list[str]
    center: GeoPoint
    bounds: GeoBounds
    estimated_cells: int


def approximate_cell_size_km(level: int) -> float:
    """Average edge length of a cell at `level`."""
    check_level(level)
    return _LEVEL0_EDGE_KM / (1 << level)


def _check_radius(radius_km: float) -> None:
    if not math.isfinite(radius_km) or radius_km < 0:
        raise RangeError("radius", radius_km, f"radius must be a finite number >= 0, got {radius_km}")


def choose_level(radius_km: float, cell_width_fraction: float = 0.5) -> int:
    """Finest level whose average cell edge is still at least `cell_width_fraction * radius_km`."""
    _check_radius(radius_km)
    if radius_km == 0:
        return MAX_LEVEL
    target_km = cell_width_fraction * radius_km
    level = math.floor(math.log2(_LEVEL0_EDGE_KM / target_km))
    return max(0, min(MAX_LEVEL, level))


def estimate_cell_count(radius_km: float, level: int) -> int:
    """Rough number of cells needed for a disk (area ratio, at least 1)."""
    size = approximate_cell_size_km(level)
    return max(1, math.ceil(math.pi * radius_km * radius_km / (size * size)))


def estimate_bounds_cell_count(bounds: GeoBounds, level: int) -> int:
    """Rough number of cells needed for a lat/lon box (area ratio, at least 1)."""
    size = approximate_cell_size_km(level)
    height_km = (bounds.max_lat - bounds.min_lat) * _KM_PER_DEGREE_LAT
    mid_lat = math.radians((bounds.min_lat + bounds.max_lat) / 2)
    width_km = bounds.lon_span * _KM_PER_DEGREE_LAT * math.cos(mid_lat)
    return max(1, math.ceil(height_km * width_km / (size * size)))


def _check_max_cells(max_cells: int, absolute_max_cells: int) -> None:
    if isinstance(max_cells, bool) or not isinstance(max_cells, int) or not 1 <= max_cells <= absolute_max_cells:
        raise RangeError(
            "max_cells", max_cells, f"max_cells must be within [1, {absolute_max_cells}], got {max_cells!r}"
        )


def _sample_points(bounds: GeoBounds, level: int, grid_size: int) -> list[GeoPoint]:
    """Sample points over `bounds`: about one per cell, at most `grid_size` per axis."""
    size_deg = approximate_cell_size_km(level) / _KM_PER_DEGREE_LAT
    lat_steps = max(1, min(grid_size, math.ceil((bounds.max_lat - bounds.min_lat) / size_deg)))
    lon_steps = max(1, min(grid_size, math.ceil(bounds.lon_span / size_deg)))

    points: list[GeoPoint] = []
    for a in range(lat_steps + 1):
        lat = bounds.min_lat + (bounds.max_lat - bounds.min_lat) * a / lat_steps
        for b in range(lon_steps + 1):
            lon = bounds.min_lon + bounds.lon_span * b / lon_steps
            if lon > 180.0:
                lon -= 360.0
            points.append(GeoPoint(min(90.0, max(-90.0, lat)), max(-180.0, lon)))
    return points


def _flood_fill(
    bounds: GeoBounds,
    center: GeoPoint,
    level: int,
    *,
    max_cells: int,
    sample_grid_size: int,
) -> list[int]:
    seeds = [latlon_to_cell_id(center.lat, center.lon, level)]
    seeds.extend(latlon_to_cell_id(p.lat, p.lon, level) for p in _sample_points(bounds, level, sample_grid_size))

    kept: list[int] = []
    visited: set[int] = set()
    queue: deque[int] = deque()
    for seed in seeds:
        if seed not in visited:
            visited.add(seed)
            queue.append(seed)

    while queue:
        cell_id = queue.popleft()
        if not cell_id_bounds(cell_id).intersects(bounds):
            continue
        kept.append(cell_id)
        if len(kept) > max_cells:
            raise CoverageTooLargeError(len(kept), max_cells, level)
        for neighbor in neighbors(cell_id):
            if neighbor not in visited:
                visited.add(neighbor)
                queue.append(neighbor)
    return kept


def _sorted_tokens(cell_ids: list[int], center: GeoPoint) -> list[str]:
    def key(cell_id: int) -> tuple[float, str]:
        lat, lon = cell_id_to_latlon(cell_id)
        token = cell_id_to_token(cell_id)
        return haversine_m(center, GeoPoint(lat, lon)), token

    return [cell_id_to_token(c) for c in sorted(cell_ids, key=key)]


def _warn_if_polar(center: GeoPoint, level: int, *, polar_latitude: float, polar_level: int) -> None:
    if abs(center.lat) > polar_latitude and level > polar_level:
        logger.warning(
            "Covering near the pole (lat=%.4f) at level %d; cells are distorted, consider level <= %d",
            center.lat,
            level,
            polar_level,
        )


def cells_for_radius(
    center: GeoPoint,
    radius_km: float,
    level: int,
    *,
    max_cells: int = DEFAULT_MAX_CELLS,
    absolute_max_cells: int = ABSOLUTE_MAX_CELLS,
    sample_grid_size: int = DEFAULT_SAMPLE_GRID_SIZE,
) -> list[str]:
    """Tokens of the cells at `level` covering the disk of `radius_km` around `center`."""
    check_level(level)
    _check_max_cells(max_cells, absolute_max_cells)
    _check_radius(radius_km)

    estimated = estimate_cell_count(radius_km, level)
    if estimated > max_cells:
        raise CoverageTooLargeError(estimated, max_cells, level, estimated=True)

    bounds = GeoBounds.around(center, radius_km, "kilometers")
    cell_ids = _flood_fill(bounds, center, level, max_cells=max_cells, sample_grid_size=sample_grid_size)
    return _sorted_tokens(cell_ids, center)


def cells_for_bounds(
    bounds: GeoBounds,
    level: int,
    *,
    max_cells: int = DEFAULT_MAX_CELLS,
    absolute_max_cells: int = ABSOLUTE_MAX_CELLS,
    sample_grid_size: int = DEFAULT_SAMPLE_GRID_SIZE,
    center: GeoPoint | None = None,
) -> list[str]:
    """Tokens of the cells at `level` covering `bounds` (wrapping boxes supported)."""
    check_level(level)
    _check_max_cells(max_cells, absolute_max_cells)

    estimated = estimate_bounds_cell_count(bounds, level)
    if estimated > max_cells:
        raise CoverageTooLargeError(estimated, max_cells, level, estimated=True)

    if bounds.includes_pole:
        logger.info("Bounding box includes a pole; covering spans all longitudes")
    center = center or bounds.center
    cell_ids = _flood_fill(bounds, center, level, max_cells=max_cells, sample_grid_size=sample_grid_size)
    return _sorted_tokens(cell_ids, center)


def plan_radius_covering(
    center: GeoPoint,
    radius: float,
    *,
    settings: Settings,
    unit: DistanceUnit = "kilometers",
    level: int | None = None,
    max_cells: int | None = None,
) -> Covering:
    """Settings-driven radius covering (auto level, configured caps, polar warning)."""
    radius_km = to_meters(radius, unit) / 1000.0
    _check_radius(radius_km)
    cov = settings.covering
    if level is None:
        level = choose_level(radius_km, cov.cell_width_fraction)
    max_cells = cov.default_max_cells if max_cells is None else max_cells
    _warn_if_polar(center, level, polar_latitude=cov.polar_warning_latitude, polar_level=cov.polar_warning_level)

    tokens = cells_for_radius(
        center,
        radius_km,
        level,
        max_cells=max_cells,
        absolute_max_cells=cov.absolute_max_cells,
        sample_grid_size=cov.sample_grid_size,
    )
    estimated = estimate_cell_count(radius_km, level)
    logger.debug(
        "Radius covering: center=(%.6f, %.6f) radius_km=%.3f level=%d cells=%d estimated=%d",
        center.lat,
        center.lon,
        radius_km,
        level,
        len(tokens),
        estimated,
    )
    return Covering(
        level=level,
        tokens=tokens,
        center=center,
        bounds=GeoBounds.around(center, radius_km, "kilometers"),
        estimated_cells=estimated,
    )


def plan_bounds_covering(
    bounds: GeoBounds,
    *,
    settings: Settings,
    level: int | None = None,
    max_cells: int | None = None,
) -> Covering:
    """Settings-driven bounding-box covering (defaults to `grid.default_level`)."""
    cov = settings.covering
    level = settings.grid.default_level if level is None else level
    max_cells = cov.default_max_cells if max_cells is None else max_cells
    center = bounds.center
    _warn_if_polar(center, level, polar_latitude=cov.polar_warning_latitude, polar_level=cov.polar_warning_level)

    tokens = cells_for_bounds(
        bounds,
        level,
        max_cells=max_cells,
        absolute_max_cells=cov.absolute_max_cells,
        sample_grid_size=cov.sample_grid_size,
        center=center,
    )
    estimated = estimate_bounds_cell_count(bounds, level)
    logger.debug("Bounds covering: bounds=%s level=%d cells=%d estimated=%d", bounds, level, len(tokens), estimated)
    return Covering(level=level, tokens=tokens, center=center, bounds=bounds, estimated_cells=estimated)
