"""
Lat/lon bounding boxes of cells.

For level >= 1 the latitude and longitude extremes of a cell are attained at its
four vertices (no cell edge crosses a face center line), so the box is built from
the vertices and widened by a tiny error margin. Level-0 faces use fixed boxes.
"""

from __future__ import annotations

from math import asin, degrees, sqrt

from geocell.core.geo import GeoBounds
from geocell.s2.cell_id import MAX_LEVEL, MAX_SIZE, cell_id_to_face_ij, check_cell_id
from geocell.s2.projection import face_uv_to_xyz, st_to_uv, xyz_to_latlon

# Latitude of a polar face corner: asin(1/sqrt(3)).
POLE_MIN_LAT = degrees(asin(sqrt(1.0 / 3.0)))

# Degrees; absorbs floating point error from the trigonometric round trip.
BOUNDS_MARGIN_DEG = 1e-9

FACE_BOUNDS: tuple[GeoBounds, ...] = (
    GeoBounds(-45.0, 45.0, -45.0, 45.0),
    GeoBounds(-45.0, 45.0, 45.0, 135.0),
    GeoBounds(POLE_MIN_LAT, 90.0, -180.0, 180.0),
    GeoBounds(-45.0, 45.0, 135.0, -135.0),
    GeoBounds(-45.0, 45.0, -135.0, -45.0),
    GeoBounds(-90.0, -POLE_MIN_LAT, -180.0, 180.0),
)


def _widen(min_lat: float, max_lat: float, min_lon: float, max_lon: float, full_lon: bool) -> GeoBounds:
    min_lat = max(-90.0, min_lat - BOUNDS_MARGIN_DEG)
    max_lat = min(90.0, max_lat + BOUNDS_MARGIN_DEG)
    if full_lon:
        return GeoBounds(min_lat, max_lat, -180.0, 180.0)
    lo = min_lon - BOUNDS_MARGIN_DEG
    hi = max_lon + BOUNDS_MARGIN_DEG
    if lo < -180.0:
        lo += 360.0
    if hi > 180.0:
        hi -= 360.0
    return GeoBounds(min_lat, max_lat, lo, hi)


def cell_id_bounds(cell_id: int) -> GeoBounds:
    """Return a box containing every point of the cell."""
    check_cell_id(cell_id)
    face, i, j, level = cell_id_to_face_ij(cell_id)
    if level == 0:
        return FACE_BOUNDS[face]

    size = 1 << (MAX_LEVEL - level)
    si_lo = ((i & -size) << 1) - MAX_SIZE
    ti_lo = ((j & -size) << 1) - MAX_SIZE
    si_hi = si_lo + (size << 1)
    ti_hi = ti_lo + (size << 1)

    lats: list[float] = []
    lons: list[float] = []
    for si in (si_lo, si_hi):
        for ti in (ti_lo, ti_hi):
            u = st_to_uv(si / MAX_SIZE)
            v = st_to_uv(ti / MAX_SIZE)
            lat, lon = xyz_to_latlon(*face_uv_to_xyz(face, u, v))
            lats.append(lat)
            lons.append(lon)

    min_lat, max_lat = min(lats), max(lats)

    # A polar-face cell whose corner grid spans the face center has the pole as a vertex.
    if face in (2, 5) and si_lo <= 0 <= si_hi and ti_lo <= 0 <= ti_hi:
        if face == 2:
            max_lat = 90.0
        else:
            min_lat = -90.0
        return _widen(min_lat, max_lat, -180.0, 180.0, full_lon=True)

    min_lon, max_lon = min(lons), max(lons)
    if max_lon - min_lon > 180.0:
        # The cell straddles the antimeridian: return the wrap form (min_lon > max_lon).
        shifted = [lon + 360.0 if lon < 0 else lon for lon in lons]
        min_lon = min(shifted)
        max_lon = max(shifted) - 360.0
    return _widen(min_lat, max_lat, min_lon, max_lon, full_lon=False)
