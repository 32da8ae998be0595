"""
Token-level codec API.

Callers that store and compare cells as strings use these functions; the id-level
building blocks live in `geocell.s2.cell_id`, `geocell.s2.navigation` and
`geocell.s2.bounds`.
"""

from __future__ import annotations

from geocell.core.geo import GeoBounds, GeoPoint
from geocell.s2.bounds import cell_id_bounds
from geocell.s2.cell_id import cell_id_to_latlon, check_cell_id, latlon_to_cell_id
from geocell.s2.navigation import children, neighbors, parent
from geocell.s2.token import cell_id_to_token, token_to_cell_id


def encode(lat: float, lon: float, level: int) -> str:
    """Token of the cell containing (lat, lon) at `level`."""
    return cell_id_to_token(latlon_to_cell_id(lat, lon, level))


def encode_point(point: GeoPoint, level: int) -> str:
    return encode(point.lat, point.lon, level)


def _valid_cell_id(token: str) -> int:
    return check_cell_id(token_to_cell_id(token))


def decode(token: str) -> GeoPoint:
    """Center of the cell named by `token`."""
    lat, lon = cell_id_to_latlon(_valid_cell_id(token))
    return GeoPoint(lat, lon)


def decode_bounds(token: str) -> GeoBounds:
    return cell_id_bounds(_valid_cell_id(token))


def get_parent(token: str, level: int | None = None) -> str:
    return cell_id_to_token(parent(_valid_cell_id(token), level))


def get_children(token: str) -> list[str]:
    return [cell_id_to_token(c) for c in children(_valid_cell_id(token))]


def get_neighbors(token: str) -> list[str]:
    return [cell_id_to_token(n) for n in neighbors(_valid_cell_id(token))]
