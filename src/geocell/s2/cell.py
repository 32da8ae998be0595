"""Cell value type: one cell with its id, token, level, face and bounds."""

from __future__ import annotations

from dataclasses import dataclass, field

from geocell.core.geo import GeoBounds, GeoPoint
from geocell.s2 import navigation
from geocell.s2.bounds import cell_id_bounds
from geocell.s2.cell_id import (
    cell_id_face,
    cell_id_level,
    cell_id_to_latlon,
    check_cell_id,
    latlon_to_cell_id,
    range_max,
    range_min,
)
from geocell.s2.token import cell_id_to_token, token_to_cell_id


@dataclass(frozen=True)
class Cell:
    cell_id: int
    token: str = field(init=False)
    level: int = field(init=False)
    face: int = field(init=False)

    def __post_init__(self) -> None:
        check_cell_id(self.cell_id)
        # Frozen dataclass: derived fields are set once here.
        object.__setattr__(self, "token", cell_id_to_token(self.cell_id))
        object.__setattr__(self, "level", cell_id_level(self.cell_id))
        object.__setattr__(self, "face", cell_id_face(self.cell_id))

    @classmethod
    def from_token(cls, token: str) -> Cell:
        return cls(token_to_cell_id(token))

    @classmethod
    def from_point(cls, point: GeoPoint, level: int) -> Cell:
        return cls(latlon_to_cell_id(point.lat, point.lon, level))

    @property
    def bounds(self) -> GeoBounds:
        return cell_id_bounds(self.cell_id)

    @property
    def center(self) -> GeoPoint:
        lat, lon = cell_id_to_latlon(self.cell_id)
        return GeoPoint(lat, lon)

    def parent(self, level: int | None = None) -> Cell:
        return Cell(navigation.parent(self.cell_id, level))

    def children(self) -> list[Cell]:
        return [Cell(c) for c in navigation.children(self.cell_id)]

    def neighbors(self) -> list[Cell]:
        return [Cell(n) for n in navigation.neighbors(self.cell_id)]

    def contains(self, other: Cell) -> bool:
        """True when `other` is this cell or one of its descendants."""
        return range_min(self.cell_id) <= other.cell_id <= range_max(self.cell_id)

    def __str__(self) -> str:
        return self.token
