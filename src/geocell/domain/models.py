"""
API models (Pydantic).

These types are the JSON contract of the HTTP API and the `--json` CLI output:
- inputs (`CoveringRequest`, `BoundsCoveringRequest`)
- cell descriptions (`CellInfo`, `BoundsModel`)
- covering output (`CoveringResult`)

Core code works with the frozen dataclasses in `geocell.core.geo`; the helpers at the
bottom convert between the two.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from geocell.core.geo import GeoBounds, GeoPoint as CoreGeoPoint
from geocell.s2.cell import Cell


class GeoPoint(BaseModel):
    """A geographic point in decimal degrees."""

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)

    def to_core(self) -> CoreGeoPoint:
        return CoreGeoPoint(self.lat, self.lon)


class BoundsModel(BaseModel):
    """A lat/lon box; `min_lon > max_lon` means it crosses the antimeridian."""

    min_lat: float = Field(..., ge=-90, le=90)
    max_lat: float = Field(..., ge=-90, le=90)
    min_lon: float = Field(..., ge=-180, le=180)
    max_lon: float = Field(..., ge=-180, le=180)

    def to_core(self) -> GeoBounds:
        return GeoBounds(self.min_lat, self.max_lat, self.min_lon, self.max_lon)


class CellInfo(BaseModel):
    token: str
    cell_id: str = Field(..., description="Unsigned 64-bit id as a decimal string")
    level: int
    face: int
    center: GeoPoint
    bounds: BoundsModel


class CoveringRequest(BaseModel):
    """Radius covering request."""

    center: GeoPoint
    radius: float = Field(..., ge=0)
    unit: Literal["meters", "kilometers", "miles"] | None = None
    level: int | None = Field(default=None, ge=0, le=30)
    max_cells: int | None = Field(default=None, ge=1)
    settings_overrides: dict[str, Any] | None = None


class BoundsCoveringRequest(BaseModel):
    bounds: BoundsModel
    level: int | None = Field(default=None, ge=0, le=30)
    max_cells: int | None = Field(default=None, ge=1)
    settings_overrides: dict[str, Any] | None = None


class CoveringResult(BaseModel):
    level: int
    tokens: list[str]
    cell_count: int
    estimated_cells: int
    bounds: BoundsModel


def bounds_to_model(bounds: GeoBounds) -> BoundsModel:
    return BoundsModel(
        min_lat=bounds.min_lat,
        max_lat=bounds.max_lat,
        min_lon=bounds.min_lon,
        max_lon=bounds.max_lon,
    )


def cell_to_info(cell: Cell) -> CellInfo:
    center = cell.center
    return CellInfo(
        token=cell.token,
        cell_id=str(cell.cell_id),
        level=cell.level,
        face=cell.face,
        center=GeoPoint(lat=center.lat, lon=center.lon),
        bounds=bounds_to_model(cell.bounds),
    )
