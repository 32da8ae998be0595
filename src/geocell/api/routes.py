"""
API routes.

Endpoints:
- GET  `/api/cells/encode`: token + description of the cell containing a point.
- GET  `/api/cells/{token}`: describe a cell (center, bounds, level, face).
- GET  `/api/cells/{token}/parent|children|neighbors`: cell navigation.
- POST `/api/coverings`: radius covering.
- POST `/api/coverings/bounds`: bounding-box covering.
- GET  `/api/settings`: effective covering/search settings.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from geocell.config.overrides import apply_settings_overrides
from geocell.config.settings import get_settings
from geocell.core.errors import CoverageTooLargeError, PreconditionError, RangeError
from geocell.covering.planner import plan_bounds_covering, plan_radius_covering
from geocell.domain.models import (
    BoundsCoveringRequest,
    CellInfo,
    CoveringRequest,
    CoveringResult,
    bounds_to_model,
    cell_to_info,
)
from geocell.s2.cell import Cell
from geocell.s2.encoder import encode

router = APIRouter()


def _bad_request(e: Exception) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": "VALIDATION_ERROR", "message": str(e)})


def _cell(token: str) -> Cell:
    try:
        return Cell.from_token(token)
    except RangeError as e:
        raise _bad_request(e) from e


@router.get("/api/cells/encode", response_model=CellInfo)
def get_encode(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    level: int | None = Query(default=None, ge=0, le=30),
) -> CellInfo:
    """Encode a point at `level` (default: `grid.default_level`)."""
    settings = get_settings()
    token = encode(lat, lon, settings.grid.default_level if level is None else level)
    return cell_to_info(Cell.from_token(token))


@router.get("/api/cells/{token}", response_model=CellInfo)
def get_cell(token: str) -> CellInfo:
    return cell_to_info(_cell(token))


@router.get("/api/cells/{token}/parent", response_model=CellInfo)
def get_cell_parent(token: str, level: int | None = Query(default=None, ge=0, le=30)) -> CellInfo:
    cell = _cell(token)
    try:
        return cell_to_info(cell.parent(level))
    except (RangeError, PreconditionError) as e:
        raise _bad_request(e) from e


@router.get("/api/cells/{token}/children")
def get_cell_children(token: str) -> dict:
    cell = _cell(token)
    try:
        children = cell.children()
    except PreconditionError as e:
        raise _bad_request(e) from e
    return {"token": cell.token, "children": [cell_to_info(c).model_dump(mode="json") for c in children]}


@router.get("/api/cells/{token}/neighbors")
def get_cell_neighbors(token: str) -> dict:
    cell = _cell(token)
    return {"token": cell.token, "neighbors": [n.token for n in cell.neighbors()]}


def _coverage_too_large(e: CoverageTooLargeError) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={
            "code": "COVERAGE_TOO_LARGE",
            "message": str(e),
            "cell_count": e.cell_count,
            "max_cells": e.max_cells,
            "level": e.level,
        },
    )


@router.post("/api/coverings", response_model=CoveringResult)
def post_covering(request: CoveringRequest) -> CoveringResult:
    """Plan the covering of a disk."""
    try:
        settings = apply_settings_overrides(get_settings(), request.settings_overrides)
        covering = plan_radius_covering(
            request.center.to_core(),
            request.radius,
            settings=settings,
            unit=request.unit or settings.query.distance_unit,
            level=request.level,
            max_cells=request.max_cells,
        )
    except CoverageTooLargeError as e:
        raise _coverage_too_large(e) from e
    except ValueError as e:
        raise _bad_request(e) from e
    return CoveringResult(
        level=covering.level,
        tokens=covering.tokens,
        cell_count=len(covering.tokens),
        estimated_cells=covering.estimated_cells,
        bounds=bounds_to_model(covering.bounds),
    )


@router.post("/api/coverings/bounds", response_model=CoveringResult)
def post_bounds_covering(request: BoundsCoveringRequest) -> CoveringResult:
    """Plan the covering of a lat/lon box."""
    try:
        settings = apply_settings_overrides(get_settings(), request.settings_overrides)
        covering = plan_bounds_covering(
            request.bounds.to_core(),
            settings=settings,
            level=request.level,
            max_cells=request.max_cells,
        )
    except CoverageTooLargeError as e:
        raise _coverage_too_large(e) from e
    except ValueError as e:
        raise _bad_request(e) from e
    return CoveringResult(
        level=covering.level,
        tokens=covering.tokens,
        cell_count=len(covering.tokens),
        estimated_cells=covering.estimated_cells,
        bounds=bounds_to_model(covering.bounds),
    )


@router.get("/api/settings")
def get_public_settings() -> dict:
    """Return the effective grid/covering/query settings."""
    data = get_settings().model_dump(mode="json")
    return {"grid": data["grid"], "covering": data["covering"], "query": data["query"]}
