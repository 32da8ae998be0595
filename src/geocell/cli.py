"""
GeoCell CLI entrypoint.

This CLI is intended for quick local inspection of cells and coverings, and for
running a proximity search over a JSON file of records without a database.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from geocell.config.settings import get_settings
from geocell.core.errors import GeoCellError
from geocell.core.geo import GeoBounds, GeoPoint, to_meters
from geocell.core.logging import configure_logging
from geocell.covering.planner import choose_level, plan_bounds_covering, plan_radius_covering
from geocell.domain.models import bounds_to_model, cell_to_info
from geocell.query.memory_store import InMemoryCellStore
from geocell.query.orchestrator import ProximitySearch
from geocell.s2.cell import Cell
from geocell.s2.encoder import encode


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _print_cell(cell: Cell, as_json: bool) -> None:
    if as_json:
        _print_json(cell_to_info(cell).model_dump(mode="json"))
        return
    center = cell.center
    b = cell.bounds
    print(f"{cell.token} level={cell.level} face={cell.face} center=({center.lat:.6f}, {center.lon:.6f})")
    print(f"  bounds lat=[{b.min_lat:.6f}, {b.max_lat:.6f}] lon=[{b.min_lon:.6f}, {b.max_lon:.6f}]")


def _cmd_encode(args: argparse.Namespace) -> int:
    level = get_settings().grid.default_level if args.level is None else args.level
    token = encode(args.lat, args.lon, level)
    if args.json:
        _print_cell(Cell.from_token(token), True)
    else:
        print(token)
    return 0


def _cmd_decode(args: argparse.Namespace) -> int:
    _print_cell(Cell.from_token(args.token), args.json)
    return 0


def _cmd_bounds(args: argparse.Namespace) -> int:
    bounds = Cell.from_token(args.token).bounds
    if args.json:
        _print_json(bounds_to_model(bounds).model_dump(mode="json"))
    else:
        print(f"{bounds.min_lat} {bounds.max_lat} {bounds.min_lon} {bounds.max_lon}")
    return 0


def _print_tokens(tokens: list[str], as_json: bool, key: str) -> None:
    if as_json:
        _print_json({key: tokens})
    else:
        for token in tokens:
            print(token)


def _cmd_neighbors(args: argparse.Namespace) -> int:
    _print_tokens([c.token for c in Cell.from_token(args.token).neighbors()], args.json, "neighbors")
    return 0


def _cmd_parent(args: argparse.Namespace) -> int:
    _print_cell(Cell.from_token(args.token).parent(args.level), args.json)
    return 0


def _cmd_children(args: argparse.Namespace) -> int:
    _print_tokens([c.token for c in Cell.from_token(args.token).children()], args.json, "children")
    return 0


def _cmd_cover(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.bbox:
        min_lat, max_lat, min_lon, max_lon = args.bbox
        covering = plan_bounds_covering(
            GeoBounds(min_lat, max_lat, min_lon, max_lon),
            settings=settings,
            level=args.level,
            max_cells=args.max_cells,
        )
    else:
        if args.lat is None or args.lon is None or args.radius is None:
            raise SystemExit("cover: --lat, --lon and --radius are required unless --bbox is given")
        covering = plan_radius_covering(
            GeoPoint(args.lat, args.lon),
            args.radius,
            settings=settings,
            unit=args.unit or settings.query.distance_unit,
            level=args.level,
            max_cells=args.max_cells,
        )

    if args.json:
        _print_json(
            {
                "level": covering.level,
                "tokens": covering.tokens,
                "cell_count": len(covering.tokens),
                "estimated_cells": covering.estimated_cells,
            }
        )
    else:
        print(f"level={covering.level} cells={len(covering.tokens)} (estimated {covering.estimated_cells})")
        for token in covering.tokens:
            print(token)
    return 0


def _cmd_search(args: argparse.Namespace) -> int:
    settings = get_settings()
    records = json.loads(Path(args.records).read_text(encoding="utf-8"))
    if not isinstance(records, list):
        raise SystemExit(f"search: {args.records} must contain a JSON list of records")

    unit = args.unit or settings.query.distance_unit
    center = GeoPoint(args.lat, args.lon)
    level = args.level
    if level is None:
        level = choose_level(to_meters(args.radius, unit) / 1000.0, settings.covering.cell_width_fraction)

    store = InMemoryCellStore.from_records(records, level=level, token_attribute=settings.query.token_attribute)
    search: ProximitySearch[dict[str, Any]] = ProximitySearch(store, settings=settings)
    response = search.search_radius(center, args.radius, unit=unit, level=level, max_cells=args.max_cells)

    if args.json:
        _print_json(
            {
                "items": [{**item, "distance": d} for item, d in zip(response.items, response.distances)],
                "total_cells_queried": response.total_cells_queried,
                "total_items_scanned": response.total_items_scanned,
            }
        )
        return 0

    print(f"{len(response.items)} results ({response.total_cells_queried} cells, {response.total_items_scanned} scanned)")
    for item, distance in zip(response.items, response.distances):
        label = item.get(args.label_key) or item.get(settings.query.token_attribute)
        print(f"- {label} ({distance:.3f} {unit})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="geocell", description="Hierarchical cell ids and proximity search.")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Level for geocell loggers (default: app.log_level)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add_json(p: argparse.ArgumentParser) -> None:
        p.add_argument("--json", action="store_true", help="Print JSON output")

    p_encode = sub.add_parser("encode", help="Encode a point into a cell token")
    p_encode.add_argument("--lat", type=float, required=True)
    p_encode.add_argument("--lon", type=float, required=True)
    p_encode.add_argument("--level", type=int, default=None)
    add_json(p_encode)
    p_encode.set_defaults(func=_cmd_encode)

    p_decode = sub.add_parser("decode", help="Describe a cell token")
    p_decode.add_argument("token")
    add_json(p_decode)
    p_decode.set_defaults(func=_cmd_decode)

    p_bounds = sub.add_parser("bounds", help="Print the lat/lon bounds of a cell")
    p_bounds.add_argument("token")
    add_json(p_bounds)
    p_bounds.set_defaults(func=_cmd_bounds)

    p_neighbors = sub.add_parser("neighbors", help="List same-level neighbor cells")
    p_neighbors.add_argument("token")
    add_json(p_neighbors)
    p_neighbors.set_defaults(func=_cmd_neighbors)

    p_parent = sub.add_parser("parent", help="Describe the parent (or an ancestor) of a cell")
    p_parent.add_argument("token")
    p_parent.add_argument("--level", type=int, default=None)
    add_json(p_parent)
    p_parent.set_defaults(func=_cmd_parent)

    p_children = sub.add_parser("children", help="List the four children of a cell")
    p_children.add_argument("token")
    add_json(p_children)
    p_children.set_defaults(func=_cmd_children)

    p_cover = sub.add_parser("cover", help="Plan a radius or bounding-box covering")
    p_cover.add_argument("--lat", type=float)
    p_cover.add_argument("--lon", type=float)
    p_cover.add_argument("--radius", type=float)
    p_cover.add_argument("--unit", choices=["meters", "kilometers", "miles"], default=None)
    p_cover.add_argument(
        "--bbox", type=float, nargs=4, metavar=("MIN_LAT", "MAX_LAT", "MIN_LON", "MAX_LON"), default=None
    )
    p_cover.add_argument("--level", type=int, default=None)
    p_cover.add_argument("--max-cells", type=int, default=None)
    add_json(p_cover)
    p_cover.set_defaults(func=_cmd_cover)

    p_search = sub.add_parser("search", help="Radius search over a JSON file of records with lat/lon")
    p_search.add_argument("--records", required=True, help="Path to a JSON list of objects with lat/lon keys")
    p_search.add_argument("--lat", type=float, required=True)
    p_search.add_argument("--lon", type=float, required=True)
    p_search.add_argument("--radius", type=float, required=True)
    p_search.add_argument("--unit", choices=["meters", "kilometers", "miles"], default=None)
    p_search.add_argument("--level", type=int, default=None)
    p_search.add_argument("--max-cells", type=int, default=None)
    p_search.add_argument("--label-key", default="name")
    add_json(p_search)
    p_search.set_defaults(func=_cmd_search)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m geocell.cli`."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except GeoCellError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
