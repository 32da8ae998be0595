"""
Parent, children and neighbor navigation on cell ids.

Parent and children are pure bit manipulations of the sentinel. Neighbors step the
cell's center leaf by one cell size in each compass direction; steps that leave the
face are projected through the sphere onto the adjacent face.
"""

from __future__ import annotations

from geocell.core.errors import PreconditionError, RangeError
from geocell.s2.cell_id import (
    MAX_LEVEL,
    MAX_SIZE,
    UINT64_MASK,
    cell_id_level,
    cell_id_to_face_ij,
    check_cell_id,
    face_ij_to_cell_id,
    lowest_on_bit,
    lowest_on_bit_for_level,
    st_to_ij,
)
from geocell.s2.projection import face_uv_to_xyz, st_to_uv, uv_to_st, xyz_to_face_uv_auto

# (di, dj) in cell-size units: SW, S, SE, W, E, NW, N, NE.
NEIGHBOR_OFFSETS: tuple[tuple[int, int], ...] = (
    (-1, -1),
    (0, -1),
    (1, -1),
    (-1, 0),
    (1, 0),
    (-1, 1),
    (0, 1),
    (1, 1),
)


def parent(cell_id: int, level: int | None = None) -> int:
    """Return the ancestor at `level` (default: one level up)."""
    check_cell_id(cell_id)
    current = cell_id_level(cell_id)
    if level is None:
        if current == 0:
            raise PreconditionError("a level-0 cell has no parent")
        level = current - 1
    elif not 0 <= level <= current:
        raise RangeError("level", level, f"parent level must be within [0, {current}], got {level}")
    new_lsb = lowest_on_bit_for_level(level)
    return (cell_id & -new_lsb) | new_lsb


def children(cell_id: int) -> list[int]:
    """The four children in Hilbert order."""
    check_cell_id(cell_id)
    if cell_id_level(cell_id) == MAX_LEVEL:
        raise PreconditionError(f"a level-{MAX_LEVEL} cell has no children")
    lsb = lowest_on_bit(cell_id)
    child_lsb = lsb >> 2
    first = cell_id - lsb + child_lsb
    return [first + k * (child_lsb << 1) for k in range(4)]


def _face_ij_wrap_to_cell_id(face: int, i: int, j: int, level: int) -> int:
    """Encode leaf coordinates that may lie just outside `face`."""
    # One leaf beyond the edge is enough to land on the right neighbor face.
    i = max(-1, min(MAX_SIZE, i))
    j = max(-1, min(MAX_SIZE, j))
    s = ((i << 1) + 1 - MAX_SIZE) / MAX_SIZE
    t = ((j << 1) + 1 - MAX_SIZE) / MAX_SIZE
    x, y, z = face_uv_to_xyz(face, st_to_uv(s), st_to_uv(t))
    new_face, u, v = xyz_to_face_uv_auto(x, y, z)
    return face_ij_to_cell_id(new_face, st_to_ij(uv_to_st(u)), st_to_ij(uv_to_st(v)), level)


def neighbors(cell_id: int) -> list[int]:
    """Same-level cells around `cell_id` (at most 8, deduplicated, never the cell itself)."""
    check_cell_id(cell_id)
    face, i, j, level = cell_id_to_face_ij(cell_id)
    size = 1 << (MAX_LEVEL - level)

    out: list[int] = []
    seen = {cell_id}
    for di, dj in NEIGHBOR_OFFSETS:
        ni = i + di * size
        nj = j + dj * size
        if 0 <= ni < MAX_SIZE and 0 <= nj < MAX_SIZE:
            neighbor = face_ij_to_cell_id(face, ni, nj, level)
        else:
            neighbor = _face_ij_wrap_to_cell_id(face, ni, nj, level)
        neighbor &= UINT64_MASK
        if neighbor not in seen:
            seen.add(neighbor)
            out.append(neighbor)
    return out
