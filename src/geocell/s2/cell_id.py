"""
64-bit hierarchical cell ids.

Layout of a cell id at level L (bit 63 is the most significant):

    face (3 bits) | Hilbert position (2*L bits) | 1 (sentinel) | zeros (60 - 2*L bits)

The Hilbert position is computed four levels at a time with two 1024-entry lookup
tables, tracking the curve orientation (swap i/j, invert) between chunks. Ids are
plain Python ints kept within 64 unsigned bits; the helpers below are the only
places that do the masking.
"""

from __future__ import annotations

from geocell.core.errors import RangeError
from geocell.s2.projection import (
    face_uv_to_xyz,
    latlon_to_xyz,
    st_to_uv,
    uv_to_st,
    xyz_to_face_uv_auto,
    xyz_to_latlon,
)

MAX_LEVEL = 30
FACE_BITS = 3
NUM_FACES = 6
POS_BITS = 2 * MAX_LEVEL + 1
MAX_SIZE = 1 << MAX_LEVEL
UINT64_MASK = (1 << 64) - 1

SWAP_MASK = 0x01
INVERT_MASK = 0x02
LOOKUP_BITS = 4

# Orientation change applied after visiting each Hilbert sub-position.
POS_TO_ORIENTATION = (SWAP_MASK, 0, 0, INVERT_MASK | SWAP_MASK)

# (i, j) quadrant (as i*2 + j) visited at each Hilbert position, per orientation.
POS_TO_IJ = (
    (0, 1, 3, 2),
    (0, 2, 3, 1),
    (3, 2, 0, 1),
    (3, 1, 0, 2),
)


def _build_lookup_tables() -> tuple[tuple[int, ...], tuple[int, ...]]:
    lookup_pos = [0] * (1 << (2 * LOOKUP_BITS + 2))
    lookup_ij = [0] * (1 << (2 * LOOKUP_BITS + 2))

    def init_cell(level: int, i: int, j: int, orig_orientation: int, pos: int, orientation: int) -> None:
        if level == LOOKUP_BITS:
            ij = (i << LOOKUP_BITS) + j
            lookup_pos[(ij << 2) + orig_orientation] = (pos << 2) + orientation
            lookup_ij[(pos << 2) + orig_orientation] = (ij << 2) + orientation
            return
        level += 1
        i <<= 1
        j <<= 1
        pos <<= 2
        quadrants = POS_TO_IJ[orientation]
        for sub_pos in range(4):
            ij = quadrants[sub_pos]
            init_cell(
                level,
                i + (ij >> 1),
                j + (ij & 1),
                orig_orientation,
                pos + sub_pos,
                orientation ^ POS_TO_ORIENTATION[sub_pos],
            )

    for orientation in range(4):
        init_cell(0, 0, 0, orientation, 0, orientation)
    return tuple(lookup_pos), tuple(lookup_ij)


LOOKUP_POS, LOOKUP_IJ = _build_lookup_tables()


def check_level(level: int) -> int:
    if isinstance(level, bool) or not isinstance(level, int) or not 0 <= level <= MAX_LEVEL:
        raise RangeError("level", level, f"level must be an integer within [0, {MAX_LEVEL}], got {level!r}")
    return level


def lowest_on_bit(cell_id: int) -> int:
    return cell_id & -cell_id


def lowest_on_bit_for_level(level: int) -> int:
    return 1 << (2 * (MAX_LEVEL - level))


def is_valid_cell_id(cell_id: int) -> bool:
    """True when `cell_id` has a face in 0..5 and a sentinel on an even bit."""
    if not 0 < cell_id <= UINT64_MASK:
        return False
    if (cell_id >> POS_BITS) >= NUM_FACES:
        return False
    return (lowest_on_bit(cell_id) & 0x1555555555555555) != 0


def check_cell_id(cell_id: int) -> int:
    if not isinstance(cell_id, int) or not is_valid_cell_id(cell_id):
        raise RangeError("cell_id", cell_id, f"invalid cell id: {cell_id!r}")
    return cell_id


def cell_id_face(cell_id: int) -> int:
    return cell_id >> POS_BITS


def cell_id_level(cell_id: int) -> int:
    return MAX_LEVEL - ((lowest_on_bit(cell_id).bit_length() - 1) >> 1)


def range_min(cell_id: int) -> int:
    """Smallest leaf id contained in the cell."""
    return cell_id - (lowest_on_bit(cell_id) - 1)


def range_max(cell_id: int) -> int:
    """Largest leaf id contained in the cell."""
    return cell_id + (lowest_on_bit(cell_id) - 1)


def st_to_ij(s: float) -> int:
    """Map an ST coordinate in [-1, 1] to a leaf index in [0, 2^30 - 1]."""
    m = MAX_SIZE // 2
    # round() is half-to-even, matching the reference bit layout at exact ties.
    return max(0, min(MAX_SIZE - 1, int(round(m * s + (m - 0.5)))))


def face_ij_to_cell_id(face: int, i: int, j: int, level: int = MAX_LEVEL) -> int:
    """Encode leaf coordinates on `face` and truncate the id to `level`."""
    n = face << (POS_BITS - 1)
    bits = face & SWAP_MASK
    mask = (1 << LOOKUP_BITS) - 1
    for k in range(7, -1, -1):
        bits += ((i >> (k * LOOKUP_BITS)) & mask) << (LOOKUP_BITS + 2)
        bits += ((j >> (k * LOOKUP_BITS)) & mask) << 2
        bits = LOOKUP_POS[bits]
        n |= (bits >> 2) << (k * 2 * LOOKUP_BITS)
        bits &= SWAP_MASK | INVERT_MASK

    cell_id = n * 2 + 1
    if level < MAX_LEVEL:
        lsb = lowest_on_bit_for_level(level)
        cell_id = (cell_id & -lsb) | lsb
    return cell_id & UINT64_MASK


def cell_id_to_face_ij(cell_id: int) -> tuple[int, int, int, int]:
    """Return `(face, i, j, level)`; `(i, j)` is the leaf next to the cell center."""
    face = cell_id_face(cell_id)
    bits = face & SWAP_MASK
    i = 0
    j = 0
    for k in range(7, -1, -1):
        nbits = MAX_LEVEL - 7 * LOOKUP_BITS if k == 7 else LOOKUP_BITS
        bits += ((cell_id >> (k * 2 * LOOKUP_BITS + 1)) & ((1 << (2 * nbits)) - 1)) << 2
        bits = LOOKUP_IJ[bits]
        i += (bits >> (LOOKUP_BITS + 2)) << (k * LOOKUP_BITS)
        j += ((bits >> 2) & ((1 << LOOKUP_BITS) - 1)) << (k * LOOKUP_BITS)
        bits &= SWAP_MASK | INVERT_MASK
    return face, i, j, cell_id_level(cell_id)


def ij_to_st_with_correction(i: int, j: int, level: int, cell_id: int) -> tuple[float, float]:
    """ST coordinates of the cell center from the leaf returned by `cell_id_to_face_ij`.

    `(i, j)` sits one leaf off the true center for non-leaf cells; the correction
    `delta` moves it back by half a leaf (or adds nothing) depending on which side
    of the center the leaf falls.
    """
    if level == MAX_LEVEL:
        delta = 1
    else:
        delta = 2 if (i ^ (cell_id >> 2)) & 1 else 0
    si = (i << 1) + delta - MAX_SIZE
    ti = (j << 1) + delta - MAX_SIZE
    return si / MAX_SIZE, ti / MAX_SIZE


def latlon_to_cell_id(lat: float, lon: float, level: int) -> int:
    """Encode a point (degrees) into the cell id containing it at `level`."""
    check_level(level)
    if not -90.0 <= lat <= 90.0:
        raise RangeError("latitude", lat, f"latitude must be within [-90, 90], got {lat}")
    if not -180.0 <= lon <= 180.0:
        raise RangeError("longitude", lon, f"longitude must be within [-180, 180], got {lon}")
    face, u, v = xyz_to_face_uv_auto(*latlon_to_xyz(lat, lon))
    i = st_to_ij(uv_to_st(u))
    j = st_to_ij(uv_to_st(v))
    return face_ij_to_cell_id(face, i, j, level)


def cell_id_to_latlon(cell_id: int) -> tuple[float, float]:
    """Center of a cell in degrees."""
    check_cell_id(cell_id)
    face, i, j, level = cell_id_to_face_ij(cell_id)
    s, t = ij_to_st_with_correction(i, j, level, cell_id)
    return xyz_to_latlon(*face_uv_to_xyz(face, st_to_uv(s), st_to_uv(t)))
