import random

import pytest

from geocell.core.errors import PreconditionError, RangeError
from geocell.s2.cell_id import cell_id_level, range_max, range_min
from geocell.s2.encoder import decode_bounds, encode, get_children, get_neighbors, get_parent
from geocell.s2.navigation import children, neighbors, parent
from geocell.s2.token import token_to_cell_id


def test_children_of_a_face_in_hilbert_order():
    assert get_children("1") == ["04", "0c", "14", "1c"]
    for child in get_children("1"):
        assert get_parent(child) == "1"


def test_parent_child_relations_for_random_cells():
    rng = random.Random(5)
    for _ in range(150):
        level = rng.randint(1, 29)
        cell_id = token_to_cell_id(encode(rng.uniform(-90, 90), rng.uniform(-180, 180), level))

        up = parent(cell_id)
        assert cell_id_level(up) == level - 1
        assert cell_id in children(up)

        kids = children(cell_id)
        assert len(kids) == 4
        assert len(set(kids)) == 4
        for kid in kids:
            assert cell_id_level(kid) == level + 1
            assert parent(kid) == cell_id
            assert range_min(cell_id) <= kid <= range_max(cell_id)


def test_parent_at_arbitrary_level_matches_encoding():
    lat, lon = 48.8566, 2.3522
    leaf = encode(lat, lon, 30)
    for level in (0, 5, 13, 29, 30):
        assert get_parent(leaf, level) == encode(lat, lon, level)


def test_parent_of_face_and_children_of_leaf_are_preconditions():
    with pytest.raises(PreconditionError):
        get_parent("5")
    with pytest.raises(PreconditionError):
        get_children(encode(10.0, 10.0, 30))


def test_parent_level_must_not_be_finer():
    with pytest.raises(RangeError):
        get_parent(encode(10.0, 10.0, 8), 9)


def test_face_cell_has_four_neighbors():
    assert set(get_neighbors("1")) == {"3", "5", "9", "b"}
    assert set(get_neighbors("5")) == {"1", "3", "7", "9"}


def test_interior_cell_has_eight_symmetric_neighbors():
    token = encode(1.0, 1.0, 10)
    found = get_neighbors(token)
    assert len(found) == 8
    assert token not in found
    for neighbor in found:
        assert token in get_neighbors(neighbor)


def test_neighbors_are_distinct_same_level_and_adjacent():
    rng = random.Random(9)
    for _ in range(120):
        level = rng.randint(2, 20)
        token = encode(rng.uniform(-70, 70), rng.uniform(-180, 180), level)
        found = get_neighbors(token)
        assert 4 <= len(found) <= 8
        assert len(set(found)) == len(found)
        assert token not in found
        bounds = decode_bounds(token)
        for neighbor in found:
            assert cell_id_level(token_to_cell_id(neighbor)) == level
            assert decode_bounds(neighbor).intersects(bounds)


def test_neighbors_across_the_antimeridian():
    west = encode(0.5, 179.999, 12)
    east = encode(0.5, -179.999, 12)
    assert west != east
    assert east in get_neighbors(west)
    assert west in get_neighbors(east)
