from battleship.schemas import BOARD_DIM, SHIPS, Placement
from battleship.services.resources import merge_pools
from battleship.services.scene import (
    TEMPLATE_CONFIRM,
    gen_board,
    gen_board_with_ships,
    gen_marker,
    gen_ship,
    instantiate,
    move_pool,
    rotate_vec,
)
from battleship.services.tags import interact_tag, parse_interact_tag


def test_rotate_vec_quarter_turns():
    assert rotate_vec((0, 60, 0), 0) == (0, 60, 0)
    assert rotate_vec((0, 60, 0), 1) == (-60, 0, 0)
    assert rotate_vec((0, 60, 0), 2) == (0, -60, 0)
    assert rotate_vec((0, 60, 0), 3) == (60, 0, 0)
    assert rotate_vec((1, 2, 3), 4) == (1, 2, 3)


def test_move_pool_rotates_then_translates():
    pool = gen_ship(4, "owner")
    before = [(p.position, p.size) for p in pool.primitives]
    move_pool(pool, (100, 0, 5), rotation=1)
    for (pos, size), prim in zip(before, pool.primitives):
        x, y, z = rotate_vec(pos, 1)
        assert prim.position == (x + 100, y, z + 5)
        assert prim.size == (size[1], size[0], size[2])
        assert prim.rotation == 1


def test_instantiate_owns_and_tags_every_primitive():
    pool = instantiate(TEMPLATE_CONFIRM, "ctrl", interact_tag("abc123", 1, "c"))
    assert pool.owners == [{"id": "ctrl", "name": "Battleship", "bricks": 0}]
    assert all(p.owner_index == 1 for p in pool.primitives)
    assert all(p.components["BCD_Interact"]["ConsoleTag"] == "_bs:abc123_1:c" for p in pool.primitives)
    # the shared template is untouched
    assert TEMPLATE_CONFIRM.owners == []
    assert all(p.owner_index == 0 for p in TEMPLATE_CONFIRM.primitives)


def test_board_cells_carry_their_tags():
    pool = gen_board("root", "abc123", slot=0)
    assert len(pool.primitives) == BOARD_DIM * BOARD_DIM
    tags = {p.components["BCD_Interact"]["ConsoleTag"] for p in pool.primitives}
    assert "_bs:abc123_0:0:0" in tags
    assert "_bs:abc123_0:9:9" in tags

    backed = gen_board("root", backing=True)
    assert len(backed.primitives) == BOARD_DIM * BOARD_DIM + 1
    assert all(not p.components for p in backed.primitives)


def test_board_with_ships_colors_ship_cells():
    pool = gen_board_with_ships("root", [Placement(ship=4, x=0, y=0)])
    colored = [p for p in pool.primitives if p.color != 0]
    assert len(colored) == SHIPS[4].length
    assert all(p.color == 5 for p in colored)
    assert pool.colors[5] == list(SHIPS[4].rgba)


def test_placed_ship_is_removable_by_tag():
    pool = gen_ship(1, "p0s1", at=Placement(ship=1, x=2, y=2, rotated=True), interact_id="abc123", slot=0)
    assert len(pool.primitives) == 4
    event = parse_interact_tag(pool.primitives[0].components["BCD_Interact"]["ConsoleTag"])
    assert event.kind == "remove_ship"
    assert event.ship == 1


def test_markers_and_merge_have_no_dangling_references():
    hit = gen_marker(3, 3, "root", mine=False, miss=False)
    miss = gen_marker(4, 4, "root", mine=True, miss=True)
    assert hit.colors == [[255, 0, 0, 255]]
    assert miss.colors == [[255, 255, 255, 255]]
    assert "missed" in miss.primitives[0].components["BCD_Interact"]["Message"]
    merged = merge_pools(hit, miss)
    assert merged.dangling_references() == []
    assert len(merged.owners) == 1


def test_parse_interact_tag():
    assert parse_interact_tag("_bs:abc123_0:c").kind == "confirm"
    cell = parse_interact_tag("_bs:abc123_1:3:7")
    assert (cell.session_id, cell.slot, cell.kind, cell.cell) == ("abc123", 1, "cell", (3, 7))
    assert parse_interact_tag("_bs:abc123_0:s4").ship == 4
    assert parse_interact_tag("_bs:abc123_2:c") is None
    assert parse_interact_tag("_bs:abc123_0:wat") is None
    assert parse_interact_tag("hello") is None
    assert parse_interact_tag("") is None
