import pytest

from battleship.errors import InvalidMoveError
from battleship.schemas import BOARD_DIM, SHIPS, Placement
from battleship.services.board import (
    ShotResult,
    in_board,
    placement_from_line,
    remaining_ships,
    resolve_shot,
    setup_game_board,
    ships_intersect,
    validate_placement,
)
from support import FLEET


def test_carrier_cells_hits_and_sunk():
    carrier = Placement(ship=0, x=0, y=0, rotated=False)
    assert carrier.cells() == [(0, 0), (1, 0), (2, 0), (3, 0), (4, 0)]

    board = setup_game_board(FLEET)
    ship = board.ships[0]

    first = resolve_shot((2, 0), board)
    assert first.kind == "hit"
    assert first.at == 2
    board.record_shot((2, 0), first)

    assert resolve_shot((2, 0), board).kind == "already_hit"

    for x in (0, 1, 3):
        board.record_shot((x, 0), resolve_shot((x, 0), board))
        assert not ship.sunk
    board.record_shot((4, 0), resolve_shot((4, 0), board))
    assert ship.sunk
    assert ship.hits == {0, 1, 2, 3, 4}


def test_crossing_ships_at_origin_overlap():
    carrier = Placement(ship=0, x=0, y=0, rotated=False)
    battleship = Placement(ship=1, x=0, y=0, rotated=True)
    assert ships_intersect(carrier, battleship)
    assert ships_intersect(battleship, carrier)
    assert validate_placement([carrier], battleship) == "overlap"


@pytest.mark.parametrize("a,b,expected", [
    # parallel on the same row, spans touching at x=4
    (Placement(ship=0, x=0, y=3), Placement(ship=4, x=4, y=3), True),
    # parallel on adjacent rows
    (Placement(ship=0, x=0, y=3), Placement(ship=4, x=0, y=4), False),
    # column crossing the middle of a row ship
    (Placement(ship=0, x=2, y=5), Placement(ship=2, x=4, y=3, rotated=True), True),
    # column ending just above the row
    (Placement(ship=0, x=2, y=5), Placement(ship=4, x=4, y=3, rotated=True), False),
    # column to the right of a row ship's end
    (Placement(ship=4, x=0, y=0), Placement(ship=3, x=2, y=0, rotated=True), False),
    # vertical ships sharing a column
    (Placement(ship=1, x=7, y=0, rotated=True), Placement(ship=2, x=7, y=3, rotated=True), True),
])
def test_ships_intersect_axis_rule(a, b, expected):
    assert ships_intersect(a, b) is expected
    assert ships_intersect(b, a) is expected
    shared = set(a.cells()) & set(b.cells())
    assert bool(shared) is expected


def test_every_placement_on_empty_board_is_accepted_and_overlaps_rejected():
    for ship in range(len(SHIPS)):
        for rotated in (False, True):
            for y in range(BOARD_DIM):
                for x in range(BOARD_DIM):
                    p = Placement(ship=ship, x=x, y=y, rotated=rotated)
                    if not p.in_bounds():
                        assert validate_placement([], p) == "out_of_bounds"
                        continue
                    assert validate_placement([], p) == "accepted"

                    # a different ship through p's first cell always overlaps
                    other = 4 if ship != 4 else 3
                    cross = Placement(ship=other, x=x, y=y, rotated=not rotated)
                    if cross.in_bounds():
                        assert validate_placement([p], cross) == "overlap"


def test_duplicate_ship_is_rejected():
    board = [Placement(ship=4, x=0, y=0)]
    assert validate_placement(board, Placement(ship=4, x=5, y=5)) == "duplicate"


def test_placement_from_line_picks_first_unused_ship_of_length():
    board = []
    p = placement_from_line((3, 2), (3, 0), board)
    assert p == Placement(ship=2, x=3, y=0, rotated=True)

    board.append(p)
    q = placement_from_line((9, 9), (7, 9), board)
    assert q == Placement(ship=3, x=7, y=9, rotated=False)

    board.append(q)
    with pytest.raises(InvalidMoveError) as err:
        placement_from_line((0, 5), (2, 5), board)
    assert "3 units long" in err.value.message


def test_placement_from_line_rejects_diagonals():
    with pytest.raises(InvalidMoveError) as err:
        placement_from_line((0, 0), (1, 1), [])
    assert err.value.message == "Your ship must be straight!"


def test_single_cell_line_has_no_ship():
    with pytest.raises(InvalidMoveError):
        placement_from_line((4, 4), (4, 4), [])


def test_remaining_ships():
    assert remaining_ships([]) == [0, 1, 2, 3, 4]
    assert remaining_ships(FLEET[:2]) == [2, 3, 4]


def test_setup_board_round_trip():
    board = setup_game_board(FLEET)
    assert [s.placement for s in board.ships] == FLEET
    assert all(not s.hits and not s.sunk for s in board.ships)
    assert board.misses == set()
    assert not board.defeated


def test_setup_board_requires_every_ship():
    with pytest.raises(InvalidMoveError):
        setup_game_board(FLEET[:4])
    with pytest.raises(InvalidMoveError):
        setup_game_board(FLEET[:4] + [FLEET[0]])


def test_miss_then_already_miss():
    board = setup_game_board(FLEET)
    first = resolve_shot((9, 9), board)
    assert first.kind == "miss"
    board.record_shot((9, 9), first)
    assert resolve_shot((9, 9), board).kind == "already_miss"
    assert board.misses == {(9, 9)}


def test_hit_offsets_stay_in_range():
    board = setup_game_board(FLEET)
    with pytest.raises(ValueError):
        board.ships[4].add_hit(2)


def test_defeated_after_all_cells_hit():
    board = setup_game_board(FLEET)
    for p in FLEET:
        for cell in p.cells():
            board.record_shot(cell, resolve_shot(cell, board))
    assert board.defeated
    assert all(s.sunk for s in board.ships)


def test_in_board():
    assert in_board((0, 0))
    assert in_board((9, 9))
    assert not in_board((10, 0))
    assert not in_board((0, -1))


def test_hit_without_ship_is_rejected():
    board = setup_game_board(FLEET)
    with pytest.raises(ValueError):
        board.record_shot((0, 0), ShotResult(kind="hit"))
    assert all(not s.hits for s in board.ships)
