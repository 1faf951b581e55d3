from dataclasses import dataclass, field
from typing import Iterable, Literal, Optional

from battleship.errors import InvalidMoveError
from battleship.schemas import BOARD_DIM, SHIPS, Cell, Placement

PlacementCheck = Literal["accepted", "overlap", "duplicate", "out_of_bounds"]
ShotKind = Literal["miss", "hit", "already_hit", "already_miss"]

SetupBoard = list[Placement]


def ships_intersect(a: Placement, b: Placement) -> bool:
    """True when the two straight ships share at least one cell."""
    if a.rotated != b.rotated:
        # one column ship, one row ship: they cross iff each fixed coordinate
        # lies within the other's span
        col, row = (a, b) if a.rotated else (b, a)
        return row.x <= col.x <= row.end_x and col.y <= row.y <= col.end_y

    if a.rotated:
        return a.x == b.x and max(a.y, b.y) <= min(a.end_y, b.end_y)
    return a.y == b.y and max(a.x, b.x) <= min(a.end_x, b.end_x)


def intersects_with_setup_board(board: Iterable[Placement], candidate: Placement) -> bool:
    return any(ships_intersect(candidate, p) for p in board)


def validate_placement(board: SetupBoard, candidate: Placement) -> PlacementCheck:
    if not candidate.in_bounds():
        return "out_of_bounds"
    if any(p.ship == candidate.ship for p in board):
        return "duplicate"
    if intersects_with_setup_board(board, candidate):
        return "overlap"
    return "accepted"


def remaining_ships(board: SetupBoard) -> list[int]:
    used = {p.ship for p in board}
    return [i for i in range(len(SHIPS)) if i not in used]


def placement_from_line(start: Cell, end: Cell, board: SetupBoard) -> Placement:
    """Turn a two-cell gesture into a placement for the first unused ship of that length."""
    (fx, fy), (tx, ty) = start, end
    if fy == ty:
        length = abs(fx - tx) + 1
        rotated = False
    elif fx == tx:
        length = abs(fy - ty) + 1
        rotated = True
    else:
        raise InvalidMoveError("Your ship must be straight!")

    candidate = next((i for i in remaining_ships(board) if SHIPS[i].length == length), None)
    if candidate is None:
        raise InvalidMoveError(f"You don't have any ships left that are {length} units long!")
    return Placement(ship=candidate, x=min(fx, tx), y=min(fy, ty), rotated=rotated)


@dataclass
class ShipState:
    ship: int
    x: int
    y: int
    rotated: bool = False
    hits: set[int] = field(default_factory=set)
    sunk: bool = False

    @property
    def placement(self) -> Placement:
        return Placement(ship=self.ship, x=self.x, y=self.y, rotated=self.rotated)

    @property
    def spec(self):
        return SHIPS[self.ship]

    def add_hit(self, at: int) -> None:
        if not 0 <= at < self.spec.length:
            raise ValueError(f"hit offset {at} outside {self.spec.name}")
        self.hits.add(at)
        self.sunk = len(self.hits) == self.spec.length


@dataclass
class ShotResult:
    kind: ShotKind
    ship: Optional[ShipState] = None
    at: Optional[int] = None


@dataclass
class GameBoard:
    ships: list[ShipState] = field(default_factory=list)
    misses: set[Cell] = field(default_factory=set)

    @property
    def defeated(self) -> bool:
        return all(s.sunk for s in self.ships)

    def record_shot(self, pos: Cell, result: ShotResult) -> None:
        if result.kind == "miss":
            self.misses.add(pos)
        elif result.kind == "hit":
            if result.ship is None or result.at is None:
                raise ValueError(f"hit at {pos} carries no ship")
            result.ship.add_hit(result.at)

    def to_payload(self) -> dict:
        return {
            "ships": [
                {"ship": s.ship, "x": s.x, "y": s.y, "rotated": s.rotated,
                 "hits": sorted(s.hits), "sunk": s.sunk}
                for s in self.ships
            ],
            "misses": sorted(self.misses),
        }


def setup_game_board(board: SetupBoard) -> GameBoard:
    if sorted(p.ship for p in board) != list(range(len(SHIPS))):
        raise InvalidMoveError("You must place all of your ships to continue!")
    return GameBoard(ships=[ShipState(ship=p.ship, x=p.x, y=p.y, rotated=p.rotated) for p in board])


def resolve_shot(pos: Cell, board: GameBoard) -> ShotResult:
    for ship in board.ships:
        at = ship.placement.offset_of(pos)
        if at != -1:
            if at in ship.hits:
                return ShotResult("already_hit")
            return ShotResult("hit", ship=ship, at=at)

    if pos in board.misses:
        return ShotResult("already_miss")
    return ShotResult("miss")


def in_board(pos: Cell, dim: int = BOARD_DIM) -> bool:
    return 0 <= pos[0] < dim and 0 <= pos[1] < dim
