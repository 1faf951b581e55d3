"""Scene fragments for boards, ships and markers.

Each generator returns a fresh ResourcePool owned by a single identifier
(owner index 1). Fragments are positioned in board space: the board lies in
the x/z plane centred on the origin, y points toward the player.
"""
from typing import Iterable, Optional

from battleship.schemas import BG_COLOR, BOARD_DIM, CELL_SIZE, SHIPS, Placement, Rgba, Vec3
from battleship.services.resources import Primitive, ResourcePool, deep_clone
from battleship.services.tags import cell_payload, interact_tag

OWNER_NAME = "Battleship"
MICRO_BRICK = "PB_DefaultMicroBrick"
POLE = "PB_DefaultPole"
HOLOGRAM = "BMC_Hologram"

HALF_BOARD = BOARD_DIM // 2 * CELL_SIZE * 2
CAPTION_Z = (BOARD_DIM // 2 + 1) * CELL_SIZE * 2 + 4
CONFIRM_Z = -(BOARD_DIM // 2 + 1) * CELL_SIZE * 2 - 2


def owner_entry(owner_id: str) -> dict:
    return {"id": owner_id, "name": OWNER_NAME, "bricks": 0}


def cell_position(x: int, y: int, height: int) -> Vec3:
    return (
        int((x - BOARD_DIM / 2 + 0.5) * CELL_SIZE * 2),
        height,
        int(-(y - BOARD_DIM / 2 + 0.5) * CELL_SIZE * 2),
    )


def interact(tag: str = "", message: str = "", sound: bool = False) -> dict:
    return {"BCD_Interact": {"bPlayInteractSound": sound, "Message": message, "ConsoleTag": tag}}


def rotate_vec(v: Vec3, times: int) -> Vec3:
    """Rotate a vector about the vertical axis by `times` quarter turns."""
    x, y, z = v
    for _ in range(times % 4):
        x, y = -y, x
    return (x, y, z)


def move_pool(pool: ResourcePool, to: Vec3, rotation: int = 0) -> ResourcePool:
    """Rotate every primitive about the origin, then translate it by `to`. Mutates `pool`."""
    quarter = rotation % 4
    for prim in pool.primitives:
        if quarter:
            prim.position = rotate_vec(prim.position, quarter)
            if quarter % 2:
                sx, sy, sz = prim.size
                prim.size = (sy, sx, sz)
            prim.rotation = (prim.rotation + quarter) % 4
        prim.position = tuple(c + t for c, t in zip(prim.position, to))
    return pool


def instantiate(template: ResourcePool, owner_id: str, interact_tag_value: Optional[str] = None) -> ResourcePool:
    """Clone a shared template and hand every primitive to `owner_id`."""
    pool = deep_clone(template)
    pool.owners = [owner_entry(owner_id)]
    for prim in pool.primitives:
        prim.owner_index = 1
        if interact_tag_value is not None:
            prim.components = interact(interact_tag_value, sound=True)
    return pool


# === static templates ===

def _frame_template() -> ResourcePool:
    edge = HALF_BOARD + 2
    bars = [
        ((edge, CELL_SIZE, 2), (0, 0, edge)),
        ((edge, CELL_SIZE, 2), (0, 0, -edge)),
        ((2, CELL_SIZE, edge), (edge, 0, 0)),
        ((2, CELL_SIZE, edge), (-edge, 0, 0)),
    ]
    return ResourcePool(
        shapes=[MICRO_BRICK],
        colors=[[40, 40, 40, 255]],
        primitives=[Primitive(size=size, position=pos) for size, pos in bars],
    )


def _caption_template(text: str, color: Rgba) -> ResourcePool:
    return ResourcePool(
        shapes=[MICRO_BRICK],
        colors=[list(color)],
        primitives=[
            Primitive(size=(HALF_BOARD, CELL_SIZE, 2), position=(0, CELL_SIZE, CAPTION_Z), components=interact(message=text)),
        ],
    )


def _confirm_template() -> ResourcePool:
    return ResourcePool(
        shapes=[MICRO_BRICK],
        colors=[[0, 200, 0, 255]],
        primitives=[Primitive(size=(3 * CELL_SIZE, CELL_SIZE, 2), position=(0, CELL_SIZE, CONFIRM_Z))],
    )


TEMPLATE_FRAME = _frame_template()
TEMPLATE_CONFIRM = _confirm_template()
TEMPLATE_PLACE_SHIPS = _caption_template("Place your ships", (255, 255, 255, 255))
TEMPLATE_YOUR_SHOTS = _caption_template("Your shots", (255, 200, 0, 255))
TEMPLATE_THEIR_SHOTS = _caption_template("Their shots", (255, 80, 80, 255))


# === generated fragments ===

def gen_board(owner_id: str, interact_id: Optional[str] = None, slot: int = 0, backing: bool = False) -> ResourcePool:
    """A grid of cells; with interact_id each cell carries its own interaction tag."""
    pool = ResourcePool(shapes=[MICRO_BRICK], colors=[list(BG_COLOR)], owners=[owner_entry(owner_id)])

    if backing:
        pool.primitives.append(Primitive(
            size=(CELL_SIZE * BOARD_DIM, CELL_SIZE, CELL_SIZE * BOARD_DIM),
            position=(0, -CELL_SIZE, 0),
            owner_index=1,
        ))

    for y in range(BOARD_DIM):
        for x in range(BOARD_DIM):
            prim = Primitive(size=(CELL_SIZE, CELL_SIZE, CELL_SIZE), position=cell_position(x, y, CELL_SIZE), owner_index=1)
            if interact_id:
                prim.components = interact(interact_tag(interact_id, slot, cell_payload(x, y)), sound=True)
            pool.primitives.append(prim)
    return pool


def gen_board_with_ships(owner_id: str, ships: Iterable[Placement]) -> ResourcePool:
    """A grid where cells under a ship take that ship's colour (colour index ship+1)."""
    ships = list(ships)
    pool = ResourcePool(
        shapes=[MICRO_BRICK],
        colors=[list(BG_COLOR)] + [list(s.rgba) for s in SHIPS],
        owners=[owner_entry(owner_id)],
    )
    for y in range(BOARD_DIM):
        for x in range(BOARD_DIM):
            color = 0
            for ship in ships:
                if ship.offset_of((x, y)) != -1:
                    color = ship.ship + 1
                    break
            pool.primitives.append(Primitive(
                size=(CELL_SIZE, CELL_SIZE, CELL_SIZE),
                position=cell_position(x, y, CELL_SIZE),
                color=color,
                owner_index=1,
            ))
    return pool


def gen_ship(ship_idx: int, owner_id: str, at: Optional[Placement] = None,
             interact_id: Optional[str] = None, slot: int = 0) -> ResourcePool:
    """A ship either resting in the dock beside the board or placed on it."""
    spec = SHIPS[ship_idx]
    pool = ResourcePool(shapes=[MICRO_BRICK], colors=[list(spec.rgba)], owners=[owner_entry(owner_id)])

    for i in range(spec.length):
        if at is not None:
            cx, cy = (at.x, at.y + i) if at.rotated else (at.x + i, at.y)
            position = cell_position(cx, cy, CELL_SIZE * 3)
            tag = interact_tag(interact_id, slot, f"s{ship_idx}") if interact_id else ""
            components = interact(tag)
        else:
            position = (
                int(-(BOARD_DIM / 2 + 2.5 + i) * CELL_SIZE * 2),
                CELL_SIZE,
                int(-((ship_idx - 2) * 2) * CELL_SIZE * 2),
            )
            components = interact(message=f"{spec.name} ({spec.length} units)")
        pool.primitives.append(Primitive(
            size=(CELL_SIZE, CELL_SIZE, CELL_SIZE),
            position=position,
            owner_index=1,
            components=components,
        ))
    return pool


def gen_selection(x: int, y: int, owner_id: str) -> ResourcePool:
    return ResourcePool(
        shapes=[MICRO_BRICK],
        materials=[HOLOGRAM],
        colors=[[255, 0, 0, 255]],
        owners=[owner_entry(owner_id)],
        primitives=[Primitive(
            size=(CELL_SIZE, 1, CELL_SIZE),
            position=cell_position(x, y, CELL_SIZE * 2 + 1),
            owner_index=1,
            collision={"interaction": False},
        )],
    )


def marker_message(mine: bool, miss: bool) -> str:
    if mine:
        return "Your opponent missed here." if miss else "Your opponent hit here."
    return "You missed your opponent here." if miss else "You hit your opponent here."


def gen_marker(x: int, y: int, owner_id: str, mine: bool, miss: bool) -> ResourcePool:
    """A hit (red) or miss (white) peg; `mine` marks shots received on the own board."""
    return ResourcePool(
        shapes=[POLE],
        colors=[[255, 255, 255, 255] if miss else [255, 0, 0, 255]],
        owners=[owner_entry(owner_id)],
        primitives=[Primitive(
            size=(CELL_SIZE, CELL_SIZE, 1),
            position=cell_position(x, y, CELL_SIZE * 2 + 1),
            direction=2,
            owner_index=1,
            components=interact(message=marker_message(mine, miss)),
        )],
    )
