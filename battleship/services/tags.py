import re
from dataclasses import dataclass
from typing import Literal, Optional

from battleship.schemas import Cell

TAG_PREFIX = "_bs"
TAG_RE = re.compile(r"^_bs:(\w+)_([01]):(.+)$")
CELL_RE = re.compile(r"^(\d+):(\d+)$")
SHIP_RE = re.compile(r"^s(\d+)$")

ActionKind = Literal["confirm", "remove_ship", "cell"]


@dataclass(frozen=True)
class InteractEvent:
    session_id: str
    slot: int
    kind: ActionKind
    ship: Optional[int] = None
    cell: Optional[Cell] = None


def interact_tag(session_id: str, slot: int, payload: str) -> str:
    return f"{TAG_PREFIX}:{session_id}_{slot}:{payload}"


def cell_payload(x: int, y: int) -> str:
    return f"{x}:{y}"


def parse_interact_tag(message: str) -> Optional[InteractEvent]:
    """Parse `_bs:<session>_<slot>:<payload>`; anything else yields None."""
    m = TAG_RE.match(message or "")
    if not m:
        return None
    session_id, slot, payload = m.group(1), int(m.group(2)), m.group(3)

    if payload == "c":
        return InteractEvent(session_id, slot, "confirm")
    sm = SHIP_RE.match(payload)
    if sm:
        return InteractEvent(session_id, slot, "remove_ship", ship=int(sm.group(1)))
    cm = CELL_RE.match(payload)
    if cm:
        return InteractEvent(session_id, slot, "cell", cell=(int(cm.group(1)), int(cm.group(2))))
    return None
