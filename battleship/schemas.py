from typing import List, Optional, Literal, Tuple
from pydantic import BaseModel, Field

BOARD_DIM = 10
CELL_SIZE = 2

Vec3 = Tuple[int, int, int]
WorldPos = Tuple[float, float, float]
Cell = Tuple[int, int]
Rgba = Tuple[int, int, int, int]

BG_COLOR: Rgba = (100, 100, 100, 255)

# board halves inside one play space: own ships on the left, shots on the right
LEFT_BOARD_OFFSET: Vec3 = (-(BOARD_DIM + 3) * CELL_SIZE, 0, 0)
RIGHT_BOARD_OFFSET: Vec3 = ((BOARD_DIM + 3) * CELL_SIZE, 0, 0)

# where a player stands relative to the zone anchor before rotation
PLAY_SPACE_OFFSET: Vec3 = (0, 60, 0)


class ShipSpec(BaseModel, frozen=True):
    name: str
    length: int
    color: Tuple[int, int, int]

    @property
    def rgba(self) -> Rgba:
        return (*self.color, 255)


SHIPS: Tuple[ShipSpec, ...] = (
    ShipSpec(name="Carrier", length=5, color=(196, 40, 28)),
    ShipSpec(name="Battleship", length=4, color=(13, 105, 172)),
    ShipSpec(name="Cruiser", length=3, color=(245, 205, 48)),
    ShipSpec(name="Submarine", length=3, color=(75, 151, 75)),
    ShipSpec(name="Patrol Boat", length=2, color=(107, 50, 124)),
)


class Placement(BaseModel, frozen=True):
    """One ship on a board. Rotated ships run along +y, others along +x."""

    ship: int
    x: int
    y: int
    rotated: bool = False

    @property
    def length(self) -> int:
        return SHIPS[self.ship].length

    @property
    def end_x(self) -> int:
        return self.x if self.rotated else self.x + self.length - 1

    @property
    def end_y(self) -> int:
        return self.y + self.length - 1 if self.rotated else self.y

    def cells(self) -> List[Cell]:
        if self.rotated:
            return [(self.x, self.y + i) for i in range(self.length)]
        return [(self.x + i, self.y) for i in range(self.length)]

    def offset_of(self, pos: Cell) -> int:
        """Offset of pos along the ship's axis, or -1 when pos is not on the ship."""
        px, py = pos
        if self.rotated:
            if px == self.x and self.y <= py <= self.end_y:
                return py - self.y
        elif py == self.y and self.x <= px <= self.end_x:
            return px - self.x
        return -1

    def in_bounds(self, dim: int = BOARD_DIM) -> bool:
        return 0 <= self.x and 0 <= self.y and self.end_x < dim and self.end_y < dim


class Zone(BaseModel):
    """A pair of play spaces; rotation is counted in quarter turns."""

    name: str
    pos: Tuple[Vec3, Vec3]
    rotation: Tuple[int, int] = (0, 0)


GamePhase = Literal["setup", "play", "terminal"]
MessageKind = Literal["whisper", "middle", "broadcast"]


# === World API ===

class PlayerJoinRequest(BaseModel):
    id: str
    name: str
    roles: List[str] = []
    host: bool = False
    position: WorldPos = (0.0, 0.0, 0.0)


class PlayerInfo(BaseModel):
    id: str
    name: str
    roles: List[str] = []
    host: bool = False
    position: WorldPos = (0.0, 0.0, 0.0)


class PositionUpdateRequest(BaseModel):
    position: WorldPos


class GhostBrickRequest(BaseModel):
    location: Vec3
    orientation: str = "Z_Positive_0"


class ChatMessage(BaseModel):
    kind: MessageKind
    text: str


class MessageListResponse(BaseModel):
    player_id: str
    messages: List[ChatMessage] = []


# === Events API ===

class InteractRequest(BaseModel):
    player_id: str
    message: str


class CommandRequest(BaseModel):
    player_id: str
    args: List[str] = []


class ActionResponse(BaseModel):
    accepted: bool


# === Session views ===

class SessionSummary(BaseModel):
    session_id: str
    players: Tuple[str, str]
    zone: str
    phase: GamePhase
    player_turn: Optional[int] = None
    confirmed: Optional[Tuple[bool, bool]] = None
    winner: Optional[str] = None


class SessionListResponse(BaseModel):
    sessions: List[SessionSummary] = []
    queue: List[Tuple[str, str]] = []


class ZoneListResponse(BaseModel):
    zones: List[Zone] = Field(default_factory=list)
