from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from battleship.schemas import ChatMessage, MessageKind, PlayerInfo, Vec3, WorldPos
from battleship.services.resources import Primitive, ResourcePool


@dataclass
class GhostBrick:
    location: Vec3
    orientation: str


class World(ABC):
    """What a match needs from the shared world: players, messages and scene content."""

    @abstractmethod
    def get_player(self, key: str) -> Optional[PlayerInfo]:
        """Look a player up by id, or by name (case-insensitive)."""

    @abstractmethod
    async def get_position(self, player_id: str) -> WorldPos: ...

    @abstractmethod
    async def teleport(self, player_id: str, pos: WorldPos) -> None: ...

    @abstractmethod
    async def apply_scene(self, pool: ResourcePool, *, quiet: bool = True) -> None: ...

    @abstractmethod
    async def clear_scene(self, owner_id: str, *, quiet: bool = True) -> None: ...

    @abstractmethod
    async def get_ghost_brick(self, player_id: str) -> Optional[GhostBrick]: ...

    @abstractmethod
    def whisper(self, player_id: str, text: str) -> None: ...

    @abstractmethod
    def middle_print(self, player_id: str, text: str) -> None: ...

    @abstractmethod
    def broadcast(self, text: str) -> None: ...

    def name_of(self, player_id: str) -> str:
        p = self.get_player(player_id)
        return p.name if p else player_id


@dataclass
class InMemoryWorld(World):
    """World kept in process memory; backs the HTTP service and the tests."""

    players: Dict[str, PlayerInfo] = field(default_factory=dict)
    outbox: Dict[str, List[ChatMessage]] = field(default_factory=dict)
    broadcasts: List[str] = field(default_factory=list)
    # scene content grouped by owner identifier
    scene: Dict[str, List[Primitive]] = field(default_factory=dict)
    ghosts: Dict[str, GhostBrick] = field(default_factory=dict)
    teleports: List[tuple] = field(default_factory=list)
    applied_batches: int = 0

    # --- directory ---
    def add_player(self, player: PlayerInfo) -> PlayerInfo:
        self.players[player.id] = player
        self.outbox.setdefault(player.id, [])
        return player

    def remove_player(self, player_id: str) -> Optional[PlayerInfo]:
        self.outbox.pop(player_id, None)
        self.ghosts.pop(player_id, None)
        return self.players.pop(player_id, None)

    def get_player(self, key: str) -> Optional[PlayerInfo]:
        if key in self.players:
            return self.players[key]
        lowered = key.strip().lower()
        return next((p for p in self.players.values() if p.name.lower() == lowered), None)

    def set_position(self, player_id: str, pos: WorldPos) -> None:
        player = self.players[player_id]
        self.players[player_id] = player.model_copy(update={"position": tuple(pos)})

    async def get_position(self, player_id: str) -> WorldPos:
        return self.players[player_id].position

    async def teleport(self, player_id: str, pos: WorldPos) -> None:
        self.teleports.append((player_id, tuple(pos)))
        if player_id in self.players:
            self.set_position(player_id, pos)

    def set_ghost_brick(self, player_id: str, ghost: GhostBrick) -> None:
        if player_id not in self.players:
            raise KeyError(player_id)
        self.ghosts[player_id] = ghost

    async def get_ghost_brick(self, player_id: str) -> Optional[GhostBrick]:
        return self.ghosts.get(player_id)

    # --- scene ---
    async def apply_scene(self, pool: ResourcePool, *, quiet: bool = True) -> None:
        problems = pool.dangling_references()
        if problems:
            raise ValueError("scene batch has dangling references: " + ", ".join(problems[:5]))
        self.applied_batches += 1
        for prim in pool.primitives:
            owner = pool.owner_id_of(prim) or ""
            self.scene.setdefault(owner, []).append(prim)

    async def clear_scene(self, owner_id: str, *, quiet: bool = True) -> None:
        self.scene.pop(owner_id, None)

    def count_owned(self, owner_id: str) -> int:
        return len(self.scene.get(owner_id, []))

    # --- messaging ---
    def _push(self, player_id: str, kind: MessageKind, text: str) -> None:
        self.outbox.setdefault(player_id, []).append(ChatMessage(kind=kind, text=text))

    def whisper(self, player_id: str, text: str) -> None:
        self._push(player_id, "whisper", text)

    def middle_print(self, player_id: str, text: str) -> None:
        self._push(player_id, "middle", text)

    def broadcast(self, text: str) -> None:
        self.broadcasts.append(text)
        for pid in self.players:
            self._push(pid, "broadcast", text)

    def drain(self, player_id: str) -> List[ChatMessage]:
        messages = self.outbox.get(player_id, [])
        self.outbox[player_id] = []
        return messages

    def texts(self, player_id: str) -> List[str]:
        return [m.text for m in self.outbox.get(player_id, [])]
