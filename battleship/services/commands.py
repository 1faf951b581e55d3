import asyncio
import re
from typing import List, Optional, Set

from battleship.errors import BattleshipError, InvalidCommandError, StateError
from battleship.schemas import Zone
from battleship.services.manager import SessionManager
from battleship.services.world import GhostBrick
from battleship.utils.audit import dbg

ORIENTATION_RE = re.compile(r"^Z_Positive_(\d+)$")


def rotation_of(ghost: GhostBrick) -> int:
    """Quarter turns for a ghost brick only rotated about the vertical axis."""
    m = ORIENTATION_RE.match(ghost.orientation)
    if not m:
        raise InvalidCommandError("The zone can only be rotated with R, not on different axes.")
    return int(m.group(1)) // 90 % 4


class CommandHandler:
    """`/battleship ...` chat commands.

    While a prompt is outstanding for a player, their next command answers it
    instead of being dispatched.
    """

    def __init__(self, manager: SessionManager):
        self.manager = manager
        self.world = manager.world
        self._wizards: Set[asyncio.Task] = set()

    def _w(self, player_id: str, text: str) -> None:
        self.world.whisper(player_id, text)

    async def handle(self, player_id: str, args: List[str]) -> bool:
        if self.manager.prompts.answer(player_id, args):
            return True
        if self.world.get_player(player_id) is None:
            raise KeyError(player_id)

        sub = args[0].lower() if args else ""
        rest = " ".join(args[1:])
        try:
            if sub == "invite":
                await self.manager.invite(player_id, rest)
            elif sub == "accept":
                await self.manager.accept(player_id, rest)
            elif sub == "leave":
                await self.manager.leave(player_id)
            elif sub == "zone":
                return self._zone(player_id, args[1:])
            else:
                self._w(player_id, "If you meant to invite someone to a Battleship game, use /battleship invite PLAYER.")
                return False
        except BattleshipError as e:
            self._w(player_id, e.message)
            return False
        return True

    def _zone(self, player_id: str, args: List[str]) -> bool:
        if not self.manager.has_auth(player_id):
            raise StateError("You are not allowed to manage Battleship zones.")

        action = args[0].lower() if args else ""
        if action == "add":
            self.start_zone_wizard(player_id)
        elif action == "remove":
            name = " ".join(args[1:]).strip().lower()
            self.manager.remove_zone(name)
            self._w(player_id, f"Battleship zone {name} removed.")
        elif action == "list":
            self._w(player_id, "List of zones:")
            for zone in self.manager.list_zones():
                self._w(player_id, f"- {zone.name}")
        else:
            raise InvalidCommandError("Use /battleship zone add, /battleship zone remove NAME or /battleship zone list.")
        return True

    def start_zone_wizard(self, player_id: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.zone_wizard(player_id), name=f"zone-wizard:{player_id}")
        self._wizards.add(task)
        task.add_done_callback(self._wizards.discard)
        return task

    async def zone_wizard(self, player_id: str) -> Optional[Zone]:
        """Ask for both play spaces and a name, then store the zone."""
        prompts = self.manager.prompts
        try:
            self._w(player_id, "Position the board where the first player will be playing from, facing them.")
            self._w(player_id, "Then, run /battleship.")
            await prompts.ask(player_id)
            first = await self.world.get_ghost_brick(player_id)

            self._w(player_id, "Now position the board where the second player will be playing from.")
            self._w(player_id, "Then, run /battleship again.")
            await prompts.ask(player_id)
            second = await self.world.get_ghost_brick(player_id)

            self._w(player_id, "Finally, give the play space a name so that you can refer to it later.")
            self._w(player_id, "Use /battleship MY ZONE NAME.")
            name = " ".join(await prompts.ask(player_id)).strip().lower()

            if not name:
                raise InvalidCommandError("The zone needs a name, please make it again.")
            if first is None or second is None:
                raise InvalidCommandError("You must be holding the board when you mark a play space.")

            zone = Zone(
                name=name,
                pos=(first.location, second.location),
                rotation=(rotation_of(first), rotation_of(second)),
            )
            await self.manager.add_zone(zone)
        except BattleshipError as e:
            self._w(player_id, e.message)
            return None

        dbg(None, f"[zones] {player_id} created zone {zone.name}")
        self._w(player_id, f"Battleship zone {zone.name} created.")
        return zone
