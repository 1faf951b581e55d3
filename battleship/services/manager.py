import random
import string
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Tuple

from battleship.config import Settings
from battleship.errors import InvalidCommandError, NoZoneAvailableError, StateError
from battleship.schemas import SessionListResponse, SessionSummary, Zone
from battleship.services.game import GameSession
from battleship.services.identifiers import IdentifierPool, IdentifierSet
from battleship.services.prompts import PromptChannel
from battleship.services.storage import JsonStore
from battleship.services.tags import parse_interact_tag
from battleship.services.timers import TimerHandle, TimerService, proximity_verdict
from battleship.services.world import World
from battleship.utils.audit import dbg

SESSION_ID_CHARS = string.ascii_letters + string.digits


@dataclass
class Invite:
    from_id: str
    to_id: str
    timer: Optional[TimerHandle] = None

    def touches(self, *player_ids: str) -> bool:
        return self.from_id in player_ids or self.to_id in player_ids


class SessionManager:
    """Owns every registry: active sessions, the waiting queue, invites and zones."""

    def __init__(self, world: World, store: JsonStore, settings: Optional[Settings] = None,
                 timers: Optional[TimerService] = None):
        self.world = world
        self.store = store
        self.settings = settings or Settings()
        self.timers = timers or TimerService()
        self.sessions: Dict[str, GameSession] = {}
        self.queue: Deque[Tuple[str, str]] = deque()
        self.invites: List[Invite] = []
        self.zones: List[Zone] = []
        self.pool = IdentifierPool()
        self.prompts = PromptChannel(timeout=self.settings.prompt_timeout)
        self._monitor: Optional[TimerHandle] = None

    async def init(self) -> None:
        """Load zones and identifiers, wipe leftovers from a previous run, start monitoring."""
        self.zones = self.store.get_zones()
        known = self.store.get_uuids()
        self.pool = IdentifierPool(known, on_new=self.store.set_uuids)
        for ident in known:
            await self.world.clear_scene(ident, quiet=True)
        if self.settings.enforce_max_zone_dist:
            self._monitor = self.timers.every(self.settings.proximity_interval, self.check_proximity, name="proximity")
        dbg(None, f"[manager] loaded {len(self.zones)} zones, {len(known)} identifiers")

    async def shutdown(self) -> None:
        if self._monitor is not None:
            self._monitor.cancel()
            self._monitor = None
        for invite in self.invites:
            if invite.timer is not None:
                invite.timer.cancel()
        self.invites.clear()
        self.queue.clear()
        for session in list(self.sessions.values()):
            await session.forfeit(None)
            await session.close()

    # --- lookups ---
    def find_session_for(self, player_id: str) -> Optional[GameSession]:
        return next((s for s in self.sessions.values() if player_id in s.players), None)

    def in_queue(self, player_id: str) -> bool:
        return any(player_id in pair for pair in self.queue)

    def available_zone(self) -> Optional[Zone]:
        used = {s.zone.name for s in self.sessions.values()}
        return next((z for z in self.zones if z.name not in used), None)

    def get_session(self, session_id: str) -> SessionSummary:
        return self.sessions[session_id].summary()

    def list_sessions(self) -> SessionListResponse:
        return SessionListResponse(
            sessions=[s.summary() for s in self.sessions.values()],
            queue=list(self.queue),
        )

    def _new_session_id(self) -> str:
        while True:
            sid = "".join(random.choice(SESSION_ID_CHARS) for _ in range(6))
            if sid not in self.sessions:
                return sid

    # --- sessions ---
    async def start_session(self, player1: str, player2: str) -> GameSession:
        zone = self.available_zone()
        if zone is None:
            raise NoZoneAvailableError()

        session = GameSession(
            self._new_session_id(),
            (player1, player2),
            zone,
            IdentifierSet.allocate(self.pool),
            world=self.world,
            timers=self.timers,
            id_pool=self.pool,
            settings=self.settings,
            on_finished=self.on_session_finished,
        )
        self.sessions[session.session_id] = session
        dbg(session.session_id, f"[manager] session {session.session_id} in zone {zone.name}")
        await session.start()
        return session

    async def on_session_finished(self, session: GameSession) -> None:
        self.sessions.pop(session.session_id, None)
        await self._drain_queue()

    async def _drain_queue(self) -> None:
        while self.queue and self.available_zone() is not None:
            await self.start_session(*self.queue.popleft())

    async def interact(self, player_id: str, message: str) -> bool:
        event = parse_interact_tag(message)
        if event is None:
            return False
        session = self.sessions.get(event.session_id)
        if session is None:
            return False
        return await session.handle_interact(player_id, event)

    # --- invites ---
    def _check_free(self, player_id: str) -> None:
        if self.find_session_for(player_id) is not None:
            raise StateError("You are already in a game! To exit, use /battleship leave.")
        if self.in_queue(player_id):
            raise StateError("You are already in queue! To exit, use /battleship leave.")

    def _drop_invites(self, *player_ids: str) -> None:
        keep = []
        for invite in self.invites:
            if invite.touches(*player_ids):
                if invite.timer is not None:
                    invite.timer.cancel()
            else:
                keep.append(invite)
        self.invites = keep

    async def invite(self, player_id: str, target_name: str) -> None:
        target_name = target_name.strip()
        if not target_name:
            raise InvalidCommandError("Please specify who to invite.")
        self._check_free(player_id)

        target = self.world.get_player(target_name)
        if target is None:
            raise InvalidCommandError("That player is not online!")
        if target.id == player_id:
            raise InvalidCommandError("You can't play by yourself!")
        if any(i.from_id == player_id and i.to_id == target.id for i in self.invites):
            raise StateError("You already have an outgoing invite to that person!")
        if self.find_session_for(target.id) is not None:
            raise StateError("That person is already in a game!")
        if self.in_queue(target.id):
            raise StateError("That person is already in queue!")

        invite = Invite(player_id, target.id)
        invite.timer = self.timers.once(self.settings.invite_timeout, lambda: self._expire_invite(invite), name="invite")
        self.invites.append(invite)

        sender = self.world.name_of(player_id)
        self.world.whisper(player_id, f"Sent a Battleship invite to {target.name}.")
        self.world.whisper(
            target.id,
            f"You have received a Battleship invite from {sender}! To accept, use /battleship accept {sender}.",
        )

    def _expire_invite(self, invite: Invite) -> None:
        if invite not in self.invites:
            return
        self.invites.remove(invite)
        self.world.whisper(invite.from_id, f"The invite to {self.world.name_of(invite.to_id)} has timed out.")

    async def accept(self, player_id: str, from_name: str) -> Optional[GameSession]:
        from_name = from_name.strip()
        if not from_name:
            raise InvalidCommandError("Please specify what invite to accept (name of sender).")
        self._check_free(player_id)

        incoming = [i for i in self.invites if i.to_id == player_id]
        if not incoming:
            raise InvalidCommandError("You don't have any incoming invites.")

        sender = self.world.get_player(from_name)
        invite = next((i for i in incoming if sender is not None and i.from_id == sender.id), None)
        if invite is None:
            names = ", ".join(self.world.name_of(i.from_id) for i in incoming)
            raise InvalidCommandError(f"Could not find an invite from that player. You currently have invites from: {names}")

        self._drop_invites(player_id, invite.from_id)
        try:
            return await self.start_session(player_id, invite.from_id)
        except NoZoneAvailableError:
            self.queue.append((player_id, invite.from_id))
            n = len(self.queue)
            message = f"You are now in queue to play Battleship. You will play in {n} game{'s' if n != 1 else ''}."
            self.world.whisper(player_id, message)
            self.world.whisper(invite.from_id, message)
            return None

    async def leave(self, player_id: str) -> None:
        """Forfeit the player's game and drop their queue entries and invites."""
        session = self.find_session_for(player_id)
        if session is not None and session.active:
            slot = session.slot_of(player_id)
            winner = 1 - slot if session.phase == "play" else None
            await session.forfeit(winner)

        self.queue = deque(pair for pair in self.queue if player_id not in pair)
        self._drop_invites(player_id)

    async def disconnect(self, player_id: str) -> None:
        self.prompts.cancel(player_id)
        await self.leave(player_id)

    # --- zones ---
    def has_auth(self, player_id: str) -> bool:
        player = self.world.get_player(player_id)
        if player is None:
            return False
        return player.host or any(role in self.settings.auth_setup for role in player.roles)

    def list_zones(self) -> List[Zone]:
        return list(self.zones)

    async def add_zone(self, zone: Zone) -> Zone:
        if any(z.name == zone.name for z in self.zones):
            raise InvalidCommandError("A zone already exists with that name, please make it again.")
        self.zones.append(zone)
        self.store.set_zones(self.zones)
        await self._drain_queue()
        return zone

    def remove_zone(self, name: str) -> None:
        name = name.strip().lower()
        if not name or not any(z.name == name for z in self.zones):
            raise InvalidCommandError(f"No zone with the name {name}.")
        if any(s.zone.name == name for s in self.sessions.values()):
            raise StateError(f"Zone {name} is in use by a game.")
        self.zones = [z for z in self.zones if z.name != name]
        self.store.set_zones(self.zones)

    # --- proximity ---
    async def check_proximity(self) -> None:
        for session in list(self.sessions.values()):
            if not session.active:
                continue
            for slot, player_id in enumerate(session.players):
                if self.world.get_player(player_id) is None:
                    continue
                pos = await self.world.get_position(player_id)
                verdict = proximity_verdict(pos, session.play_space[slot], self.settings.max_zone_dist)
                if verdict == "forfeit":
                    self.world.whisper(player_id, "The game ended because you moved too far away from your play space!")
                    await session.forfeit(1 - slot)
                    break
                if verdict == "warn":
                    self.world.whisper(
                        player_id,
                        "You are moving too far from your play space! Return or you will forfeit your game.",
                    )
                    break
