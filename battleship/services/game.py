"""One match from setup to cleanup.

A session moves Setup -> Play -> Terminal. Every public coroutine takes the
session lock, so events for one session run one at a time even when a
handler is suspended on a world call; the private helpers assume the lock is
held. Timers armed by a state live in `self.timers` and are cancelled when
the state is left.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Literal, Optional, Tuple, Union

from battleship.config import Settings
from battleship.errors import BattleshipError, InvalidMoveError, StateError
from battleship.schemas import (
    LEFT_BOARD_OFFSET,
    PLAY_SPACE_OFFSET,
    RIGHT_BOARD_OFFSET,
    SHIPS,
    Cell,
    GamePhase,
    Placement,
    SessionSummary,
    Vec3,
    Zone,
)
from battleship.services.board import (
    GameBoard,
    in_board,
    placement_from_line,
    resolve_shot,
    setup_game_board,
    validate_placement,
)
from battleship.services.identifiers import IdentifierPool, IdentifierSet
from battleship.services.resources import ResourcePool, fill_defaults, merge_all, merge_pools
from battleship.services.scene import (
    TEMPLATE_CONFIRM,
    TEMPLATE_FRAME,
    TEMPLATE_PLACE_SHIPS,
    TEMPLATE_THEIR_SHOTS,
    TEMPLATE_YOUR_SHOTS,
    gen_board,
    gen_board_with_ships,
    gen_marker,
    gen_selection,
    gen_ship,
    instantiate,
    move_pool,
    rotate_vec,
)
from battleship.services.tags import InteractEvent, interact_tag
from battleship.services.timers import TimerHandle, TimerService
from battleship.services.world import World
from battleship.utils.audit import audit_write, dbg, forget_session


@dataclass
class SetupState:
    boards: list[list[Placement]] = field(default_factory=lambda: [[], []])
    # first cell of the two-click gesture, per player
    selected: list[Optional[Cell]] = field(default_factory=lambda: [None, None])
    confirmed: list[bool] = field(default_factory=lambda: [False, False])
    phase: GamePhase = field(default="setup", init=False)


@dataclass
class PlayState:
    boards: Tuple[GameBoard, GameBoard]
    player_turn: int = 0
    selected: Optional[Cell] = None
    # bumped on every turn change; stale round timers compare against it
    turn_number: int = 0
    phase: GamePhase = field(default="play", init=False)


@dataclass
class TerminalState:
    reason: Literal["win", "forfeit"]
    winner: Optional[int] = None
    phase: GamePhase = field(default="terminal", init=False)


SessionState = Union[SetupState, PlayState, TerminalState]
FinishedCallback = Callable[["GameSession"], Awaitable[None]]


def play_space(zone: Zone, slot: int) -> Vec3:
    """Where player `slot` stands: a fixed offset in front of their board."""
    offset = rotate_vec(PLAY_SPACE_OFFSET, zone.rotation[slot])
    return tuple(o + p for o, p in zip(offset, zone.pos[slot]))


class GameSession:
    def __init__(self,
                 session_id: str,
                 players: Tuple[str, str],
                 zone: Zone,
                 identifiers: IdentifierSet,
                 *,
                 world: World,
                 timers: TimerService,
                 id_pool: IdentifierPool,
                 settings: Optional[Settings] = None,
                 on_finished: Optional[FinishedCallback] = None,
                 ):
        self.session_id = session_id
        self.players: Tuple[str, str] = (players[0], players[1])
        self.zone = zone
        self.identifiers = identifiers
        self.play_space: Tuple[Vec3, Vec3] = (play_space(zone, 0), play_space(zone, 1))
        self.world = world
        self.timer_service = timers
        self.id_pool = id_pool
        self.settings = settings or Settings()
        self.state: SessionState = SetupState()
        self.timers: dict[str, TimerHandle] = {}
        self.lock = asyncio.Lock()
        self.cleaned_up = False
        self.created_at = int(time.time())
        self._on_finished = on_finished

    # --- views ---
    @property
    def phase(self) -> GamePhase:
        return self.state.phase

    @property
    def active(self) -> bool:
        return self.state.phase != "terminal"

    def slot_of(self, player_id: str) -> Optional[int]:
        if player_id == self.players[0]:
            return 0
        if player_id == self.players[1]:
            return 1
        return None

    def summary(self) -> SessionSummary:
        st = self.state
        winner = None
        if isinstance(st, TerminalState) and st.winner is not None:
            winner = self.players[st.winner]
        return SessionSummary(
            session_id=self.session_id,
            players=self.players,
            zone=self.zone.name,
            phase=st.phase,
            player_turn=st.player_turn if isinstance(st, PlayState) else None,
            confirmed=tuple(st.confirmed) if isinstance(st, SetupState) else None,
            winner=winner,
        )

    def _name(self, slot: int) -> str:
        return self.world.name_of(self.players[slot])

    def _audit(self, record: dict) -> None:
        audit_write(self.session_id, {"phase": self.state.phase, **record})

    # --- timers ---
    def _arm(self, key: str, handle: TimerHandle) -> None:
        old = self.timers.get(key)
        if old is not None:
            old.cancel()
        self.timers[key] = handle

    def _disarm(self, key: str) -> None:
        handle = self.timers.pop(key, None)
        if handle is not None:
            handle.cancel()

    def _disarm_all(self) -> None:
        for key in list(self.timers):
            self._disarm(key)

    # --- scene helpers ---
    def _place(self, pool: ResourcePool, slot: int, offset: Optional[Vec3] = None) -> ResourcePool:
        fill_defaults(pool)
        if offset is not None:
            move_pool(pool, offset)
        return move_pool(pool, self.zone.pos[slot], self.zone.rotation[slot])

    async def _show(self, pool: ResourcePool, slot: int, offset: Optional[Vec3] = None) -> None:
        await self.world.apply_scene(self._place(pool, slot, offset), quiet=True)

    async def _clear(self, *owner_ids: str) -> None:
        for owner_id in owner_ids:
            await self.world.clear_scene(owner_id, quiet=True)

    def _setup_scene(self, slot: int) -> ResourcePool:
        ids = self.identifiers
        control = ids.control(slot)
        pool = merge_all([
            gen_board(ids.root, self.session_id, slot),
            instantiate(TEMPLATE_FRAME, control),
            instantiate(TEMPLATE_PLACE_SHIPS, control),
            *[gen_ship(j, ids.ship(slot, j)) for j in range(len(SHIPS))],
            instantiate(TEMPLATE_CONFIRM, control, interact_tag(self.session_id, slot, "c")),
        ])
        return self._place(pool, slot)

    def _play_scene(self, slot: int, board: GameBoard) -> ResourcePool:
        root = self.identifiers.root
        mine = merge_all([
            gen_board_with_ships(root, [s.placement for s in board.ships]),
            instantiate(TEMPLATE_FRAME, root),
            instantiate(TEMPLATE_THEIR_SHOTS, root),
        ])
        theirs = merge_all([
            gen_board(root, self.session_id, slot),
            instantiate(TEMPLATE_FRAME, root),
            instantiate(TEMPLATE_YOUR_SHOTS, root),
        ])
        move_pool(mine, LEFT_BOARD_OFFSET)
        move_pool(theirs, RIGHT_BOARD_OFFSET)
        return self._place(merge_pools(mine, theirs), slot)

    # --- lifecycle ---
    async def start(self) -> None:
        async with self.lock:
            self._arm("setup", self.timer_service.once(self.settings.setup_timeout, self.expire_setup, name="setup"))
            scene = merge_pools(self._setup_scene(0), self._setup_scene(1))
            await self.world.apply_scene(scene, quiet=True)
            for slot, pid in enumerate(self.players):
                await self.world.teleport(pid, self.play_space[slot])
            if self.settings.broadcast:
                self.world.broadcast(f"A game between {self._name(0)} and {self._name(1)} is now being set up.")
            self._audit({"type": "session_start", "players": list(self.players), "zone": self.zone.name})
            dbg(self.session_id, f"[{self.session_id}] setup started in zone {self.zone.name}")

    async def handle_interact(self, player_id: str, event: InteractEvent) -> bool:
        """Apply one interaction. Returns False when it was ignored or rejected."""
        async with self.lock:
            if not self.active:
                return False
            if event.slot not in (0, 1) or self.players[event.slot] != player_id:
                return False
            try:
                if isinstance(self.state, SetupState):
                    await self._handle_setup(event.slot, event)
                elif isinstance(self.state, PlayState):
                    await self._handle_play(event.slot, event)
            except BattleshipError as e:
                self.world.middle_print(player_id, e.message)
                return False
            return True

    # --- setup phase ---
    async def _handle_setup(self, slot: int, event: InteractEvent) -> None:
        st = self.state
        assert isinstance(st, SetupState)
        if st.confirmed[slot]:
            raise StateError("You already confirmed your setup!")

        if event.kind == "confirm":
            await self._confirm_setup(slot)
        elif event.kind == "remove_ship":
            await self._remove_ship(slot, event.ship)
        elif event.kind == "cell" and event.cell is not None:
            await self._select_setup_cell(slot, event.cell)

    async def _confirm_setup(self, slot: int) -> None:
        st = self.state
        assert isinstance(st, SetupState)
        if len(st.boards[slot]) != len(SHIPS):
            raise InvalidMoveError("You must place all of your ships to continue!")

        st.confirmed[slot] = True
        self._audit({"type": "setup_confirmed", "slot": slot,
                     "board": [p.model_dump() for p in st.boards[slot]]})
        if all(st.confirmed):
            await self._finish_setup()
        else:
            self.world.middle_print(self.players[slot], "Board confirmed! Waiting for your opponent to finish...")
            self.world.whisper(
                self.players[1 - slot],
                "Your opponent has finished placing their ships! When you are finished, press the green button to confirm.",
            )

    async def _remove_ship(self, slot: int, ship: Optional[int]) -> None:
        st = self.state
        assert isinstance(st, SetupState)
        if ship is None or not 0 <= ship < len(SHIPS):
            raise InvalidMoveError("That ship does not exist!")
        if not any(p.ship == ship for p in st.boards[slot]):
            raise InvalidMoveError(f"Your {SHIPS[ship].name} is not on the board.")

        st.boards[slot] = [p for p in st.boards[slot] if p.ship != ship]
        if st.selected[slot] is not None:
            st.selected[slot] = None
            await self._clear(self.identifiers.selection(slot))

        owner = self.identifiers.ship(slot, ship)
        await self._clear(owner)
        await self._show(gen_ship(ship, owner), slot)
        self.world.middle_print(self.players[slot], f"Removed your {SHIPS[ship].name}.")

    async def _select_setup_cell(self, slot: int, cell: Cell) -> None:
        st = self.state
        assert isinstance(st, SetupState)
        if not in_board(cell):
            raise InvalidMoveError("That cell is not on the board!")

        start = st.selected[slot]
        if start is None:
            st.selected[slot] = cell
            await self._show(gen_selection(*cell, self.identifiers.selection(slot)), slot)
            self.world.middle_print(self.players[slot], "Click another cell to place your ship.")
            return

        # second click: the selection is consumed whether or not the ship fits
        st.selected[slot] = None
        await self._clear(self.identifiers.selection(slot))

        board = st.boards[slot]
        placement = placement_from_line(start, cell, board)
        check = validate_placement(board, placement)
        if check == "overlap":
            raise InvalidMoveError("A ship is already in that spot!")
        if check != "accepted":
            raise InvalidMoveError("That ship does not fit there!")

        board.append(placement)
        owner = self.identifiers.ship(slot, placement.ship)
        await self._clear(owner)
        await self._show(gen_ship(placement.ship, owner, at=placement, interact_id=self.session_id, slot=slot), slot)
        self.world.middle_print(self.players[slot], f"Placed your {SHIPS[placement.ship].name}.")

    async def _finish_setup(self) -> None:
        st = self.state
        assert isinstance(st, SetupState)
        self._disarm("setup")
        boards = (setup_game_board(st.boards[0]), setup_game_board(st.boards[1]))
        self.state = PlayState(boards=boards)

        await self._clear(*self.identifiers)
        scene = merge_pools(self._play_scene(0, boards[0]), self._play_scene(1, boards[1]))
        await self.world.apply_scene(scene, quiet=True)

        if self.settings.broadcast:
            self.world.broadcast(f"A game between {self._name(0)} and {self._name(1)} is starting!")
        self._audit({"type": "play_start", "boards": [b.to_payload() for b in boards]})
        await self._set_turn(0)

    # --- play phase ---
    async def _set_turn(self, to: int) -> None:
        st = self.state
        assert isinstance(st, PlayState)
        st.player_turn = to
        st.selected = None
        st.turn_number += 1
        turn_number = st.turn_number

        confirm = instantiate(TEMPLATE_CONFIRM, self.identifiers.control(to), interact_tag(self.session_id, to, "c"))
        await self._show(confirm, to, RIGHT_BOARD_OFFSET)
        self.world.whisper(self.players[to], "It is your turn! Use the board on the right to shoot at your opponent.")

        self._arm("round", self.timer_service.round_timer(
            self.settings.round_length,
            self.settings.round_warning,
            on_warning=lambda seconds: self._warn_round(turn_number, seconds),
            on_expire=lambda: self.expire_round(turn_number),
            interval=self.settings.round_tick,
            name="round",
        ))
        self._audit({"type": "turn", "turn": turn_number, "player": to})

    def _warn_round(self, turn_number: int, seconds: int) -> None:
        st = self.state
        if not isinstance(st, PlayState) or st.turn_number != turn_number:
            return
        self.world.whisper(self.players[st.player_turn], f"{seconds} second{'s' if seconds != 1 else ''} remaining!")

    async def _handle_play(self, slot: int, event: InteractEvent) -> None:
        st = self.state
        assert isinstance(st, PlayState)
        if slot != st.player_turn:
            raise StateError("It is not your turn!")

        if event.kind == "confirm":
            await self._act(force=False)
            return
        if event.kind != "cell" or event.cell is None:
            raise StateError("You can't do that now!")
        if not in_board(event.cell):
            raise InvalidMoveError("That cell is not on the board!")

        st.selected = event.cell
        owner = self.identifiers.selection(slot)
        await self._clear(owner)
        await self._show(gen_selection(*event.cell, owner), slot, RIGHT_BOARD_OFFSET)
        self.world.middle_print(self.players[slot], "Click the green button to confirm you want to hit this target.")

    async def _end_round_visuals(self) -> None:
        ids = self.identifiers
        await self._clear(ids.selection(0), ids.selection(1), ids.control(0), ids.control(1))
        self._disarm("round")

    async def _act(self, force: bool) -> None:
        """Fire at the selected cell. Forced calls (round expiry) never raise."""
        st = self.state
        assert isinstance(st, PlayState)
        turn = st.player_turn
        other = 1 - turn
        player, opponent = self.players[turn], self.players[other]

        if st.selected is None:
            if not force:
                raise InvalidMoveError("You have not selected a spot to hit yet!")
            await self._end_round_visuals()
            self.world.whisper(player, "You did not act in time, so your turn was skipped.")
            self.world.whisper(opponent, "Your opponent did not act in time, so their turn was skipped.")
            self._audit({"type": "turn_skipped", "turn": st.turn_number, "player": turn})
        else:
            pos = st.selected
            result = resolve_shot(pos, st.boards[other])
            if result.kind in ("already_hit", "already_miss"):
                st.selected = None
                msg = ("You already hit that location!" if result.kind == "already_hit"
                       else "You already missed at that location!")
                if not force:
                    raise InvalidMoveError(msg)
                self.world.middle_print(player, msg)

            await self._end_round_visuals()

            if result.kind in ("miss", "hit"):
                st.boards[other].record_shot(pos, result)
                await self._show_shot(pos, turn, miss=result.kind == "miss")
                self._audit({"type": "shot", "turn": st.turn_number, "player": turn,
                             "pos": list(pos), "result": result.kind,
                             "sunk": bool(result.ship and result.ship.sunk)})

            if result.kind == "miss":
                self.world.whisper(player, "You missed!")
                self.world.whisper(opponent, "Your opponent missed!")
            elif result.kind == "hit":
                ship = result.ship
                name = ship.spec.name
                if ship.sunk:
                    if self.settings.broadcast:
                        self.world.broadcast(f"{self._name(turn)} sunk {self._name(other)}'s {name}!")
                    else:
                        self.world.whisper(player, f"You sunk your opponent's {name}!")
                        self.world.whisper(opponent, f"Your opponent sunk your {name}!")
                else:
                    self.world.whisper(player, "You hit one of your opponent's ships!")
                    self.world.whisper(opponent, f"Your opponent hit your {name}!")

        if st.boards[other].defeated:
            await self._win(turn)
            return

        await self._set_turn(other)

    async def _show_shot(self, pos: Cell, shooter: int, miss: bool) -> None:
        root = self.identifiers.root
        target = 1 - shooter
        theirs = self._place(gen_marker(*pos, root, mine=False, miss=miss), shooter, RIGHT_BOARD_OFFSET)
        mine = self._place(gen_marker(*pos, root, mine=True, miss=miss), target, LEFT_BOARD_OFFSET)
        await self.world.apply_scene(merge_pools(theirs, mine), quiet=True)

    async def _win(self, winner: int) -> None:
        self._disarm_all()
        self.state = TerminalState(reason="win", winner=winner)
        message = f"{self._name(winner)} wins! They sunk all of {self._name(1 - winner)}'s ships."
        self._announce(message)
        self._audit({"type": "terminal", "reason": "win", "winner": winner})
        dbg(self.session_id, f"[{self.session_id}] won by slot {winner}")
        self._arm("cleanup", self.timer_service.once(self.settings.cleanup_delay, self.close, name="cleanup"))

    def _announce(self, message: str) -> None:
        if self.settings.broadcast:
            self.world.broadcast(message)
        else:
            for pid in self.players:
                self.world.whisper(pid, message)

    # --- timer entry points ---
    async def expire_setup(self) -> None:
        async with self.lock:
            if not isinstance(self.state, SetupState):
                return
            for pid in self.players:
                self.world.whisper(pid, "The game ended because the boards were not set up in time.")
            await self._forfeit(None)

    async def expire_round(self, turn_number: int) -> None:
        async with self.lock:
            st = self.state
            if not isinstance(st, PlayState) or st.turn_number != turn_number:
                return
            dbg(self.session_id, f"[{self.session_id}] round {turn_number} expired")
            await self._act(force=True)

    # --- termination ---
    async def forfeit(self, winner: Optional[int] = None) -> None:
        async with self.lock:
            await self._forfeit(winner)

    async def _forfeit(self, winner: Optional[int]) -> None:
        if not self.active:
            return
        self._disarm_all()
        self.state = TerminalState(reason="forfeit", winner=winner)
        if winner is not None:
            message = f"{self._name(winner)} wins by forfeit!"
        else:
            message = f"The game between {self._name(0)} and {self._name(1)} has ended early!"
        self._announce(message)
        self._audit({"type": "terminal", "reason": "forfeit", "winner": winner})
        await self._cleanup()

    async def close(self) -> None:
        async with self.lock:
            await self._cleanup()

    async def _cleanup(self) -> None:
        if self.cleaned_up:
            return
        self.cleaned_up = True
        self._disarm_all()
        if self.active:
            self.state = TerminalState(reason="forfeit")
        record = {"type": "cleanup"}
        failed = []
        for owner_id in self.identifiers:
            try:
                await self._clear(owner_id)
            except Exception as e:
                # the session still has to leave the registry
                dbg(self.session_id, f"[{self.session_id}] clearing {owner_id} failed: {e!r}")
                failed.append(owner_id)
        if failed:
            record["clear_failed"] = failed
        self.identifiers.release(self.id_pool)
        self._audit(record)
        forget_session(self.session_id)
        if self._on_finished is not None:
            await self._on_finished(self)
