from typing import Optional

from battleship.config import Settings
from battleship.schemas import PlayerInfo, Placement, Zone
from battleship.services.game import GameSession
from battleship.services.identifiers import IdentifierPool, IdentifierSet
from battleship.services.tags import interact_tag, parse_interact_tag
from battleship.services.timers import TimerService
from battleship.services.world import InMemoryWorld

ZONE = Zone(name="dock", pos=((0, 0, 0), (200, 0, 0)), rotation=(0, 2))
ZONE_B = Zone(name="pier", pos=((0, 400, 0), (200, 400, 0)), rotation=(0, 2))

# every ship horizontal on its own row, Carrier on row 0
FLEET = [Placement(ship=i, x=0, y=i) for i in range(5)]
FLEET_CELLS = [c for p in FLEET for c in p.cells()]


def fast_settings(**overrides) -> Settings:
    values = dict(setup_timeout=60, round_length=60, round_warning=3, round_tick=0.05,
                  invite_timeout=60, cleanup_delay=0.05, prompt_timeout=5, store_path=None)
    values.update(overrides)
    return Settings(**values)


def make_world(*names: str) -> InMemoryWorld:
    world = InMemoryWorld()
    for name in names:
        world.add_player(PlayerInfo(id=name.lower(), name=name))
    return world


def make_session(world: InMemoryWorld, players=("alice", "bob"), settings: Optional[Settings] = None,
                 on_finished=None, pool: Optional[IdentifierPool] = None) -> GameSession:
    pool = pool or IdentifierPool()
    return GameSession(
        "abc123",
        players,
        ZONE,
        IdentifierSet.allocate(pool),
        world=world,
        timers=TimerService(),
        id_pool=pool,
        settings=settings or fast_settings(),
        on_finished=on_finished,
    )


async def click(session: GameSession, slot: int, payload: str, player_id: Optional[str] = None) -> bool:
    event = parse_interact_tag(interact_tag(session.session_id, slot, payload))
    return await session.handle_interact(player_id or session.players[slot], event)


async def click_cell(session: GameSession, slot: int, cell) -> bool:
    return await click(session, slot, f"{cell[0]}:{cell[1]}")


async def place_fleet(session: GameSession, slot: int, fleet=FLEET) -> None:
    for p in fleet:
        cells = p.cells()
        assert await click_cell(session, slot, cells[0])
        assert await click_cell(session, slot, cells[-1])


async def setup_both(session: GameSession) -> None:
    for slot in (0, 1):
        await place_fleet(session, slot)
        assert await click(session, slot, "c")


async def shoot(session: GameSession, slot: int, cell) -> bool:
    if not await click_cell(session, slot, cell):
        return False
    return await click(session, slot, "c")
