from fastapi import APIRouter, Depends, HTTPException

from battleship.schemas import (
    ActionResponse,
    GhostBrickRequest,
    MessageListResponse,
    PlayerInfo,
    PlayerJoinRequest,
    PositionUpdateRequest,
)
from battleship.routers.deps import get_manager, get_world
from battleship.services.manager import SessionManager
from battleship.services.world import GhostBrick, InMemoryWorld


router = APIRouter()


@router.post("/players", response_model=PlayerInfo)
def join(req: PlayerJoinRequest, world: InMemoryWorld = Depends(get_world)) -> PlayerInfo:
    return world.add_player(PlayerInfo(**req.model_dump()))


@router.delete("/players/{player_id}", response_model=ActionResponse)
async def leave(player_id: str,
                world: InMemoryWorld = Depends(get_world),
                manager: SessionManager = Depends(get_manager)) -> ActionResponse:
    if player_id not in world.players:
        raise HTTPException(status_code=404, detail="player not found")
    await manager.disconnect(player_id)
    world.remove_player(player_id)
    return ActionResponse(accepted=True)


@router.post("/players/{player_id}/position", response_model=PlayerInfo)
def update_position(player_id: str, req: PositionUpdateRequest,
                    world: InMemoryWorld = Depends(get_world)) -> PlayerInfo:
    try:
        world.set_position(player_id, req.position)
    except KeyError:
        raise HTTPException(status_code=404, detail="player not found")
    return world.players[player_id]


@router.post("/players/{player_id}/ghost", response_model=ActionResponse)
def set_ghost(player_id: str, req: GhostBrickRequest,
              world: InMemoryWorld = Depends(get_world)) -> ActionResponse:
    try:
        world.set_ghost_brick(player_id, GhostBrick(location=tuple(req.location), orientation=req.orientation))
    except KeyError:
        raise HTTPException(status_code=404, detail="player not found")
    return ActionResponse(accepted=True)


@router.get("/players/{player_id}/messages", response_model=MessageListResponse)
def messages(player_id: str, world: InMemoryWorld = Depends(get_world)) -> MessageListResponse:
    if player_id not in world.players:
        raise HTTPException(status_code=404, detail="player not found")
    return MessageListResponse(player_id=player_id, messages=world.drain(player_id))
