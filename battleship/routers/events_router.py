from fastapi import APIRouter, Depends, HTTPException

from battleship.errors import BattleshipError
from battleship.routers.deps import conflict, get_commands, get_manager
from battleship.schemas import ActionResponse, CommandRequest, InteractRequest
from battleship.services.commands import CommandHandler
from battleship.services.manager import SessionManager


router = APIRouter()


@router.post("/interact", response_model=ActionResponse)
async def interact(req: InteractRequest, manager: SessionManager = Depends(get_manager)) -> ActionResponse:
    if manager.world.get_player(req.player_id) is None:
        raise HTTPException(status_code=404, detail="player not found")
    return ActionResponse(accepted=await manager.interact(req.player_id, req.message))


@router.post("/command", response_model=ActionResponse)
async def command(req: CommandRequest, commands: CommandHandler = Depends(get_commands),
                  manager: SessionManager = Depends(get_manager)) -> ActionResponse:
    if manager.world.get_player(req.player_id) is None:
        raise HTTPException(status_code=404, detail="player not found")
    try:
        return ActionResponse(accepted=await commands.handle(req.player_id, req.args))
    except BattleshipError as e:
        raise conflict(e)
