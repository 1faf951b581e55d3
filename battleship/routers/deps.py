from fastapi import HTTPException, Request

from battleship.errors import BattleshipError
from battleship.services.commands import CommandHandler
from battleship.services.manager import SessionManager
from battleship.services.world import InMemoryWorld


def get_manager(request: Request) -> SessionManager:
    return request.app.state.manager


def get_world(request: Request) -> InMemoryWorld:
    return request.app.state.world


def get_commands(request: Request) -> CommandHandler:
    return request.app.state.commands


def conflict(e: BattleshipError) -> HTTPException:
    return HTTPException(status_code=409, detail=e.message)
