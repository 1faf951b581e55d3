from fastapi import APIRouter, Depends, HTTPException

from battleship.routers.deps import get_manager
from battleship.schemas import SessionListResponse, SessionSummary, ZoneListResponse
from battleship.services.manager import SessionManager


router = APIRouter()


@router.get("/sessions", response_model=SessionListResponse)
def list_sessions(manager: SessionManager = Depends(get_manager)) -> SessionListResponse:
    return manager.list_sessions()


@router.get("/sessions/{session_id}", response_model=SessionSummary)
def get_session(session_id: str, manager: SessionManager = Depends(get_manager)) -> SessionSummary:
    try:
        return manager.get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="session not found")


@router.get("/zones", response_model=ZoneListResponse)
def list_zones(manager: SessionManager = Depends(get_manager)) -> ZoneListResponse:
    return ZoneListResponse(zones=manager.list_zones())
