from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
import uvicorn

from battleship.config import Settings
from battleship.routers.events_router import router as events_router
from battleship.routers.session_router import router as session_router
from battleship.routers.world_router import router as world_router
from battleship.services.commands import CommandHandler
from battleship.services.manager import SessionManager
from battleship.services.storage import JsonStore
from battleship.services.world import InMemoryWorld
from battleship.utils.audit import dbg


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        world = InMemoryWorld()
        manager = SessionManager(world, JsonStore(settings.store_path), settings)
        await manager.init()
        app.state.world = world
        app.state.manager = manager
        app.state.commands = CommandHandler(manager)
        dbg(None, "[app] battleship service ready")
        yield
        await manager.shutdown()

    app = FastAPI(title="battleship", lifespan=lifespan)

    # Health check
    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    app.include_router(world_router, prefix="/v1/world", tags=["world"])
    app.include_router(events_router, prefix="/v1/events", tags=["events"])
    app.include_router(session_router, prefix="/v1", tags=["sessions"])
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
