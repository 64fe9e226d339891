from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from config import get_settings
from api import websocket
from api.hub import ConnectionHub
from core.room_store import RoomStore
from core.scheduler import TaskScheduler
from core.session_controller import RoomSessionController

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 建立程序內唯一的房間登記表與事件協調者
    hub = ConnectionHub()
    scheduler = TaskScheduler()
    app.state.store = RoomStore()
    app.state.hub = hub
    app.state.scheduler = scheduler
    app.state.controller = RoomSessionController(
        app.state.store,
        hub,
        scheduler,
        grace_period_seconds=settings.grace_period_seconds,
        card_universe_size=settings.card_universe_size,
        room_id_length=settings.room_id_length,
    )
    logger.info("Theme Tier server started")
    yield
    # Shutdown: 取消尚未觸發的斷線計時器
    await scheduler.shutdown()


app = FastAPI(
    title="Theme Tier Server",
    description="Real-time lobby server: rooms, master role, unique card distribution",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.client_url],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Include routers
app.include_router(websocket.router)


@app.get("/health")
def health():
    return {"status": "ok", "message": "Theme Tier server is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
