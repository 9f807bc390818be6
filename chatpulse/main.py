# chatpulse/main.py

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatpulse.core import state
from chatpulse.core.config import settings
from chatpulse.core.logging import setup_logging, get_logger
from chatpulse.api.routes import root, health, metrics, rooms
from chatpulse.api import websocket as websocket_module
from chatpulse.services.message_store import InMemoryMessageStore, MessageStore
from chatpulse.services.redis_store import RedisMessageStore
from chatpulse.services.retention import RetentionScheduler

# Configure logging first
setup_logging()
logger = get_logger(__name__)

# FastAPI app
app = FastAPI(title="ChatPulse Relay")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# REST routes
app.include_router(root.router)
app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(rooms.router)

# WebSocket routes
app.include_router(websocket_module.router)


def build_store() -> MessageStore:
    if settings.STORE_BACKEND == "redis":
        return RedisMessageStore(settings.redis_url())
    return InMemoryMessageStore()


@app.on_event("startup")
async def startup_event():
    logger.info("🚀 Application starting - store backend: %s", settings.STORE_BACKEND)

    store = build_store()
    await store.connect()
    state.init_services(store)

    if settings.RETENTION_ENABLED:
        state.retention_scheduler = RetentionScheduler(store)
        state.retention_scheduler.start()


@app.on_event("shutdown")
async def on_shutdown():
    if state.retention_scheduler is not None:
        await state.retention_scheduler.stop()
        state.retention_scheduler = None

    if state.message_store is not None:
        await state.message_store.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("chatpulse.main:app", host="0.0.0.0", port=settings.PORT)
