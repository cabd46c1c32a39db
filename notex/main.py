import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from notex.config import Settings, get_settings
from notex.routers import documents, folders, tree
from notex.services.store import get_store
from notex.websocket import manager

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings)

    store = app.dependency_overrides.get(get_store, get_store)()
    result = await store.ensure_root()
    if result.success:
        logger.info(f"Serving documents from {store.root}")
    else:
        logger.error(f"Storage root unavailable: {result.error}")
    yield


app = FastAPI(title="Notex API", lifespan=lifespan)

app.include_router(tree.router)
app.include_router(folders.router)
app.include_router(documents.router)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Push channel: UIs rescan when a tree_changed message arrives"""
    await manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)


@app.get("/health")
async def health():
    return {"status": "ok"}


def main():
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
