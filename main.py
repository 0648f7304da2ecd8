"""FastAPI app entry point for Era Genética Server."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

import config
from api.admin import router as admin_router
from api.character import router as character_router
from api.session import router as session_router
from api.ws import router as ws_router
from auth import load_tokens
from store.documents import DocumentStore

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the document store for the life of the server."""
    config.load_secret()
    load_tokens()
    store = DocumentStore(config.STORE_FILE)
    await store.open()
    app.state.store = store
    app.state.sheets = {}
    logger.info("Era Genética Server ready")
    try:
        yield
    finally:
        for sheet in app.state.sheets.values():
            await sheet.settle()
        await store.close()


app = FastAPI(
    title="Era Genética Server",
    description="Character sheets and an admin roster backed by a document store",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(session_router, tags=["Session"])
app.include_router(character_router, prefix="/character", tags=["Character"])
app.include_router(admin_router, prefix="/admin", tags=["Admin"])
app.include_router(ws_router, prefix="/admin", tags=["WebSocket"])


@app.get("/")
def root() -> dict:
    """Root endpoint returning server info."""
    return {"name": "Era Genética Server", "version": "0.1.0", "status": "running"}


@app.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"healthy": True}
