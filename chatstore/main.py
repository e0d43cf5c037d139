import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatstore.core.config import settings
from chatstore.api import conversations
from chatstore.services.conversation_store import ConversationStore, get_store
from chatstore.services.diagnostics import run_chat_diagnostics


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure logging based on debug setting
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s" if settings.debug
        else "%(levelname)-8s %(name)s: %(message)s",
    )

    settings.database_file.parent.mkdir(parents=True, exist_ok=True)
    store = app.dependency_overrides.get(get_store, get_store)()

    try:
        yield
    finally:
        store.close()
        get_store.cache_clear()


app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(conversations.router, prefix="/api/conversations", tags=["conversations"])


@app.get("/api/health")
async def health():
    return {"status": "ok", "app": settings.app_name}


@app.post("/api/diagnostics")
def diagnostics(store: ConversationStore = Depends(get_store)):
    """Run the isolation self check. Clears all stored conversations first."""
    result = run_chat_diagnostics(store)
    return {"passed": result.passed, "failed": result.failed, "duration_ms": result.duration_ms}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port)
