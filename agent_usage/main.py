"""agent-usage FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from agent_usage import config
from agent_usage.config import Settings
from agent_usage.context import build_context
from agent_usage.db.connection import close_connection
from agent_usage.observability import initialize as initialize_observability, shutdown as shutdown_observability
from agent_usage.routers.usage import usage_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("agent_usage")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("agent-usage API starting up")
    initialize_observability(app)

    ctx = await build_context(getattr(app.state, "settings", None))
    app.state.context = ctx

    if ctx.settings.autosync:
        await ctx.sync_enabled_sources()

    yield

    logger.info("agent-usage API shutting down")
    shutdown_observability(app)
    await close_connection(ctx.db)


app = FastAPI(
    title="agent-usage API",
    description="Usage statistics for AI coding-agent session logs",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(usage_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    ctx = getattr(app.state, "context", None)
    return {"status": "ok", "db": "connected" if ctx is not None else "disconnected"}


def run(settings: Settings | None = None) -> None:
    """Serve the API. ``settings`` replaces the env snapshot the lifespan would load."""
    import uvicorn

    app.state.settings = settings
    uvicorn.run(app, host=config.HOST, port=config.PORT)
