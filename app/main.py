import asyncio
import contextlib

from fastapi import FastAPI
from loguru import logger

from app.api.deps import get_session_store
from app.api.routes import api_router
from app.core.config import settings
from app.core.logging_config import setup_logging
from app.infrastructure.queue.session_jobs import run_session_sweeper

setup_logging()

app = FastAPI(title="Sukoon Saarthi")

_sweeper: asyncio.Task | None = None


@app.on_event("startup")
async def startup():
    global _sweeper
    from app.core.db import init_models

    try:
        await init_models()
    except Exception:
        logger.exception("Database initialisation failed; continuing without schema check")

    # Redis sessions are swept by the arq worker instead
    if settings.SESSION_BACKEND.lower() == "memory":
        _sweeper = asyncio.create_task(
            run_session_sweeper(get_session_store(), settings.SESSION_SWEEP_INTERVAL_SECONDS)
        )
    logger.info("{} started ({})", settings.APP_NAME, settings.ENVIRONMENT)


@app.on_event("shutdown")
async def shutdown():
    if _sweeper is not None:
        _sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await _sweeper


app.include_router(api_router)
