# app/infrastructure/queue/session_jobs.py

import asyncio

from loguru import logger

from app.infrastructure.cache.session_cache import SessionStore, build_session_store


async def sweep_expired_sessions_job(ctx: dict) -> int:
    """
    Arq cron job: drop session records whose TTL has passed.
    Redis evicts keys on its own; this catches records that outlived their
    stored ``expires_at`` (e.g. after SESSION_TIMEOUT_MINUTES was lowered).
    """
    store: SessionStore = ctx.get("sessions") or build_session_store()
    removed = await store.sweep_expired()
    logger.info("Session sweep removed {} expired sessions", removed)
    return removed


async def run_session_sweeper(store: SessionStore, interval_seconds: int) -> None:
    """In-process sweeper for the in-memory backend; runs until cancelled."""
    logger.info("Session sweeper running every {}s", interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await store.sweep_expired()
        except Exception:
            logger.exception("Session sweep failed")
