# app/infrastructure/queue/arq_settings.py

from arq import cron
from arq.connections import RedisSettings
from loguru import logger

from app.core.config import settings
from app.core.logging_config import setup_logging
from app.infrastructure.queue.notification_jobs import send_template_job
from app.infrastructure.queue.session_jobs import sweep_expired_sessions_job


class WorkerSettings:
    """
    Used by:
        arq app.infrastructure.queue.arq_settings.WorkerSettings
    """

    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)

    functions = [send_template_job, sweep_expired_sessions_job]

    cron_jobs = [
        cron(sweep_expired_sessions_job, minute=set(range(0, 60, 5)), run_at_startup=True),
    ]

    max_jobs = 100

    @staticmethod
    async def on_startup(ctx):
        setup_logging()
        from app.api.deps import get_conversation_service, get_session_store

        ctx["sessions"] = get_session_store()
        ctx["conversation"] = get_conversation_service()
        logger.info("ARQ worker starting up, Redis DSN={}", settings.REDIS_URL)

    @staticmethod
    async def on_shutdown(ctx):
        logger.info("ARQ worker shutting down")
