# app/infrastructure/queue/notification_jobs.py

from datetime import timedelta

from arq.connections import ArqRedis, RedisSettings, create_pool
from loguru import logger

from app.core.config import settings
from app.core.logging_config import mask_phone

MAX_NOTIFICATION_RETRIES = 3
RETRY_BASE_DELAY_SECONDS = 30

_redis_pool: ArqRedis | None = None


async def get_redis_pool() -> ArqRedis:
    """
    Creates (once) and returns an Arq Redis pool.
    """
    global _redis_pool
    if _redis_pool is None:
        logger.info("Creating ARQ Redis pool: {}", settings.REDIS_URL)
        _redis_pool = await create_pool(RedisSettings.from_dsn(settings.REDIS_URL))
    return _redis_pool


async def enqueue_template_message(phone: str, key: str, lang: str | None = None, **params) -> None:
    """
    Enqueue a templated WhatsApp notification (medication reminder, caregiver
    alert). Delivery and retries happen in the worker.
    """
    redis = await get_redis_pool()
    await redis.enqueue_job("send_template_job", phone, key, lang, params)
    logger.info("ARQ → Enqueued {} for {}", key, mask_phone(phone))


async def send_template_job(
    ctx: dict,
    phone: str,
    key: str,
    lang: str | None,
    params: dict,
    attempt: int = 1,
) -> bool:
    """
    Arq job: render ``key`` in ``lang`` and send it, re-enqueueing on failure
    up to MAX_NOTIFICATION_RETRIES attempts.
    """
    service = ctx["conversation"]
    delivered = await service.send_template(phone, key, lang, **params)
    if delivered:
        return True

    if attempt < MAX_NOTIFICATION_RETRIES:
        redis: ArqRedis = ctx["redis"]
        # 30s, 60s, ... between attempts
        delay = timedelta(seconds=RETRY_BASE_DELAY_SECONDS * attempt)
        await redis.enqueue_job(
            "send_template_job", phone, key, lang, params, attempt + 1,
            _defer_by=delay,
        )
        logger.warning(
            "Re-enqueued {} for {} attempt {} in {}s", key, mask_phone(phone), attempt + 1, delay.total_seconds()
        )
    else:
        logger.error("Giving up on {} for {} after {} attempts", key, mask_phone(phone), attempt)
    return False
