from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict

import redis.asyncio as redis
from loguru import logger
from pydantic import ValidationError

from app.core.config import settings
from app.core.errors import InvalidSessionError
from app.core.logging_config import mask_phone
from app.domain.models.session import Session, utcnow

# ---------------------------------------------------------------------------
# Session TTL contract
# ---------------------------------------------------------------------------
# A session lives for ``timeout`` after its last read-or-create / update.
# Observed with ``now > expires_at`` it is dead and replaced by a fresh one.

Clock = Callable[[], datetime]


def _next_timestamp(now: datetime, previous: datetime | None) -> datetime:
    """Return ``now``, nudged forward if the clock has not moved past ``previous``."""
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


class SessionStore(ABC):
    """TTL cache of conversation sessions keyed by phone number."""

    def __init__(self, timeout_minutes: int | None = None, clock: Clock = utcnow):
        minutes = settings.SESSION_TIMEOUT_MINUTES if timeout_minutes is None else timeout_minutes
        self.timeout = timedelta(minutes=minutes)
        self._clock = clock

    def _new_session(self, phone_number: str, now: datetime) -> Session:
        return Session(
            phone_number=phone_number,
            created_at=now,
            updated_at=now,
            expires_at=now + self.timeout,
        )

    def _touch(self, session: Session) -> Session:
        session.updated_at = _next_timestamp(self._clock(), session.updated_at)
        session.expires_at = session.updated_at + self.timeout
        return session

    @abstractmethod
    async def get_or_create(self, phone_number: str) -> Session:
        ...

    @abstractmethod
    async def update(self, session: Session) -> Session:
        ...

    @abstractmethod
    async def clear(self, phone_number: str) -> bool:
        ...

    @abstractmethod
    async def sweep_expired(self) -> int:
        ...

    @abstractmethod
    async def count(self) -> int:
        ...


class InMemorySessionStore(SessionStore):
    """
    Single-instance store backed by a dict.

    Every operation runs without awaiting between read and write, so each one
    is atomic on the event loop. Sessions are copied on the way in and out;
    callers never hold a reference into the map.
    """

    def __init__(self, timeout_minutes: int | None = None, clock: Clock = utcnow):
        super().__init__(timeout_minutes, clock)
        self._sessions: Dict[str, Session] = {}

    async def get_or_create(self, phone_number: str) -> Session:
        existing = self._sessions.get(phone_number)
        now = self._clock()

        if existing is not None and not existing.is_expired(now):
            session = self._touch(existing)
        else:
            if existing is not None:
                logger.info("Session expired for {}, creating new session", mask_phone(phone_number))
            session = self._new_session(phone_number, now)
            logger.info("Created new session for {}: {}", mask_phone(phone_number), session.id)

        self._sessions[phone_number] = session
        return session.model_copy(deep=True)

    async def update(self, session: Session) -> Session:
        if session is None or not session.phone_number:
            raise InvalidSessionError("Invalid session object: phone_number is required")

        stored = session.model_copy(deep=True)
        previous = self._sessions.get(session.phone_number)
        if previous is not None and previous.updated_at > stored.updated_at:
            stored.updated_at = previous.updated_at
        self._touch(stored)

        self._sessions[session.phone_number] = stored
        session.updated_at = stored.updated_at
        session.expires_at = stored.expires_at
        logger.debug("Updated session for {}: {}", mask_phone(session.phone_number), session.id)
        return session

    async def clear(self, phone_number: str) -> bool:
        if self._sessions.pop(phone_number, None) is not None:
            logger.info("Cleared session for {}", mask_phone(phone_number))
            return True
        return False

    async def sweep_expired(self) -> int:
        now = self._clock()
        expired = [phone for phone, s in self._sessions.items() if s.is_expired(now)]
        for phone in expired:
            del self._sessions[phone]

        if expired:
            logger.info("Cleaned up {} expired sessions", len(expired))
        return len(expired)

    async def count(self) -> int:
        return len(self._sessions)


class RedisSessionStore(SessionStore):
    """
    Multi-instance store. Records are JSON under ``wa:session:<phone>`` with a
    native Redis TTL matching ``expires_at``; ``sweep_expired`` catches records
    whose stored expiry passed before Redis evicted them.
    """

    KEY_PREFIX = "wa:session:"

    def __init__(
        self,
        redis_url: str | None = None,
        timeout_minutes: int | None = None,
        clock: Clock = utcnow,
        client: redis.Redis | None = None,
    ):
        super().__init__(timeout_minutes, clock)
        if client is None:
            redis_url = redis_url or settings.REDIS_URL
            if not redis_url:
                raise RuntimeError("REDIS_URL is not set")
            client = redis.from_url(redis_url, decode_responses=True)
        self._r = client

    def _key(self, phone_number: str) -> str:
        return f"{self.KEY_PREFIX}{phone_number}"

    def _load(self, raw: str | None) -> Session | None:
        if not raw:
            return None
        try:
            return Session.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable session record")
            return None

    async def _save(self, session: Session) -> None:
        ttl = max(int(self.timeout.total_seconds()), 1)
        await self._r.set(self._key(session.phone_number), session.model_dump_json(), ex=ttl)

    async def get_or_create(self, phone_number: str) -> Session:
        existing = self._load(await self._r.get(self._key(phone_number)))
        now = self._clock()

        if existing is not None and not existing.is_expired(now):
            session = self._touch(existing)
        else:
            if existing is not None:
                logger.info("Session expired for {}, creating new session", mask_phone(phone_number))
            session = self._new_session(phone_number, now)
            logger.info("Created new session for {}: {}", mask_phone(phone_number), session.id)

        await self._save(session)
        return session

    async def update(self, session: Session) -> Session:
        if session is None or not session.phone_number:
            raise InvalidSessionError("Invalid session object: phone_number is required")

        previous = self._load(await self._r.get(self._key(session.phone_number)))
        if previous is not None and previous.updated_at > session.updated_at:
            session.updated_at = previous.updated_at
        self._touch(session)
        await self._save(session)
        logger.debug("Updated session for {}: {}", mask_phone(session.phone_number), session.id)
        return session

    async def clear(self, phone_number: str) -> bool:
        removed = await self._r.delete(self._key(phone_number))
        if removed:
            logger.info("Cleared session for {}", mask_phone(phone_number))
        return bool(removed)

    async def sweep_expired(self) -> int:
        now = self._clock()
        count = 0
        async for key in self._r.scan_iter(match=f"{self.KEY_PREFIX}*"):
            session = self._load(await self._r.get(key))
            if session is None or session.is_expired(now):
                count += await self._r.delete(key)

        if count:
            logger.info("Cleaned up {} expired sessions", count)
        return count

    async def count(self) -> int:
        total = 0
        async for _ in self._r.scan_iter(match=f"{self.KEY_PREFIX}*"):
            total += 1
        return total


def build_session_store(backend: str | None = None) -> SessionStore:
    backend = (backend or settings.SESSION_BACKEND).lower()
    if backend == "redis":
        return RedisSessionStore(settings.REDIS_URL)
    if backend != "memory":
        logger.warning("Unknown SESSION_BACKEND {!r}, using in-memory sessions", backend)
    return InMemorySessionStore()
