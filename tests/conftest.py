"""Shared test fixtures for the Sukoon Saarthi test suite."""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import DomainStoreError, GeneratorError, TransportError
from app.domain.models.health import (
    InteractionReport,
    MedicationInfo,
    UserProfile,
    WeeklySummary,
)
from app.domain.services.conversation_service import ConversationService
from app.infrastructure.cache.session_cache import InMemorySessionStore


@pytest.fixture(scope="session")
def event_loop():
    """Use a single event loop for the entire test session."""
    loop = asyncio.new_event_loop()
    yield loop
    loop.close()


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 15, 3, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeDomainStore:
    def __init__(self):
        self.users: dict[str, UserProfile] = {}
        self.medications: dict[str, list[MedicationInfo]] = {}
        self.caregivers: dict[str, dict[str, str]] = {}  # caregiver phone -> {target: user phone}
        self.create_user_calls: list[dict] = []
        self.adherence: list[tuple] = []
        self.readings: list[tuple] = []
        self.language_updates: list[tuple] = []
        self.fail: set[str] = set()

    def _check(self, name: str):
        if name in self.fail:
            raise DomainStoreError(f"{name} unavailable")

    def add_user(self, phone: str, name: str = "Asha", language: str = "en") -> UserProfile:
        user = UserProfile(id=str(uuid.uuid4()), phone_number=phone, name=name, age=70, language=language)
        self.users[phone] = user
        return user

    def add_medication(self, user: UserProfile, name: str, dosage: str = "5mg", schedule=None) -> MedicationInfo:
        med = MedicationInfo(
            id=str(uuid.uuid4()),
            user_id=user.id,
            name=name,
            dosage=dosage,
            frequency="once_daily",
            schedule=schedule or [],
        )
        self.medications.setdefault(user.id, []).append(med)
        return med

    def link_caregiver(self, caregiver_phone: str, target: str, user: UserProfile) -> None:
        self.caregivers.setdefault(caregiver_phone, {})[target.lower()] = user.phone_number

    async def find_user_by_phone(self, phone_number):
        self._check("find_user_by_phone")
        return self.users.get(phone_number)

    async def create_user(self, phone_number, name, age, language, conditions):
        self._check("create_user")
        self.create_user_calls.append(
            dict(phone_number=phone_number, name=name, age=age, language=language, conditions=conditions)
        )
        user = UserProfile(
            id=str(uuid.uuid4()),
            phone_number=phone_number,
            name=name,
            age=age,
            language=language,
            conditions=conditions,
        )
        self.users[phone_number] = user
        return user

    async def update_user_language(self, user_id, language):
        self._check("update_user_language")
        self.language_updates.append((user_id, language))

    async def add_caregiver(self, user_id, caregiver_phone, caregiver_name=None, relationship_label=None):
        self._check("add_caregiver")
        user = next(u for u in self.users.values() if u.id == user_id)
        for key in filter(None, (relationship_label, user.name)):
            self.link_caregiver(caregiver_phone, key, user)

    async def find_cared_for_user(self, caregiver_phone, target):
        self._check("find_cared_for_user")
        phone = self.caregivers.get(caregiver_phone, {}).get(target.lower())
        return self.users.get(phone) if phone else None

    async def list_medications(self, user_id):
        self._check("list_medications")
        return list(self.medications.get(user_id, []))

    async def create_medication(self, user_id, name, dosage, frequency, schedule):
        self._check("create_medication")
        med = MedicationInfo(
            id=str(uuid.uuid4()), user_id=user_id, name=name, dosage=dosage,
            frequency=frequency, schedule=schedule,
        )
        self.medications.setdefault(user_id, []).append(med)
        return med

    async def record_adherence(self, user_id, medication_id, scheduled_time, recorded_at, taken=True):
        self._check("record_adherence")
        self.adherence.append((user_id, medication_id, scheduled_time))

    async def record_health_reading(self, user_id, reading_type, value, unit, recorded_at):
        self._check("record_health_reading")
        self.readings.append((user_id, reading_type, value, unit))

    async def weekly_summary(self, user_id, now):
        self._check("weekly_summary")
        return WeeklySummary(
            adherence_percentage=80,
            doses_recorded=4,
            latest_readings={"blood_pressure": "130/85 mmHg"},
        )


class FakeGenerator:
    def __init__(self):
        self.delay = 0.0
        self.fail = False
        self.transcript = "help"
        self.report = InteractionReport(has_interactions=False, summary="No known interactions.")

    async def _maybe_fail(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise GeneratorError("generator down")

    async def check_interactions(self, medications, lang="en"):
        await self._maybe_fail()
        return self.report

    async def recommend(self, user, medications, lang="en"):
        await self._maybe_fail()
        return "Walk for 20 minutes every morning."

    async def transcribe(self, audio, content_type="audio/ogg"):
        await self._maybe_fail()
        return self.transcript


class FakeTransport:
    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail = False

    async def send_message(self, to, body):
        if self.fail:
            raise TransportError("twilio down", status_code=503)
        self.sent.append((to, body))
        return "SM123"

    async def fetch_media(self, media_url):
        if self.fail:
            raise TransportError("media down")
        return b"OggS..."

    @property
    def last(self) -> str:
        return self.sent[-1][1]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemorySessionStore(timeout_minutes=30, clock=clock)


@pytest.fixture
def domain_store():
    return FakeDomainStore()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def service(store, domain_store, generator, transport, clock):
    return ConversationService(
        sessions=store,
        domain_store=domain_store,
        generator=generator,
        transport=transport,
        clock=clock,
        default_lang="en",
        store_timeout=1.0,
        generator_timeout=0.05,
        transport_timeout=1.0,
        timezone="Asia/Kolkata",
    )
