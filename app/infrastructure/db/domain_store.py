# app/infrastructure/db/domain_store.py
"""
Persistent user / medication / health store used by the conversation engine.

Each call opens its own ``AsyncSession`` from the factory and maps ORM rows to
the read models in ``app.domain.models.health``. SQLAlchemy failures surface
as ``DomainStoreError`` so the coordinator can answer with a fallback reply.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DomainStoreError
from app.core.logging_config import mask_phone
from app.domain.models.health import (
    HealthReadingInfo,
    MedicationInfo,
    UserProfile,
    WeeklySummary,
)
from app.infrastructure.db.models import HealthRecord, Medication, User
from app.infrastructure.db.repositories import (
    HealthRecordRepository,
    MedicationRepository,
    UserRepository,
)

REPORT_WINDOW = timedelta(days=7)


def _user_profile(row: User) -> UserProfile:
    return UserProfile(
        id=str(row.id),
        phone_number=row.phone_number,
        name=row.name,
        age=row.age,
        language=row.language or "en",
        conditions=list(row.conditions or []),
    )


def _medication_info(row: Medication) -> MedicationInfo:
    return MedicationInfo(
        id=str(row.id),
        user_id=str(row.user_id),
        name=row.name,
        dosage=row.dosage,
        frequency=row.frequency,
        schedule=list(row.schedule or []),
        instructions=row.instructions or "",
        active=bool(row.active),
    )


def _reading_info(row: HealthRecord) -> HealthReadingInfo:
    return HealthReadingInfo(
        id=str(row.id),
        user_id=str(row.user_id),
        reading_type=row.reading_type,
        value=row.value,
        unit=row.unit or "",
        recorded_at=row.recorded_at,
    )


class SqlDomainStore:
    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def find_user_by_phone(self, phone_number: str) -> Optional[UserProfile]:
        try:
            async with self._session_factory() as db:
                row = await UserRepository(db).get_by_phone(phone_number)
        except SQLAlchemyError as e:
            raise DomainStoreError(f"user lookup failed: {e}") from e
        return _user_profile(row) if row else None

    async def create_user(
        self,
        phone_number: str,
        name: Optional[str],
        age: Optional[int],
        language: str,
        conditions: list[str],
    ) -> UserProfile:
        try:
            async with self._session_factory() as db:
                row = await UserRepository(db).create(
                    phone_number=phone_number,
                    name=name,
                    age=age,
                    language=language,
                    conditions=conditions,
                )
        except SQLAlchemyError as e:
            raise DomainStoreError(f"user creation failed: {e}") from e
        logger.info("Created user {} for {}", row.id, mask_phone(phone_number))
        return _user_profile(row)

    async def update_user_language(self, user_id: str, language: str) -> None:
        try:
            async with self._session_factory() as db:
                await UserRepository(db).update_language(UUID(user_id), language)
        except SQLAlchemyError as e:
            raise DomainStoreError(f"language update failed: {e}") from e

    async def add_caregiver(
        self,
        user_id: str,
        caregiver_phone: str,
        caregiver_name: Optional[str] = None,
        relationship_label: Optional[str] = None,
    ) -> None:
        try:
            async with self._session_factory() as db:
                await UserRepository(db).add_caregiver(
                    UUID(user_id), caregiver_phone, caregiver_name, relationship_label
                )
        except SQLAlchemyError as e:
            raise DomainStoreError(f"caregiver link failed: {e}") from e

    async def find_cared_for_user(self, caregiver_phone: str, target: str) -> Optional[UserProfile]:
        try:
            async with self._session_factory() as db:
                row = await UserRepository(db).find_cared_for(caregiver_phone, target)
        except SQLAlchemyError as e:
            raise DomainStoreError(f"caregiver lookup failed: {e}") from e
        return _user_profile(row) if row else None

    async def list_medications(self, user_id: str) -> list[MedicationInfo]:
        try:
            async with self._session_factory() as db:
                rows = await MedicationRepository(db).list_active(UUID(user_id))
        except SQLAlchemyError as e:
            raise DomainStoreError(f"medication list failed: {e}") from e
        return [_medication_info(r) for r in rows]

    async def create_medication(
        self,
        user_id: str,
        name: str,
        dosage: str,
        frequency: Optional[str],
        schedule: list[str],
    ) -> MedicationInfo:
        try:
            async with self._session_factory() as db:
                row = await MedicationRepository(db).create(
                    UUID(user_id), name, dosage, frequency, schedule
                )
        except SQLAlchemyError as e:
            raise DomainStoreError(f"medication creation failed: {e}") from e
        return _medication_info(row)

    async def record_adherence(
        self,
        user_id: str,
        medication_id: str,
        scheduled_time: Optional[str],
        recorded_at: datetime,
        taken: bool = True,
    ) -> None:
        try:
            async with self._session_factory() as db:
                await MedicationRepository(db).record_adherence(
                    UUID(user_id), UUID(medication_id), scheduled_time, taken, recorded_at
                )
        except SQLAlchemyError as e:
            raise DomainStoreError(f"adherence record failed: {e}") from e

    async def record_health_reading(
        self,
        user_id: str,
        reading_type: str,
        value: str,
        unit: str,
        recorded_at: datetime,
    ) -> HealthReadingInfo:
        try:
            async with self._session_factory() as db:
                row = await HealthRecordRepository(db).create(
                    UUID(user_id), reading_type, value, unit, recorded_at
                )
        except SQLAlchemyError as e:
            raise DomainStoreError(f"health record failed: {e}") from e
        return _reading_info(row)

    async def weekly_summary(self, user_id: str, now: datetime) -> WeeklySummary:
        since = now - REPORT_WINDOW
        try:
            async with self._session_factory() as db:
                taken, total = await MedicationRepository(db).adherence_counts(UUID(user_id), since)
                latest = await HealthRecordRepository(db).latest_by_type(UUID(user_id), since)
        except SQLAlchemyError as e:
            raise DomainStoreError(f"weekly summary failed: {e}") from e

        return WeeklySummary(
            adherence_percentage=round(taken * 100 / total) if total else 0,
            doses_recorded=taken,
            latest_readings={
                kind: f"{record.value} {record.unit or ''}".strip()
                for kind, record in latest.items()
            },
        )
