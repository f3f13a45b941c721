from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.models import AdherenceRecord, Medication


class MedicationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_active(self, user_id: UUID) -> list[Medication]:
        stmt = (
            select(Medication)
            .where(Medication.user_id == user_id, Medication.active.is_(True))
            .order_by(Medication.created_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create(
        self,
        user_id: UUID,
        name: str,
        dosage: str,
        frequency: str | None,
        schedule: list[str],
        instructions: str = "",
    ) -> Medication:
        med = Medication(
            user_id=user_id,
            name=name,
            dosage=dosage,
            frequency=frequency,
            schedule=list(schedule),
            instructions=instructions,
            active=True,
        )
        self.db.add(med)
        await self.db.commit()
        await self.db.refresh(med)
        return med

    async def record_adherence(
        self,
        user_id: UUID,
        medication_id: UUID,
        scheduled_time: str | None,
        taken: bool,
        recorded_at: datetime,
    ) -> AdherenceRecord:
        record = AdherenceRecord(
            user_id=user_id,
            medication_id=medication_id,
            scheduled_time=scheduled_time,
            taken=taken,
            recorded_at=recorded_at,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def adherence_counts(self, user_id: UUID, since: datetime) -> tuple[int, int]:
        """Return ``(taken, total)`` adherence records since ``since``."""
        stmt = select(AdherenceRecord.taken, func.count()).where(
            AdherenceRecord.user_id == user_id,
            AdherenceRecord.recorded_at >= since,
        ).group_by(AdherenceRecord.taken)
        result = await self.db.execute(stmt)
        counts = {bool(taken): n for taken, n in result.all()}
        taken = counts.get(True, 0)
        return taken, taken + counts.get(False, 0)
