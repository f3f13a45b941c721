from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.models import HealthRecord


class HealthRecordRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: UUID,
        reading_type: str,
        value: str,
        unit: str,
        recorded_at: datetime,
    ) -> HealthRecord:
        record = HealthRecord(
            user_id=user_id,
            reading_type=reading_type,
            value=value,
            unit=unit,
            recorded_at=recorded_at,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def latest_by_type(self, user_id: UUID, since: datetime) -> dict[str, HealthRecord]:
        stmt = (
            select(HealthRecord)
            .where(HealthRecord.user_id == user_id, HealthRecord.recorded_at >= since)
            .order_by(HealthRecord.recorded_at.desc())
        )
        result = await self.db.execute(stmt)
        latest: dict[str, HealthRecord] = {}
        for record in result.scalars().all():
            latest.setdefault(record.reading_type, record)
        return latest
