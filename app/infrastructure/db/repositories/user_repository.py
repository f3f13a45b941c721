from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.db.models import CaregiverLink, User


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: UUID) -> User | None:
        stmt = select(User).where(User.id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_phone(self, phone_number: str) -> User | None:
        stmt = select(User).where(User.phone_number == phone_number)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        phone_number: str,
        name: str | None,
        age: int | None,
        language: str,
        conditions: list[str],
    ) -> User:
        new_user = User(
            phone_number=phone_number,
            name=name,
            age=age,
            language=language,
            conditions=list(conditions),
        )
        self.db.add(new_user)
        await self.db.commit()
        await self.db.refresh(new_user)
        return new_user

    async def update_language(self, user_id: UUID, language: str) -> User | None:
        user = await self.get_by_id(user_id)
        if user is None:
            return None
        user.language = language
        user.updated_at = func.now()
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def add_caregiver(
        self,
        user_id: UUID,
        caregiver_phone: str,
        caregiver_name: str | None = None,
        relationship_label: str | None = None,
    ) -> CaregiverLink:
        link = CaregiverLink(
            user_id=user_id,
            caregiver_phone=caregiver_phone,
            caregiver_name=caregiver_name,
            relationship_label=relationship_label,
        )
        self.db.add(link)
        await self.db.commit()
        await self.db.refresh(link)
        return link

    async def find_cared_for(self, caregiver_phone: str, target: str) -> User | None:
        """
        Users that list ``caregiver_phone`` as a caregiver, matched on the
        user's name, the relationship label or the user's phone number.
        """
        needle = target.strip().lower()
        stmt = (
            select(User)
            .join(CaregiverLink, CaregiverLink.user_id == User.id)
            .where(
                CaregiverLink.caregiver_phone == caregiver_phone,
                or_(
                    func.lower(User.name) == needle,
                    func.lower(CaregiverLink.relationship_label) == needle,
                    User.phone_number == target.strip(),
                ),
            )
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()
