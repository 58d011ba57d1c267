from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from ...models import Verification


class VerificationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, verification_id: str) -> Verification | None:
        stmt = select(Verification).where(Verification.id == verification_id)
        return (await self.db.execute(stmt)).scalars().first()

    async def list_for_email(self, email: str, limit: int = 20) -> list[Verification]:
        stmt = (
            select(Verification)
            .where(Verification.email == email)
            .order_by(Verification.created_at.desc())
            .limit(limit)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def create(self, data: dict) -> Verification:
        obj = Verification(**data)
        self.db.add(obj)
        await self.db.flush()
        return obj
