"""SQLAlchemy-backed implementation of the verification store."""

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from email_verifier.db.models import VerificationCode
from email_verifier.services.store import VerificationRecord


def _to_record(row: VerificationCode) -> VerificationRecord:
    return VerificationRecord(
        id=row.id,
        email=row.email,
        code=row.code,
        created_at=row.created_at,
        expires_at=row.expires_at,
        is_verified=row.is_verified,
    )


class SQLAlchemyVerificationStore:
    """Store records in the `verification_codes` table.

    Each write commits on its own so a failure part-way through a service
    operation leaves earlier writes in place.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _select(self, *criteria) -> list[VerificationRecord]:
        statement = select(VerificationCode).where(*criteria).execution_options(populate_existing=True)
        rows = await self.session.scalars(statement)
        return [_to_record(row) for row in rows]

    async def find_by_email(self, email: str) -> list[VerificationRecord]:
        return await self._select(VerificationCode.email == email)

    async def find_matching(self, email: str, code: str) -> list[VerificationRecord]:
        return await self._select(VerificationCode.email == email, VerificationCode.code == code)

    async def insert(self, record: VerificationRecord) -> VerificationRecord:
        row = VerificationCode(
            email=record.email,
            code=record.code,
            created_at=record.created_at,
            expires_at=record.expires_at,
            is_verified=record.is_verified,
        )
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        return _to_record(row)

    async def delete_all(self, email: str) -> int:
        result = await self.session.execute(delete(VerificationCode).where(VerificationCode.email == email))
        await self.session.commit()
        return result.rowcount or 0

    async def delete(self, record: VerificationRecord) -> None:
        await self.session.execute(delete(VerificationCode).where(VerificationCode.id == record.id))
        await self.session.commit()

    async def update(self, record: VerificationRecord) -> None:
        await self.session.execute(
            update(VerificationCode)
            .where(VerificationCode.id == record.id)
            .values(is_verified=record.is_verified)
        )
        await self.session.commit()

    async def find_expired_before(self, timestamp: int) -> list[VerificationRecord]:
        return await self._select(VerificationCode.expires_at < timestamp)
