"""ORM row for issued verification codes."""

from sqlalchemy import BigInteger, Boolean, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from email_verifier.db.base import Base


class VerificationCode(Base):
    """One issued code; timestamps are epoch milliseconds.

    The autoincrement `id` doubles as the insertion sequence used to order
    records that share a `created_at`.
    """

    __tablename__ = "verification_codes"
    __table_args__ = (Index("ix_verification_codes_email_code", "email", "code"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), index=True, nullable=False)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    expires_at: Mapped[int] = mapped_column(BigInteger, index=True, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
