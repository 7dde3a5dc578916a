"""SQLAlchemy ORM models for the Tierkeeper database.

One table: member_records, a row per member currently on probation.
Timestamps are stored as integer epoch milliseconds.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class MemberRecordRow(Base):
    __tablename__ = "member_records"

    member_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    tracked_since: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_attempt: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
