"""Repository pattern for database access.

Wraps SQLAlchemy async sessions. Converts between epoch-millisecond
columns and timezone-aware ``datetime`` values so callers never see
raw integers.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tierkeeper.db.models import MemberRecordRow
from tierkeeper.models.member import MemberRecord


def to_epoch_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=UTC)


def _to_record(row: MemberRecordRow) -> MemberRecord:
    return MemberRecord(
        member_id=row.member_id,
        tracked_since=from_epoch_ms(row.tracked_since),
        last_attempt=from_epoch_ms(row.last_attempt) if row.last_attempt is not None else None,
        last_score=row.last_score,
    )


class Repository:
    """Async repository for member record operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_member_record(self, member_id: str) -> MemberRecord | None:
        row = await self.session.get(MemberRecordRow, member_id)
        return _to_record(row) if row is not None else None

    async def create_member_record(self, member_id: str, tracked_since: datetime) -> bool:
        """Insert a record unless one exists. Returns True if a row was created.

        Uses INSERT OR IGNORE so two concurrent grants cannot both insert.
        """
        stmt = (
            sqlite_insert(MemberRecordRow)
            .values(member_id=member_id, tracked_since=to_epoch_ms(tracked_since))
            .on_conflict_do_nothing(index_elements=["member_id"])
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0  # type: ignore[union-attr]

    async def delete_member_record(self, member_id: str) -> bool:
        """Delete the record if present. Returns True if a row was removed."""
        result = await self.session.execute(
            delete(MemberRecordRow).where(MemberRecordRow.member_id == member_id)
        )
        return result.rowcount > 0  # type: ignore[union-attr]

    async def record_quiz_attempt(self, member_id: str, attempted_at: datetime, score: int) -> bool:
        """Store the latest attempt. Returns False when no record exists."""
        result = await self.session.execute(
            update(MemberRecordRow)
            .where(MemberRecordRow.member_id == member_id)
            .values(last_attempt=to_epoch_ms(attempted_at), last_score=score)
        )
        return result.rowcount > 0  # type: ignore[union-attr]

    async def count_member_records(self) -> int:
        result = await self.session.execute(select(func.count(MemberRecordRow.member_id)))
        return result.scalar_one()

