"""Member record store: one short-lived session per operation.

The core engines call this instead of holding a Repository so that no
database transaction stays open across a Discord API call.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncEngine

from tierkeeper.db.engine import get_session
from tierkeeper.db.repository import Repository
from tierkeeper.models.member import MemberRecord

logger = logging.getLogger(__name__)


class MemberRecordStore:
    """Durable per-member probation state."""

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine

    @asynccontextmanager
    async def _repo(self) -> AsyncGenerator[Repository, None]:
        async with get_session(self.engine) as session:
            yield Repository(session)

    async def get(self, member_id: str) -> MemberRecord | None:
        async with self._repo() as repo:
            return await repo.get_member_record(member_id)

    async def create_if_absent(self, member_id: str, tracked_since: datetime) -> bool:
        async with self._repo() as repo:
            created = await repo.create_member_record(member_id, tracked_since)
        if created:
            logger.info("member_record_created member=%s", member_id)
        return created

    async def delete(self, member_id: str) -> bool:
        async with self._repo() as repo:
            deleted = await repo.delete_member_record(member_id)
        if deleted:
            logger.info("member_record_deleted member=%s", member_id)
        return deleted

    async def record_attempt(self, member_id: str, attempted_at: datetime, score: int) -> bool:
        async with self._repo() as repo:
            updated = await repo.record_quiz_attempt(member_id, attempted_at, score)
        if not updated:
            logger.warning("member_record_missing_on_attempt member=%s", member_id)
        return updated

    async def count(self) -> int:
        async with self._repo() as repo:
            return await repo.count_member_records()
