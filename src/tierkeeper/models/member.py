"""Per-member probation record."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class MemberRecord(BaseModel):
    """Durable probation state for one member.

    Exists exactly while the member holds the probationary role.
    """

    member_id: str
    tracked_since: datetime
    last_attempt: datetime | None = None
    last_score: int | None = Field(default=None, ge=0)
