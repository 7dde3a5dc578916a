"""Promotion gate: may a probationary member start the quiz right now?

Pure and read-only: the record is passed in, nothing is written. Two
clocks apply, checked in order:

1. Tenure: the member must have been tracked for ``minimum_tenure``.
2. Cooldown: after a failed attempt, ``failure_cooldown`` must pass.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from tierkeeper.models.member import MemberRecord
from tierkeeper.models.quiz import QuizPolicy


class EligibilityStatus(StrEnum):
    NOT_ON_PROBATION = "not_on_probation"
    NOT_TRACKED = "not_tracked"
    STILL_WAITING = "still_waiting"
    COOLING_DOWN = "cooling_down"
    ELIGIBLE = "eligible"


@dataclass(frozen=True)
class Eligibility:
    """Gate verdict. ``remaining`` is set for the two timed denials."""

    status: EligibilityStatus
    remaining: timedelta | None = None

    @property
    def eligible(self) -> bool:
        return self.status is EligibilityStatus.ELIGIBLE

    @property
    def remaining_hours(self) -> int:
        """Remaining wait rounded up to whole hours (0 when not waiting)."""
        if self.remaining is None:
            return 0
        return math.ceil(self.remaining / timedelta(hours=1))


def check_eligibility(
    record: MemberRecord | None,
    *,
    on_probation: bool,
    policy: QuizPolicy,
    now: datetime | None = None,
) -> Eligibility:
    """Decide whether a member may start the promotion quiz.

    Args:
        record: The member's probation record, or None if untracked.
        on_probation: Whether the member currently holds the probationary role.
        policy: Tenure, cooldown and pass-mark settings.
        now: Reference time (defaults to ``datetime.now(UTC)``).
    """
    if not on_probation:
        return Eligibility(EligibilityStatus.NOT_ON_PROBATION)
    if record is None:
        return Eligibility(EligibilityStatus.NOT_TRACKED)

    now = now or datetime.now(UTC)

    elapsed = now - record.tracked_since
    if elapsed < policy.minimum_tenure:
        return Eligibility(EligibilityStatus.STILL_WAITING, policy.minimum_tenure - elapsed)

    if (
        record.last_attempt is not None
        and record.last_score is not None
        and record.last_score < policy.pass_threshold
    ):
        since = now - record.last_attempt
        if since < policy.failure_cooldown:
            return Eligibility(EligibilityStatus.COOLING_DOWN, policy.failure_cooldown - since)

    return Eligibility(EligibilityStatus.ELIGIBLE)
