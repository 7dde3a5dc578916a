"""Promotion quiz: per-member session state machine.

NoSession -> InProgress(index, score) -> Graded(pass | fail) -> removed.

Sessions live only in memory and expire a fixed time after creation.
Every answer carries the session nonce and the question index it
responds to. A submission whose nonce or index doesn't match the live
session is rejected without touching state, so a duplicated or replayed
interaction can never be scored twice, and a select menu left over from
a replaced session can never score against the new one.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, NamedTuple

from sqlalchemy.exc import SQLAlchemyError

from tierkeeper.core.eligibility import Eligibility, check_eligibility
from tierkeeper.core.roles import RankChange, RoleMutator, apply_rank_change
from tierkeeper.models.quiz import Question, QuizPolicy, QuizSession

if TYPE_CHECKING:
    from tierkeeper.core.questions import QuestionBank
    from tierkeeper.db.store import MemberRecordStore

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "trialquiz"
PROMOTION_REASON = "Passed promotion quiz"


# ---------------------------------------------------------------------------
# Session keys
# ---------------------------------------------------------------------------


class SessionKey(NamedTuple):
    """Decoded component custom ID: whose quiz, which session, which question."""

    member_id: str
    nonce: str
    index: int


def encode_session_key(member_id: str, nonce: str, index: int) -> str:
    """Build the component custom ID for question *index* of one quiz session."""
    return f"{SESSION_KEY_PREFIX}:{member_id}:{nonce}:{index}"


def parse_session_key(key: str) -> SessionKey | None:
    """Decode a session key, or return None if it is malformed."""
    parts = key.split(":")
    if len(parts) != 4 or parts[0] != SESSION_KEY_PREFIX:
        return None
    member_id, nonce, raw_index = parts[1], parts[2], parts[3]
    if not member_id or not nonce.isalnum() or not raw_index.isdigit():
        return None
    return SessionKey(member_id, nonce, int(raw_index))


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


class RejectReason(StrEnum):
    NOT_YOUR_SESSION = "not_your_session"
    EXPIRED = "expired"
    OUT_OF_SYNC = "out_of_sync"


@dataclass(frozen=True)
class QuizDenied:
    eligibility: Eligibility


@dataclass(frozen=True)
class QuizStarted:
    session: QuizSession
    question: Question

    @property
    def index(self) -> int:
        return self.session.index

    @property
    def total(self) -> int:
        return self.session.total


@dataclass(frozen=True)
class AnswerRejected:
    reason: RejectReason


@dataclass(frozen=True)
class NextQuestion:
    member_id: str
    nonce: str
    index: int
    total: int
    question: Question


@dataclass(frozen=True)
class QuizGraded:
    member_id: str
    passed: bool
    score: int
    total: int
    pass_threshold: int
    rank_change: RankChange | None = None


StartOutcome = QuizDenied | QuizStarted
AnswerOutcome = AnswerRejected | NextQuestion | QuizGraded


# ---------------------------------------------------------------------------
# Session store
# ---------------------------------------------------------------------------


class QuizSessionStore:
    """In-memory sessions keyed by member ID. At most one per member.

    Expiry is checked lazily on every read; ``purge_expired`` drops stale
    entries that are never read again.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, QuizSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, member_id: str, now: datetime) -> QuizSession | None:
        session = self._sessions.get(member_id)
        if session is None:
            return None
        if session.is_expired(now):
            self.discard(member_id, session)
            logger.info("quiz_session_expired member=%s", member_id)
            return None
        return session

    def put(self, session: QuizSession) -> QuizSession | None:
        """Store *session*, returning any session it replaced."""
        previous = self._sessions.get(session.member_id)
        self._sessions[session.member_id] = session
        return previous

    def discard(self, member_id: str, session: QuizSession | None = None) -> None:
        """Remove the member's session. With *session*, only if it is still current."""
        current = self._sessions.get(member_id)
        if current is None:
            return
        if session is not None and current is not session:
            return
        del self._sessions[member_id]

    def purge_expired(self, now: datetime | None = None) -> int:
        """Drop every expired session. Returns how many were removed."""
        now = now or datetime.now(UTC)
        stale = [s for s in self._sessions.values() if s.is_expired(now)]
        for session in stale:
            self.discard(session.member_id, session)
        if stale:
            logger.info("quiz_sessions_purged count=%d", len(stale))
        return len(stale)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class QuizEngine:
    """Runs promotion quizzes and applies the promotion on a pass."""

    def __init__(
        self,
        bank: QuestionBank,
        policy: QuizPolicy,
        *,
        probation_role_id: int,
        full_rank_role_id: int,
        sessions: QuizSessionStore | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if bank.draw_size != policy.question_count:
            raise ValueError(
                f"question bank draws {bank.draw_size}, policy expects {policy.question_count}"
            )
        self.bank = bank
        self.policy = policy
        self.probation_role_id = probation_role_id
        self.full_rank_role_id = full_rank_role_id
        self.sessions = sessions if sessions is not None else QuizSessionStore()
        self.rng = rng

    async def check(
        self,
        member_id: str,
        *,
        on_probation: bool,
        records: MemberRecordStore,
        now: datetime | None = None,
    ) -> Eligibility:
        """Run the promotion gate for *member_id* without starting anything."""
        record = await records.get(member_id) if on_probation else None
        return check_eligibility(record, on_probation=on_probation, policy=self.policy, now=now)

    async def start(
        self,
        member_id: str,
        guild_id: str,
        *,
        on_probation: bool,
        records: MemberRecordStore,
        now: datetime | None = None,
    ) -> StartOutcome:
        """Open a new session if the gate allows it.

        A fresh start replaces any live session for the member, so the
        "out of sync, restart" advice always gets them going again.
        """
        now = now or datetime.now(UTC)
        eligibility = await self.check(
            member_id, on_probation=on_probation, records=records, now=now
        )
        if not eligibility.eligible:
            logger.info("quiz_start_denied member=%s status=%s", member_id, eligibility.status)
            return QuizDenied(eligibility)

        session = QuizSession(
            member_id=member_id,
            guild_id=guild_id,
            questions=self.bank.draw(self.rng),
            created_at=now,
            expires_at=now + self.policy.session_lifetime,
        )
        replaced = self.sessions.put(session)
        logger.info("quiz_started member=%s replaced=%s", member_id, replaced is not None)
        return QuizStarted(session=session, question=session.current_question)

    async def answer(
        self,
        key: SessionKey,
        responder_id: str,
        choice: int,
        *,
        records: MemberRecordStore,
        roles: RoleMutator | None,
        now: datetime | None = None,
    ) -> AnswerOutcome:
        """Apply one answer to the member's session.

        Args:
            key: Decoded session key of the select menu that was used.
            responder_id: Who actually submitted the answer.
            choice: Ordinal of the chosen answer.
            records: Store for persisting the graded attempt.
            roles: Role mutator for the member, used only on a pass.
            now: Reference time (defaults to ``datetime.now(UTC)``).
        """
        member_id = key.member_id
        if responder_id != member_id:
            return AnswerRejected(RejectReason.NOT_YOUR_SESSION)

        now = now or datetime.now(UTC)
        session = self.sessions.get(member_id, now)
        if session is None:
            return AnswerRejected(RejectReason.EXPIRED)
        if key.nonce != session.nonce or key.index != session.index:
            logger.info(
                "quiz_answer_out_of_sync member=%s got=%s/%d want=%s/%d",
                member_id,
                key.nonce,
                key.index,
                session.nonce,
                session.index,
            )
            return AnswerRejected(RejectReason.OUT_OF_SYNC)

        if choice == session.current_question.correct:
            session.score += 1
        session.index += 1

        if session.index < session.total:
            return NextQuestion(
                member_id=member_id,
                nonce=session.nonce,
                index=session.index,
                total=session.total,
                question=session.current_question,
            )

        return await self._grade(session, records=records, roles=roles, now=now)

    async def _grade(
        self,
        session: QuizSession,
        *,
        records: MemberRecordStore,
        roles: RoleMutator | None,
        now: datetime,
    ) -> QuizGraded:
        self.sessions.discard(session.member_id, session)
        passed = session.score >= self.policy.pass_threshold
        logger.info(
            "quiz_graded member=%s score=%d/%d passed=%s",
            session.member_id,
            session.score,
            session.total,
            passed,
        )

        try:
            await records.record_attempt(session.member_id, now, session.score)
        except SQLAlchemyError:
            logger.exception("quiz_attempt_persist_failed member=%s", session.member_id)

        rank_change = None
        if passed:
            if roles is None:
                logger.warning("quiz_promotion_skipped_no_member member=%s", session.member_id)
            else:
                rank_change = await apply_rank_change(
                    roles,
                    remove=self.probation_role_id,
                    add=self.full_rank_role_id,
                    reason=PROMOTION_REASON,
                )

        return QuizGraded(
            member_id=session.member_id,
            passed=passed,
            score=session.score,
            total=session.total,
            pass_threshold=self.policy.pass_threshold,
            rank_change=rank_change,
        )
