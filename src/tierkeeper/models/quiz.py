"""Promotion quiz models: questions, gate policy, and live sessions."""

from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from pydantic import BaseModel, Field, model_validator


class Question(BaseModel):
    """One multiple-choice question. ``correct`` indexes into ``choices``."""

    model_config = {"frozen": True}

    prompt: str = Field(min_length=1)
    choices: tuple[str, ...]
    correct: int = Field(ge=0)

    @model_validator(mode="after")
    def _correct_in_range(self) -> Question:
        if len(self.choices) < 2:
            raise ValueError(f"question {self.prompt!r} needs at least two choices")
        if self.correct >= len(self.choices):
            raise ValueError(
                f"question {self.prompt!r}: correct index {self.correct} "
                f"out of range for {len(self.choices)} choices"
            )
        return self


@dataclass(frozen=True)
class QuizPolicy:
    """Promotion-gate tunables."""

    minimum_tenure: timedelta = timedelta(days=14)
    failure_cooldown: timedelta = timedelta(hours=24)
    question_count: int = 5
    pass_threshold: int = 4
    session_lifetime: timedelta = timedelta(minutes=10)


@dataclass
class QuizSession:
    """A live quiz attempt, held in process memory only."""

    member_id: str
    guild_id: str
    questions: list[Question]
    created_at: datetime
    expires_at: datetime
    index: int = 0
    score: int = 0
    # Distinguishes this attempt from any earlier one in answer custom IDs.
    nonce: str = field(default_factory=lambda: secrets.token_hex(4))

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question:
        return self.questions[self.index]

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
