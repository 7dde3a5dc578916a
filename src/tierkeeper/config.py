"""Application settings via pydantic-settings. Loads from environment and .env file."""

from __future__ import annotations

from datetime import timedelta

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

from tierkeeper.models.quiz import QuizPolicy


class Settings(BaseSettings):
    """Tierkeeper configuration.

    Discord token and both role IDs have no default: a missing value fails
    validation and the process never starts.
    """

    # Discord
    discord_bot_token: str
    discord_guild_id: str = ""
    discord_enabled: bool = True

    # Roles
    full_rank_role_id: int
    probation_role_id: int

    # Audit channel for quiz start/pass/fail notices (disabled when empty)
    quiz_log_channel_id: str = ""

    # Database
    database_url: str = "sqlite+aiosqlite:///tierkeeper.db"

    # External data files (built-in defaults when empty)
    tier_table_path: str = ""
    quiz_questions_path: str = ""

    # Promotion gate
    quiz_minimum_tenure_days: float = 14
    quiz_failure_cooldown_hours: float = 24
    quiz_question_count: int = 5
    quiz_pass_threshold: int = 4
    quiz_session_timeout_seconds: int = 600

    # Logging
    tierkeeper_log_level: str = "INFO"

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    @field_validator("discord_bot_token")
    @classmethod
    def _require_token(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("DISCORD_BOT_TOKEN must not be empty")
        return value

    @field_validator("discord_guild_id", "quiz_log_channel_id")
    @classmethod
    def _numeric_or_empty(cls, value: str) -> str:
        value = value.strip()
        if value and not value.isdigit():
            raise ValueError(f"expected a numeric Discord ID, got {value!r}")
        return value

    @model_validator(mode="after")
    def _check_quiz_shape(self) -> Settings:
        """Reject a pass mark the quiz can never reach."""
        if self.quiz_question_count < 1:
            raise ValueError("QUIZ_QUESTION_COUNT must be at least 1")
        if not 0 < self.quiz_pass_threshold <= self.quiz_question_count:
            raise ValueError(
                "QUIZ_PASS_THRESHOLD must be between 1 and QUIZ_QUESTION_COUNT "
                f"({self.quiz_question_count})"
            )
        if self.full_rank_role_id == self.probation_role_id:
            raise ValueError("FULL_RANK_ROLE_ID and PROBATION_ROLE_ID must differ")
        return self

    @property
    def guild_id(self) -> int | None:
        return int(self.discord_guild_id) if self.discord_guild_id else None

    @property
    def log_channel_id(self) -> int | None:
        return int(self.quiz_log_channel_id) if self.quiz_log_channel_id else None

    def quiz_policy(self) -> QuizPolicy:
        """Bundle the promotion-gate tunables for the core engine."""
        return QuizPolicy(
            minimum_tenure=timedelta(days=self.quiz_minimum_tenure_days),
            failure_cooldown=timedelta(hours=self.quiz_failure_cooldown_hours),
            question_count=self.quiz_question_count,
            pass_threshold=self.quiz_pass_threshold,
            session_lifetime=timedelta(seconds=self.quiz_session_timeout_seconds),
        )
