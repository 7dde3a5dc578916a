"""Tests for application configuration."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from tierkeeper.config import Settings

BASE = {
    "discord_bot_token": "tok",
    "full_rank_role_id": 1002,
    "probation_role_id": 1001,
    "database_url": "sqlite+aiosqlite:///:memory:",
}


class TestRequiredSettings:
    def test_valid_minimal(self) -> None:
        settings = Settings(**BASE)
        assert settings.full_rank_role_id == 1002
        assert settings.guild_id is None
        assert settings.log_channel_id is None

    @pytest.mark.parametrize("missing", ["discord_bot_token", "full_rank_role_id", "probation_role_id"])
    def test_missing_required_fails(self, missing: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(missing.upper(), raising=False)
        values = {k: v for k, v in BASE.items() if k != missing}
        with pytest.raises(ValidationError):
            Settings(**values)

    def test_blank_token_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(**{**BASE, "discord_bot_token": "   "})

    def test_same_role_for_both_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(**{**BASE, "full_rank_role_id": 1001})

    def test_non_numeric_guild_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(**{**BASE, "discord_guild_id": "my-guild"})

    def test_optional_ids_parsed(self) -> None:
        settings = Settings(**{**BASE, "discord_guild_id": "987", "quiz_log_channel_id": "555"})
        assert settings.guild_id == 987
        assert settings.log_channel_id == 555

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DISCORD_BOT_TOKEN", "env-token")
        monkeypatch.setenv("FULL_RANK_ROLE_ID", "22")
        monkeypatch.setenv("PROBATION_ROLE_ID", "11")
        settings = Settings()
        assert settings.discord_bot_token == "env-token"
        assert settings.full_rank_role_id == 22
        assert settings.probation_role_id == 11


class TestQuizPolicy:
    def test_defaults(self) -> None:
        policy = Settings(**BASE).quiz_policy()
        assert policy.minimum_tenure == timedelta(days=14)
        assert policy.failure_cooldown == timedelta(hours=24)
        assert policy.question_count == 5
        assert policy.pass_threshold == 4
        assert policy.session_lifetime == timedelta(minutes=10)

    def test_threshold_above_count_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(**BASE, quiz_question_count=3, quiz_pass_threshold=4)

    def test_zero_threshold_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(**BASE, quiz_pass_threshold=0)

    def test_custom_durations(self) -> None:
        policy = Settings(
            **BASE,
            quiz_minimum_tenure_days=7,
            quiz_failure_cooldown_hours=12,
            quiz_session_timeout_seconds=300,
        ).quiz_policy()
        assert policy.minimum_tenure == timedelta(days=7)
        assert policy.failure_cooldown == timedelta(hours=12)
        assert policy.session_lifetime == timedelta(minutes=5)
