"""Tests for the app factory, service wiring and the health endpoint."""

import asyncio
import threading
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from tierkeeper.config import Settings
from tierkeeper.core.errors import QuestionBankError, TierTableError
from tierkeeper.core.quiz import QuizSessionStore
from tierkeeper.core.tiers import DEFAULT_TIER_TABLE
from tierkeeper.main import Services, build_services, create_app, lifespan


class TestBuildServices:
    def test_defaults(self, settings: Settings, records) -> None:
        services = build_services(settings, records)
        assert services.reconciler.table == DEFAULT_TIER_TABLE
        assert services.reconciler.probation_role_id == settings.probation_role_id
        assert services.quiz.policy == settings.quiz_policy()
        assert services.quiz.full_rank_role_id == settings.full_rank_role_id
        assert services.records is records

    def test_bad_tier_file_aborts(self, settings: Settings, records, tmp_path) -> None:
        path = tmp_path / "tiers.yaml"
        path.write_text("tiers: []\n")
        with pytest.raises(TierTableError):
            build_services(settings.model_copy(update={"tier_table_path": str(path)}), records)

    def test_oversized_draw_aborts(self, settings: Settings, records) -> None:
        with pytest.raises(QuestionBankError):
            build_services(
                settings.model_copy(update={"quiz_question_count": 50, "quiz_pass_threshold": 40}),
                records,
            )


class TestHealth:
    async def test_health_reports_state(self, settings: Settings, records) -> None:
        app = create_app(settings)
        app.state.services = build_services(settings, records)
        app.state.discord_bot = None
        await records.create_if_absent("7", datetime.now(UTC))

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {
            "status": "ok",
            "discord": "offline",
            "active_quiz_sessions": 0,
            "tracked_members": 1,
        }

    async def test_health_connected_bot(self, settings: Settings, records) -> None:
        app = create_app(settings)
        app.state.services = build_services(settings, records)
        bot = MagicMock()
        bot.is_ready.return_value = True
        app.state.discord_bot = bot

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/health")
        assert resp.json()["discord"] == "connected"


class TestLifespan:
    async def test_startup_and_shutdown_without_discord(self, settings: Settings) -> None:
        app = create_app(settings)
        async with lifespan(app):
            assert isinstance(app.state.services, Services)
            assert app.state.discord_bot is None
            job = app.state.scheduler.get_job("purge_quiz_sessions")
            assert job is not None
            assert await app.state.services.records.count() == 0
        assert not app.state.scheduler.running

    async def test_sweep_job_runs_on_event_loop_thread(
        self, settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        threads: list[int] = []

        def record_thread(self, now=None) -> int:
            threads.append(threading.get_ident())
            return 0

        monkeypatch.setattr(QuizSessionStore, "purge_expired", record_thread)
        monkeypatch.setattr("tierkeeper.main.SESSION_SWEEP_SECONDS", 0.05)
        app = create_app(settings)
        async with lifespan(app):
            job = app.state.scheduler.get_job("purge_quiz_sessions")
            assert asyncio.iscoroutinefunction(job.func)
            for _ in range(40):
                if threads:
                    break
                await asyncio.sleep(0.05)
        assert threads
        assert set(threads) == {threading.get_ident()}

    async def test_startup_failure_disposes_engine(
        self, settings: Settings, monkeypatch: pytest.MonkeyPatch, tmp_path
    ) -> None:
        engine = MagicMock()
        engine.dispose = AsyncMock()
        monkeypatch.setattr("tierkeeper.main.create_engine", lambda url: engine)
        monkeypatch.setattr("tierkeeper.main.create_tables", AsyncMock())
        broken = settings.model_copy(update={"tier_table_path": str(tmp_path / "missing.yaml")})
        app = create_app(broken)
        with pytest.raises(TierTableError):
            async with lifespan(app):
                pass
        engine.dispose.assert_awaited_once()
