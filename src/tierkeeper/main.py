"""FastAPI application factory.

The web app is a thin host: its lifespan opens the database, builds the
reconciliation and quiz engines, starts the Discord bot, and schedules
the sweep that drops expired quiz sessions.
"""

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request

from tierkeeper.config import Settings
from tierkeeper.core.questions import build_question_bank
from tierkeeper.core.quiz import QuizEngine
from tierkeeper.core.reconcile import ReconciliationEngine
from tierkeeper.core.tiers import get_tier_table
from tierkeeper.db.engine import create_engine, create_tables
from tierkeeper.db.store import MemberRecordStore

logger = logging.getLogger(__name__)

SESSION_SWEEP_SECONDS = 60


@dataclass
class Services:
    """Engines shared by the bot and the web app."""

    reconciler: ReconciliationEngine
    quiz: QuizEngine
    records: MemberRecordStore


def build_services(settings: Settings, records: MemberRecordStore) -> Services:
    """Build the core engines from settings.

    Raises TierTableError or QuestionBankError on bad data files, which
    aborts startup.
    """
    table = get_tier_table(settings.tier_table_path)
    bank = build_question_bank(settings.quiz_questions_path, settings.quiz_question_count)
    reconciler = ReconciliationEngine(table, probation_role_id=settings.probation_role_id)
    quiz = QuizEngine(
        bank,
        settings.quiz_policy(),
        probation_role_id=settings.probation_role_id,
        full_rank_role_id=settings.full_rank_role_id,
    )
    logger.info(
        "services_built tiers=%d questions=%d draw=%d",
        len(table.buckets),
        len(bank),
        bank.draw_size,
    )
    return Services(reconciler=reconciler, quiz=quiz, records=records)


def _session_sweep(services: Services) -> Callable[[], Awaitable[None]]:
    """Build the scheduler job that drops expired quiz sessions.

    The job is a coroutine so it runs on the event loop thread, the only
    thread that touches the session store.
    """

    async def purge_quiz_sessions() -> None:
        services.quiz.sessions.purge_expired()

    return purge_quiz_sessions


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: create engine/tables, build services, start bot and sweep job."""
    settings: Settings = app.state.settings
    engine = create_engine(settings.database_url)
    discord_bot = None
    try:
        await create_tables(engine)

        services = build_services(settings, MemberRecordStore(engine))
        app.state.engine = engine
        app.state.services = services

        # Start Discord bot if configured
        from tierkeeper.discord.bot import is_discord_enabled

        if is_discord_enabled(settings):
            from tierkeeper.discord.bot import start_discord_bot

            discord_bot = await start_discord_bot(
                settings, services.reconciler, services.quiz, services.records
            )
            logger.info("discord_bot_integration_started")
        else:
            logger.info("discord_bot_integration_disabled")
        app.state.discord_bot = discord_bot

        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        from apscheduler.triggers.interval import IntervalTrigger

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            _session_sweep(services),
            trigger=IntervalTrigger(seconds=SESSION_SWEEP_SECONDS),
            id="purge_quiz_sessions",
            name="Drop expired quiz sessions",
            replace_existing=True,
        )
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info("scheduler_started sweep_seconds=%s", SESSION_SWEEP_SECONDS)
    except Exception:  # Re-raise pattern: release the bot and engine before startup fails
        logger.exception("startup_failed")
        if discord_bot is not None:
            await discord_bot.close()
        await engine.dispose()
        raise

    yield

    scheduler.shutdown(wait=False)
    logger.info("scheduler_stopped")

    if discord_bot is not None:
        await discord_bot.close()
        logger.info("discord_bot_integration_stopped")

    await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the Tierkeeper FastAPI application."""
    settings = settings or Settings()

    logging.basicConfig(
        level=getattr(logging, settings.tierkeeper_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Tierkeeper",
        version="0.1.0",
        description="Staff rank sync and Trial Moderator promotion quiz for Discord",
        docs_url=None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.get("/health")
    async def health(request: Request) -> dict[str, object]:
        services: Services = request.app.state.services
        bot = request.app.state.discord_bot
        return {
            "status": "ok",
            "discord": "connected" if bot is not None and bot.is_ready() else "offline",
            "active_quiz_sessions": len(services.quiz.sessions),
            "tracked_members": await services.records.count(),
        }

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import os

    import uvicorn

    uvicorn.run(
        create_app(),
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", "8000")),
    )
