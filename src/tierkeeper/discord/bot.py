"""Discord bot for Tierkeeper.

Runs alongside FastAPI using the same event loop. Listens for member
role changes to keep rank roles in sync, and serves the promotion quiz
through ``/trialquiz`` with select-menu answers.

discord.py dispatches each gateway event as its own task, so a slow role
call for one member never holds up another.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

import discord
from discord import Intents
from discord.ext import commands

from tierkeeper.core.quiz import (
    AnswerRejected,
    NextQuestion,
    QuizDenied,
    QuizGraded,
    RejectReason,
    parse_session_key,
)
from tierkeeper.discord.embeds import (
    GENERIC_ERROR,
    audit_result,
    audit_start,
    build_question_embed,
    build_result_embed,
    build_status_embed,
    eligibility_message,
    reject_message,
)
from tierkeeper.discord.helpers import (
    DiscordRoleMutator,
    has_role,
    held_roles_of,
    post_audit,
)
from tierkeeper.discord.views import QuizQuestionView

if TYPE_CHECKING:
    from tierkeeper.config import Settings
    from tierkeeper.core.quiz import QuizEngine
    from tierkeeper.core.reconcile import ReconciliationEngine
    from tierkeeper.db.store import MemberRecordStore
    from tierkeeper.models.quiz import Question

logger = logging.getLogger(__name__)

# Grace period after session expiry during which a late click still gets
# the "expired" reply instead of a failed interaction.
VIEW_GRACE_SECONDS = 60


class TierkeeperBot(commands.Bot):
    """The Tierkeeper Discord bot.

    Owns no domain state itself: reconciliation and quiz logic live in the
    engines passed in, and this class only translates Discord events.
    """

    def __init__(
        self,
        settings: Settings,
        reconciler: ReconciliationEngine,
        quiz: QuizEngine,
        records: MemberRecordStore,
    ) -> None:
        intents = Intents.default()
        intents.members = True  # Required for on_member_update and the startup sweep

        super().__init__(
            command_prefix="!",
            intents=intents,
            description="Tierkeeper -- staff rank sync and Trial Moderator promotion quiz.",
        )
        self.settings = settings
        self.reconciler = reconciler
        self.quiz = quiz
        self.records = records
        self._sweep_done: bool = False
        self._setup_commands()

    def _setup_commands(self) -> None:
        """Register slash commands on the bot's command tree."""

        @self.tree.command(
            name="trialquiz",
            description="Take the Trial Moderator promotion quiz",
        )
        async def trialquiz_command(interaction: discord.Interaction) -> None:
            await self._handle_trialquiz(interaction)

        @self.tree.command(
            name="trialstatus",
            description="Check when you can take the Trial Moderator quiz",
        )
        async def trialstatus_command(interaction: discord.Interaction) -> None:
            await self._handle_trialstatus(interaction)

    async def setup_hook(self) -> None:
        """Called when the bot is ready to start. Syncs slash commands."""
        guild_id = self.settings.guild_id
        if guild_id:
            guild = discord.Object(id=guild_id)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
            logger.info("discord_commands_synced guild_id=%s", guild_id)
        else:
            await self.tree.sync()
            logger.info("discord_commands_synced globally")

    async def on_ready(self) -> None:
        """Called when the bot has connected to Discord.

        on_ready fires on every reconnect, so the rank sweep runs only once.
        """
        user = self.user
        logger.info("discord_bot_ready user=%s", user.name if user else "unknown")
        if not self._sweep_done:
            self._sweep_done = True
            for guild in self._target_guilds():
                await self._sweep_guild(guild)

    def _target_guilds(self) -> list[discord.Guild]:
        guild_id = self.settings.guild_id
        if guild_id is None:
            return list(self.guilds)
        guild = self.get_guild(guild_id)
        return [guild] if guild else []

    async def _sweep_guild(self, guild: discord.Guild) -> int:
        """Reconcile every member of *guild* once. Returns members changed."""
        changed = 0
        for member in guild.members:
            if member.bot:
                continue
            try:
                change = await self.reconciler.reconcile_member(
                    held_roles_of(member), DiscordRoleMutator(member)
                )
            except Exception:  # Last-resort handler: one bad member must not stop the sweep
                logger.exception("rank_sweep_member_failed member=%s", member.id)
                continue
            if change is not None:
                changed += 1
        logger.info("rank_sweep_complete guild=%s changed=%d", guild.id, changed)
        return changed

    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        """Run tier reconciliation and probation tracking for one role change."""
        if after.bot:
            return
        try:
            await self.reconciler.handle_role_change(
                held_roles_of(before),
                held_roles_of(after),
                DiscordRoleMutator(after),
                self.records,
            )
        except Exception:  # Last-resort handler: a malformed event must not kill the bot
            logger.exception("member_update_error member=%s", after.id)

    # ------------------------------------------------------------------
    # Quiz
    # ------------------------------------------------------------------

    def _question_view(
        self, member_id: str, nonce: str, question: Question, index: int, total: int
    ) -> QuizQuestionView:
        return QuizQuestionView(
            member_id=member_id,
            nonce=nonce,
            question=question,
            index=index,
            total=total,
            on_answer=self._handle_quiz_answer,
            timeout=self.quiz.policy.session_lifetime.total_seconds() + VIEW_GRACE_SECONDS,
        )

    async def _handle_trialstatus(self, interaction: discord.Interaction) -> None:
        member = interaction.user
        if not isinstance(member, discord.Member):
            await interaction.response.send_message(
                "Use this command inside the server.", ephemeral=True
            )
            return
        try:
            eligibility = await self.quiz.check(
                str(member.id),
                on_probation=has_role(member, self.settings.probation_role_id),
                records=self.records,
            )
            embed = build_status_embed(eligibility, self.quiz.policy)
            await interaction.response.send_message(embed=embed, ephemeral=True)
        except Exception:  # Last-resort handler: reply instead of leaving the interaction hanging
            logger.exception("trialstatus_error member=%s", member.id)
            await self._reply_generic_error(interaction)

    async def _handle_trialquiz(self, interaction: discord.Interaction) -> None:
        member = interaction.user
        if not isinstance(member, discord.Member) or interaction.guild is None:
            await interaction.response.send_message(
                "Use this command inside the server.", ephemeral=True
            )
            return

        member_id = str(member.id)
        try:
            outcome = await self.quiz.start(
                member_id,
                str(interaction.guild.id),
                on_probation=has_role(member, self.settings.probation_role_id),
                records=self.records,
            )
            if isinstance(outcome, QuizDenied):
                await interaction.response.send_message(
                    eligibility_message(outcome.eligibility, self.quiz.policy),
                    ephemeral=True,
                )
                return

            await interaction.response.send_message(
                embed=build_question_embed(outcome.question, outcome.index, outcome.total),
                view=self._question_view(
                    member_id,
                    outcome.session.nonce,
                    outcome.question,
                    outcome.index,
                    outcome.total,
                ),
                ephemeral=True,
            )
            await post_audit(
                interaction.guild, self.settings.log_channel_id, audit_start(member_id)
            )
        except Exception:  # Last-resort handler: reply instead of leaving the interaction hanging
            logger.exception("trialquiz_error member=%s", member_id)
            await self._reply_generic_error(interaction)

    async def _handle_quiz_answer(
        self,
        interaction: discord.Interaction,
        custom_id: str,
        values: list[str],
    ) -> None:
        """Apply one select-menu answer and render whatever comes next."""
        try:
            key = parse_session_key(custom_id)
            if key is None or not values or not values[0].isdigit():
                await interaction.response.send_message(
                    reject_message(RejectReason.OUT_OF_SYNC), ephemeral=True
                )
                return
            user = interaction.user
            roles = DiscordRoleMutator(user) if isinstance(user, discord.Member) else None

            outcome = await self.quiz.answer(
                key,
                str(user.id),
                int(values[0]),
                records=self.records,
                roles=roles,
            )

            if isinstance(outcome, AnswerRejected):
                await interaction.response.send_message(
                    reject_message(outcome.reason), ephemeral=True
                )
            elif isinstance(outcome, NextQuestion):
                await interaction.response.edit_message(
                    embed=build_question_embed(outcome.question, outcome.index, outcome.total),
                    view=self._question_view(
                        key.member_id,
                        outcome.nonce,
                        outcome.question,
                        outcome.index,
                        outcome.total,
                    ),
                )
            elif isinstance(outcome, QuizGraded):
                await self._finish_quiz(interaction, outcome)
        except Exception:  # Last-resort handler: reply instead of leaving the interaction hanging
            logger.exception("quiz_answer_error custom_id=%s", custom_id)
            await self._reply_generic_error(interaction)

    async def _finish_quiz(self, interaction: discord.Interaction, result: QuizGraded) -> None:
        full_rank_name = self._full_rank_name(interaction.guild)
        cooldown_hours = self.quiz.policy.failure_cooldown.total_seconds() / 3600
        await interaction.response.edit_message(
            embed=build_result_embed(result, full_rank_name, cooldown_hours),
            view=None,
        )
        await post_audit(
            interaction.guild,
            self.settings.log_channel_id,
            audit_result(result, full_rank_name),
        )

    def _full_rank_name(self, guild: discord.Guild | None) -> str:
        role = guild.get_role(self.settings.full_rank_role_id) if guild else None
        return role.name if role else "Moderator"

    async def _reply_generic_error(self, interaction: discord.Interaction) -> None:
        with contextlib.suppress(discord.HTTPException):
            if interaction.response.is_done():
                await interaction.followup.send(GENERIC_ERROR, ephemeral=True)
            else:
                await interaction.response.send_message(GENERIC_ERROR, ephemeral=True)


def is_discord_enabled(settings: Settings) -> bool:
    """Check whether the Discord bot should be started."""
    return bool(settings.discord_enabled and settings.discord_bot_token)


async def start_discord_bot(
    settings: Settings,
    reconciler: ReconciliationEngine,
    quiz: QuizEngine,
    records: MemberRecordStore,
) -> TierkeeperBot:
    """Create and start the Discord bot in the current event loop.

    Returns the bot instance so the caller can stop it during shutdown.
    The bot runs as a background task; this function returns immediately
    after starting it.
    """
    bot = TierkeeperBot(settings=settings, reconciler=reconciler, quiz=quiz, records=records)

    async def _run_bot() -> None:
        try:
            await bot.start(settings.discord_bot_token)
        except asyncio.CancelledError:
            logger.info("discord_bot_cancelled")
        except Exception:  # Last-resort handler: bot.start can raise connection and auth errors
            logger.exception("discord_bot_error")
        finally:
            if not bot.is_closed():
                await bot.close()

    asyncio.create_task(_run_bot(), name="discord-bot")
    logger.info("discord_bot_started")
    return bot
