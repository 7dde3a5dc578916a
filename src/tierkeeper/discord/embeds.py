"""Discord embed builders and user-facing text for the promotion quiz.

Each builder takes core outcome data and returns a styled embed or
message string ready to send.
"""

from __future__ import annotations

import discord

from tierkeeper.core.eligibility import Eligibility, EligibilityStatus
from tierkeeper.core.quiz import QuizGraded, RejectReason
from tierkeeper.models.quiz import Question, QuizPolicy

COLOR_QUIZ = 0x3498DB  # Blue, question cards
COLOR_PASS = 0x2ECC71  # Green, passed
COLOR_FAIL = 0xE74C3C  # Red, failed
COLOR_STATUS = 0xF39C12  # Gold, gate status

QUIZ_TITLE = "Trial Moderator Quiz"
GENERIC_ERROR = "Something went wrong. Try again or contact leadership."


def _format_days(days: float) -> str:
    return f"{days:g} day{'s' if days != 1 else ''}"


def build_question_embed(question: Question, index: int, total: int) -> discord.Embed:
    """Build the card for question *index* (0-based) of *total*."""
    embed = discord.Embed(
        title=QUIZ_TITLE,
        description=f"**Q{index + 1}:** {question.prompt}",
        color=COLOR_QUIZ,
    )
    embed.set_footer(text=f"Question {index + 1} of {total}")
    return embed


def build_result_embed(
    result: QuizGraded,
    full_rank_name: str = "Moderator",
    cooldown_hours: float = 24,
) -> discord.Embed:
    """Build the terminal pass/fail card shown to the quiz taker."""
    if result.passed:
        description = (
            f"You scored **{result.score}/{result.total}**.\n"
            f"You've been promoted to **{full_rank_name}**."
        )
        if result.rank_change is not None and not result.rank_change.complete:
            description += "\nSome role updates didn't go through. A lead will finish them."
        return discord.Embed(title="Passed!", description=description, color=COLOR_PASS)

    return discord.Embed(
        title="Not quite.",
        description=(
            f"You scored **{result.score}/{result.total}**.\n"
            f"You need **{result.pass_threshold}/{result.total}** to pass.\n"
            f"Try again in **{cooldown_hours:g} hours**."
        ),
        color=COLOR_FAIL,
    )


def build_status_embed(eligibility: Eligibility, policy: QuizPolicy) -> discord.Embed:
    """Build the ``/trialstatus`` card."""
    embed = discord.Embed(
        title="Promotion Quiz Status",
        description=eligibility_message(eligibility, policy),
        color=COLOR_PASS if eligibility.eligible else COLOR_STATUS,
    )
    embed.add_field(
        name="Pass mark",
        value=f"{policy.pass_threshold}/{policy.question_count}",
        inline=True,
    )
    embed.add_field(
        name="Time limit",
        value=f"{int(policy.session_lifetime.total_seconds() // 60)} min",
        inline=True,
    )
    return embed


def eligibility_message(eligibility: Eligibility, policy: QuizPolicy) -> str:
    """Explain a gate verdict to the member."""
    tenure_days = policy.minimum_tenure.total_seconds() / 86400
    status = eligibility.status
    if status is EligibilityStatus.NOT_ON_PROBATION:
        return "Only Trial Moderators can take this quiz."
    if status is EligibilityStatus.NOT_TRACKED:
        return (
            "I don't have your Trial start date yet. "
            "Ask a Lead to re-apply the Trial role."
        )
    if status is EligibilityStatus.STILL_WAITING:
        return (
            f"You can take the quiz after **{_format_days(tenure_days)}** as Trial Mod.\n"
            f"Time remaining: ~**{eligibility.remaining_hours}h**"
        )
    if status is EligibilityStatus.COOLING_DOWN:
        return (
            "You're on cooldown after your last attempt.\n"
            f"Try again in ~**{eligibility.remaining_hours}h**."
        )
    return "You're eligible. Run `/trialquiz` to start."


def reject_message(reason: RejectReason) -> str:
    """Explain why an answer submission was refused."""
    if reason is RejectReason.NOT_YOUR_SESSION:
        return "This quiz isn't for you."
    if reason is RejectReason.EXPIRED:
        return "Quiz session expired. Run /trialquiz again."
    return "Out of sync. Run /trialquiz again."


def audit_start(member_id: str) -> str:
    return f"\U0001f4dd **Trial Quiz START** - <@{member_id}> started the quiz."


def audit_result(result: QuizGraded, full_rank_name: str = "Moderator") -> str:
    score = f"**{result.score}/{result.total}**"
    if result.passed:
        return (
            f"✅ **Trial Quiz PASS** - <@{result.member_id}> scored {score} "
            f"and was promoted to **{full_rank_name}**."
        )
    return (
        f"❌ **Trial Quiz FAIL** - <@{result.member_id}> scored {score} "
        f"(needs {result.pass_threshold}/{result.total})."
    )
