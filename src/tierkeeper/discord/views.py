"""Discord UI views: the select menu that carries one quiz answer.

Each question gets its own view. The select's custom ID is the session
key ``trialquiz:<member_id>:<nonce>:<index>``, so the answer handler
can tell a fresh submission from a stale or replayed one.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import discord

from tierkeeper.core.quiz import encode_session_key
from tierkeeper.models.quiz import Question

logger = logging.getLogger(__name__)

AnswerHandler = Callable[[discord.Interaction, str, list[str]], Awaitable[None]]

# Select option labels are capped at 100 characters by Discord.
_MAX_LABEL = 100


class QuizAnswerSelect(discord.ui.Select):
    """Single-choice select listing one question's answers."""

    def __init__(
        self,
        *,
        member_id: str,
        nonce: str,
        question: Question,
        index: int,
        total: int,
        on_answer: AnswerHandler,
    ) -> None:
        options = [
            discord.SelectOption(label=label[:_MAX_LABEL], value=str(ordinal))
            for ordinal, label in enumerate(question.choices)
        ]
        super().__init__(
            custom_id=encode_session_key(member_id, nonce, index),
            placeholder=f"Question {index + 1}/{total}: pick an answer",
            min_values=1,
            max_values=1,
            options=options,
        )
        self._on_answer = on_answer

    async def callback(self, interaction: discord.Interaction) -> None:
        await self._on_answer(interaction, self.custom_id, list(self.values))
        if self.view is not None:
            self.view.stop()


class QuizQuestionView(discord.ui.View):
    """Holds the answer select for one question of a live session."""

    def __init__(
        self,
        *,
        member_id: str,
        nonce: str,
        question: Question,
        index: int,
        total: int,
        on_answer: AnswerHandler,
        timeout: float,
    ) -> None:
        super().__init__(timeout=timeout)
        self.member_id = member_id
        self.index = index
        self.add_item(
            QuizAnswerSelect(
                member_id=member_id,
                nonce=nonce,
                question=question,
                index=index,
                total=total,
                on_answer=on_answer,
            )
        )
