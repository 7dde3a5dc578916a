"""Question bank: the pool quiz sessions draw from.

Loads from YAML when ``QUIZ_QUESTIONS_PATH`` is set, otherwise serves the
built-in moderation pool. YAML shape::

    questions:
      - prompt: "What should you do first when someone breaks a rule?"
        choices: ["Ignore it", "Handle it calmly using the rules"]
        correct: 1
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from pathlib import Path

import yaml
from pydantic import ValidationError

from tierkeeper.core.errors import QuestionBankError
from tierkeeper.models.quiz import Question

DEFAULT_QUESTIONS: tuple[Question, ...] = (
    Question(
        prompt="What should you do first when someone breaks a rule?",
        choices=("Ignore it", "Handle it calmly using the rules", "Start arguing"),
        correct=1,
    ),
    Question(
        prompt="When should you escalate to Admin/Manager level?",
        choices=("For serious violations or threats", "For any small typo", "Never escalate"),
        correct=0,
    ),
    Question(
        prompt="Best way to deal with an angry member?",
        choices=("Match their energy", "Stay calm and de-escalate", "Mute them instantly always"),
        correct=1,
    ),
    Question(
        prompt="If you're unsure what punishment to use, you should:",
        choices=("Ask higher staff / check guidelines", "Guess", "Punish harder just in case"),
        correct=0,
    ),
    Question(
        prompt="What is a key part of being staff?",
        choices=("Fairness + consistency", "Power flexing", "Favoritism"),
        correct=0,
    ),
    Question(
        prompt="Where should staff handle disagreements?",
        choices=("Public chat", "Privately / staff channels", "In general chat with @everyone"),
        correct=1,
    ),
    Question(
        prompt="What should you do with serious reports?",
        choices=("Ignore if you're busy", "Document and escalate if needed", "Leak it to friends"),
        correct=1,
    ),
)

# Discord select menus accept at most 25 options.
MAX_CHOICES = 25


class QuestionBank:
    """Immutable question pool."""

    def __init__(self, questions: Sequence[Question], draw_size: int) -> None:
        if draw_size < 1:
            raise QuestionBankError("draw size must be at least 1")
        if len(questions) < draw_size:
            raise QuestionBankError(
                f"question bank has {len(questions)} questions, quiz needs {draw_size}"
            )
        for question in questions:
            if len(question.choices) > MAX_CHOICES:
                raise QuestionBankError(
                    f"question {question.prompt!r} has more than {MAX_CHOICES} choices"
                )
        self._questions = tuple(questions)
        self.draw_size = draw_size

    def __len__(self) -> int:
        return len(self._questions)

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    def draw(self, rng: random.Random | None = None) -> list[Question]:
        """Pick ``draw_size`` distinct questions uniformly at random."""
        return (rng or random).sample(self._questions, self.draw_size)


def load_questions(path: str | Path) -> list[Question]:
    """Read questions from a YAML file. Raises QuestionBankError on bad input."""
    path = Path(path)
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise QuestionBankError(f"cannot read question bank {path}: {exc}") from exc

    if not isinstance(raw, dict) or not isinstance(raw.get("questions"), list):
        raise QuestionBankError(f"{path}: expected a top-level 'questions' list")
    try:
        return [Question(**entry) for entry in raw["questions"]]
    except (TypeError, ValidationError) as exc:
        raise QuestionBankError(f"{path}: {exc}") from exc


def build_question_bank(path: str, draw_size: int) -> QuestionBank:
    """Return a bank from *path*, or from the built-in pool when *path* is empty."""
    questions = load_questions(path) if path else list(DEFAULT_QUESTIONS)
    return QuestionBank(questions, draw_size)
