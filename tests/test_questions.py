"""Tests for the question bank."""

import random
from pathlib import Path

import pytest
from pydantic import ValidationError

from tierkeeper.core.errors import QuestionBankError
from tierkeeper.core.questions import (
    DEFAULT_QUESTIONS,
    QuestionBank,
    build_question_bank,
    load_questions,
)
from tierkeeper.models.quiz import Question


class TestQuestionModel:
    def test_correct_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            Question(prompt="Q?", choices=("a", "b"), correct=2)

    def test_needs_two_choices(self) -> None:
        with pytest.raises(ValidationError):
            Question(prompt="Q?", choices=("only",), correct=0)

    def test_empty_prompt(self) -> None:
        with pytest.raises(ValidationError):
            Question(prompt="", choices=("a", "b"), correct=0)


class TestQuestionBank:
    def test_default_pool_has_seven(self) -> None:
        assert len(DEFAULT_QUESTIONS) == 7

    def test_draw_distinct(self) -> None:
        bank = QuestionBank(DEFAULT_QUESTIONS, draw_size=5)
        drawn = bank.draw(random.Random(7))
        assert len(drawn) == 5
        assert len({q.prompt for q in drawn}) == 5
        assert all(q in DEFAULT_QUESTIONS for q in drawn)

    def test_draw_seeded_is_repeatable(self) -> None:
        bank = QuestionBank(DEFAULT_QUESTIONS, draw_size=5)
        assert bank.draw(random.Random(3)) == bank.draw(random.Random(3))

    def test_draw_whole_pool(self) -> None:
        bank = QuestionBank(DEFAULT_QUESTIONS, draw_size=7)
        assert set(bank.draw()) == set(DEFAULT_QUESTIONS)

    def test_pool_too_small(self) -> None:
        with pytest.raises(QuestionBankError):
            QuestionBank(DEFAULT_QUESTIONS[:3], draw_size=5)

    def test_draw_size_zero(self) -> None:
        with pytest.raises(QuestionBankError):
            QuestionBank(DEFAULT_QUESTIONS, draw_size=0)

    def test_too_many_choices(self) -> None:
        big = Question(prompt="Q?", choices=tuple(str(i) for i in range(26)), correct=0)
        with pytest.raises(QuestionBankError):
            QuestionBank([big], draw_size=1)


class TestLoadQuestions:
    def test_load_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "questions.yaml"
        path.write_text(
            "questions:\n"
            "  - prompt: First?\n"
            "    choices: [sure, nope]\n"
            "    correct: 0\n"
            "  - prompt: Second?\n"
            "    choices: [a, b, c]\n"
            "    correct: 2\n"
        )
        questions = load_questions(path)
        assert [q.prompt for q in questions] == ["First?", "Second?"]
        assert questions[1].choices == ("a", "b", "c")

    def test_build_bank_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "questions.yaml"
        path.write_text("questions:\n  - prompt: Only?\n    choices: [x, y]\n    correct: 1\n")
        bank = build_question_bank(str(path), draw_size=1)
        assert len(bank) == 1

    def test_build_bank_default(self) -> None:
        bank = build_question_bank("", draw_size=5)
        assert bank.questions == DEFAULT_QUESTIONS

    def test_bad_correct_index(self, tmp_path: Path) -> None:
        path = tmp_path / "questions.yaml"
        path.write_text("questions:\n  - prompt: Q?\n    choices: [x, y]\n    correct: 5\n")
        with pytest.raises(QuestionBankError):
            load_questions(path)

    def test_missing_key(self, tmp_path: Path) -> None:
        path = tmp_path / "questions.yaml"
        path.write_text("items: []\n")
        with pytest.raises(QuestionBankError):
            load_questions(path)

    def test_unreadable(self, tmp_path: Path) -> None:
        with pytest.raises(QuestionBankError):
            load_questions(tmp_path / "missing.yaml")
