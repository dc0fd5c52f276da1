"""Unit tests for quiz scoring and mission lock rules."""

import pytest

from questhub.errors import ValidationFailed
from questhub.missions.evaluator import is_mission_locked, sanitize_questions, score_quiz
from questhub.missions.schemas import QuizAnswerChoice

QUESTIONS = [
    {"text": f"Q{i}", "answers": [{"text": "no", "is_correct": False}, {"text": "yes", "is_correct": True}]}
    for i in range(5)
]


def _answers(correct: int, total: int = 5) -> list[QuizAnswerChoice]:
    return [QuizAnswerChoice(question_index=i, answer_index=1 if i < correct else 0) for i in range(total)]


class TestScoreQuiz:
    """Test pass/fail verdicts."""

    def test_four_of_five_passes_at_080(self):
        verdict = score_quiz(QUESTIONS, _answers(4), 0.8)
        assert verdict.correct == 4
        assert verdict.total == 5
        assert verdict.score == pytest.approx(0.8)
        assert verdict.passed is True

    def test_three_of_five_fails_at_080(self):
        verdict = score_quiz(QUESTIONS, _answers(3), 0.8)
        assert verdict.passed is False

    def test_perfect_score_required_by_default_threshold(self):
        assert score_quiz(QUESTIONS, _answers(5), 1.0).passed is True
        assert score_quiz(QUESTIONS, _answers(4), 1.0).passed is False

    def test_threshold_compared_exactly(self):
        """1/3 against 0.33 passes; 1/3 against 0.34 does not."""
        questions = QUESTIONS[:3]
        answers = _answers(1, total=3)
        assert score_quiz(questions, answers, 0.33).passed is True
        assert score_quiz(questions, answers, 0.34).passed is False

    def test_answer_order_does_not_matter(self):
        answers = list(reversed(_answers(4)))
        assert score_quiz(QUESTIONS, answers, 0.8).correct == 4


class TestScoreQuizErrors:
    """Test malformed answer sets."""

    def test_count_mismatch(self):
        with pytest.raises(ValidationFailed) as exc:
            score_quiz(QUESTIONS, _answers(4, total=4), 0.8)
        assert exc.value.code == "ANSWERS_MISMATCH"

    def test_question_out_of_range(self):
        answers = _answers(4)
        answers[4] = QuizAnswerChoice(question_index=9, answer_index=0)
        with pytest.raises(ValidationFailed) as exc:
            score_quiz(QUESTIONS, answers, 0.8)
        assert exc.value.code == "INVALID_ANSWER"

    def test_answer_out_of_range(self):
        answers = _answers(4)
        answers[0] = QuizAnswerChoice(question_index=0, answer_index=7)
        with pytest.raises(ValidationFailed) as exc:
            score_quiz(QUESTIONS, answers, 0.8)
        assert exc.value.code == "INVALID_ANSWER"

    def test_duplicate_question(self):
        answers = _answers(4)
        answers[4] = QuizAnswerChoice(question_index=0, answer_index=1)
        with pytest.raises(ValidationFailed) as exc:
            score_quiz(QUESTIONS, answers, 0.8)
        assert exc.value.code == "INVALID_ANSWER"


class TestSanitizeQuestions:
    """The participant view never carries the answer key."""

    def test_is_correct_removed(self):
        sanitized = sanitize_questions(QUESTIONS)
        assert len(sanitized) == 5
        for question in sanitized:
            assert question["text"].startswith("Q")
            assert all(set(a) == {"text"} for a in question["answers"])

    def test_source_not_mutated(self):
        sanitize_questions(QUESTIONS)
        assert "is_correct" in QUESTIONS[0]["answers"][0]


class TestMissionLock:
    """Rank and achievement gates."""

    def test_no_gates_is_unlocked(self):
        assert not is_mission_locked(
            user_rank_priority=0, required_rank_priority=None, requires_achievement=False, holds_required_achievement=False
        )

    def test_rank_below_required_is_locked(self):
        assert is_mission_locked(
            user_rank_priority=1, required_rank_priority=2, requires_achievement=False, holds_required_achievement=False
        )

    def test_rank_at_required_is_unlocked(self):
        assert not is_mission_locked(
            user_rank_priority=2, required_rank_priority=2, requires_achievement=False, holds_required_achievement=False
        )

    def test_user_without_rank_is_locked_by_rank_gate(self):
        assert is_mission_locked(
            user_rank_priority=None, required_rank_priority=0, requires_achievement=False, holds_required_achievement=False
        )

    def test_missing_achievement_is_locked(self):
        assert is_mission_locked(
            user_rank_priority=5, required_rank_priority=None, requires_achievement=True, holds_required_achievement=False
        )

    def test_both_gates_must_pass(self):
        assert is_mission_locked(
            user_rank_priority=0, required_rank_priority=1, requires_achievement=True, holds_required_achievement=True
        )
        assert not is_mission_locked(
            user_rank_priority=1, required_rank_priority=1, requires_achievement=True, holds_required_achievement=True
        )
