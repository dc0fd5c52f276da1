"""Per-type verdicts and visibility rules. Pure functions, no I/O."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from fractions import Fraction
from typing import Any

from questhub.errors import ValidationFailed
from questhub.missions.schemas import QuizAnswerChoice


@dataclass(frozen=True)
class QuizVerdict:
    correct: int
    total: int
    pass_threshold: float

    @property
    def score(self) -> float:
        return self.correct / self.total if self.total else 0.0

    @property
    def passed(self) -> bool:
        # Exact rational comparison: 4/5 against 0.8 must pass
        return self.total > 0 and Fraction(self.correct, self.total) >= Fraction(repr(self.pass_threshold))


def score_quiz(
    questions: Sequence[dict[str, Any]],
    answers: Sequence[QuizAnswerChoice],
    pass_threshold: float,
) -> QuizVerdict:
    """Score answers against the answer key.

    Every question must be answered exactly once.

    Raises:
        ValidationFailed: Answer count or indices do not match the quiz.
    """
    if len(answers) != len(questions):
        raise ValidationFailed(
            f"Number of answers ({len(answers)}) does not match number of questions ({len(questions)}).",
            code="ANSWERS_MISMATCH",
        )

    seen: set[int] = set()
    correct = 0
    for choice in answers:
        if choice.question_index >= len(questions):
            raise ValidationFailed(f"Question {choice.question_index} does not exist.", code="INVALID_ANSWER")
        if choice.question_index in seen:
            raise ValidationFailed(f"Question {choice.question_index} answered twice.", code="INVALID_ANSWER")
        seen.add(choice.question_index)

        options = questions[choice.question_index].get("answers") or []
        if choice.answer_index >= len(options):
            raise ValidationFailed(
                f"Answer {choice.answer_index} does not exist for question {choice.question_index}.",
                code="INVALID_ANSWER",
            )
        if options[choice.answer_index].get("is_correct") is True:
            correct += 1

    return QuizVerdict(correct=correct, total=len(questions), pass_threshold=pass_threshold)


def sanitize_questions(questions: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Strip ``is_correct`` from every answer."""
    return [
        {
            **{k: v for k, v in q.items() if k != "answers"},
            "answers": [{k: v for k, v in a.items() if k != "is_correct"} for a in q.get("answers") or []],
        }
        for q in questions
    ]


def is_mission_locked(
    *,
    user_rank_priority: int | None,
    required_rank_priority: int | None,
    requires_achievement: bool,
    holds_required_achievement: bool,
) -> bool:
    """Rank and achievement gates are independent; both must pass.

    A user without a rank is below every required rank.
    """
    if required_rank_priority is not None:
        if user_rank_priority is None or user_rank_priority < required_rank_priority:
            return True
    return requires_achievement and not holds_required_achievement
