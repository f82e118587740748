"""
Final score computation for a finished attempt.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from exam_timer.attempts.models import AnswerRecord


@dataclass(frozen=True)
class ScoreResult:
    score: float
    percentage: float


Scorer = Callable[[Sequence[AnswerRecord], int], ScoreResult]


def score_answers(answers: Sequence[AnswerRecord], total_marks: int) -> ScoreResult:
    """
    Sum the marks already awarded to answered questions.

    Args:
        answers: Recorded answers of the attempt
        total_marks: Maximum marks of the paper

    Returns:
        ScoreResult with the raw score and percentage (0 when the paper has no marks)
    """
    score = sum(a.marks_obtained for a in answers if a.answered)
    percentage = score / total_marks * 100 if total_marks > 0 else 0.0
    return ScoreResult(score=float(score), percentage=float(percentage))
