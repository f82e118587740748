"""
Exam attempt domain types.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class AttemptStatus(str, Enum):
    ONGOING = "ONGOING"
    SUBMITTED = "SUBMITTED"
    AUTO_SUBMITTED = "AUTO_SUBMITTED"

    @property
    def is_terminal(self) -> bool:
        return self is not AttemptStatus.ONGOING


@dataclass(frozen=True)
class AnswerRecord:
    """One recorded answer, as seen by the scorer."""

    question_id: str
    selected_option: Optional[int] = None
    answer_text: Optional[str] = None
    marks_obtained: float = 0.0
    is_correct: Optional[bool] = None
    marked_for_review: bool = False

    @property
    def answered(self) -> bool:
        return self.selected_option is not None or bool(self.answer_text)


@dataclass(frozen=True)
class AttemptSnapshot:
    """Read-only view of an exam attempt row."""

    id: str
    paper_id: str
    student_id: str
    status: AttemptStatus
    created_at: datetime
    submitted_at: Optional[datetime]
    total_marks: int
    score: float
    percentage: float
    time_spent: Optional[int]


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of a finalization call.

    transitioned is False when the attempt was already final and the call
    was a no-op.
    """

    attempt: AttemptSnapshot
    transitioned: bool
