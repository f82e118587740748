"""
Attempt store queries.

Functions take an open AsyncSession; callers own the transaction.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from exam_timer.attempts.models import AnswerRecord, AttemptSnapshot, AttemptStatus
from exam_timer.db.tables import (
    ExamAttemptRow,
    PaperRow,
    QuestionRow,
    StudentAnswerRow,
)
from exam_timer.utils.helpers import as_utc


def to_snapshot(row: ExamAttemptRow) -> AttemptSnapshot:
    return AttemptSnapshot(
        id=row.id,
        paper_id=row.paper_id,
        student_id=row.student_id,
        status=AttemptStatus(row.status),
        created_at=as_utc(row.created_at),
        submitted_at=as_utc(row.submitted_at),
        total_marks=row.total_marks,
        score=row.score,
        percentage=row.percentage,
        time_spent=row.time_spent,
    )


def to_answer(row: StudentAnswerRow) -> AnswerRecord:
    return AnswerRecord(
        question_id=row.question_id,
        selected_option=row.selected_option,
        answer_text=row.answer_text,
        marks_obtained=row.marks_obtained or 0.0,
        is_correct=row.is_correct,
        marked_for_review=row.marked_for_review,
    )


# ----------------------------------------------------------------------
# Papers & questions
# ----------------------------------------------------------------------
async def get_paper(session: AsyncSession, paper_id: str) -> Optional[PaperRow]:
    return await session.get(PaperRow, paper_id)


async def list_questions(session: AsyncSession, paper_id: str) -> List[QuestionRow]:
    result = await session.execute(
        select(QuestionRow)
        .where(QuestionRow.paper_id == paper_id)
        .order_by(QuestionRow.order, QuestionRow.id)
    )
    return list(result.scalars().all())


async def get_question(session: AsyncSession, question_id: str) -> Optional[QuestionRow]:
    return await session.get(QuestionRow, question_id)


# ----------------------------------------------------------------------
# Attempts
# ----------------------------------------------------------------------
async def get_attempt(
    session: AsyncSession, attempt_id: str, for_update: bool = False
) -> Optional[ExamAttemptRow]:
    stmt = (
        select(ExamAttemptRow)
        .where(ExamAttemptRow.id == attempt_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def find_attempt(
    session: AsyncSession, paper_id: str, student_id: str
) -> Optional[ExamAttemptRow]:
    result = await session.execute(
        select(ExamAttemptRow).where(
            ExamAttemptRow.paper_id == paper_id,
            ExamAttemptRow.student_id == student_id,
        )
    )
    return result.scalar_one_or_none()


async def create_attempt(
    session: AsyncSession,
    paper_id: str,
    student_id: str,
    total_marks: int,
    created_at: datetime,
    attempt_id: Optional[str] = None,
) -> ExamAttemptRow:
    row = ExamAttemptRow(
        paper_id=paper_id,
        student_id=student_id,
        status=AttemptStatus.ONGOING,
        created_at=created_at,
        total_marks=total_marks,
    )
    if attempt_id:
        row.id = attempt_id
    session.add(row)
    await session.flush()
    return row


async def delete_attempt(session: AsyncSession, attempt_id: str) -> None:
    await session.execute(
        delete(StudentAnswerRow).where(StudentAnswerRow.attempt_id == attempt_id)
    )
    await session.execute(delete(ExamAttemptRow).where(ExamAttemptRow.id == attempt_id))


async def claim_ongoing(
    session: AsyncSession,
    attempt_id: str,
    student_id: str,
    status: AttemptStatus,
    submitted_at: datetime,
) -> bool:
    """
    Move an ONGOING attempt to a terminal status in one conditional UPDATE.

    Returns:
        True if this call changed the row, False if it was not ONGOING
        (or does not exist / belongs to someone else).
    """
    result = await session.execute(
        update(ExamAttemptRow)
        .where(
            ExamAttemptRow.id == attempt_id,
            ExamAttemptRow.student_id == student_id,
            ExamAttemptRow.status == AttemptStatus.ONGOING,
        )
        .values(status=status, submitted_at=submitted_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def record_score(
    session: AsyncSession,
    row: ExamAttemptRow,
    score: float,
    percentage: float,
    time_spent: int,
) -> None:
    row.score = score
    row.percentage = percentage
    row.time_spent = time_spent
    await session.flush()


# ----------------------------------------------------------------------
# Answers
# ----------------------------------------------------------------------
async def list_answers(session: AsyncSession, attempt_id: str) -> List[AnswerRecord]:
    result = await session.execute(
        select(StudentAnswerRow).where(StudentAnswerRow.attempt_id == attempt_id)
    )
    return [to_answer(row) for row in result.scalars().all()]


async def toggle_review(
    session: AsyncSession, attempt_id: str, question_id: str
) -> Optional[StudentAnswerRow]:
    """Flip marked_for_review on an answer; None if the question is unanswered."""
    result = await session.execute(
        select(StudentAnswerRow).where(
            StudentAnswerRow.attempt_id == attempt_id,
            StudentAnswerRow.question_id == question_id,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        return None

    row.marked_for_review = not row.marked_for_review
    await session.flush()
    return row


async def upsert_answer(
    session: AsyncSession,
    attempt_id: str,
    question_id: str,
    selected_option: Optional[int],
    answer_text: Optional[str],
    is_correct: Optional[bool],
    marks_obtained: float,
) -> StudentAnswerRow:
    result = await session.execute(
        select(StudentAnswerRow).where(
            StudentAnswerRow.attempt_id == attempt_id,
            StudentAnswerRow.question_id == question_id,
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        row = StudentAnswerRow(attempt_id=attempt_id, question_id=question_id)
        session.add(row)

    row.selected_option = selected_option
    row.answer_text = answer_text
    row.is_correct = is_correct
    row.marks_obtained = marks_obtained
    await session.flush()
    return row
