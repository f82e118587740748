"""
ORM tables for papers, questions, exam attempts and recorded answers.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from exam_timer.attempts.models import AttemptStatus
from exam_timer.db.database import Base
from exam_timer.utils.helpers import new_id, utcnow


class PaperRow(Base):
    __tablename__ = "papers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255), default="")
    # TIME_BOUND papers get a timer; PRACTICE papers do not
    type: Mapped[str] = mapped_column(String(20), default="TIME_BOUND")
    status: Mapped[str] = mapped_column(String(20), default="PUBLISHED")
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class QuestionRow(Base):
    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    paper_id: Mapped[str] = mapped_column(ForeignKey("papers.id"), index=True)
    type: Mapped[str] = mapped_column(String(10), default="MCQ")
    marks: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    correct_option: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    order: Mapped[int] = mapped_column(Integer, default=0)


class ExamAttemptRow(Base):
    __tablename__ = "exam_attempts"
    __table_args__ = (UniqueConstraint("paper_id", "student_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    paper_id: Mapped[str] = mapped_column(ForeignKey("papers.id"), index=True)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    status: Mapped[AttemptStatus] = mapped_column(
        Enum(AttemptStatus, native_enum=False, length=20),
        default=AttemptStatus.ONGOING,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    total_marks: Mapped[int] = mapped_column(Integer, default=0)
    score: Mapped[float] = mapped_column(Float, default=0.0)
    percentage: Mapped[float] = mapped_column(Float, default=0.0)
    time_spent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class StudentAnswerRow(Base):
    __tablename__ = "student_answers"
    __table_args__ = (UniqueConstraint("attempt_id", "question_id"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    attempt_id: Mapped[str] = mapped_column(
        ForeignKey("exam_attempts.id", ondelete="CASCADE"), index=True
    )
    question_id: Mapped[str] = mapped_column(ForeignKey("questions.id"))
    selected_option: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    answer_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_correct: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    marks_obtained: Mapped[float] = mapped_column(Float, default=0.0)
    marked_for_review: Mapped[bool] = mapped_column(Boolean, default=False)
