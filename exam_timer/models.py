from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class StartExamRequest(BaseModel):
    """Request body for POST /papers/{paper_id}/start."""

    student_id: str


class SaveAnswerRequest(BaseModel):
    """Request body for POST /attempts/{attempt_id}/answers."""

    student_id: str
    question_id: str
    selected_option: Optional[int] = None
    answer_text: Optional[str] = Field(default=None, max_length=10000)


class ReviewRequest(BaseModel):
    """Request body for PATCH /attempts/{attempt_id}/questions/{question_id}/review."""

    student_id: str


class SubmitRequest(BaseModel):
    """Request body for POST /attempts/{attempt_id}/submit."""

    student_id: str


class AttemptResponse(BaseModel):
    id: str
    paper_id: str
    student_id: str
    status: str
    created_at: datetime
    submitted_at: Optional[datetime] = None
    total_marks: int
    score: float
    percentage: float
    time_spent: Optional[int] = None


class SubmitResponse(BaseModel):
    attempt: AttemptResponse
    transitioned: bool


class AnswerResponse(BaseModel):
    question_id: str
    selected_option: Optional[int] = None
    answer_text: Optional[str] = None
    is_correct: Optional[bool] = None
    marks_obtained: float
    marked_for_review: bool = False


class ProgressResponse(BaseModel):
    answered: int
    marked_for_review: int
    total: int


class ExamDataResponse(BaseModel):
    """Response body for GET /attempts/{attempt_id}."""

    attempt: AttemptResponse
    time_remaining: Optional[int] = None
    progress: ProgressResponse


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str
    store_connected: bool
    scheduler_state: str
