"""
HTTP endpoints for exam sessions.

Authentication is handled upstream; the caller passes the student id.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from exam_timer.attempts.models import AnswerRecord, AttemptSnapshot
from exam_timer.models import (
    AnswerResponse,
    AttemptResponse,
    ExamDataResponse,
    HealthResponse,
    ProgressResponse,
    ReviewRequest,
    SaveAnswerRequest,
    StartExamRequest,
    SubmitRequest,
    SubmitResponse,
)
from exam_timer.services.exam_service import ExamService

router = APIRouter()


def get_exam_service(request: Request) -> ExamService:
    return request.app.state.exam_service


def _attempt_response(attempt: AttemptSnapshot) -> AttemptResponse:
    return AttemptResponse(
        id=attempt.id,
        paper_id=attempt.paper_id,
        student_id=attempt.student_id,
        status=attempt.status.value,
        created_at=attempt.created_at,
        submitted_at=attempt.submitted_at,
        total_marks=attempt.total_marks,
        score=attempt.score,
        percentage=attempt.percentage,
        time_spent=attempt.time_spent,
    )


def _answer_response(answer: AnswerRecord) -> AnswerResponse:
    return AnswerResponse(
        question_id=answer.question_id,
        selected_option=answer.selected_option,
        answer_text=answer.answer_text,
        is_correct=answer.is_correct,
        marks_obtained=answer.marks_obtained,
        marked_for_review=answer.marked_for_review,
    )


@router.post("/papers/{paper_id}/start", response_model=AttemptResponse)
async def start_exam(
    paper_id: str,
    body: StartExamRequest,
    service: ExamService = Depends(get_exam_service),
):
    attempt = await service.start_exam(paper_id, body.student_id)
    return _attempt_response(attempt)


@router.post("/attempts/{attempt_id}/answers", response_model=AnswerResponse)
async def save_answer(
    attempt_id: str,
    body: SaveAnswerRequest,
    service: ExamService = Depends(get_exam_service),
):
    answer = await service.save_answer(
        attempt_id,
        body.student_id,
        body.question_id,
        selected_option=body.selected_option,
        answer_text=body.answer_text,
    )
    return _answer_response(answer)


@router.patch(
    "/attempts/{attempt_id}/questions/{question_id}/review",
    response_model=AnswerResponse,
)
async def toggle_review(
    attempt_id: str,
    question_id: str,
    body: ReviewRequest,
    service: ExamService = Depends(get_exam_service),
):
    answer = await service.toggle_review(attempt_id, body.student_id, question_id)
    return _answer_response(answer)


@router.post("/attempts/{attempt_id}/submit", response_model=SubmitResponse)
async def submit_exam(
    attempt_id: str,
    body: SubmitRequest,
    service: ExamService = Depends(get_exam_service),
):
    result = await service.submit_exam(attempt_id, body.student_id)
    return SubmitResponse(
        attempt=_attempt_response(result.attempt), transitioned=result.transitioned
    )


@router.get("/attempts/{attempt_id}", response_model=ExamDataResponse)
async def get_exam_data(
    attempt_id: str,
    student_id: str,
    service: ExamService = Depends(get_exam_service),
):
    data = await service.get_exam_data(attempt_id, student_id)
    return ExamDataResponse(
        attempt=_attempt_response(data.attempt),
        time_remaining=data.time_remaining,
        progress=ProgressResponse(
            answered=data.progress.answered,
            marked_for_review=data.progress.marked_for_review,
            total=data.progress.total,
        ),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint."""
    monitor = request.app.state.monitor
    worker = request.app.state.worker
    return HealthResponse(
        status="healthy" if monitor.connected else "degraded",
        store_connected=monitor.connected,
        scheduler_state=worker.state.value,
    )
