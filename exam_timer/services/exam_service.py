"""
Exam session operations: start, answer, submit and status reads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from exam_timer.attempts import repository
from exam_timer.attempts.models import (
    AnswerRecord,
    AttemptSnapshot,
    AttemptStatus,
    TransitionResult,
)
from exam_timer.logger import setup_logger
from exam_timer.services.finalizer import AttemptFinalizer
from exam_timer.store.base import TimerStore
from exam_timer.timer import TimerRecord, timer_key
from exam_timer.utils.exceptions import (
    AnswerNotFound,
    AttemptNotFound,
    AttemptNotOngoing,
    CorruptTimerRecord,
    ExamTimeOver,
    PaperNotFound,
    PersistenceError,
    QuestionNotFound,
    StoreUnavailable,
    StudentMismatch,
)
from exam_timer.utils.helpers import from_millis, now_millis

logger = setup_logger(__name__)


@dataclass(frozen=True)
class ExamProgress:
    answered: int
    marked_for_review: int
    total: int


@dataclass(frozen=True)
class ExamData:
    attempt: AttemptSnapshot
    time_remaining: Optional[int]
    progress: ExamProgress


class ExamService:
    """
    Student-facing exam operations on top of the attempt and timer stores.
    """

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        timer_store: TimerStore,
        finalizer: AttemptFinalizer,
        ttl_margin: int = 3600,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        """
        Args:
            sessions: Attempt store session factory.
            timer_store: Store receiving timer records.
            finalizer: Shared attempt finalizer.
            ttl_margin: Seconds the timer record outlives the exam duration.
            clock: Wall-clock source in epoch milliseconds.
        """
        self.sessions = sessions
        self.timer_store = timer_store
        self.finalizer = finalizer
        self.ttl_margin = ttl_margin
        self.clock = clock

    # ------------------------------------------------------------------
    # Start
    # ------------------------------------------------------------------
    async def start_exam(self, paper_id: str, student_id: str) -> AttemptSnapshot:
        """
        Start (or resume) a student's attempt at a paper.

        Returns:
            The ONGOING attempt.

        Raises:
            PaperNotFound, PersistenceError
        """
        now_ms = self.clock()

        try:
            async with self.sessions() as session:
                async with session.begin():
                    paper = await repository.get_paper(session, paper_id)
                    if paper is None or paper.status != "PUBLISHED":
                        raise PaperNotFound(f"Paper {paper_id} not found")

                    existing = await repository.find_attempt(session, paper_id, student_id)
                    if existing is not None and existing.status is AttemptStatus.ONGOING:
                        logger.info(f"↩️ Resuming attempt {existing.id} for {student_id}")
                        return repository.to_snapshot(existing)

                    if existing is not None:
                        # One attempt row per (paper, student): a retake replaces it
                        await repository.delete_attempt(session, existing.id)

                    questions = await repository.list_questions(session, paper_id)
                    total_marks = sum(q.marks or 1 for q in questions)
                    row = await repository.create_attempt(
                        session,
                        paper_id=paper_id,
                        student_id=student_id,
                        total_marks=total_marks,
                        created_at=from_millis(now_ms),
                    )
                    attempt = repository.to_snapshot(row)
                    timed = paper.type == "TIME_BOUND" and bool(paper.duration_minutes)
                    duration_seconds = (paper.duration_minutes or 0) * 60
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to start exam {paper_id}: {e}")

        logger.info(f"🚀 Attempt {attempt.id} started by {student_id} on paper {paper_id}")

        if timed:
            await self._write_timer(attempt, duration_seconds, now_ms)

        return attempt

    async def _write_timer(
        self, attempt: AttemptSnapshot, duration_seconds: int, now_ms: int
    ) -> None:
        record = TimerRecord(
            attempt_id=attempt.id,
            student_id=attempt.student_id,
            end_time=now_ms + duration_seconds * 1000,
        )
        try:
            await self.timer_store.put(
                record.key, record.encode(), duration_seconds + self.ttl_margin
            )
        except StoreUnavailable as e:
            logger.error(f"❌ Could not write timer for attempt {attempt.id}: {e}")
            return
        logger.info(f"⏱️  Timer set for attempt {attempt.id} ({duration_seconds}s)")

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------
    async def save_answer(
        self,
        attempt_id: str,
        student_id: str,
        question_id: str,
        selected_option: Optional[int] = None,
        answer_text: Optional[str] = None,
    ) -> AnswerRecord:
        """
        Record (or overwrite) the answer to one question.

        MCQ answers are marked immediately; TEXT answers are stored ungraded.
        Answers arriving after a readable timer's deadline are rejected even
        if the worker has not auto-submitted the attempt yet.

        Raises:
            AttemptNotFound, StudentMismatch, AttemptNotOngoing, ExamTimeOver,
            QuestionNotFound, PersistenceError
        """
        timer = await self._read_timer(attempt_id)
        now_ms = self.clock()

        try:
            async with self.sessions() as session:
                async with session.begin():
                    # Row lock so the answer cannot land after finalization
                    attempt = await repository.get_attempt(
                        session, attempt_id, for_update=True
                    )
                    self._check_owner(attempt, attempt_id, student_id)
                    if attempt.status is not AttemptStatus.ONGOING:
                        raise AttemptNotOngoing(f"Attempt {attempt_id} is not ongoing")
                    if timer is not None and timer.is_expired(now_ms):
                        raise ExamTimeOver(f"Time is up for attempt {attempt_id}")

                    question = await repository.get_question(session, question_id)
                    if question is None or question.paper_id != attempt.paper_id:
                        raise QuestionNotFound(f"Question {question_id} not found")

                    is_correct: Optional[bool] = None
                    marks_obtained = 0.0
                    if question.type == "MCQ" and selected_option is not None:
                        is_correct = selected_option == question.correct_option
                        marks_obtained = float(question.marks or 1) if is_correct else 0.0

                    row = await repository.upsert_answer(
                        session,
                        attempt_id=attempt_id,
                        question_id=question_id,
                        selected_option=selected_option,
                        answer_text=answer_text,
                        is_correct=is_correct,
                        marks_obtained=marks_obtained,
                    )
                    return repository.to_answer(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save answer for {attempt_id}: {e}")

    async def toggle_review(
        self, attempt_id: str, student_id: str, question_id: str
    ) -> AnswerRecord:
        """
        Flip the "marked for review" flag on an existing answer.

        The flag does not affect scoring, so it may change after submission.

        Raises:
            AttemptNotFound, StudentMismatch, AnswerNotFound, PersistenceError
        """
        try:
            async with self.sessions() as session:
                async with session.begin():
                    attempt = await repository.get_attempt(session, attempt_id)
                    self._check_owner(attempt, attempt_id, student_id)

                    row = await repository.toggle_review(session, attempt_id, question_id)
                    if row is None:
                        raise AnswerNotFound(
                            f"No answer to question {question_id} in attempt {attempt_id}"
                        )
                    return repository.to_answer(row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update review flag for {attempt_id}: {e}")

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    async def submit_exam(self, attempt_id: str, student_id: str) -> TransitionResult:
        """
        Student-initiated submit.

        A repeated submit, or one that loses the race against the timer,
        returns the attempt's existing final state.
        """
        result = await self.finalizer.finalize(
            attempt_id, student_id, AttemptStatus.SUBMITTED
        )
        await self._clear_timer(attempt_id)
        return result

    async def auto_submit_exam(self, attempt_id: str, student_id: str) -> TransitionResult:
        """Timer-driven submit; the caller owns timer removal."""
        return await self.finalizer.auto_submit(attempt_id, student_id)

    async def _clear_timer(self, attempt_id: str) -> None:
        try:
            await self.timer_store.delete(timer_key(attempt_id))
        except StoreUnavailable as e:
            # Worker or TTL will clean it up; the auto-submit it triggers is a no-op
            logger.warning(f"⚠️ Timer for attempt {attempt_id} not removed: {e}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_exam_data(self, attempt_id: str, student_id: str) -> ExamData:
        """
        Return the attempt, seconds left on its timer and answer progress.

        time_remaining is None when the attempt is final or has no readable timer.
        """
        try:
            async with self.sessions() as session:
                attempt_row = await repository.get_attempt(session, attempt_id)
                self._check_owner(attempt_row, attempt_id, student_id)
                attempt = repository.to_snapshot(attempt_row)
                answers = await repository.list_answers(session, attempt_id)
                questions = await repository.list_questions(session, attempt.paper_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load attempt {attempt_id}: {e}")

        time_remaining: Optional[int] = None
        if attempt.status is AttemptStatus.ONGOING:
            time_remaining = await self._time_remaining(attempt_id)

        progress = ExamProgress(
            answered=sum(1 for a in answers if a.answered),
            marked_for_review=sum(1 for a in answers if a.marked_for_review),
            total=len(questions),
        )
        return ExamData(attempt=attempt, time_remaining=time_remaining, progress=progress)

    async def _time_remaining(self, attempt_id: str) -> Optional[int]:
        timer = await self._read_timer(attempt_id)
        if timer is None:
            return None
        return timer.time_remaining(self.clock())

    async def _read_timer(self, attempt_id: str) -> Optional[TimerRecord]:
        try:
            raw = await self.timer_store.get(timer_key(attempt_id))
            if raw is None:
                return None
            return TimerRecord.decode(raw)
        except (StoreUnavailable, CorruptTimerRecord) as e:
            logger.warning(f"⚠️ Timer for attempt {attempt_id} unreadable: {e}")
            return None

    @staticmethod
    def _check_owner(attempt, attempt_id: str, student_id: str) -> None:
        if attempt is None:
            raise AttemptNotFound(f"Attempt {attempt_id} not found")
        if attempt.student_id != student_id:
            raise StudentMismatch(f"Attempt {attempt_id} not found")
