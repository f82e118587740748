"""
Attempt finalization shared by manual submit and timer-driven auto-submit.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from exam_timer.attempts import repository
from exam_timer.attempts.models import AttemptStatus, TransitionResult
from exam_timer.attempts.scoring import Scorer, score_answers
from exam_timer.logger import setup_logger
from exam_timer.utils.exceptions import (
    AttemptNotFound,
    PersistenceError,
    StudentMismatch,
)
from exam_timer.utils.helpers import as_utc, utcnow

logger = setup_logger(__name__)


class AttemptFinalizer:
    """
    Moves an ONGOING attempt to SUBMITTED or AUTO_SUBMITTED exactly once.

    The conditional UPDATE in repository.claim_ongoing is the only
    concurrency control: whoever commits it first scores the attempt, every
    other caller gets the already-final state back.
    """

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        scorer: Scorer = score_answers,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.sessions = sessions
        self.scorer = scorer
        self.clock = clock

    async def auto_submit(self, attempt_id: str, student_id: str) -> TransitionResult:
        """Finalize an attempt whose timer has expired."""
        return await self.finalize(attempt_id, student_id, AttemptStatus.AUTO_SUBMITTED)

    async def finalize(
        self, attempt_id: str, student_id: str, status: AttemptStatus
    ) -> TransitionResult:
        """
        Finalize an attempt with the given terminal status.

        Args:
            attempt_id: Attempt to finalize
            student_id: Expected owner of the attempt
            status: SUBMITTED or AUTO_SUBMITTED

        Returns:
            TransitionResult; transitioned is False when the attempt was
            already final (no re-scoring happens in that case).

        Raises:
            AttemptNotFound, StudentMismatch, PersistenceError
        """
        if not status.is_terminal:
            raise ValueError(f"Cannot finalize an attempt as {status.value}")

        now = self.clock()

        try:
            async with self.sessions() as session:
                async with session.begin():
                    claimed = await repository.claim_ongoing(
                        session, attempt_id, student_id, status, now
                    )
                    if claimed:
                        await self._score(session, attempt_id, now)

                row = await repository.get_attempt(session, attempt_id)
                attempt = repository.to_snapshot(row) if row is not None else None
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to finalize attempt {attempt_id}: {e}")
            raise PersistenceError(f"Failed to finalize attempt {attempt_id}: {e}")

        if attempt is None:
            raise AttemptNotFound(f"Attempt {attempt_id} not found")
        if attempt.student_id != student_id:
            raise StudentMismatch(
                f"Attempt {attempt_id} does not belong to student {student_id}"
            )

        if claimed:
            logger.info(
                f"✅ Attempt {attempt_id} {status.value} "
                f"(score={attempt.score:g}, {attempt.percentage:.1f}%)"
            )
            return TransitionResult(attempt=attempt, transitioned=True)

        if not attempt.status.is_terminal:
            # Owner and status match yet the UPDATE hit nothing; let the caller retry
            raise PersistenceError(f"Attempt {attempt_id} could not be claimed")

        logger.info(
            f"↩️ Attempt {attempt_id} already {attempt.status.value}, nothing to do"
        )
        return TransitionResult(attempt=attempt, transitioned=False)

    async def _score(self, session: AsyncSession, attempt_id: str, now: datetime) -> None:
        row = await repository.get_attempt(session, attempt_id)
        answers = await repository.list_answers(session, attempt_id)
        result = self.scorer(answers, row.total_marks)
        time_spent = max(0, int((now - as_utc(row.created_at)).total_seconds()))
        await repository.record_score(
            session, row, result.score, result.percentage, time_spent
        )
