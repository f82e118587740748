from __future__ import annotations

from collections import Counter
from contextlib import asynccontextmanager
from typing import List, Optional, Sequence, Tuple

import pytest

from exam_timer.attempts import repository
from exam_timer.attempts.models import AnswerRecord
from exam_timer.attempts.scoring import ScoreResult, score_answers
from exam_timer.connectivity import ConnectivityMonitor
from exam_timer.db import (
    PaperRow,
    QuestionRow,
    create_engine_for,
    create_session_factory,
    init_models,
)
from exam_timer.jobs import ExamTimerWorker
from exam_timer.services.exam_service import ExamService
from exam_timer.services.finalizer import AttemptFinalizer
from exam_timer.store.memory import MemoryTimerStore
from exam_timer.timer import TimerRecord
from exam_timer.utils.helpers import from_millis

T_START = 1_700_000_000_000


class FakeClock:
    """Controllable wall clock in epoch milliseconds."""

    def __init__(self, now_ms: int = T_START) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


class CountingScorer:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, answers: Sequence[AnswerRecord], total_marks: int) -> ScoreResult:
        self.calls += 1
        return score_answers(answers, total_marks)


class CountingStore(MemoryTimerStore):
    """Memory store that records how often each operation was called."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls: Counter = Counter()

    async def put(self, key, value, ttl_seconds):
        self.calls["put"] += 1
        return await super().put(key, value, ttl_seconds)

    async def get(self, key):
        self.calls["get"] += 1
        return await super().get(key)

    async def delete(self, key):
        self.calls["delete"] += 1
        return await super().delete(key)

    async def scan_keys(self, pattern):
        self.calls["scan_keys"] += 1
        return await super().scan_keys(pattern)

    def keys(self) -> List[str]:
        return sorted(self._data)


class Harness:
    """Fully wired service stack on a throwaway SQLite file."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.clock = FakeClock()
        self.monitor = ConnectivityMonitor()
        self.store = CountingStore(self.monitor, clock=lambda: self.clock.now_ms / 1000)
        self.scorer = CountingScorer()

    async def open(self) -> Harness:
        self.engine = create_engine_for(self.url)
        await init_models(self.engine)
        self.sessions = create_session_factory(self.engine)
        self.finalizer = AttemptFinalizer(
            self.sessions,
            scorer=self.scorer,
            clock=lambda: from_millis(self.clock.now_ms),
        )
        self.service = ExamService(
            self.sessions, self.store, self.finalizer, ttl_margin=3600, clock=self.clock
        )
        self.worker = ExamTimerWorker(
            self.store, self.monitor, self.service.auto_submit_exam, clock=self.clock
        )
        await self.store.connect()
        return self

    async def close(self) -> None:
        await self.worker.stop()
        await self.engine.dispose()

    # ------------------------------------------------------------------
    # Seeding helpers
    # ------------------------------------------------------------------
    async def add_paper(
        self,
        paper_id: str = "P1",
        duration_minutes: Optional[int] = 30,
        questions: Sequence[Tuple[str, int, int]] = (("Q1", 1, 2), ("Q2", 0, 3)),
        paper_type: str = "TIME_BOUND",
        status: str = "PUBLISHED",
    ) -> None:
        """Insert a paper with (question_id, correct_option, marks) questions."""
        async with self.sessions() as session:
            async with session.begin():
                session.add(
                    PaperRow(
                        id=paper_id,
                        title=f"Paper {paper_id}",
                        type=paper_type,
                        status=status,
                        duration_minutes=duration_minutes,
                    )
                )
                await session.flush()
                for order, (question_id, correct, marks) in enumerate(questions):
                    session.add(
                        QuestionRow(
                            id=question_id,
                            paper_id=paper_id,
                            type="MCQ",
                            correct_option=correct,
                            marks=marks,
                            order=order,
                        )
                    )

    async def add_attempt(
        self, attempt_id: str, student_id: str, paper_id: str = "P1", total_marks: int = 5
    ) -> None:
        async with self.sessions() as session:
            async with session.begin():
                await repository.create_attempt(
                    session,
                    paper_id=paper_id,
                    student_id=student_id,
                    total_marks=total_marks,
                    created_at=from_millis(self.clock.now_ms),
                    attempt_id=attempt_id,
                )

    async def add_timer(self, attempt_id: str, student_id: str, end_time: int) -> str:
        record = TimerRecord(attempt_id=attempt_id, student_id=student_id, end_time=end_time)
        await self.store.put(record.key, record.encode(), 7200)
        return record.key

    async def attempt(self, attempt_id: str):
        async with self.sessions() as session:
            row = await repository.get_attempt(session, attempt_id)
            return repository.to_snapshot(row) if row is not None else None


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'exam.db'}"


@pytest.fixture
def harness(db_url):
    """Async context manager yielding an opened Harness."""

    @asynccontextmanager
    async def _harness():
        h = await Harness(db_url).open()
        try:
            yield h
        finally:
            await h.close()

    return _harness
