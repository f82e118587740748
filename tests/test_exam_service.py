import asyncio

import pytest

from exam_timer.attempts.models import AttemptStatus
from exam_timer.timer import TimerRecord, timer_key
from exam_timer.utils.exceptions import (
    AnswerNotFound,
    AttemptNotFound,
    AttemptNotOngoing,
    ExamTimeOver,
    PaperNotFound,
    QuestionNotFound,
    StudentMismatch,
)


# ----------------------------------------------------------------------
# start_exam
# ----------------------------------------------------------------------
def test_start_exam_writes_timer_with_margin(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper(duration_minutes=30)
            start = h.clock()

            attempt = await h.service.start_exam("P1", "S1")

            assert attempt.status is AttemptStatus.ONGOING
            assert attempt.total_marks == 5
            key = timer_key(attempt.id)
            assert h.store.keys() == [key]
            assert h.store.ttl(key) == pytest.approx(30 * 60 + 3600)

            record = TimerRecord.decode(await h.store.get(key))
            assert record.attempt_id == attempt.id
            assert record.student_id == "S1"
            assert record.end_time == start + 30 * 60 * 1000

    asyncio.run(scenario())


def test_start_exam_resumes_ongoing_attempt(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper()
            start = h.clock()
            first = await h.service.start_exam("P1", "S1")
            h.clock.advance(60)

            second = await h.service.start_exam("P1", "S1")

            assert second.id == first.id
            record = TimerRecord.decode(await h.store.get(timer_key(first.id)))
            assert record.end_time == start + 30 * 60 * 1000

    asyncio.run(scenario())


def test_retake_replaces_finished_attempt(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper()
            first = await h.service.start_exam("P1", "S1")
            await h.service.save_answer(first.id, "S1", "Q1", selected_option=1)
            await h.service.submit_exam(first.id, "S1")

            retake = await h.service.start_exam("P1", "S1")

            assert retake.id != first.id
            assert retake.status is AttemptStatus.ONGOING
            assert await h.attempt(first.id) is None
            data = await h.service.get_exam_data(retake.id, "S1")
            assert data.progress.answered == 0

    asyncio.run(scenario())


@pytest.mark.parametrize(
    "paper_type, duration",
    [("PRACTICE", 30), ("TIME_BOUND", None)],
)
def test_untimed_papers_get_no_timer(harness, paper_type, duration):
    async def scenario():
        async with harness() as h:
            await h.add_paper(paper_type=paper_type, duration_minutes=duration)

            attempt = await h.service.start_exam("P1", "S1")

            assert attempt.status is AttemptStatus.ONGOING
            assert h.store.keys() == []

    asyncio.run(scenario())


def test_start_exam_rejects_unknown_or_unpublished_paper(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper(status="DRAFT")

            with pytest.raises(PaperNotFound):
                await h.service.start_exam("P1", "S1")
            with pytest.raises(PaperNotFound):
                await h.service.start_exam("NOPE", "S1")

    asyncio.run(scenario())


def test_start_exam_survives_timer_store_outage(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper()
            h.store.simulate_outage()

            attempt = await h.service.start_exam("P1", "S1")

            assert (await h.attempt(attempt.id)).status is AttemptStatus.ONGOING
            h.store.restore()
            assert h.store.keys() == []

    asyncio.run(scenario())


# ----------------------------------------------------------------------
# save_answer
# ----------------------------------------------------------------------
def test_save_answer_marks_mcq_and_overwrites(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper()
            attempt = await h.service.start_exam("P1", "S1")

            wrong = await h.service.save_answer(attempt.id, "S1", "Q1", selected_option=0)
            right = await h.service.save_answer(attempt.id, "S1", "Q1", selected_option=1)

            assert wrong.is_correct is False
            assert wrong.marks_obtained == 0.0
            assert right.is_correct is True
            assert right.marks_obtained == 2.0

            data = await h.service.get_exam_data(attempt.id, "S1")
            assert data.progress.answered == 1

    asyncio.run(scenario())


def test_save_answer_rejects_closed_attempt_and_foreign_question(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper()
            await h.add_paper(paper_id="P2", questions=(("OTHER", 0, 1),))
            attempt = await h.service.start_exam("P1", "S1")

            with pytest.raises(QuestionNotFound):
                await h.service.save_answer(attempt.id, "S1", "OTHER", selected_option=0)
            with pytest.raises(StudentMismatch):
                await h.service.save_answer(attempt.id, "S2", "Q1", selected_option=1)
            with pytest.raises(AttemptNotFound):
                await h.service.save_answer("missing", "S1", "Q1", selected_option=1)

            await h.service.submit_exam(attempt.id, "S1")
            with pytest.raises(AttemptNotOngoing):
                await h.service.save_answer(attempt.id, "S1", "Q1", selected_option=1)

    asyncio.run(scenario())


# ----------------------------------------------------------------------
# submit_exam / get_exam_data
# ----------------------------------------------------------------------
def test_submit_exam_removes_timer_and_repeat_is_noop(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper()
            attempt = await h.service.start_exam("P1", "S1")
            await h.service.save_answer(attempt.id, "S1", "Q2", selected_option=0)
            h.clock.advance(300)

            first = await h.service.submit_exam(attempt.id, "S1")
            again = await h.service.submit_exam(attempt.id, "S1")

            assert first.transitioned is True
            assert first.attempt.status is AttemptStatus.SUBMITTED
            assert first.attempt.score == 3.0
            assert first.attempt.percentage == pytest.approx(60.0)
            assert first.attempt.time_spent == 300
            assert h.store.keys() == []

            assert again.transitioned is False
            assert again.attempt == first.attempt
            assert h.scorer.calls == 1

    asyncio.run(scenario())


def test_get_exam_data_reports_time_left_only_while_ongoing(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper(duration_minutes=30)
            attempt = await h.service.start_exam("P1", "S1")
            await h.service.save_answer(attempt.id, "S1", "Q1", selected_option=1)
            h.clock.advance(60.5)

            data = await h.service.get_exam_data(attempt.id, "S1")
            assert data.attempt.status is AttemptStatus.ONGOING
            assert data.time_remaining == 30 * 60 - 60
            assert data.progress.answered == 1
            assert data.progress.total == 2

            await h.service.submit_exam(attempt.id, "S1")
            done = await h.service.get_exam_data(attempt.id, "S1")
            assert done.time_remaining is None
            assert done.attempt.status is AttemptStatus.SUBMITTED

    asyncio.run(scenario())


def test_get_exam_data_tolerates_bad_timer(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper()
            attempt = await h.service.start_exam("P1", "S1")
            await h.store.put(timer_key(attempt.id), "garbage", 60)

            data = await h.service.get_exam_data(attempt.id, "S1")
            assert data.time_remaining is None

            h.store.simulate_outage()
            data = await h.service.get_exam_data(attempt.id, "S1")
            assert data.time_remaining is None

            with pytest.raises(StudentMismatch):
                await h.service.get_exam_data(attempt.id, "S2")

    asyncio.run(scenario())


# ----------------------------------------------------------------------
# Deadline and review flag
# ----------------------------------------------------------------------
def test_save_answer_rejected_once_timer_has_run_out(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper(duration_minutes=30)
            attempt = await h.service.start_exam("P1", "S1")
            h.clock.advance(30 * 60 - 1)
            await h.service.save_answer(attempt.id, "S1", "Q1", selected_option=1)

            h.clock.advance(1)
            with pytest.raises(ExamTimeOver):
                await h.service.save_answer(attempt.id, "S1", "Q2", selected_option=0)

            data = await h.service.get_exam_data(attempt.id, "S1")
            assert data.progress.answered == 1
            assert data.attempt.status is AttemptStatus.ONGOING

    asyncio.run(scenario())


def test_toggle_review_flips_flag_and_counts_in_progress(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper()
            attempt = await h.service.start_exam("P1", "S1")
            await h.service.save_answer(attempt.id, "S1", "Q1", selected_option=1)

            marked = await h.service.toggle_review(attempt.id, "S1", "Q1")
            assert marked.marked_for_review is True
            data = await h.service.get_exam_data(attempt.id, "S1")
            assert data.progress.marked_for_review == 1

            unmarked = await h.service.toggle_review(attempt.id, "S1", "Q1")
            assert unmarked.marked_for_review is False
            assert unmarked.selected_option == 1
            data = await h.service.get_exam_data(attempt.id, "S1")
            assert data.progress.marked_for_review == 0

    asyncio.run(scenario())


def test_toggle_review_requires_owner_and_existing_answer(harness):
    async def scenario():
        async with harness() as h:
            await h.add_paper()
            attempt = await h.service.start_exam("P1", "S1")
            await h.service.save_answer(attempt.id, "S1", "Q1", selected_option=1)

            with pytest.raises(AnswerNotFound):
                await h.service.toggle_review(attempt.id, "S1", "Q2")
            with pytest.raises(StudentMismatch):
                await h.service.toggle_review(attempt.id, "S2", "Q1")
            with pytest.raises(AttemptNotFound):
                await h.service.toggle_review("missing", "S1", "Q1")

    asyncio.run(scenario())
