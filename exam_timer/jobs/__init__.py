from exam_timer.jobs.exam_timer import CycleReport, ExamTimerWorker, WorkerState

__all__ = ["CycleReport", "ExamTimerWorker", "WorkerState"]
