from exam_timer.db.database import (
    Base,
    create_engine_for,
    create_session_factory,
    init_models,
)
from exam_timer.db.tables import (
    ExamAttemptRow,
    PaperRow,
    QuestionRow,
    StudentAnswerRow,
)

__all__ = [
    "Base",
    "create_engine_for",
    "create_session_factory",
    "init_models",
    "ExamAttemptRow",
    "PaperRow",
    "QuestionRow",
    "StudentAnswerRow",
]
