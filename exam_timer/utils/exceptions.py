"""Custom exceptions for the exam timer service."""


class ExamTimerError(Exception):
    """Base exception for exam timer errors."""

    status_code = 400


class StoreUnavailable(ExamTimerError):
    """Timer store connection is down or a store call failed."""

    status_code = 503


class CorruptTimerRecord(ExamTimerError):
    """Timer payload cannot be decoded."""

    pass


class AttemptNotFound(ExamTimerError):
    """No exam attempt with the given id."""

    status_code = 404


class StudentMismatch(ExamTimerError):
    """Attempt belongs to a different student."""

    status_code = 404


class AttemptNotOngoing(ExamTimerError):
    """Attempt has already been submitted."""

    pass


class PersistenceError(ExamTimerError):
    """Attempt store read/write failed."""

    status_code = 503


class PaperNotFound(ExamTimerError):
    """Paper missing or not published."""

    status_code = 404


class QuestionNotFound(ExamTimerError):
    """Question missing or not part of the attempt's paper."""

    status_code = 404


class ExamTimeOver(AttemptNotOngoing):
    """Attempt's timer has run out; it is waiting to be auto-submitted."""

    pass


class AnswerNotFound(ExamTimerError):
    """Question has not been answered in this attempt."""

    status_code = 404
