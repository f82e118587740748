"""
Exam timer records: key format, payload codec and deadline checks.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from exam_timer.utils.exceptions import CorruptTimerRecord
from exam_timer.utils.helpers import seconds_until

TIMER_KEY_PREFIX = "timer:"
TIMER_SCAN_PATTERN = TIMER_KEY_PREFIX + "*"


def timer_key(attempt_id: str) -> str:
    """Return the store key holding an attempt's timer."""
    return f"{TIMER_KEY_PREFIX}{attempt_id}"


@dataclass(frozen=True)
class TimerRecord:
    """
    Deadline marker for one ongoing timed attempt.

    end_time is absolute (epoch milliseconds) so the check survives restarts.
    """

    attempt_id: str
    student_id: str
    end_time: int

    @property
    def key(self) -> str:
        return timer_key(self.attempt_id)

    def is_expired(self, now_ms: int) -> bool:
        """Check if the deadline has been reached."""
        return now_ms >= self.end_time

    def time_remaining(self, now_ms: int) -> int:
        """Return whole seconds left before the deadline (never negative)."""
        return seconds_until(self.end_time, now_ms)

    def encode(self) -> str:
        return json.dumps(
            {
                "attemptId": self.attempt_id,
                "studentId": self.student_id,
                "endTime": self.end_time,
            },
            separators=(",", ":"),
        )

    @classmethod
    def decode(cls, raw: str | bytes) -> TimerRecord:
        """
        Parse a stored timer payload.

        Args:
            raw: Value read from the timer store

        Returns:
            TimerRecord

        Raises:
            CorruptTimerRecord if the payload is not a valid timer object.
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError, RecursionError) as e:
            # RecursionError: pathologically nested arrays/objects
            raise CorruptTimerRecord(f"Timer payload is not JSON: {e}")

        if not isinstance(data, dict):
            raise CorruptTimerRecord("Timer payload is not an object")

        attempt_id = data.get("attemptId")
        student_id = data.get("studentId")
        end_time = data.get("endTime")

        if not isinstance(attempt_id, str) or not attempt_id:
            raise CorruptTimerRecord("Timer payload has no attemptId")
        if not isinstance(student_id, str) or not student_id:
            raise CorruptTimerRecord("Timer payload has no studentId")
        # bool is an int subclass
        if not isinstance(end_time, int) or isinstance(end_time, bool):
            raise CorruptTimerRecord("Timer payload has no integer endTime")

        return cls(attempt_id=attempt_id, student_id=student_id, end_time=end_time)
