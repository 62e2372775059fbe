"""Barrier that lets the round loop wait for every answer or a deadline."""

from __future__ import annotations

from enum import Enum
from threading import Condition
import time
from typing import Callable


class GateResult(Enum):
    ALL_ANSWERED = "all_answered"
    TIMED_OUT = "timed_out"


class AnswerGate:
    """Counts accepted answers for the current round.

    The gate is armed by ``reset`` and closed by ``wait``. Once closed it
    refuses further answers, so nothing recorded after the wait returns can
    reach the scoring pass.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._condition = Condition()
        self._clock = clock
        self._expected: int = 0
        self._answered: int = 0
        self._open: bool = False

    def now(self) -> float:
        return self._clock()

    def reset(self, expected_count: int) -> None:
        if expected_count < 0:
            raise ValueError("Expected answer count cannot be negative.")
        with self._condition:
            self._expected = expected_count
            self._answered = 0
            self._open = True

    def notify_answered(self) -> bool:
        """Count one answer. Returns False when the round has already closed."""
        with self._condition:
            if not self._open:
                return False
            self._answered += 1
            self._condition.notify_all()
            return True

    def remove_expected(self, answered: bool) -> None:
        """Stop waiting for a player that left during the round."""
        with self._condition:
            if not self._open:
                return
            self._expected = max(0, self._expected - 1)
            if answered:
                self._answered = max(0, self._answered - 1)
            self._condition.notify_all()

    def wait(self, deadline: float) -> GateResult:
        """Block until everyone answered or ``deadline`` passes, then close."""
        with self._condition:
            while not self._all_answered():
                remaining = deadline - self._clock()
                if remaining <= 0:
                    break
                self._condition.wait(remaining)
            result = GateResult.ALL_ANSWERED if self._all_answered() else GateResult.TIMED_OUT
            self._open = False
            return result

    def is_open(self) -> bool:
        with self._condition:
            return self._open

    def counts(self) -> tuple[int, int]:
        """Return ``(answered, expected)`` for the current round."""
        with self._condition:
            return self._answered, self._expected

    def _all_answered(self) -> bool:
        return self._answered >= self._expected
