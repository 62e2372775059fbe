"""Single-slot signal the round loop waits on between rounds."""

from __future__ import annotations

from threading import Condition


class AdvanceSignal:
    """Operator-paced wait that can also be cancelled.

    ``trigger`` is only honoured while the loop is actually waiting, so an
    early "next" cannot skip a later round.
    """

    def __init__(self) -> None:
        self._condition = Condition()
        self._waiting: bool = False
        self._pending: bool = False
        self._cancelled: bool = False

    def wait(self) -> bool:
        """Block until triggered (True) or cancelled (False)."""
        with self._condition:
            self._waiting = True
            self._pending = False
            try:
                while not self._pending and not self._cancelled:
                    self._condition.wait()
                return not self._cancelled
            finally:
                self._waiting = False
                self._pending = False

    def trigger(self) -> bool:
        with self._condition:
            if not self._waiting or self._cancelled:
                return False
            self._pending = True
            self._condition.notify_all()
            return True

    def cancel(self) -> None:
        with self._condition:
            self._cancelled = True
            self._condition.notify_all()

    def is_waiting(self) -> bool:
        with self._condition:
            return self._waiting

    def is_cancelled(self) -> bool:
        with self._condition:
            return self._cancelled
