"""Server-side state for one connected player."""

from __future__ import annotations

import logging
import socket
from threading import Lock
import time
from typing import Callable

from trivia_app.constants.quiz_constants import OPTION_LABELS
from trivia_app.core.models import AnswerOutcome, AnswerSlot, Question, RejectReason
from trivia_app.core.name_assigner import NameAssigner
from trivia_app.core.protocol import STATUS_OK, MessageType, encode_response
from trivia_app.core.services.answer_gate import AnswerGate

logger = logging.getLogger(__name__)


def monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class PlayerSession:
    """Identity, connection and per-round answer slot of one player.

    The answer slot is written by the player's reader thread and read by the
    round loop; both sides go through ``self._lock``. Socket writes use a
    separate lock and are never issued while ``self._lock`` is held.

    ``on_disconnect`` is the registry hook: it must call ``mark_disconnected``
    and drop the session from the registry in one step, and return what
    ``mark_disconnected`` returned.
    """

    def __init__(
        self,
        session_id: int,
        connection: socket.socket,
        gate: AnswerGate,
        *,
        address: tuple[str, int] | None = None,
        name_assigner: NameAssigner | None = None,
        clock: Callable[[], int] = monotonic_ms,
        on_disconnect: Callable[["PlayerSession"], bool] | None = None,
    ) -> None:
        self.session_id = session_id
        self.address = address
        self._connection = connection
        self._gate = gate
        self._name_assigner = name_assigner
        self._clock = clock
        self._on_disconnect = on_disconnect

        self._lock = Lock()
        self._send_lock = Lock()
        self._name: str | None = None
        self._connected: bool = True
        self._score: int = 0

        self._answered: bool = False
        self._option: str | None = None
        self._latency_ms: int | None = None
        self._question_sent_at: int | None = None

    def __repr__(self) -> str:
        return f"PlayerSession(id={self.session_id}, name={self._name!r})"

    # --- Identity ---

    @property
    def name(self) -> str:
        return self._name or f"player-{self.session_id}"

    def has_name(self) -> bool:
        return self._name is not None

    def assign_name(self, proposed: str | None) -> str:
        """Set the display name once; blank names get a generated one."""
        with self._lock:
            if self._name is not None:
                raise RuntimeError("A name has already been assigned to this player.")
            cleaned = (proposed or "").strip()
            if not cleaned:
                cleaned = self._fallback_name()
            self._name = cleaned
            return cleaned

    def _fallback_name(self) -> str:
        if self._name_assigner is not None:
            return self._name_assigner.next_name()
        if self.address is not None:
            return f"Player_{self.address[1]}"
        return f"Player_{self.session_id}"

    # --- Score ---

    @property
    def score(self) -> int:
        with self._lock:
            return self._score

    def add_points(self, points: int) -> int:
        if points < 0:
            raise ValueError("Points cannot be subtracted from a score.")
        with self._lock:
            self._score += points
            return self._score

    # --- Round slot ---

    def reset_for_round(self) -> None:
        with self._lock:
            self._answered = False
            self._option = None
            self._latency_ms = None
            self._question_sent_at = None

    def mark_question_sent(self) -> None:
        with self._lock:
            self._question_sent_at = self._clock()

    def record_answer(self, option: str | None, arrived_at: int | None = None) -> AnswerOutcome:
        """Accept the first valid answer of the round, reject everything else."""
        if arrived_at is None:
            arrived_at = self._clock()
        with self._lock:
            if not self._connected:
                return AnswerOutcome.reject(RejectReason.CLOSED)
            if self._answered:
                return AnswerOutcome.reject(RejectReason.DUPLICATE)
            label = (option or "").strip().upper()
            if label not in OPTION_LABELS:
                return AnswerOutcome.reject(RejectReason.INVALID)
            if self._question_sent_at is None or not self._gate.notify_answered():
                return AnswerOutcome.reject(RejectReason.CLOSED)

            latency_ms = max(0, arrived_at - self._question_sent_at)
            self._answered = True
            self._option = label
            self._latency_ms = latency_ms
            return AnswerOutcome.accept(latency_ms)

    def slot(self) -> AnswerSlot:
        with self._lock:
            return AnswerSlot(answered=self._answered, option=self._option, latency_ms=self._latency_ms)

    def close_round(self) -> AnswerSlot:
        """Snapshot the slot for scoring and stop accepting answers for this question."""
        with self._lock:
            self._question_sent_at = None
            return AnswerSlot(answered=self._answered, option=self._option, latency_ms=self._latency_ms)

    # --- Connection ---

    @property
    def is_connected(self) -> bool:
        with self._lock:
            return self._connected

    def send(self, message_type: MessageType, body: str | None = None, status: int = STATUS_OK) -> bool:
        """Write one message; a failed write counts as a disconnect."""
        if not self.is_connected:
            return False
        data = encode_response(status, message_type, body)
        try:
            with self._send_lock:
                self._connection.sendall(data)
        except OSError as exc:
            logger.warning("Could not reach %s: %s", self.name, exc)
            self.disconnect()
            return False
        return True

    def send_question(self, question: Question, number: int, total: int) -> bool:
        self.mark_question_sent()
        return self.send(MessageType.QUESTION, question.to_wire(number, total))

    def mark_disconnected(self) -> bool:
        """Flip the session to disconnected. Returns False if it already was."""
        with self._lock:
            if not self._connected:
                return False
            self._connected = False
            return True

    def disconnect(self) -> None:
        """Leave the game and close the connection. Safe to call repeatedly."""
        if self._on_disconnect is not None:
            closed_now = self._on_disconnect(self)
        else:
            closed_now = self.mark_disconnected()
        if closed_now:
            self._close_connection()

    def _close_connection(self) -> None:
        try:
            self._connection.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            self._connection.close()
        except OSError as exc:
            logger.debug("Error while closing connection of %s: %s", self.name, exc)
