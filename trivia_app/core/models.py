"""Domain models for the trivia game."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from trivia_app.constants.quiz_constants import OPTION_LABELS


@dataclass(frozen=True, slots=True)
class Question:
    """Multiple-choice question with exactly four labelled options."""

    text: str
    options: tuple[str, str, str, str]
    correct_option: str

    def option(self, label: str) -> str:
        return self.options[OPTION_LABELS.index(label)]

    def to_wire(self, number: int, total: int) -> str:
        """Render the question body sent to players: ``n/total|text|A|B|C|D``."""
        return "|".join([f"{number}/{total}", self.text, *self.options])


@dataclass(frozen=True, slots=True)
class AnswerSlot:
    """Snapshot of one player's answer for the current round."""

    answered: bool = False
    option: str | None = None
    latency_ms: int | None = None


class RejectReason(Enum):
    DUPLICATE = auto()
    INVALID = auto()
    CLOSED = auto()


@dataclass(frozen=True, slots=True)
class AnswerOutcome:
    """Result of a player's attempt to answer the current question."""

    accepted: bool
    latency_ms: int | None = None
    reason: RejectReason | None = None

    @classmethod
    def accept(cls, latency_ms: int) -> "AnswerOutcome":
        return cls(accepted=True, latency_ms=latency_ms)

    @classmethod
    def reject(cls, reason: RejectReason) -> "AnswerOutcome":
        return cls(accepted=False, reason=reason)


class GameState(Enum):
    LOBBY = "lobby"
    RUNNING = "running"
    FINISHED = "finished"


@dataclass(frozen=True, slots=True)
class RankingEntry:
    """Immutable leaderboard row returned to consumers."""

    position: int
    name: str
    score: int

    def __str__(self) -> str:
        return f"{self.position}. {self.name} - {self.score} pts"


@dataclass(slots=True)
class ActiveRound:
    """Round currently waiting for answers."""

    index: int
    question: Question
    deadline: float
    answered_count: int = 0
