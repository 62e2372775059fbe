"""Tunable settings for one game, seeded from the constant modules."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from trivia_app.constants.network_constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    MAX_PLAYERS,
    OPERATOR_API_HOST,
    OPERATOR_API_PORT,
)
from trivia_app.constants.quiz_constants import (
    ANSWER_TIMEOUT_MS,
    FINAL_PAUSE_MS,
    MAX_POINTS,
    MIN_POINTS,
    NEXT_PAUSE_MS,
    QUESTIONS_FTP_FILE,
    QUESTIONS_FTP_PORT,
    START_PAUSE_MS,
)


@dataclass(frozen=True, slots=True)
class GameSettings:
    """Configuration shared by the coordinator, the TCP server and the operator API."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_players: int = MAX_PLAYERS
    max_points: int = MAX_POINTS
    min_points: int = MIN_POINTS
    answer_timeout_ms: int = ANSWER_TIMEOUT_MS
    start_pause_ms: int = START_PAUSE_MS
    next_pause_ms: int = NEXT_PAUSE_MS
    final_pause_ms: int = FINAL_PAUSE_MS
    api_host: str = OPERATOR_API_HOST
    api_port: int = OPERATOR_API_PORT
    questions_path: Path | None = None
    ftp_host: str | None = None
    ftp_port: int = QUESTIONS_FTP_PORT
    ftp_file: str = QUESTIONS_FTP_FILE
    shuffle_questions: bool = True

    def __post_init__(self) -> None:
        if self.max_players <= 0:
            raise ValueError("max_players must be a positive integer.")
        if self.answer_timeout_ms <= 0:
            raise ValueError("answer_timeout_ms must be a positive integer.")
        if not 0 <= self.min_points <= self.max_points:
            raise ValueError("min_points must be between 0 and max_points.")
        for name in ("start_pause_ms", "next_pause_ms", "final_pause_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative.")
