"""Scoring of round answers and ranking of players."""

from __future__ import annotations

from typing import Iterable

from trivia_app.constants.quiz_constants import MAX_POINTS, MIN_POINTS
from trivia_app.core.models import AnswerSlot, RankingEntry
from trivia_app.core.services.player_session import PlayerSession

RANKING_SEPARATOR = " | "


def calculate_points(
    slot: AnswerSlot,
    correct_option: str,
    timeout_ms: int,
    max_points: int = MAX_POINTS,
    min_points: int = MIN_POINTS,
) -> int:
    """Award points for one answer.

    Wrong or missing answers score nothing. A correct answer decays linearly
    from ``max_points`` at zero latency to ``min_points`` at ``timeout_ms``.
    """
    if timeout_ms <= 0:
        raise ValueError("timeout_ms must be a positive integer.")
    if not slot.answered or slot.option != correct_option.upper():
        return 0
    latency_ms = max(0, int(slot.latency_ms or 0))
    points = max_points - latency_ms * (max_points - min_points) // timeout_ms
    return max(min_points, points)


def build_ranking(sessions: Iterable[PlayerSession]) -> list[RankingEntry]:
    """Rank players by score, keeping join order between equal scores."""
    scored = [(session.name, session.score) for session in sessions]
    # sorted() is stable, so ties keep the registry order.
    ordered = sorted(scored, key=lambda row: row[1], reverse=True)
    return [
        RankingEntry(position=position, name=name, score=score)
        for position, (name, score) in enumerate(ordered, start=1)
    ]


def format_ranking(entries: Iterable[RankingEntry]) -> str:
    return RANKING_SEPARATOR.join(str(entry) for entry in entries)


def format_result(correct: bool, points: int) -> str:
    if correct:
        return f"CORRECT! +{points} points"
    return "INCORRECT. +0 points"
