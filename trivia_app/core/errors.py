"""Exceptions raised by the trivia core."""

from __future__ import annotations


class GameStateError(RuntimeError):
    """Raised when an operation is not allowed in the current game state."""


class NoPlayersError(GameStateError):
    """Raised when the game is started without any registered player."""


class LobbyFullError(GameStateError):
    """Raised when the lobby already holds the maximum number of players."""


class ProtocolError(ValueError):
    """Raised when a request line cannot be parsed."""


class QuestionSourceError(Exception):
    """Raised when questions cannot be fetched or parsed."""
