"""Operator-facing console for the trivia server."""

from .operator_console import OperatorConsole

__all__ = ["OperatorConsole"]
