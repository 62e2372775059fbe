"""Line-based operator console that drives the round coordinator."""

from __future__ import annotations

import logging
import sys
from typing import Callable, Sequence, TextIO

from trivia_app.constants.about import CONSOLE_HELP_TEXT
from trivia_app.core.errors import GameStateError, NoPlayersError
from trivia_app.core.models import GameState, Question
from trivia_app.core.round_coordinator import RoundCoordinator
from trivia_app.core.services.scoreboard import format_ranking

logger = logging.getLogger(__name__)

START_COMMANDS = {"start", "iniciar"}
ADVANCE_COMMANDS = {"next", "advance", "siguiente"}
STATUS_COMMANDS = {"status"}
QUIT_COMMANDS = {"quit", "exit"}


class OperatorConsole:
    """Reads operator commands and forwards them to the coordinator.

    Unknown input is ignored with a re-prompt. The loop ends on ``quit``, at
    end of input, or once the game has finished.
    """

    def __init__(
        self,
        coordinator: RoundCoordinator,
        questions: Sequence[Question],
        *,
        input_stream: TextIO | None = None,
        write: Callable[[str], None] = print,
    ) -> None:
        self._coordinator = coordinator
        self._questions = list(questions)
        self._input = input_stream or sys.stdin
        self._write = write
        self.quit_requested = False

    def run(self) -> None:
        self._write(CONSOLE_HELP_TEXT)
        self._prompt()
        for raw_line in self._input:
            if not self.handle(raw_line):
                break
            if self._coordinator.state is GameState.FINISHED:
                self._write("The game is over.")
                break
            self._prompt()

    def handle(self, raw_line: str) -> bool:
        """Run one command. Returns False when the console should stop."""
        command = raw_line.strip().lower()
        if command in START_COMMANDS:
            self._start()
        elif command in ADVANCE_COMMANDS:
            if not self._coordinator.advance():
                self._write("[!] Nothing to advance right now.")
        elif command in STATUS_COMMANDS:
            self._write(self.status_text())
        elif command in QUIT_COMMANDS:
            self.quit_requested = True
            self._coordinator.shutdown()
            return False
        elif command:
            self._write(f"[!] Unknown command '{command}'.")
        return True

    def status_text(self) -> str:
        coordinator = self._coordinator
        lines = [f"State: {coordinator.state.value} ({coordinator.player_count()} players)"]
        active = coordinator.current_round()
        if active is not None:
            lines.append(
                f"Question {active.index + 1}/{coordinator.round_count}: "
                f"{active.answered_count} answers so far"
            )
        if coordinator.awaiting_advance:
            lines.append("Waiting for 'next'.")
        ranking = format_ranking(coordinator.ranking())
        if ranking:
            lines.append(f"Ranking: {ranking}")
        return "\n".join(lines)

    def _start(self) -> None:
        try:
            self._coordinator.start_in_background(self._questions)
        except NoPlayersError:
            logger.warning("Start requested with no players connected")
            self._write("[!] No players connected yet. Wait for players to join and try again.")
        except GameStateError as exc:
            self._write(f"[!] {exc}")
        else:
            self._write(f"[*] Game started with {self._coordinator.player_count()} players!")

    def _prompt(self) -> None:
        if self._coordinator.awaiting_advance:
            self._write("Type 'next' to continue.")
        elif self._coordinator.state is GameState.LOBBY:
            self._write("Type 'start' to begin the game.")
