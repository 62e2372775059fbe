"""Round coordination shared between the TCP server, the console and the operator API."""

from __future__ import annotations

from dataclasses import replace
from itertools import count
import logging
import socket
from threading import Event, Lock, Thread
from typing import Callable, Sequence

from trivia_app.core.errors import GameStateError, LobbyFullError, NoPlayersError
from trivia_app.core.models import ActiveRound, GameState, Question, RankingEntry
from trivia_app.core.name_assigner import NameAssigner
from trivia_app.core.protocol import MessageType
from trivia_app.core.services.advance_signal import AdvanceSignal
from trivia_app.core.services.answer_gate import AnswerGate, GateResult
from trivia_app.core.services.player_session import PlayerSession, monotonic_ms
from trivia_app.core.services.scoreboard import (
    build_ranking,
    calculate_points,
    format_ranking,
    format_result,
)
from trivia_app.core.settings import GameSettings

logger = logging.getLogger(__name__)


class RoundCoordinator:
    """Owns the player registry, the answer gate and the round loop of one game.

    Lock order is registry lock, then session lock, then the gate's condition.
    Nothing is written to a socket while the registry lock is held.
    """

    def __init__(
        self,
        settings: GameSettings | None = None,
        *,
        name_assigner: NameAssigner | None = None,
        clock: Callable[[], int] = monotonic_ms,
    ) -> None:
        self._settings = settings or GameSettings()
        self._name_assigner = name_assigner or NameAssigner.from_default_file()
        self._clock = clock

        self._lock = Lock()
        self._sessions: dict[int, PlayerSession] = {}
        self._session_ids = count(1)
        self._state = GameState.LOBBY
        self._questions: list[Question] = []
        self._round: ActiveRound | None = None
        self._last_ranking: list[RankingEntry] = []

        self._gate = AnswerGate()
        self._advance = AdvanceSignal()
        self._stop = Event()
        self._finished = Event()

    @property
    def settings(self) -> GameSettings:
        return self._settings

    # --- Registry ---

    def create_session(
        self,
        connection: socket.socket,
        address: tuple[str, int] | None = None,
    ) -> PlayerSession:
        """Wrap an accepted connection. The session joins the game on ``register``."""
        return PlayerSession(
            next(self._session_ids),
            connection,
            self._gate,
            address=address,
            name_assigner=self._name_assigner,
            clock=self._clock,
            on_disconnect=self._release_session,
        )

    def register(self, session: PlayerSession, proposed_name: str | None) -> str:
        """Name the player and add it to the registry. Only allowed in the lobby."""
        with self._lock:
            if self._state is not GameState.LOBBY:
                raise GameStateError("The game has already started; no new players can join.")
            if len(self._sessions) >= self._settings.max_players:
                raise LobbyFullError(f"The game is full ({self._settings.max_players} players).")
            if not session.is_connected:
                raise GameStateError("The connection was closed before joining.")
            name = session.assign_name(proposed_name)
            self._sessions[session.session_id] = session
            player_count = len(self._sessions)
            others = [s for s in self._sessions.values() if s is not session]

        logger.info("%s joined from %s (%d players connected)", name, session.address, player_count)
        for other in others:
            other.send(MessageType.INFO, f"{name} joined! ({player_count} players)")
        return name

    def remove_session(self, session: PlayerSession) -> None:
        session.disconnect()

    def _release_session(self, session: PlayerSession) -> bool:
        with self._lock:
            if not session.mark_disconnected():
                return False
            removed = self._sessions.pop(session.session_id, None)
            remaining = len(self._sessions)
            running = self._state is GameState.RUNNING
            if removed is not None and running:
                self._gate.remove_expected(session.slot().answered)
                if not remaining:
                    self._advance.cancel()

        if removed is not None:
            logger.info("%s disconnected (%d players remaining)", session.name, remaining)
            if running and not remaining:
                logger.warning("Every player has left; the game will end.")
        return True

    def players(self) -> list[PlayerSession]:
        """Registered players in join order."""
        with self._lock:
            return list(self._sessions.values())

    def player_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    # --- Game state ---

    @property
    def state(self) -> GameState:
        with self._lock:
            return self._state

    @property
    def round_count(self) -> int:
        with self._lock:
            return len(self._questions)

    @property
    def awaiting_advance(self) -> bool:
        return self._advance.is_waiting()

    def current_round(self) -> ActiveRound | None:
        with self._lock:
            if self._round is None:
                return None
            answered, _ = self._gate.counts()
            return replace(self._round, answered_count=answered)

    def ranking(self) -> list[RankingEntry]:
        with self._lock:
            if self._state is GameState.LOBBY or (self._sessions and not self._last_ranking):
                return build_ranking(self._sessions.values())
            return list(self._last_ranking)

    def wait_until_finished(self, timeout: float | None = None) -> bool:
        return self._finished.wait(timeout)

    # --- Operator commands ---

    def begin(self, questions: Sequence[Question]) -> None:
        """Leave the lobby. The registry is frozen from here on."""
        questions = list(questions)
        if not questions:
            raise ValueError("A game needs at least one question.")
        with self._lock:
            if self._state is not GameState.LOBBY:
                raise GameStateError("The game has already been started.")
            if not self._sessions:
                raise NoPlayersError("No players are connected yet.")
            self._state = GameState.RUNNING
            self._questions = questions
            player_count = len(self._sessions)
        logger.info("Game started with %d players and %d questions", player_count, len(questions))

    def start(self, questions: Sequence[Question]) -> None:
        """Start the game and play it to the end in the calling thread."""
        self.begin(questions)
        self.run()

    def start_in_background(self, questions: Sequence[Question]) -> Thread:
        self.begin(questions)
        thread = Thread(target=self.run, name="GameLoop", daemon=True)
        thread.start()
        return thread

    def advance(self) -> bool:
        """Release the loop waiting between rounds. False if nothing is waiting."""
        advanced = self._advance.trigger()
        if advanced:
            logger.info("Operator advanced to the next question")
        return advanced

    def shutdown(self) -> None:
        self._stop.set()
        self._advance.cancel()

    # --- Round loop ---

    def run(self) -> None:
        with self._lock:
            if self._state is not GameState.RUNNING:
                raise GameStateError("Call begin() before running the game.")
            questions = list(self._questions)
        total = len(questions)

        try:
            self._broadcast(MessageType.START, f"The game is starting! {total} questions.")
            self._pause(self._settings.start_pause_ms)

            for index, question in enumerate(questions):
                if self._stop.is_set() or not self.player_count():
                    break
                self._play_round(index, question, total)
                if index == total - 1:
                    break
                self._broadcast(MessageType.NEXT, "Next question as soon as the host continues...")
                logger.info("Waiting for the operator to advance (round %d/%d done)", index + 1, total)
                if not self._advance.wait():
                    logger.info("Stopped waiting for the operator; ending the game.")
                    break
                self._pause(self._settings.next_pause_ms)
        finally:
            self._finish()

    def _play_round(self, index: int, question: Question, total: int) -> None:
        with self._lock:
            live = list(self._sessions.values())
            for session in live:
                session.reset_for_round()
            self._gate.reset(len(live))

        logger.info(
            "Question %d/%d: %s (correct: %s)", index + 1, total, question.text, question.correct_option
        )
        for session in live:
            session.send_question(question, index + 1, total)

        deadline = self._gate.now() + self._settings.answer_timeout_ms / 1000
        with self._lock:
            self._round = ActiveRound(index=index, question=question, deadline=deadline)

        result = self._gate.wait(deadline)
        answered, expected = self._gate.counts()
        if result is GateResult.ALL_ANSWERED:
            logger.info("Everyone answered (%d/%d)", answered, expected)
        else:
            logger.info("Time is up (%d/%d answered)", answered, expected)

        self._score_round(question)
        ranking = self._refresh_ranking()
        line = format_ranking(ranking)
        logger.info("Ranking after question %d: %s", index + 1, line)
        self._broadcast(MessageType.RANKING, line)
        with self._lock:
            self._round = None

    def _score_round(self, question: Question) -> None:
        settings = self._settings
        for session in self.players():
            slot = session.close_round()
            points = calculate_points(
                slot,
                question.correct_option,
                settings.answer_timeout_ms,
                max_points=settings.max_points,
                min_points=settings.min_points,
            )
            correct = slot.answered and slot.option == question.correct_option
            if points:
                session.add_points(points)
            if slot.answered:
                logger.info("  %s answered %s in %d ms: +%d", session.name, slot.option, slot.latency_ms, points)
            else:
                logger.info("  %s did not answer", session.name)
            session.send(MessageType.RESULT, format_result(correct, points))

    def _refresh_ranking(self) -> list[RankingEntry]:
        with self._lock:
            self._last_ranking = build_ranking(self._sessions.values())
            return list(self._last_ranking)

    def _finish(self) -> None:
        if self.player_count():
            self._pause(self._settings.final_pause_ms)
        ranking = self._refresh_ranking()
        line = format_ranking(ranking)
        with self._lock:
            self._state = GameState.FINISHED
            self._round = None
            live = list(self._sessions.values())
        logger.info("Final ranking: %s", line or "(no players)")

        for session in live:
            session.send(MessageType.END, line)
        for session in live:
            session.disconnect()
        self._finished.set()

    def _broadcast(self, message_type: MessageType, body: str) -> None:
        for session in self.players():
            session.send(message_type, body)

    def _pause(self, milliseconds: int) -> None:
        if milliseconds > 0:
            self._stop.wait(milliseconds / 1000)
