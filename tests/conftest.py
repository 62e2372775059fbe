from __future__ import annotations

from collections.abc import Generator
import socket
import time
from typing import Callable, TextIO

import pytest

from trivia_app.core.name_assigner import NameAssigner
from trivia_app.core.protocol import MessageType, Response, read_response
from trivia_app.core.round_coordinator import RoundCoordinator
from trivia_app.core.services.player_session import PlayerSession
from trivia_app.core.settings import GameSettings
from trivia_app.server.tcp_server import QuizServer, start_quiz_server

READ_TIMEOUT_SECONDS = 5.0


class ManualClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now: int = 0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class PlayerEnd:
    """Client side of a socket pair, reading framed server messages."""

    def __init__(self, sock: socket.socket) -> None:
        sock.settimeout(READ_TIMEOUT_SECONDS)
        self.sock = sock
        self.reader: TextIO = sock.makefile("r", encoding="utf-8", newline="\n")

    def read(self) -> Response | None:
        return read_response(self.reader)

    def read_until(self, message_type: MessageType) -> Response:
        while True:
            response = self.read()
            if response is None:
                raise AssertionError(f"connection closed before {message_type.value}")
            if response.type == message_type.value:
                return response

    def close(self) -> None:
        self.reader.close()
        self.sock.close()


def wait_for(predicate: Callable[[], bool], timeout: float = READ_TIMEOUT_SECONDS) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture()
def fast_settings() -> GameSettings:
    return GameSettings(
        answer_timeout_ms=300,
        start_pause_ms=0,
        next_pause_ms=0,
        final_pause_ms=0,
    )


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def coordinator(fast_settings: GameSettings, clock: ManualClock) -> Generator[RoundCoordinator, None, None]:
    manager = RoundCoordinator(fast_settings, clock=clock, name_assigner=NameAssigner(["Spare Player"], seed=0))
    yield manager
    manager.shutdown()


@pytest.fixture()
def join_player(
    coordinator: RoundCoordinator,
) -> Generator[Callable[[str], tuple[PlayerSession, PlayerEnd]], None, None]:
    """Register a player over a socket pair and hand back both ends."""
    ends: list[PlayerEnd] = []

    def _join(name: str) -> tuple[PlayerSession, PlayerEnd]:
        server_sock, client_sock = socket.socketpair()
        session = coordinator.create_session(server_sock)
        coordinator.register(session, name)
        end = PlayerEnd(client_sock)
        ends.append(end)
        return session, end

    yield _join
    for end in ends:
        end.close()


@pytest.fixture()
def server(coordinator: RoundCoordinator) -> Generator[QuizServer, None, None]:
    """Quiz server on an ephemeral loopback port."""
    quiz_server = start_quiz_server(coordinator, host="127.0.0.1", port=0)
    yield quiz_server
    quiz_server.close()
