from __future__ import annotations

from collections.abc import Generator
import socket
from typing import Callable

import pytest

from conftest import PlayerEnd, wait_for
from trivia_app.core.models import GameState, Question
from trivia_app.core.protocol import (
    ANSWER_PATH,
    NAME_PATH,
    STATUS_BAD_REQUEST,
    STATUS_UNAVAILABLE,
    MessageType,
    encode_request,
)
from trivia_app.core.round_coordinator import RoundCoordinator
from trivia_app.core.settings import GameSettings
from trivia_app.server.tcp_server import QuizServer, set_send_timeout

QUESTION = Question("Which port does HTTPS use?", ("21", "443", "80", "8080"), "B")
LONG_ROUND = GameSettings(answer_timeout_ms=10_000, start_pause_ms=0, next_pause_ms=0, final_pause_ms=0)


class Client(PlayerEnd):
    def post(self, path: str, body: str = "") -> None:
        self.sock.sendall(encode_request("POST", path, body))


@pytest.fixture()
def connect(server: QuizServer) -> Generator[Callable[[], Client], None, None]:
    clients: list[Client] = []

    def _connect() -> Client:
        client = Client(socket.create_connection(server.address, timeout=5))
        clients.append(client)
        return client

    yield _connect
    for client in clients:
        client.close()


@pytest.fixture()
def join(connect: Callable[[], Client]) -> Callable[[str], Client]:
    def _join(name: str) -> Client:
        client = connect()
        assert client.read_until(MessageType.NAME).body == "Enter your player name:"
        client.post(NAME_PATH, name)
        client.read_until(MessageType.WELCOME)
        return client

    return _join


def test_join_handshake(connect: Callable[[], Client], coordinator: RoundCoordinator) -> None:
    client = connect()

    prompt = client.read()
    assert prompt is not None and prompt.type == MessageType.NAME.value
    client.post(NAME_PATH, "  ana  ")
    welcome = client.read()

    assert welcome is not None and welcome.ok
    assert welcome.body == "Welcome ana! Waiting for the game to start..."
    assert [p.name for p in coordinator.players()] == ["ana"]


def test_blank_name_gets_a_generated_one(connect: Callable[[], Client]) -> None:
    client = connect()
    client.read_until(MessageType.NAME)
    client.post(NAME_PATH, "")

    assert client.read_until(MessageType.WELCOME).body.startswith("Welcome Spare Player!")


def test_unexpected_first_request_still_joins(connect: Callable[[], Client]) -> None:
    client = connect()
    client.read_until(MessageType.NAME)
    client.post(ANSWER_PATH, "A")

    error = client.read()
    assert error is not None and error.type == MessageType.ERROR.value
    assert error.status == STATUS_BAD_REQUEST
    assert "A name will be generated." in error.body
    assert client.read_until(MessageType.WELCOME).body.startswith("Welcome Spare Player!")


def test_protocol_errors_keep_the_connection_open(join: Callable[[str], Client]) -> None:
    client = join("ana")

    client.post("/unknown", "x")
    unknown = client.read()
    client.sock.sendall(b"garbage\n\n")
    malformed = client.read()
    client.post(NAME_PATH, "bob")
    rename = client.read()
    client.post(ANSWER_PATH, "A")
    lobby_answer = client.read()

    assert unknown is not None and unknown.body == "Unknown request: POST /unknown"
    assert unknown.status == STATUS_BAD_REQUEST
    assert malformed is not None and malformed.type == MessageType.ERROR.value
    assert "Malformed request line" in malformed.body
    assert rename is not None and rename.body == "Your name is already set to ana."
    assert lobby_answer is not None and lobby_answer.body == "No question is open for answers right now."


def test_client_leaving_the_lobby_is_removed(join: Callable[[str], Client], coordinator: RoundCoordinator) -> None:
    client = join("ana")
    assert coordinator.player_count() == 1

    client.close()

    assert wait_for(lambda: coordinator.player_count() == 0)


@pytest.mark.parametrize("fast_settings", [LONG_ROUND])
def test_full_game_over_tcp(join: Callable[[str], Client], coordinator: RoundCoordinator) -> None:
    ana = join("ana")
    bob = join("bob")
    coordinator.start_in_background([QUESTION])

    assert ana.read_until(MessageType.START).body == "The game is starting! 1 questions."
    assert ana.read_until(MessageType.QUESTION).body == "1/1|Which port does HTTPS use?|21|443|80|8080"
    bob.read_until(MessageType.QUESTION)

    ana.post(ANSWER_PATH, "b")
    confirmation = ana.read_until(MessageType.CONFIRMATION)
    ana.post(ANSWER_PATH, "C")
    duplicate = ana.read_until(MessageType.ERROR)
    bob.post(ANSWER_PATH, "")
    empty = bob.read_until(MessageType.ERROR)
    bob.post(ANSWER_PATH, "a")
    bob.read_until(MessageType.CONFIRMATION)

    assert confirmation.body == "Answer B received in 0 ms"
    assert duplicate.body == "You have already answered this question."
    assert empty.body == "Empty answer."
    assert ana.read_until(MessageType.RESULT).body == "CORRECT! +1000 points"
    assert bob.read_until(MessageType.RESULT).body == "INCORRECT. +0 points"
    assert ana.read_until(MessageType.END).body == "1. ana - 1000 pts | 2. bob - 0 pts"
    assert ana.read() is None
    assert coordinator.wait_until_finished(5)


@pytest.mark.parametrize("fast_settings", [LONG_ROUND])
def test_joining_after_the_start_is_refused(
    join: Callable[[str], Client],
    connect: Callable[[], Client],
    coordinator: RoundCoordinator,
) -> None:
    ana = join("ana")
    coordinator.start_in_background([QUESTION])
    assert coordinator.state is GameState.RUNNING

    late = connect()
    late.read_until(MessageType.NAME)
    late.post(NAME_PATH, "late")
    refusal = late.read()

    assert refusal is not None and refusal.status == STATUS_UNAVAILABLE
    assert late.read() is None
    assert coordinator.player_count() == 1

    ana.read_until(MessageType.QUESTION)
    ana.post(ANSWER_PATH, "B")
    ana.read_until(MessageType.END)


def test_player_that_stops_reading_is_dropped(coordinator: RoundCoordinator) -> None:
    server_sock, client_sock = socket.socketpair()
    set_send_timeout(server_sock, 0.2)
    session = coordinator.create_session(server_sock)
    coordinator.register(session, "sleepy")

    delivered = True
    for _ in range(10_000):
        delivered = session.send(MessageType.INFO, "x" * 65_536)
        if not delivered:
            break

    assert not delivered
    assert not session.is_connected
    assert coordinator.player_count() == 0
    client_sock.close()
