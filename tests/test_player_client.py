from __future__ import annotations

import io
from typing import Callable

import pytest

from conftest import wait_for
from trivia_app.client.player_client import PlayerClient, render_message, render_question
from trivia_app.core.models import Question
from trivia_app.core.protocol import MessageType, Response
from trivia_app.core.round_coordinator import RoundCoordinator
from trivia_app.core.settings import GameSettings
from trivia_app.server.tcp_server import QuizServer

QUESTION = Question("Which port does DNS use?", ("53", "67", "80", "110"), "A")
LONG_ROUND = GameSettings(answer_timeout_ms=10_000, start_pause_ms=0, next_pause_ms=0, final_pause_ms=0)


def _client(server: QuizServer) -> tuple[PlayerClient, list[str]]:
    output: list[str] = []
    host, port = server.address
    return PlayerClient(host, port, write=output.append), output


def test_question_rendering() -> None:
    text = render_question("2/5|Which port does DNS use?|53|67|80|110")

    assert text.splitlines()[:3] == ["QUESTION 2/5", "  Which port does DNS use?", "    A) 53"]
    assert render_message(Response(200, MessageType.RANKING.value, "1. ana - 5 pts | 2. bob - 0 pts")) == (
        "Ranking:\n  1. ana - 5 pts\n  2. bob - 0 pts"
    )
    assert render_message(Response(400, MessageType.ERROR.value, "nope")) == "[!] nope"


def test_answers_are_held_back_until_a_question_arrives(server: QuizServer, coordinator: RoundCoordinator) -> None:
    client, output = _client(server)
    assert client.join("ana")

    client.run(io.StringIO("a\n/quit\n"))

    assert "Welcome ana! Waiting for the game to start..." in output
    assert "(Wait for a question to arrive.)" in output
    assert wait_for(lambda: coordinator.player_count() == 0)


@pytest.mark.parametrize("fast_settings", [LONG_ROUND])
def test_client_plays_a_game(server: QuizServer, coordinator: RoundCoordinator) -> None:
    client, output = _client(server)
    assert client.join("ana")
    client.start_listener()

    coordinator.start_in_background([QUESTION])
    assert wait_for(lambda: client.can_answer)
    assert not client.submit("E")
    assert not client.submit("ab")
    assert client.submit(" a ")
    assert not client.can_answer

    assert coordinator.wait_until_finished(5)
    assert client.wait_closed(5)
    assert "Only A, B, C or D can be answered." in output
    assert "*** CORRECT! +1000 points ***" in output
    assert output[-1] == "GAME OVER\nFinal ranking:\n  1. ana - 1000 pts"


@pytest.mark.parametrize("fast_settings", [LONG_ROUND])
def test_join_refused_once_the_game_runs(
    server: QuizServer,
    coordinator: RoundCoordinator,
    join_player: Callable,
) -> None:
    join_player("bob")
    coordinator.start_in_background([QUESTION])
    client, output = _client(server)

    assert not client.join("late")
    assert output[-1].startswith("[!] The game has already started")
