"""FastAPI server that exposes the operator endpoints."""

from __future__ import annotations

from threading import Thread
from typing import Sequence

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel
import uvicorn

from trivia_app.constants.about import APP_NAME, APP_VERSION
from trivia_app.constants.network_constants import OPERATOR_API_HOST, OPERATOR_API_PORT
from trivia_app.core.errors import GameStateError
from trivia_app.core.models import Question
from trivia_app.core.round_coordinator import RoundCoordinator
from trivia_app.core.services.scoreboard import format_ranking


class PlayerRow(BaseModel):
    """Registered player as shown to the operator."""

    name: str
    score: int


class RankingRow(BaseModel):
    position: int
    name: str
    score: int


class RankingPayload(BaseModel):
    entries: list[RankingRow]
    text: str


class StatusPayload(BaseModel):
    """Snapshot of the game for the operator."""

    state: str
    player_count: int
    question_count: int
    current_question: int | None = None
    answered_count: int | None = None
    awaiting_advance: bool


class CommandPayload(BaseModel):
    state: str
    detail: str


def _get_coordinator_dependency(coordinator: RoundCoordinator):
    def dependency() -> RoundCoordinator:
        return coordinator

    return dependency


def create_api_app(coordinator: RoundCoordinator, questions: Sequence[Question]) -> FastAPI:
    """Create a FastAPI application wired to the provided coordinator."""
    app = FastAPI(title=f"{APP_NAME} Operator API", version=APP_VERSION)
    coordinator_dep = _get_coordinator_dependency(coordinator)
    game_questions = list(questions)

    @app.get("/status")
    def get_status(manager: RoundCoordinator = Depends(coordinator_dep)) -> StatusPayload:
        active = manager.current_round()
        return StatusPayload(
            state=manager.state.value,
            player_count=manager.player_count(),
            question_count=manager.round_count or len(game_questions),
            current_question=active.index + 1 if active else None,
            answered_count=active.answered_count if active else None,
            awaiting_advance=manager.awaiting_advance,
        )

    @app.get("/players")
    def get_players(manager: RoundCoordinator = Depends(coordinator_dep)) -> list[PlayerRow]:
        return [PlayerRow(name=player.name, score=player.score) for player in manager.players()]

    @app.get("/ranking")
    def get_ranking(manager: RoundCoordinator = Depends(coordinator_dep)) -> RankingPayload:
        entries = manager.ranking()
        return RankingPayload(
            entries=[RankingRow(position=e.position, name=e.name, score=e.score) for e in entries],
            text=format_ranking(entries),
        )

    @app.post("/start", status_code=201)
    def start_game(manager: RoundCoordinator = Depends(coordinator_dep)) -> CommandPayload:
        try:
            manager.start_in_background(game_questions)
        except GameStateError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return CommandPayload(state=manager.state.value, detail=f"Game started with {manager.player_count()} players.")

    @app.post("/advance")
    def advance_game(manager: RoundCoordinator = Depends(coordinator_dep)) -> CommandPayload:
        if not manager.advance():
            raise HTTPException(status_code=409, detail="No round is waiting to advance.")
        return CommandPayload(state=manager.state.value, detail="Advancing to the next question.")

    return app


def start_api_server(
    coordinator: RoundCoordinator,
    questions: Sequence[Question],
    host: str = OPERATOR_API_HOST,
    port: int = OPERATOR_API_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(coordinator, questions)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="OperatorApiServer", daemon=True)
    thread.start()
    return thread
