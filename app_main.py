"""Application entry point for the TriviaRounds server."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from threading import Thread

from trivia_app.constants.about import APP_NAME, APP_VERSION
from trivia_app.core.models import GameState
from trivia_app.core.question_loader import load_questions
from trivia_app.core.round_coordinator import RoundCoordinator
from trivia_app.core.settings import GameSettings
from trivia_app.server.api_server import start_api_server
from trivia_app.server.tcp_server import start_quiz_server
from trivia_app.ui import OperatorConsole
from trivia_app.utils.logging_config import configure_logging


def _build_parser() -> argparse.ArgumentParser:
    defaults = GameSettings()
    parser = argparse.ArgumentParser(prog="trivia-server", description=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("--host", default=defaults.host, help="interface players connect to")
    parser.add_argument("--port", type=int, default=defaults.port, help="TCP port for players")
    parser.add_argument("--max-players", type=int, default=defaults.max_players)
    parser.add_argument("--max-points", type=int, default=defaults.max_points)
    parser.add_argument("--timeout-ms", type=int, default=defaults.answer_timeout_ms, help="time allowed per question")
    parser.add_argument("--next-pause-ms", type=int, default=defaults.next_pause_ms, help="pause before the next question")
    parser.add_argument("--questions", type=Path, default=None, help="CSV or block-format question file")
    parser.add_argument("--ftp-host", default=None, help="FTP server holding the question CSV")
    parser.add_argument("--ftp-port", type=int, default=defaults.ftp_port)
    parser.add_argument("--ftp-file", default=defaults.ftp_file)
    parser.add_argument("--no-shuffle", action="store_true", help="keep the questions in file order")
    parser.add_argument("--api-host", default=defaults.api_host)
    parser.add_argument("--api-port", type=int, default=defaults.api_port)
    parser.add_argument("--no-api", action="store_true", help="do not start the operator HTTP API")
    parser.add_argument("--debug", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Initialize logging, load questions, start the servers and run the operator console."""
    args = _build_parser().parse_args(argv)
    logger = configure_logging(logging.DEBUG if args.debug else logging.INFO)
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    try:
        settings = GameSettings(
            host=args.host,
            port=args.port,
            max_players=args.max_players,
            max_points=args.max_points,
            answer_timeout_ms=args.timeout_ms,
            next_pause_ms=args.next_pause_ms,
            api_host=args.api_host,
            api_port=args.api_port,
            questions_path=args.questions,
            ftp_host=args.ftp_host,
            ftp_port=args.ftp_port,
            ftp_file=args.ftp_file,
            shuffle_questions=not args.no_shuffle,
        )
    except ValueError as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(2)

    questions = load_questions(settings)
    coordinator = RoundCoordinator(settings)
    try:
        quiz_server = start_quiz_server(coordinator, host=settings.host, port=settings.port)
    except OSError as exc:
        logger.error("Could not listen on %s:%d: %s", settings.host, settings.port, exc)
        sys.exit(1)
    if not args.no_api:
        start_api_server(coordinator, questions, host=settings.api_host, port=settings.api_port)
        logger.info("Operator API available at http://%s:%d/status", settings.api_host, settings.api_port)
    logger.info("%d questions loaded. Waiting for players...", len(questions))

    console = OperatorConsole(coordinator, questions)
    console_thread = Thread(target=console.run, name="OperatorConsole", daemon=True)
    console_thread.start()
    try:
        while not coordinator.wait_until_finished(timeout=0.5):
            if console.quit_requested or (args.no_api and not console_thread.is_alive()):
                break
    except KeyboardInterrupt:
        logger.info("Interrupted; shutting down.")
    finally:
        coordinator.shutdown()
        if coordinator.state is GameState.RUNNING:
            coordinator.wait_until_finished(timeout=5)
        quiz_server.close()
    logger.info("Server stopped.")


if __name__ == "__main__":
    main()
