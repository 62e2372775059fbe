"""Threaded TCP server that connects players to the round coordinator."""

from __future__ import annotations

import logging
import socket
import struct
import sys
from threading import Event, Thread
from typing import TextIO

from trivia_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT, ENCODING, SEND_TIMEOUT_SECONDS
from trivia_app.core.errors import GameStateError, ProtocolError
from trivia_app.core.models import RejectReason
from trivia_app.core.protocol import (
    ANSWER_PATH,
    NAME_PATH,
    STATUS_BAD_REQUEST,
    STATUS_UNAVAILABLE,
    MessageType,
    Request,
    read_request,
)
from trivia_app.core.round_coordinator import RoundCoordinator
from trivia_app.core.services.player_session import PlayerSession

logger = logging.getLogger(__name__)

_ACCEPT_POLL_SECONDS = 0.5
_REJECTION_MESSAGES = {
    RejectReason.DUPLICATE: "You have already answered this question.",
    RejectReason.INVALID: "Invalid answer. Only A, B, C or D.",
    RejectReason.CLOSED: "No question is open for answers right now.",
}


def set_send_timeout(conn: socket.socket, seconds: float) -> None:
    """Bound blocking writes only; reads on the connection stay blocking.

    A write that cannot finish in time raises ``OSError``, which the session
    treats as a disconnect, so a player who stops reading cannot stall a
    broadcast.
    """
    if sys.platform == "win32":
        value = struct.pack("I", int(seconds * 1000))
    else:
        whole = int(seconds)
        value = struct.pack("ll", whole, int((seconds - whole) * 1_000_000))
    conn.setsockopt(socket.SOL_SOCKET, socket.SO_SNDTIMEO, value)


def handle_connection(coordinator: RoundCoordinator, conn: socket.socket, address: tuple[str, int]) -> None:
    """Serve one player until the connection closes.

    Protocol and validation problems are answered with an ERROR message and
    the connection stays open. A failed read or write ends the session.
    """
    session = coordinator.create_session(conn, address)
    reader = conn.makefile("r", encoding=ENCODING, errors="replace", newline="\n")
    try:
        if not session.send(MessageType.NAME, "Enter your player name:"):
            return
        joined = _join(coordinator, session, reader)
        if not joined:
            return
        while True:
            try:
                request = read_request(reader)
            except ProtocolError as exc:
                session.send(MessageType.ERROR, str(exc), status=STATUS_BAD_REQUEST)
                continue
            if request is None:
                break
            _dispatch(session, request)
    except OSError as exc:
        if session.is_connected:
            logger.warning("Connection error with %s: %s", session.name, exc)
    finally:
        session.disconnect()
        try:
            reader.close()
        except OSError:
            pass


def _join(coordinator: RoundCoordinator, session: PlayerSession, reader: TextIO) -> bool:
    proposed: str | None = None
    try:
        request = read_request(reader)
    except ProtocolError as exc:
        session.send(MessageType.ERROR, f"{exc}. A name will be generated.", status=STATUS_BAD_REQUEST)
    else:
        if request is None:
            return False
        if request.method == "POST" and request.path == NAME_PATH:
            proposed = request.body
        else:
            session.send(
                MessageType.ERROR,
                f"Expected POST {NAME_PATH}. A name will be generated.",
                status=STATUS_BAD_REQUEST,
            )

    try:
        name = coordinator.register(session, proposed)
    except GameStateError as exc:
        logger.info("Rejected connection from %s: %s", session.address, exc)
        session.send(MessageType.ERROR, str(exc), status=STATUS_UNAVAILABLE)
        return False
    return session.send(MessageType.WELCOME, f"Welcome {name}! Waiting for the game to start...")


def _dispatch(session: PlayerSession, request: Request) -> None:
    if request.method != "POST" or request.path not in (NAME_PATH, ANSWER_PATH):
        session.send(
            MessageType.ERROR,
            f"Unknown request: {request.method} {request.path}",
            status=STATUS_BAD_REQUEST,
        )
        return

    if request.path == NAME_PATH:
        session.send(
            MessageType.ERROR,
            f"Your name is already set to {session.name}.",
            status=STATUS_BAD_REQUEST,
        )
        return

    outcome = session.record_answer(request.body)
    if outcome.accepted:
        label = request.body.strip().upper()
        logger.info("%s answered %s (%d ms)", session.name, label, outcome.latency_ms)
        session.send(MessageType.CONFIRMATION, f"Answer {label} received in {outcome.latency_ms} ms")
    else:
        logger.debug("Rejected answer from %s: %s", session.name, outcome.reason)
        message = _REJECTION_MESSAGES[outcome.reason]
        if outcome.reason is RejectReason.INVALID and not request.body.strip():
            message = "Empty answer."
        session.send(MessageType.ERROR, message, status=STATUS_BAD_REQUEST)


class QuizServer:
    """Listening socket plus the accept loop that spawns one thread per player."""

    def __init__(
        self,
        coordinator: RoundCoordinator,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        send_timeout: float = SEND_TIMEOUT_SECONDS,
    ) -> None:
        self._coordinator = coordinator
        self._host = host
        self._port = port
        self._send_timeout = send_timeout
        self._socket: socket.socket | None = None
        self._stopped = Event()
        self._thread: Thread | None = None

    @property
    def address(self) -> tuple[str, int]:
        if self._socket is None:
            raise RuntimeError("The server is not listening.")
        return self._socket.getsockname()[:2]

    def start(self) -> "QuizServer":
        server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server_socket.bind((self._host, self._port))
        server_socket.listen()
        server_socket.settimeout(_ACCEPT_POLL_SECONDS)
        self._socket = server_socket

        self._thread = Thread(target=self._accept_loop, name="QuizAcceptor", daemon=True)
        self._thread.start()
        logger.info("Listening for players on %s:%d", *self.address)
        return self

    def close(self) -> None:
        self._stopped.set()
        if self._thread is not None:
            self._thread.join(timeout=_ACCEPT_POLL_SECONDS * 4)
        if self._socket is not None:
            self._socket.close()

    def _accept_loop(self) -> None:
        assert self._socket is not None
        while not self._stopped.is_set():
            try:
                conn, address = self._socket.accept()
            except TimeoutError:
                continue
            except OSError:
                break
            conn.settimeout(None)
            try:
                set_send_timeout(conn, self._send_timeout)
            except OSError as exc:
                logger.warning("Could not set a send timeout for %s: %s", address, exc)
            Thread(
                target=handle_connection,
                args=(self._coordinator, conn, address),
                name=f"Player-{address[0]}:{address[1]}",
                daemon=True,
            ).start()


def start_quiz_server(
    coordinator: RoundCoordinator,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    send_timeout: float = SEND_TIMEOUT_SECONDS,
) -> QuizServer:
    """Start accepting players in a background daemon thread."""
    return QuizServer(coordinator, host=host, port=port, send_timeout=send_timeout).start()
