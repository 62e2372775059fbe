"""Line-based terminal client for players.

The client joins with ``POST /nombre``, prints every server message from a
listener thread and sends answers typed on stdin as ``POST /respuesta``.
Answers are checked locally so only A-D go out, and only while a question
is open.
"""

from __future__ import annotations

import argparse
import logging
import socket
import sys
from threading import Event, Thread
from typing import Callable, Sequence, TextIO

from trivia_app.constants.about import APP_NAME
from trivia_app.constants.network_constants import CLIENT_DEFAULT_HOST, DEFAULT_PORT, ENCODING
from trivia_app.constants.quiz_constants import OPTION_LABELS
from trivia_app.core.protocol import ANSWER_PATH, NAME_PATH, MessageType, Response, encode_request, read_response
from trivia_app.utils.logging_config import configure_logging

logger = logging.getLogger(__name__)

QUIT_COMMANDS = {"/quit", "/salir"}
_CONNECT_TIMEOUT_SECONDS = 10.0


def render_question(body: str) -> str:
    parts = body.split("|")
    if len(parts) < 2 + len(OPTION_LABELS):
        return body
    progress, text, *options = parts
    lines = [f"QUESTION {progress}", f"  {text}"]
    lines.extend(f"    {label}) {option}" for label, option in zip(OPTION_LABELS, options))
    lines.append("Type A, B, C or D and press Enter.")
    return "\n".join(lines)


def render_ranking(body: str) -> str:
    if not body:
        return "  (no players)"
    return "\n".join(f"  {entry}" for entry in body.split(" | "))


def render_message(response: Response) -> str:
    """Turn one server message into the text shown to the player."""
    kind, body = response.type, response.body
    if kind == MessageType.QUESTION.value:
        return render_question(body)
    if kind == MessageType.RESULT.value:
        return f"*** {body} ***"
    if kind == MessageType.RANKING.value:
        return f"Ranking:\n{render_ranking(body)}"
    if kind == MessageType.END.value:
        return f"GAME OVER\nFinal ranking:\n{render_ranking(body)}"
    if kind == MessageType.NEXT.value:
        return body or "Next question soon..."
    if kind == MessageType.INFO.value:
        return f"[i] {body}"
    if kind == MessageType.ERROR.value:
        return f"[!] {body}"
    if kind in (MessageType.START.value, MessageType.CONFIRMATION.value):
        return f">> {body}"
    return body


class PlayerClient:
    """One player's connection to the trivia server."""

    def __init__(
        self,
        host: str = CLIENT_DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        *,
        write: Callable[[str], None] = print,
    ) -> None:
        self._host = host
        self._port = port
        self._write = write
        self._socket: socket.socket | None = None
        self._reader: TextIO | None = None
        self._question_open = Event()
        self._closed = Event()
        self._listener: Thread | None = None

    @property
    def can_answer(self) -> bool:
        return self._question_open.is_set()

    @property
    def is_connected(self) -> bool:
        return self._socket is not None and not self._closed.is_set()

    def join(self, name: str) -> bool:
        """Connect and register under ``name``. False if the server turned us away."""
        sock = socket.create_connection((self._host, self._port), timeout=_CONNECT_TIMEOUT_SECONDS)
        sock.settimeout(None)
        self._socket = sock
        self._reader = sock.makefile("r", encoding=ENCODING, errors="replace", newline="\n")

        prompt = read_response(self._reader)
        if prompt is None:
            self.close()
            return False
        self._send(NAME_PATH, name)

        while True:
            reply = read_response(self._reader)
            if reply is None:
                self._write("[!] The server closed the connection.")
                self.close()
                return False
            self._write(render_message(reply))
            if reply.type == MessageType.WELCOME.value:
                return True
            if not reply.ok and reply.status != 400:
                self.close()
                return False

    def start_listener(self) -> Thread:
        self._listener = Thread(target=self._listen, name="ServerListener", daemon=True)
        self._listener.start()
        return self._listener

    def submit(self, raw: str) -> bool:
        """Send an answer if one is allowed right now."""
        if not self._question_open.is_set():
            self._write("(Wait for a question to arrive.)")
            return False
        answer = raw.strip().upper()
        if len(answer) != 1 or answer not in OPTION_LABELS:
            self._write("Only A, B, C or D can be answered.")
            return False
        if not self._send(ANSWER_PATH, answer):
            return False
        self._question_open.clear()
        return True

    def run(self, input_stream: TextIO | None = None) -> None:
        """Read answers until ``/quit``, end of input or the end of the game."""
        if self._listener is None:
            self.start_listener()
        for raw_line in input_stream or sys.stdin:
            if self._closed.is_set():
                break
            line = raw_line.strip()
            if line.lower() in QUIT_COMMANDS:
                break
            if line:
                self.submit(line)
        self.close()

    def wait_closed(self, timeout: float | None = None) -> bool:
        return self._closed.wait(timeout)

    def close(self) -> None:
        self._question_open.clear()
        self._closed.set()
        if self._socket is None:
            return
        try:
            self._socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self._socket.close()

    def _send(self, path: str, body: str) -> bool:
        if self._socket is None:
            return False
        try:
            self._socket.sendall(encode_request("POST", path, body))
        except OSError as exc:
            logger.warning("Could not reach the server: %s", exc)
            self.close()
            return False
        return True

    def _listen(self) -> None:
        assert self._reader is not None
        try:
            while True:
                response = read_response(self._reader)
                if response is None:
                    break
                if response.type == MessageType.QUESTION.value:
                    self._question_open.set()
                elif response.type in (MessageType.RESULT.value, MessageType.END.value):
                    self._question_open.clear()
                self._write(render_message(response))
                if response.type == MessageType.END.value:
                    break
        except OSError as exc:
            if not self._closed.is_set():
                logger.warning("Lost the connection to the server: %s", exc)
        finally:
            self._question_open.clear()
            self._closed.set()
            self._reader.close()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trivia-client", description=f"{APP_NAME} player client")
    parser.add_argument("--host", default=CLIENT_DEFAULT_HOST, help="server address")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="server TCP port")
    parser.add_argument("--name", help="player name (asked for when omitted)")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(logging.WARNING)

    name = args.name if args.name is not None else input("Your name: ")
    client = PlayerClient(args.host, args.port)
    try:
        if not client.join(name):
            return 1
    except OSError as exc:
        logger.error("Could not connect to %s:%d: %s", args.host, args.port, exc)
        return 1

    try:
        client.run()
    except KeyboardInterrupt:
        client.close()
    print("Disconnected from the server.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
