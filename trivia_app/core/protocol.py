"""Line-framed request/response messages exchanged with players.

Every message is a start line, zero or more ``Key: Value`` headers, a blank
line and, when ``Content-Length`` is positive, exactly one body line:

    POST /respuesta HTTP/1.0
    Content-Length: 1

    B

Servers answer with a status line and a ``Type`` header naming the message:

    HTTP/1.0 200 OK
    Type: PREGUNTA
    Content-Length: 41

    1/5|Which port does HTTP use?|21|443|80|8080

Readers only need the body line; the length header tells them whether one
follows.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from trivia_app.constants.network_constants import ENCODING, PROTOCOL_VERSION
from trivia_app.core.errors import ProtocolError


class MessageType(str, Enum):
    NAME = "NOMBRE"
    WELCOME = "BIENVENIDA"
    START = "INICIO"
    QUESTION = "PREGUNTA"
    CONFIRMATION = "CONFIRMACION"
    RESULT = "RESULTADO"
    RANKING = "RANKING"
    NEXT = "NEXT"
    INFO = "INFO"
    ERROR = "ERROR"
    END = "FIN"


NAME_PATH = "/nombre"
ANSWER_PATH = "/respuesta"

STATUS_OK = 200
STATUS_BAD_REQUEST = 400
STATUS_UNAVAILABLE = 503

_REASONS = {
    STATUS_OK: "OK",
    STATUS_BAD_REQUEST: "Bad Request",
    STATUS_UNAVAILABLE: "Service Unavailable",
}


@dataclass(frozen=True, slots=True)
class Request:
    """Player to server request."""

    method: str
    path: str
    body: str = ""


@dataclass(frozen=True, slots=True)
class Response:
    """Server to player message."""

    status: int
    type: str
    body: str = ""

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK


def _flatten(body: str | None) -> str:
    if not body:
        return ""
    return " ".join(body.splitlines())


def _frame(start_line: str, headers: list[str], body: str) -> bytes:
    length = len(body.encode(ENCODING))
    lines = [start_line, *headers, f"Content-Length: {length}", ""]
    if length:
        lines.append(body)
    return ("\n".join(lines) + "\n").encode(ENCODING)


def encode_response(status: int, message_type: MessageType | str, body: str | None = None) -> bytes:
    reason = _REASONS.get(status, "Error")
    type_name = message_type.value if isinstance(message_type, MessageType) else message_type
    return _frame(f"{PROTOCOL_VERSION} {status} {reason}", [f"Type: {type_name}"], _flatten(body))


def encode_request(method: str, path: str, body: str | None = None) -> bytes:
    return _frame(f"{method} {path} {PROTOCOL_VERSION}", [], _flatten(body))


def _read_line(reader: TextIO) -> str | None:
    line = reader.readline()
    if not line:
        return None
    return line.rstrip("\r\n")


def _read_headers_and_body(reader: TextIO) -> tuple[dict[str, str], str]:
    headers: dict[str, str] = {}
    while True:
        line = _read_line(reader)
        if line is None or line == "":
            break
        key, sep, value = line.partition(":")
        if sep:
            headers[key.strip().lower()] = value.strip()

    try:
        content_length = int(headers.get("content-length", "0"))
    except ValueError:
        content_length = 0

    body = ""
    if content_length > 0:
        body = _read_line(reader) or ""
    return headers, body


def read_request(reader: TextIO) -> Request | None:
    """Read one request, or return None once the peer has closed the stream.

    The whole message is consumed before a malformed start line is reported,
    so the stream stays aligned on the next message.
    """
    start_line = _read_line(reader)
    if start_line is None:
        return None
    _, body = _read_headers_and_body(reader)

    parts = start_line.split()
    if len(parts) != 3 or not parts[2].startswith("HTTP/"):
        raise ProtocolError(f"Malformed request line: '{start_line}'")
    method, path, _ = parts
    return Request(method=method.upper(), path=path, body=body)


def read_response(reader: TextIO) -> Response | None:
    """Read one server message, or return None once the stream has closed."""
    status_line = _read_line(reader)
    if status_line is None:
        return None
    headers, body = _read_headers_and_body(reader)

    parts = status_line.split(" ", 2)
    try:
        status = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        status = 0
    return Response(status=status, type=headers.get("type", ""), body=body)
