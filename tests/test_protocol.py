from __future__ import annotations

import io

import pytest

from trivia_app.core.errors import ProtocolError
from trivia_app.core.protocol import (
    ANSWER_PATH,
    STATUS_BAD_REQUEST,
    MessageType,
    encode_request,
    encode_response,
    read_request,
    read_response,
)


def _stream(*chunks: bytes) -> io.StringIO:
    return io.StringIO(b"".join(chunks).decode("utf-8"))


def test_response_framing() -> None:
    assert encode_response(200, MessageType.RANKING, "1. ana - 970 pts") == (
        b"HTTP/1.0 200 OK\nType: RANKING\nContent-Length: 16\n\n1. ana - 970 pts\n"
    )


def test_empty_body_has_no_body_line() -> None:
    assert encode_response(200, MessageType.NEXT) == b"HTTP/1.0 200 OK\nType: NEXT\nContent-Length: 0\n\n"


def test_error_status_reason() -> None:
    assert encode_response(STATUS_BAD_REQUEST, MessageType.ERROR, "nope").startswith(b"HTTP/1.0 400 Bad Request\n")
    assert encode_response(418, "TEAPOT", "x").startswith(b"HTTP/1.0 418 Error\nType: TEAPOT\n")


def test_request_framing() -> None:
    assert encode_request("POST", ANSWER_PATH, "B") == b"POST /respuesta HTTP/1.0\nContent-Length: 1\n\nB\n"


def test_bodies_are_flattened_to_one_line() -> None:
    reader = _stream(encode_response(200, MessageType.END, "=== FINAL ===\n1. ana - 5 pts"))
    response = read_response(reader)
    assert response is not None
    assert response.body == "=== FINAL === 1. ana - 5 pts"


def test_content_length_counts_utf8_bytes() -> None:
    assert b"Content-Length: 5\n" in encode_request("POST", "/nombre", "José")


def test_reads_consecutive_requests() -> None:
    reader = _stream(encode_request("post", "/nombre", "ana"), encode_request("POST", ANSWER_PATH, "c"))

    first = read_request(reader)
    second = read_request(reader)

    assert first is not None and (first.method, first.path, first.body) == ("POST", "/nombre", "ana")
    assert second is not None and (second.path, second.body) == (ANSWER_PATH, "c")
    assert read_request(reader) is None


def test_malformed_request_line_is_consumed_before_raising() -> None:
    reader = _stream(b"HELLO\nContent-Length: 3\n\nabc\n", encode_request("POST", ANSWER_PATH, "A"))

    with pytest.raises(ProtocolError):
        read_request(reader)
    request = read_request(reader)
    assert request is not None and request.body == "A"


def test_unparseable_content_length_means_no_body() -> None:
    reader = _stream(b"POST /respuesta HTTP/1.0\nContent-Length: lots\n\n", encode_request("POST", "/nombre", "x"))

    request = read_request(reader)
    assert request is not None and request.body == ""
    follow_up = read_request(reader)
    assert follow_up is not None and follow_up.path == "/nombre"


def test_crlf_line_endings_are_accepted() -> None:
    reader = io.StringIO("POST /respuesta HTTP/1.0\r\nContent-Length: 1\r\n\r\nD\r\n")
    request = read_request(reader)
    assert request is not None and request.body == "D"


def test_reads_responses() -> None:
    reader = _stream(encode_response(200, MessageType.QUESTION, "1/5|q|a|b|c|d"))

    response = read_response(reader)

    assert response is not None
    assert response.ok
    assert (response.status, response.type, response.body) == (200, "PREGUNTA", "1/5|q|a|b|c|d")
    assert read_response(reader) is None
