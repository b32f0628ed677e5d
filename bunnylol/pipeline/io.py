"""HTTP Input/Output operations."""

import socket
import urllib.parse
from typing import Optional, Tuple

from bunnylol.bootstrap.config import HEADER_DELIMITER, MAX_REQUEST_BYTES, SERVER_IDENT
from bunnylol.domain.correlation_id import (
    get_correlation_id,
    get_logger,
    set_correlation_id,
)
from bunnylol.domain.http_types import HttpRequest, HttpResponse
from bunnylol.pipeline.validation import RequestEntityTooLarge

IO_LOGGER = get_logger("io")
RECV_SIZE = 4096


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        name, separator, value = line.partition(":")
        if not separator or not name.strip():
            continue
        parsed[name.strip().lower()] = value.strip()
    return parsed


def parse_request_line(
    request_line: str,
) -> Tuple[str, str, dict[str, list[str]]]:
    """Parse the method, decoded path and form-decoded query of a request line."""
    try:
        method, target, version = request_line.split(" ", 2)
    except ValueError as exc:
        raise ValueError("Invalid request line") from exc
    if not version.startswith("HTTP/"):
        raise ValueError("Invalid HTTP version")

    parsed_target = urllib.parse.urlsplit(target)
    path = urllib.parse.unquote(parsed_target.path)
    query = urllib.parse.parse_qs(parsed_target.query, keep_blank_values=True)
    return method, path, query


def determine_content_length(headers: dict[str, str]) -> int:
    """Validate and return the declared Content-Length for the request."""
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0:
        raise ValueError("Negative Content-Length")
    if content_length > MAX_REQUEST_BYTES:
        raise RequestEntityTooLarge
    return content_length


def receive_request(
    client_socket: socket.socket, buffer: bytes
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read bytes from the socket until a complete request is available.

    Returns ``(None, b"")`` when the peer closes before a full request arrives.
    """
    while HEADER_DELIMITER not in buffer:
        if len(buffer) > MAX_REQUEST_BYTES:
            raise RequestEntityTooLarge
        chunk = client_socket.recv(RECV_SIZE)
        if not chunk:
            return None, b""
        buffer += chunk

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode("iso-8859-1").split("\r\n")
    method, path, query = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    incoming_correlation_id = headers.get("x-request-id")
    if incoming_correlation_id:
        set_correlation_id(incoming_correlation_id)

    content_length = determine_content_length(headers)
    while len(remainder) < content_length:
        chunk = client_socket.recv(RECV_SIZE)
        if not chunk:
            return None, b""
        remainder += chunk

    body = remainder[:content_length]
    leftover = remainder[content_length:]
    IO_LOGGER.debug(
        "Parsed request",
        extra={"event": "request_parsed", "method": method, "route": path},
    )
    return HttpRequest(method, path, headers, body, query), leftover


def send_response(client_socket: socket.socket, response: HttpResponse) -> None:
    """Serialize and send the HTTP response over the socket."""
    headers = {"Server": SERVER_IDENT, **response.headers}

    correlation_id = get_correlation_id()
    if correlation_id:
        headers["X-Request-ID"] = correlation_id

    headers["Content-Length"] = str(len(response.body))
    if response.close_connection:
        headers["Connection"] = "close"
    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    header_block = "\r\n".join(header_lines).encode("utf-8") + HEADER_DELIMITER
    payload = b"" if response.omit_body else response.body
    client_socket.sendall(header_block + payload)
    IO_LOGGER.debug(
        "Sent response",
        extra={"event": "response_sent", "status_code": response.status_code},
    )
