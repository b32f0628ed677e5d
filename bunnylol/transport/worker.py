"""Per-connection worker: a keep-alive loop of read, route, respond."""

import logging
import socket
import threading
from dataclasses import dataclass, field
from typing import Optional

from bunnylol.bootstrap.config import ALLOWED_METHODS, MAX_REQUEST_BYTES, SECURITY_HEADERS
from bunnylol.domain.correlation_id import (
    clear_correlation_id,
    generate_correlation_id,
    get_logger,
    set_correlation_id,
)
from bunnylol.domain.http_types import HttpRequest, HttpResponse
from bunnylol.domain.response_builders import (
    bad_request_response,
    draining_response,
    entity_too_large_response,
)
from bunnylol.pipeline.io import receive_request, send_response
from bunnylol.pipeline.router import route_request
from bunnylol.pipeline.validation import RequestEntityTooLarge, validate_request
from bunnylol.transport.context import WorkerContext

WORKER_LOGGER = get_logger("transport.worker")


@dataclass
class ClientConnection:
    """One accepted socket plus the bytes read past the last request."""

    sock: socket.socket
    ip: str
    label: str
    pending: bytes = field(default=b"", repr=False)

    @classmethod
    def accepted(
        cls, sock: socket.socket, address: tuple[str, int]
    ) -> "ClientConnection":
        return cls(sock, address[0], f"{address[0]}:{address[1]}")

    def respond(self, response: HttpResponse) -> bool:
        """Send a response and report whether the connection should close."""
        send_response(self.sock, response)
        return response.close_connection

    def close(self) -> None:
        try:
            self.sock.shutdown(socket.SHUT_WR)
        except OSError:
            pass
        self.sock.close()


def next_request(conn: ClientConnection) -> Optional[HttpRequest]:
    """Read the next request off the connection.

    Oversized and malformed requests are answered here; None means the
    connection is finished.
    """
    try:
        request, conn.pending = receive_request(conn.sock, conn.pending)
    except RequestEntityTooLarge:
        WORKER_LOGGER.warning(
            "Request exceeds size limit",
            extra={
                "event": "request_too_large",
                "client": conn.label,
                "limit": MAX_REQUEST_BYTES,
            },
        )
        conn.respond(entity_too_large_response(SECURITY_HEADERS))
        return None
    except (ValueError, UnicodeDecodeError):
        WORKER_LOGGER.warning(
            "Unparseable request",
            extra={"event": "malformed_request", "client": conn.label},
        )
        conn.respond(bad_request_response(None, SECURITY_HEADERS))
        return None

    if request is None and WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        WORKER_LOGGER.debug(
            "Client went away",
            extra={"event": "client_disconnected", "client": conn.label},
        )
    return request


def dispatch(request: HttpRequest, context: WorkerContext, client_ip: str) -> HttpResponse:
    """Validate the method and path, then hand the request to the router."""
    rejection = validate_request(request, ALLOWED_METHODS, SECURITY_HEADERS)
    if rejection is not None:
        return rejection
    return route_request(request, context, client_ip)


def _serve_connection(conn: ClientConnection, context: WorkerContext) -> None:
    lifecycle = context.lifecycle
    while True:
        set_correlation_id(generate_correlation_id())
        WORKER_LOGGER.debug(
            "Waiting for request",
            extra={"event": "request_started", "client": conn.label},
        )
        if lifecycle is not None and lifecycle.is_draining():
            conn.respond(draining_response(SECURITY_HEADERS))
            return

        request = next_request(conn)
        if request is None:
            return
        WORKER_LOGGER.debug(
            "Request received",
            extra={
                "event": "request_line_parsed",
                "method": request.method,
                "route": request.path,
            },
        )

        closing = conn.respond(dispatch(request, context, conn.ip))
        WORKER_LOGGER.debug(
            "Response sent",
            extra={"event": "request_complete", "client": conn.label},
        )
        clear_correlation_id()
        if closing:
            return


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Thread target: serve one connection, then release its quota slot."""
    conn = ClientConnection.accepted(client_socket, client_address)
    worker = threading.current_thread()
    if context.lifecycle is not None:
        context.lifecycle.register_worker(worker)
    if context.config is not None:
        client_socket.settimeout(context.config.socket_timeout)

    try:
        _serve_connection(conn, context)
    except (ConnectionError, TimeoutError, OSError) as error:
        WORKER_LOGGER.error(
            "Connection error",
            extra={
                "event": "connection_error",
                "client": conn.label,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Worker crashed",
            extra={
                "event": "worker_error",
                "client": conn.label,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        if context.connection_limiter is not None:
            context.connection_limiter.release(conn.ip)
        if context.lifecycle is not None:
            context.lifecycle.cleanup_worker(worker)
        conn.close()
        WORKER_LOGGER.debug(
            "Socket closed", extra={"event": "socket_closed", "client": conn.label}
        )
        clear_correlation_id()
