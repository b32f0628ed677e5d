"""Accept loop and the blocking ``serve`` entry point."""

import logging
import signal
import socket
import threading
from typing import Optional

from bunnylol.bootstrap.config import SECURITY_HEADERS, ServerConfig
from bunnylol.bootstrap.settings import BunnylolConfig, load_config_or_default
from bunnylol.bootstrap.socket_factory import TLSConfigurationError, create_server_socket
from bunnylol.commands.registry import CommandRegistry
from bunnylol.domain.correlation_id import get_logger
from bunnylol.domain.http_types import HttpResponse
from bunnylol.domain.response_builders import (
    connection_limited_response,
    draining_response,
)
from bunnylol.lifecycle.state import ServerLifecycle
from bunnylol.pipeline.io import send_response
from bunnylol.plugins.loader import discover_plugins
from bunnylol.transport.connection_limiter import ConnectionLimiter
from bunnylol.transport.context import WorkerContext
from bunnylol.transport.worker import handle_client

ACCEPT_LOGGER = get_logger("transport.accept")

MIN_PORT = 0
MAX_PORT = 65535
LIMIT_EVENTS = {"global": "connection_limit_reached", "ip": "per_ip_limit_reached"}


def _refuse(client_socket: socket.socket, response: HttpResponse) -> None:
    """Best-effort 503 to a connection that will not get a worker."""
    try:
        send_response(client_socket, response)
    except OSError:
        pass
    client_socket.close()


def _dispatch_connection(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    handler_context: WorkerContext,
    lifecycle: ServerLifecycle,
) -> None:
    client = f"{client_address[0]}:{client_address[1]}"
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Accepted connection", extra={"event": "client_accepted", "client": client}
        )

    if lifecycle.is_draining():
        _refuse(client_socket, draining_response(SECURITY_HEADERS))
        return

    allowed, limit_type = handler_context.connection_limiter.acquire(client_address[0])
    if not allowed:
        ACCEPT_LOGGER.warning(
            "Refusing connection over quota",
            extra={
                "event": LIMIT_EVENTS.get(limit_type, "connection_limit_reached"),
                "client": client,
                "limit_type": limit_type,
            },
        )
        _refuse(client_socket, connection_limited_response(limit_type, SECURITY_HEADERS))
        return

    threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, handler_context),
        name=f"bunnylol-worker-{client}",
        daemon=False,
    ).start()


def run_server(
    server_socket: socket.socket,
    handler_context: WorkerContext,
    config: ServerConfig,
    lifecycle: ServerLifecycle,
) -> None:
    """Accept connections until the lifecycle stops, then drain the workers.

    The listening socket is closed on the way out, after which active
    workers get ``config.shutdown_grace_seconds`` to finish.
    """
    if handler_context.connection_limiter is None:
        handler_context.connection_limiter = ConnectionLimiter(
            config.max_connections, config.max_connections_per_ip
        )

    lifecycle.mark_listening()
    try:
        while True:
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                if lifecycle.should_stop():
                    break
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "accept() failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue
            _dispatch_connection(
                client_socket, client_address, handler_context, lifecycle
            )
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info(
            "Listening socket closed, draining workers",
            extra={
                "event": "shutdown_waiting",
                "grace_seconds": config.shutdown_grace_seconds,
                "remaining_workers": lifecycle.active_worker_count(),
            },
        )
        lifecycle.wait_for_workers(config.shutdown_grace_seconds)
        ACCEPT_LOGGER.info("Server stopped", extra={"event": "server_stopped"})


def _install_signal_handlers(lifecycle: ServerLifecycle) -> dict:
    """Point SIGTERM and SIGINT at a graceful drain.

    Python only allows this from the main thread; elsewhere nothing is
    installed and the caller drains through the lifecycle instead.
    """
    if threading.current_thread() is not threading.main_thread():
        return {}

    def on_signal(signum: int, _frame) -> None:
        ACCEPT_LOGGER.info(
            "Shutdown signal received",
            extra={"event": "shutdown_signal", "signal": signum},
        )
        lifecycle.begin_draining()

    return {
        signum: signal.signal(signum, on_signal)
        for signum in (signal.SIGTERM, signal.SIGINT)
    }


def _restore_signal_handlers(previous: dict) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


def serve(
    port: int,
    settings: Optional[BunnylolConfig] = None,
    server_config: Optional[ServerConfig] = None,
    lifecycle: Optional[ServerLifecycle] = None,
    registry: Optional[CommandRegistry] = None,
    address: Optional[str] = None,
) -> int:
    """Run the bunnylol server on ``port`` until it is shut down.

    Blocks the calling thread. Returns 0 after a graceful drain and 1 when
    the server could not start or failed unexpectedly. Collaborators that
    are not supplied are built from the configuration file and the
    standard plugin directories.
    """
    if not isinstance(port, int) or isinstance(port, bool) or not (
        MIN_PORT <= port <= MAX_PORT
    ):
        ACCEPT_LOGGER.error(
            "Invalid port", extra={"event": "invalid_port", "port": port}
        )
        return 1

    if settings is None:
        settings = load_config_or_default()
    if server_config is None:
        server_config = ServerConfig()
    if lifecycle is None:
        lifecycle = ServerLifecycle()
    if registry is None:
        registry = CommandRegistry(discover_plugins(), settings)
    host = address or settings.server.address

    try:
        server_socket = create_server_socket(
            host, port, server_config.cert, server_config.key
        )
    except TLSConfigurationError:
        return 1
    except OSError as error:
        ACCEPT_LOGGER.error(
            "Failed to bind server socket",
            extra={
                "event": "bind_failed",
                "host": host,
                "port": port,
                "error": str(error),
                "errno": error.errno,
            },
        )
        return 1

    handler_context = WorkerContext.build(
        registry, settings, lifecycle=lifecycle, config=server_config
    )
    ACCEPT_LOGGER.info(
        "Server listening for connections",
        extra={
            "event": "server_listening",
            "host": host,
            "port": server_socket.getsockname()[1],
            "tls": server_config.tls,
            "binding_count": len(registry.plugins),
        },
    )

    previous_handlers = _install_signal_handlers(lifecycle)
    try:
        run_server(server_socket, handler_context, server_config, lifecycle)
    except Exception as error:  # pylint: disable=broad-except
        ACCEPT_LOGGER.critical(
            "Server failed",
            extra={
                "event": "server_failed",
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
        return 1
    finally:
        _restore_signal_handlers(previous_handlers)
    return 0
