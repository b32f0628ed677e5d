"""Socket creation and TLS configuration."""

import socket
import ssl
from typing import Optional

from bunnylol.domain.correlation_id import get_logger

SOCKET_LOGGER = get_logger("socket")
ACCEPT_TIMEOUT_SECONDS = 0.5


class TLSConfigurationError(Exception):
    """Raised when the TLS certificate or key cannot be loaded."""


def create_server_socket(
    address: str,
    port: int,
    cert: Optional[str] = None,
    key: Optional[str] = None,
) -> socket.socket:
    """Bind a listening socket, optionally wrapped in TLS.

    Raises OSError when the address cannot be bound.
    """
    server_socket = socket.create_server((address, port))
    server_socket.settimeout(ACCEPT_TIMEOUT_SECONDS)
    if cert and key:
        try:
            tls_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            tls_context.load_cert_chain(cert, key)
            server_socket = tls_context.wrap_socket(server_socket, server_side=True)
        except (ssl.SSLError, OSError) as error:
            server_socket.close()
            SOCKET_LOGGER.critical(
                "Failed to load TLS certificates",
                extra={"event": "tls_error", "error": str(error)},
            )
            raise TLSConfigurationError(str(error)) from error
    return server_socket
