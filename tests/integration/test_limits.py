"""Integration tests for connection limiting."""

from __future__ import annotations

import socket
import time
from typing import TYPE_CHECKING

import pytest
import requests

from tests.utils.http import read_http_response

pytestmark = pytest.mark.integration

if TYPE_CHECKING:
    from tests.conftest import ServerProcessInfo


def test_connection_limit_returns_503(
    limited_server_process: "ServerProcessInfo",
) -> None:
    """When the connection cap is exceeded the server should respond with 503."""
    host = limited_server_process["host"]
    port = limited_server_process["port"]
    # Let the readiness check's connection release its slot.
    time.sleep(0.3)

    holder = socket.create_connection((host, port), timeout=2)
    try:
        time.sleep(0.2)
        with socket.create_connection((host, port), timeout=2) as blocked:
            response = read_http_response(blocked)
        assert response.status_line.startswith("HTTP/1.1 503")
        assert b"connection limit exceeded" in response.body
        assert response.headers.get("retry-after") == "1"
    finally:
        holder.close()


def test_slot_is_released_after_connection_closes(
    limited_server_process: "ServerProcessInfo",
) -> None:
    """A closed connection frees its slot for the next client."""
    base_url = limited_server_process["base_url"]
    host = limited_server_process["host"]
    port = limited_server_process["port"]
    time.sleep(0.3)

    with socket.create_connection((host, port), timeout=2) as holder:
        holder.sendall(b"GET /health HTTP/1.1\r\nConnection: close\r\n\r\n")
        assert read_http_response(holder).status_code == 200
    time.sleep(0.3)

    response = requests.get(
        f"{base_url}/", params={"cmd": "gh"}, allow_redirects=False, timeout=5
    )
    assert response.status_code == 303
