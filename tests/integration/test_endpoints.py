"""Integration tests exercising the public HTTP endpoints."""

from __future__ import annotations

import gzip
import json
import re
from typing import TYPE_CHECKING

import pytest
import requests

from tests.utils.http import send_raw_request

pytestmark = pytest.mark.integration

if TYPE_CHECKING:
    from tests.conftest import ServerProcessInfo


def test_command_redirects_to_plugin_url(base_url: str) -> None:
    """A bound command answers 303 with the plugin's URL."""

    response = requests.get(
        f"{base_url}/", params={"cmd": "gh facebook/react"}, allow_redirects=False, timeout=5
    )
    assert response.status_code == 303
    assert response.headers["Location"] == "https://github.com/facebook/react"
    assert response.headers["Cache-Control"] == "no-store"
    assert response.content == b""


@pytest.mark.parametrize(
    "query, location",
    [
        ("yt", "https://youtube.com"),
        ("youtube rust async", "https://youtube.com/results?search_query=rust%20async"),
        ("jira PROJ-42", "https://mycompany.atlassian.net/browse/PROJ-42"),
        ("work", "https://github.com/mycompany/repo"),
        ("rust borrow checker", "https://duckduckgo.com/?q=rust%20borrow%20checker"),
    ],
)
def test_commands_resolve(base_url: str, query: str, location: str) -> None:
    """Bindings, aliases and the configured search fallback all redirect."""

    response = requests.get(
        f"{base_url}/", params={"cmd": query}, allow_redirects=False, timeout=5
    )
    assert response.status_code == 303
    assert response.headers["Location"] == location


def test_root_serves_bindings_page(base_url: str) -> None:
    """Without cmd the landing page lists the bindings."""

    response = requests.get(f"{base_url}/", timeout=5)
    assert response.status_code == 200
    assert response.headers["Content-Type"] == "text/html; charset=utf-8"
    assert "https://bunny.example.com" in response.text
    for binding in ("gh", "jira", "yt"):
        assert f'<td class="cmd">{binding}</td>' in response.text


def test_landing_page_gzip(base_url: str) -> None:
    """The landing page is compressed when the client opts in."""

    with requests.get(
        f"{base_url}/", headers={"Accept-Encoding": "gzip"}, timeout=5, stream=True
    ) as response:
        assert response.headers.get("Content-Encoding") == "gzip"
        response.raw.decode_content = False
        payload = response.raw.read()
    assert b"<title>bunnylol</title>" in gzip.decompress(payload)


@pytest.mark.parametrize("path", ["/health", "/healthz"])
def test_health_endpoints(base_url: str, path: str) -> None:
    """Both health paths answer ok."""

    response = requests.get(f"{base_url}{path}", timeout=5)
    assert response.status_code == 200
    assert response.text == "ok"


def test_unknown_path_returns_404_page(base_url: str) -> None:
    """Unknown routes show the bindings page with 404."""

    response = requests.get(f"{base_url}/does/not/exist", timeout=5)
    assert response.status_code == 404
    assert "<title>bunnylol</title>" in response.text


def test_head_returns_headers_only(server_process: "ServerProcessInfo") -> None:
    """HEAD keeps Content-Length but sends no body."""

    response = send_raw_request(
        server_process["host"],
        server_process["port"],
        b"HEAD / HTTP/1.1\r\nHost: localhost\r\nConnection: close\r\n\r\n",
        head=True,
    )
    assert response.status_code == 200
    assert int(response.headers["content-length"]) > 0
    assert response.body == b""


def test_post_is_rejected(base_url: str) -> None:
    """Only GET and HEAD are served."""

    response = requests.post(f"{base_url}/", data=b"x", timeout=5)
    assert response.status_code == 405
    assert response.headers["Allow"] == "GET, HEAD"


def test_malformed_request_line_returns_400(server_process: "ServerProcessInfo") -> None:
    """Garbage on the wire gets a 400."""

    response = send_raw_request(
        server_process["host"], server_process["port"], b"NOT HTTP\r\n\r\n"
    )
    assert response.status_code == 400


def test_security_headers_and_request_id(base_url: str) -> None:
    """Responses carry security headers and a generated request id."""

    response = requests.get(f"{base_url}/health", timeout=5)
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert re.fullmatch(r"[0-9a-f-]{36}", response.headers["X-Request-ID"])


def test_incoming_request_id_is_echoed(base_url: str) -> None:
    """A client-supplied X-Request-ID is returned unchanged."""

    response = requests.get(
        f"{base_url}/", headers={"X-Request-ID": "trace-12345"}, timeout=5
    )
    assert response.headers["X-Request-ID"] == "trace-12345"


def test_keep_alive_serves_several_requests(base_url: str) -> None:
    """One session reuses its connection across commands."""

    with requests.Session() as session:
        for query in ("gh", "yt", "jira"):
            response = session.get(
                f"{base_url}/", params={"cmd": query}, allow_redirects=False, timeout=5
            )
            assert response.status_code == 303


def test_history_records_client_ip_and_is_capped(
    server_process: "ServerProcessInfo",
) -> None:
    """Each redirect is logged with the client IP; the file keeps max_entries."""

    base = server_process["base_url"]
    for index in range(7):
        requests.get(
            f"{base}/", params={"cmd": f"gh repo{index}"}, allow_redirects=False, timeout=5
        )
    history_file = server_process["home"] / "data" / "bunnylol" / "history"
    entries = [json.loads(line) for line in history_file.read_text().splitlines()]
    assert len(entries) == 5
    assert entries[-1]["command"] == "gh repo6"
    assert entries[0]["command"] == "gh repo2"
    assert {entry["user"] for entry in entries} == {"127.0.0.1"}


def test_server_logs_are_structured(server_process: "ServerProcessInfo") -> None:
    """The log file is JSON lines with the redirect event."""

    requests.get(
        f"{server_process['base_url']}/",
        params={"cmd": "gh"},
        allow_redirects=False,
        timeout=5,
    )
    events = [
        json.loads(line)
        for line in server_process["log_file"].read_text().splitlines()
        if line.strip()
    ]
    names = {event.get("event") for event in events}
    assert "server_listening" in names
    assert "command_redirect" in names
