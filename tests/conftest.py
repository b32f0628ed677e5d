"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Generator, TypedDict

import pytest

from tests.utils.http import reserve_port, wait_for_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_ENTRYPOINT = PROJECT_ROOT / "main.py"
EXAMPLE_PLUGINS = PROJECT_ROOT / "examples" / "plugins"

TEST_CONFIG = """\
default_search = "ddg"

[aliases]
work = "gh mycompany/repo"

[history]
enabled = true
max_entries = 5

[server]
server_display_url = "bunny.example.com"
"""


class ServerProcessInfo(TypedDict):
    """Metadata describing a running server fixture instance."""

    base_url: str
    host: str
    port: int
    home: Path
    process: subprocess.Popen[str]
    log_file: Path


def isolated_environment(home: Path) -> dict[str, str]:
    """Environment with XDG directories pointing into ``home``."""
    env = dict(os.environ)
    env["XDG_CONFIG_HOME"] = str(home / "config")
    env["XDG_DATA_HOME"] = str(home / "data")
    env.pop("BUNNYLOL_PLUGIN_PATH", None)
    env.pop("BUNNYLOL_LOG_LEVEL", None)
    return env


def _launch_server(
    host: str,
    port: int,
    home: Path,
    extra_args: list[str] | None = None,
) -> Generator[ServerProcessInfo, None, None]:
    config_file = home / "config.toml"
    config_file.write_text(TEST_CONFIG, encoding="utf-8")
    log_file = home / "server.log"
    args = [
        sys.executable,
        str(SERVER_ENTRYPOINT),
        "serve",
        "--address",
        host,
        "--port",
        str(port),
        "--config",
        str(config_file),
        "--plugin-dir",
        str(EXAMPLE_PLUGINS),
        "--log-destination",
        str(log_file),
        "--log-level",
        "debug",
        "--shutdown-grace-seconds",
        "5",
    ]
    if extra_args:
        args.extend(extra_args)

    with subprocess.Popen(
        args,
        cwd=PROJECT_ROOT,
        env=isolated_environment(home),
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
    ) as process:
        try:
            wait_for_port(host, port)
        except Exception:
            # If startup failed, print stdout/stderr to help debug
            process.terminate()
            stdout, stderr = process.communicate(timeout=5)
            print(f"\nServer stdout:\n{stdout}")
            print(f"\nServer stderr:\n{stderr}")
            raise

        yield {
            "base_url": f"http://{host}:{port}",
            "host": host,
            "port": port,
            "home": home,
            "process": process,
            "log_file": log_file,
        }

        if process.poll() is None:
            process.terminate()
            try:
                process.wait(timeout=7)
            except subprocess.TimeoutExpired:
                process.kill()


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(name="server_process")
def _server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the bunnylol server in a background process for integration tests."""

    host = "127.0.0.1"
    port = reserve_port(host)
    home = tmp_path_factory.mktemp("bunnylol-home")
    yield from _launch_server(host, port, home)


@pytest.fixture(name="limited_server_process")
def _limited_server_process(
    tmp_path_factory: "TempPathFactory",
) -> Generator[ServerProcessInfo, None, None]:
    """Launch the server with a single connection slot."""

    host = "127.0.0.1"
    port = reserve_port(host)
    home = tmp_path_factory.mktemp("bunnylol-home-limited")
    limit_args = ["--max-connections", "1", "--max-connections-per-ip", "1"]
    yield from _launch_server(host, port, home, limit_args)


@pytest.fixture()
def base_url(server_process: ServerProcessInfo) -> str:
    """Expose the running server base URL to integration tests."""

    return server_process["base_url"]
