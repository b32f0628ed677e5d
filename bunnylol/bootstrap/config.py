"""Runtime configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_list(name: str) -> list[str]:
    value = os.getenv(name)
    if value is None:
        return []
    return [item for item in value.split(os.pathsep) if item.strip()]


MAX_REQUEST_BYTES = _env_int("BUNNYLOL_MAX_REQUEST_BYTES", 64 * 1024)
DEFAULT_MAX_CONNECTIONS = _env_int("BUNNYLOL_MAX_CONNECTIONS", 200)
DEFAULT_MAX_CONNECTIONS_PER_IP = _env_int("BUNNYLOL_MAX_CONNECTIONS_PER_IP", 20)
DEFAULT_SOCKET_TIMEOUT = _env_int("BUNNYLOL_SOCKET_TIMEOUT", 60)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("BUNNYLOL_SHUTDOWN_GRACE_SECONDS", 30)

HEADER_DELIMITER = b"\r\n\r\n"
ALLOWED_METHODS = {"GET", "HEAD"}
SERVER_IDENT = "bunnylol"

SECURITY_HEADERS = {
    "Content-Security-Policy": (
        "default-src 'none'; style-src 'unsafe-inline'; img-src data:"
    ),
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}

SUBCOMMANDS = ("serve", "bindings", "run")
LOG_LEVEL_CHOICES = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "NORMAL", "OFF"]
_GLOBAL_VALUE_OPTIONS = {"--config", "--log-level", "--log-destination"}


@dataclass
class ServerConfig:
    """Transport settings including timeouts, quotas and shutdown behaviour."""

    socket_timeout: int = DEFAULT_SOCKET_TIMEOUT
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    max_connections_per_ip: int = DEFAULT_MAX_CONNECTIONS_PER_IP
    cert: Optional[str] = None
    key: Optional[str] = None

    @property
    def tls(self) -> bool:
        return bool(self.cert and self.key)


def server_config_from_args(args: argparse.Namespace) -> ServerConfig:
    """Collect the transport knobs of the ``serve`` subcommand."""
    return ServerConfig(
        socket_timeout=args.socket_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
        max_connections=args.max_connections,
        max_connections_per_ip=args.max_connections_per_ip,
        cert=args.cert,
        key=args.key,
    )


def env_plugin_dirs() -> list[str]:
    """Extra plugin directories listed in BUNNYLOL_PLUGIN_PATH."""
    return _env_list("BUNNYLOL_PLUGIN_PATH")


def _add_global_options(parser: argparse.ArgumentParser, suppress: bool) -> None:
    # Subparsers repeat the global options with SUPPRESS so they never clobber
    # values given before the subcommand.
    def default(value):
        return argparse.SUPPRESS if suppress else value

    parser.add_argument(
        "--config",
        default=default(os.getenv("BUNNYLOL_CONFIG")),
        help="Path to the TOML configuration file",
    )
    parser.add_argument(
        "--log-level",
        default=default(None),
        choices=LOG_LEVEL_CHOICES,
        type=str.upper,
        help="Overrides BUNNYLOL_LOG_LEVEL and the config file",
    )
    parser.add_argument(
        "--log-destination",
        default=default(None),
        help="stdout, stderr or a file path",
    )


def _add_serve_parser(subparsers) -> None:
    serve = subparsers.add_parser("serve", help="Run the bunnylol web server")
    _add_global_options(serve, suppress=True)
    serve.add_argument(
        "-p",
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (overrides config file)",
    )
    serve.add_argument(
        "-a",
        "--address",
        default=None,
        help="Address to bind to (overrides config file)",
    )
    serve.add_argument(
        "--plugin-dir",
        action="append",
        default=[],
        dest="plugin_dirs",
        help="Additional plugin directory, may be repeated",
    )
    serve.add_argument("--cert", help="Path to TLS certificate file")
    serve.add_argument("--key", help="Path to TLS private key file")
    serve.add_argument(
        "--max-connections",
        type=int,
        default=DEFAULT_MAX_CONNECTIONS,
        help="Maximum concurrent connections (0 for unlimited)",
    )
    serve.add_argument(
        "--max-connections-per-ip",
        type=int,
        default=DEFAULT_MAX_CONNECTIONS_PER_IP,
        help="Maximum concurrent connections per client IP (0 for unlimited)",
    )
    serve.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Socket timeout in seconds for request processing",
    )
    serve.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Grace period in seconds for graceful shutdown",
    )


def build_parser() -> argparse.ArgumentParser:
    """Return the top-level ``bunnylol`` argument parser."""
    parser = argparse.ArgumentParser(
        prog="bunnylol",
        description=(
            "Smart bookmark server and CLI - URL shortcuts for your browser's "
            "search bar and terminal"
        ),
        usage="bunnylol [OPTIONS] [BINDING] [ARGS]",
    )
    _add_global_options(parser, suppress=False)
    parser.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Print URL without opening browser",
    )
    parser.add_argument(
        "-l",
        "--list",
        action="store_true",
        help="List all available commands",
    )

    subparsers = parser.add_subparsers(dest="subcommand")
    _add_serve_parser(subparsers)

    bindings = subparsers.add_parser(
        "bindings", help="List all available command bindings"
    )
    _add_global_options(bindings, suppress=True)
    bindings.add_argument(
        "--plugin-dir", action="append", default=[], dest="plugin_dirs"
    )

    run = subparsers.add_parser("run", help="Execute a bunnylol command")
    _add_global_options(run, suppress=True)
    run.add_argument(
        "--plugin-dir", action="append", default=[], dest="plugin_dirs"
    )
    run.add_argument("words", nargs=argparse.REMAINDER)
    return parser


def _insert_implicit_run(argv: list[str]) -> list[str]:
    """Treat the first bare word as a binding unless it names a subcommand."""
    index = 0
    while index < len(argv):
        token = argv[index]
        if token == "--":
            return [*argv[:index], "run", *argv[index + 1 :]]
        if token.startswith("-"):
            index += 2 if token in _GLOBAL_VALUE_OPTIONS else 1
            continue
        if token in SUBCOMMANDS:
            return argv
        return [*argv[:index], "run", *argv[index:]]
    return argv


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments."""
    args = build_parser().parse_args(_insert_implicit_run(list(argv)))
    if args.subcommand == "run":
        words = []
        for word in args.words:
            if word in ("-n", "--dry-run"):
                args.dry_run = True
            else:
                words.append(word)
        args.words = words
    if not hasattr(args, "plugin_dirs"):
        args.plugin_dirs = []
    return args
