"""bunnylol: smart bookmark server and command line launcher."""

import getpass
import os
import shutil
import sys
import textwrap
import webbrowser
from typing import Optional

from bunnylol.bootstrap.config import (
    build_parser,
    parse_cli_args,
    server_config_from_args,
)
from bunnylol.bootstrap.logging_setup import configure_logging
from bunnylol.bootstrap.settings import BunnylolConfig, load_config_or_default
from bunnylol.commands.command_info import CommandInfo
from bunnylol.commands.registry import CommandRegistry
from bunnylol.domain.correlation_id import get_logger
from bunnylol.domain.history import History, record_command
from bunnylol.plugins.loader import discover_plugins
from bunnylol.transport.accept_loop import serve

CLI_LOGGER = get_logger("cli")

NO_ALIASES = "—"
TABLE_HEADERS = ("Command", "Aliases", "Description", "Example")
DEFAULT_TERMINAL_WIDTH = 120
CLI_DEFAULT_LOG_LEVEL = "WARNING"


def _log_level(args, settings: BunnylolConfig, serving: bool) -> str:
    """CLI flag, then BUNNYLOL_LOG_LEVEL, then the config file (server only)."""
    if args.log_level:
        return args.log_level
    env_level = os.getenv("BUNNYLOL_LOG_LEVEL")
    if env_level:
        return env_level
    return settings.server.log_level if serving else CLI_DEFAULT_LOG_LEVEL


def _log_destination(args, serving: bool) -> str:
    destination = args.log_destination or os.getenv("BUNNYLOL_LOG_DESTINATION")
    if destination:
        return destination
    return "stdout" if serving else "stderr"


def _wrap(value: str, width: int) -> list[str]:
    return textwrap.wrap(value, width=max(width, 1)) or [""]


def format_commands_table(
    commands: list[CommandInfo], terminal_width: Optional[int] = None
) -> str:
    """Render commands as a plain text table fitted to the terminal width."""
    if terminal_width is None:
        terminal_width = shutil.get_terminal_size(
            (DEFAULT_TERMINAL_WIDTH, 24)
        ).columns
    rows = [
        (
            info.primary,
            ", ".join(info.aliases) if info.aliases else NO_ALIASES,
            info.description,
            info.example,
        )
        for info in sorted(commands, key=CommandInfo.sort_key)
    ]

    fixed = [
        max([len(TABLE_HEADERS[i])] + [len(row[i]) for row in rows]) for i in (0, 1)
    ]
    separators = 3 * (len(TABLE_HEADERS) - 1)
    flexible = max(terminal_width - 2 - sum(fixed) - separators, 20)
    description_width = max(flexible * 3 // 5, 10)
    example_width = max(flexible - description_width, 10)
    widths = [*fixed, description_width, example_width]

    lines = []

    def emit(cells: tuple[str, ...]) -> None:
        wrapped = [_wrap(cell, widths[i]) for i, cell in enumerate(cells)]
        for index in range(max(len(column) for column in wrapped)):
            parts = [
                (column[index] if index < len(column) else "").ljust(widths[i])
                for i, column in enumerate(wrapped)
            ]
            lines.append(" | ".join(parts).rstrip())

    emit(TABLE_HEADERS)
    lines.append("-+-".join("-" * width for width in widths))
    for row in rows:
        emit(row)
    return "\n".join(lines)


def print_commands(registry: CommandRegistry) -> None:
    print(format_commands_table(registry.commands()))


def open_url(url: str, browser_name: Optional[str]) -> None:
    """Open ``url`` in the configured browser, raising webbrowser.Error on failure."""
    browser = webbrowser.get(browser_name) if browser_name else webbrowser.get()
    if not browser.open(url):
        raise webbrowser.Error(f"could not launch browser for {url}")


def execute_command(
    words: list[str],
    settings: BunnylolConfig,
    registry: CommandRegistry,
    dry_run: bool,
) -> int:
    """Resolve a command, print its URL and open it unless dry-running."""
    if words and words[0] == "list":
        print_commands(registry)
        return 0

    full_args = " ".join(words)
    resolution = registry.resolve(full_args)
    print(resolution.url)

    record_command(History.from_config(settings), full_args, getpass.getuser())

    if dry_run:
        return 0
    try:
        open_url(resolution.url, settings.browser)
    except webbrowser.Error as error:
        browser = f" '{settings.browser}'" if settings.browser else ""
        print(
            f"Failed to open browser{browser}: {error}. URL printed above.",
            file=sys.stderr,
        )
        return 1
    return 0


def run_serve(args, settings: BunnylolConfig) -> int:
    port = args.port if args.port is not None else settings.server.port
    address = args.address or settings.server.address
    server_config = server_config_from_args(args)
    CLI_LOGGER.info(
        "Starting bunnylol server",
        extra={
            "event": "server_starting",
            "host": address,
            "port": port,
            "tls": server_config.tls,
            "socket_timeout": server_config.socket_timeout,
            "shutdown_grace_seconds": server_config.shutdown_grace_seconds,
        },
    )
    registry = CommandRegistry(discover_plugins(args.plugin_dirs), settings)
    exit_code = serve(
        port,
        settings=settings,
        server_config=server_config,
        registry=registry,
        address=address,
    )
    CLI_LOGGER.info(
        "Server exited", extra={"event": "server_exited", "exit_code": exit_code}
    )
    return exit_code


def main(argv: Optional[list[str]] = None) -> int:
    """Dispatch the ``bunnylol`` command line."""
    argv = sys.argv[1:] if argv is None else argv
    args = parse_cli_args(argv)
    serving = args.subcommand == "serve"

    settings = load_config_or_default(args.config)
    configure_logging(
        _log_level(args, settings, serving),
        _log_destination(args, serving),
        use_json=serving,
    )

    if serving:
        return run_serve(args, settings)

    listing = args.list or args.subcommand == "bindings"
    words = getattr(args, "words", [])
    if not listing and not words:
        build_parser().print_help()
        return 0

    registry = CommandRegistry(discover_plugins(args.plugin_dirs), settings)
    if listing:
        print_commands(registry)
        return 0
    return execute_command(words, settings, registry, args.dry_run)


if __name__ == "__main__":
    sys.exit(main())
