"""Turns a bunnylol query into a destination URL."""

from dataclasses import dataclass
from typing import Optional

from bunnylol.bootstrap.settings import DEFAULT_SEARCH_ENGINE, BunnylolConfig, search_url
from bunnylol.commands.command_info import CommandInfo
from bunnylol.domain.correlation_id import get_logger
from bunnylol.plugins.loader import PluginRegistry

REGISTRY_LOGGER = get_logger("commands.registry")


def get_command_from_query_string(query_string: str) -> str:
    """Return the text before the first space, or the whole string."""
    return query_string.split(" ", 1)[0]


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving a query."""

    resolved_query: str
    command: str
    url: str
    fallback: bool


class CommandRegistry:
    """Plugin lookup with a search-engine fallback."""

    def __init__(
        self, plugins: PluginRegistry, config: Optional[BunnylolConfig] = None
    ) -> None:
        self.plugins = plugins
        self.config = config

    def search_url(self, query: str) -> str:
        if self.config is None:
            return search_url(DEFAULT_SEARCH_ENGINE, query)
        return self.config.get_search_url(query)

    def resolve(self, query: str) -> Resolution:
        """Apply aliases, pick the command word and produce the destination."""
        resolved = self.config.resolve_command(query) if self.config else query
        command = get_command_from_query_string(resolved)
        url = self.plugins.process(command, resolved)
        fallback = url is None
        if fallback:
            url = self.search_url(resolved)
        REGISTRY_LOGGER.debug(
            "Command resolved",
            extra={
                "event": "command_resolved",
                "binding": command,
                "fallback": fallback,
                "redirect_url": url,
            },
        )
        return Resolution(resolved, command, url, fallback)

    def commands(self) -> list[CommandInfo]:
        """All commands sorted case-insensitively by primary binding."""
        return sorted(self.plugins.commands(), key=CommandInfo.sort_key)
