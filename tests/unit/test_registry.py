"""Unit tests for command resolution."""

from pathlib import Path

import pytest

from bunnylol.bootstrap.settings import BunnylolConfig
from bunnylol.commands.command_info import CommandInfo
from bunnylol.commands.registry import CommandRegistry, get_command_from_query_string
from bunnylol.plugins.loader import PluginRegistry

EXAMPLE_PLUGINS = Path(__file__).resolve().parents[2] / "examples" / "plugins"


@pytest.fixture(name="plugins")
def fixture_plugins():
    return PluginRegistry.from_directories([EXAMPLE_PLUGINS])


@pytest.mark.parametrize(
    "query, expected",
    [
        ("gh facebook/react", "gh"),
        ("gh", "gh"),
        ("", ""),
        ("  leading", ""),
        ("a b c", "a"),
    ],
)
def test_get_command_from_query_string(query, expected):
    """The command is everything before the first space."""
    assert get_command_from_query_string(query) == expected


def test_resolve_uses_plugin(plugins):
    """A known binding is handled by its plugin."""
    resolution = CommandRegistry(plugins).resolve("gh rust-lang/rust")
    assert resolution.url == "https://github.com/rust-lang/rust"
    assert resolution.command == "gh"
    assert resolution.fallback is False


def test_resolve_falls_back_to_google_without_config(plugins):
    """Unknown commands search the whole query on google."""
    resolution = CommandRegistry(plugins).resolve("what is bunnylol")
    assert resolution.url == "https://www.google.com/search?q=what%20is%20bunnylol"
    assert resolution.fallback is True


@pytest.mark.parametrize(
    "engine, expected",
    [
        ("ddg", "https://duckduckgo.com/?q=hello%20world"),
        ("bing", "https://www.bing.com/search?q=hello%20world"),
        ("unknown", "https://www.google.com/search?q=hello%20world"),
    ],
)
def test_resolve_fallback_follows_configured_engine(plugins, engine, expected):
    """The configured default_search picks the fallback engine."""
    config = BunnylolConfig(default_search=engine)
    assert CommandRegistry(plugins, config).resolve("hello world").url == expected


def test_resolve_applies_alias_before_lookup(plugins):
    """An alias expands to a full command before the plugin runs."""
    config = BunnylolConfig(aliases={"work": "gh mycompany/repo"})
    resolution = CommandRegistry(plugins, config).resolve("work")
    assert resolution.resolved_query == "gh mycompany/repo"
    assert resolution.url == "https://github.com/mycompany/repo"


def test_resolve_alias_requires_exact_match(plugins):
    """Aliases are not prefix matches."""
    config = BunnylolConfig(aliases={"work": "gh mycompany/repo"})
    resolution = CommandRegistry(plugins, config).resolve("work stuff")
    assert resolution.fallback is True
    assert resolution.url.endswith("q=work%20stuff")


def test_resolve_empty_query_searches(plugins):
    """An empty query still produces a search URL."""
    assert CommandRegistry(plugins).resolve("").url == "https://www.google.com/search?q="


def test_commands_sorted_case_insensitively():
    """Listing order ignores case of the primary binding."""
    plugins = PluginRegistry()
    registry = CommandRegistry(plugins)
    infos = [
        CommandInfo(("b",), "B", "b"),
        CommandInfo(("A",), "A", "A"),
        CommandInfo(("c",), "C", "c"),
    ]
    plugins.commands = lambda: infos
    assert [info.primary for info in registry.commands()] == ["A", "b", "c"]
