"""User-facing configuration file for the CLI and the server.

The file lives at ``/etc/bunnylol/config.toml`` (system-wide, preferred when
present) or ``$XDG_CONFIG_HOME/bunnylol/config.toml``. A missing file is
created from a commented template; an invalid file raises ``ConfigError``.
Configuration is read once at startup.
"""

import json
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from bunnylol.bootstrap import paths
from bunnylol.domain.correlation_id import get_logger
from bunnylol.plugins.helpers import url_encode

SETTINGS_LOGGER = get_logger("settings")

DEFAULT_SEARCH_ENGINE = "google"
DEFAULT_PORT = 8085
DEFAULT_ADDRESS = "127.0.0.1"
DEFAULT_LOG_LEVEL = "normal"
DEFAULT_HISTORY_MAX_ENTRIES = 1000

SEARCH_ENGINES = {
    "google": "https://www.google.com/search?q={}",
    "ddg": "https://duckduckgo.com/?q={}",
    "duckduckgo": "https://duckduckgo.com/?q={}",
    "bing": "https://www.bing.com/search?q={}",
}
LOCAL_HOST_PREFIXES = ("localhost", "127.0.0.1", "0.0.0.0")
_BARE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")


class ConfigError(Exception):
    """Raised when the configuration file cannot be read or parsed."""


def search_url(engine: str, query: str) -> str:
    """Build a search URL; unknown engines fall back to Google."""
    template = SEARCH_ENGINES.get(engine, SEARCH_ENGINES[DEFAULT_SEARCH_ENGINE])
    return template.format(url_encode(query))


@dataclass
class HistoryConfig:
    enabled: bool = True
    max_entries: int = DEFAULT_HISTORY_MAX_ENTRIES


@dataclass
class ServerSettings:
    """The ``[server]`` table."""

    port: int = DEFAULT_PORT
    address: str = DEFAULT_ADDRESS
    log_level: str = DEFAULT_LOG_LEVEL
    server_display_url: Optional[str] = None

    def get_display_url(self) -> str:
        """Public-facing URL, normalized with a scheme.

        Bare local addresses get ``http://``, any other bare host gets
        ``https://``; unset falls back to ``http://localhost:<port>``.
        """
        if self.server_display_url is None:
            return f"http://localhost:{self.port}"
        url = self.server_display_url.strip()
        if url.startswith(("http://", "https://")):
            return url
        if url.startswith(LOCAL_HOST_PREFIXES):
            return f"http://{url}"
        return f"https://{url}"


@dataclass
class BunnylolConfig:
    browser: Optional[str] = None
    default_search: str = DEFAULT_SEARCH_ENGINE
    aliases: dict[str, str] = field(default_factory=dict)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    server: ServerSettings = field(default_factory=ServerSettings)

    def resolve_command(self, command: str) -> str:
        """Return the alias target for an exact match, else the command itself."""
        return self.aliases.get(command, command)

    def get_search_url(self, query: str) -> str:
        return search_url(self.default_search, query)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BunnylolConfig":
        """Build a configuration from parsed TOML, validating value types."""
        history = _table(data, "history")
        server = _table(data, "server")
        aliases = _table(data, "aliases")
        for key, value in aliases.items():
            if not isinstance(value, str):
                raise ConfigError(f"alias {key!r} must be a string")
        return cls(
            browser=_typed(data, "browser", str, None),
            default_search=_typed(data, "default_search", str, DEFAULT_SEARCH_ENGINE),
            aliases=dict(aliases),
            history=HistoryConfig(
                enabled=_typed(history, "enabled", bool, True),
                max_entries=_typed(
                    history, "max_entries", int, DEFAULT_HISTORY_MAX_ENTRIES
                ),
            ),
            server=ServerSettings(
                port=_typed(server, "port", int, DEFAULT_PORT),
                address=_typed(server, "address", str, DEFAULT_ADDRESS),
                log_level=_typed(server, "log_level", str, DEFAULT_LOG_LEVEL),
                server_display_url=_typed(server, "server_display_url", str, None),
            ),
        )

    @classmethod
    def from_toml(cls, text: str) -> "BunnylolConfig":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as error:
            raise ConfigError(str(error)) from error
        return cls.from_dict(data)

    def to_toml(self) -> str:
        """Serialize to TOML with explanatory comments."""
        browser_line = (
            f"browser = {_quote(self.browser)}"
            if self.browser is not None
            else '# browser = "firefox"'
        )
        alias_lines = (
            "\n".join(
                f"{_key(name)} = {_quote(target)}"
                for name, target in self.aliases.items()
            )
            if self.aliases
            else '# my-alias = "gh username/repo"'
        )
        display_line = (
            f"server_display_url = {_quote(self.server.server_display_url)}"
            if self.server.server_display_url is not None
            else '# server_display_url = "bunny.example.com"'
        )
        return CONFIG_TEMPLATE.format(
            browser_line=browser_line,
            default_search=_quote(self.default_search),
            alias_lines=alias_lines,
            history_enabled=str(self.history.enabled).lower(),
            history_max_entries=self.history.max_entries,
            port=self.server.port,
            address=_quote(self.server.address),
            log_level=_quote(self.server.log_level),
            display_line=display_line,
        )

    def write_to_file(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_toml(), encoding="utf-8")


CONFIG_TEMPLATE = """\
# Bunnylol Configuration File
#
# NOTE: Configuration is loaded once at server startup.
#       Restart the server (bunnylol serve) to apply changes.

# Browser to open URLs in (optional)
# Examples: "firefox", "chrome", "chromium", "safari"
# If not set, uses system default browser
{browser_line}

# Default search engine when command not recognized
# Options: "google" (default), "ddg", "bing"
default_search = {default_search}

# Custom command aliases
# Example: work = "gh mycompany/repo"
[aliases]
{alias_lines}

# Command history settings
[history]
enabled = {history_enabled}
max_entries = {history_max_entries}

# Server configuration (for bunnylol serve)
# server_display_url: Public-facing URL shown in the bindings page
#   "bunny.example.com" becomes "https://bunny.example.com"
#   "localhost", "127.0.0.1" or "0.0.0.0" get "http://"
#   Full URLs ("https://...", "http://...") are used as-is
#   If not set, defaults to http://localhost:<port>
[server]
port = {port}
address = {address}
log_level = {log_level}
{display_line}
"""


def _quote(value: str) -> str:
    # JSON string escapes are a subset of TOML basic string escapes.
    return json.dumps(value, ensure_ascii=False)


def _key(name: str) -> str:
    return name if _BARE_KEY.match(name) else _quote(name)


def _table(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{name}] must be a table")
    return value


def _typed(data: dict[str, Any], name: str, expected: type, default):
    if name not in data:
        return default
    value = data[name]
    # bool is a subclass of int; keep "port = true" an error.
    if not isinstance(value, expected) or (
        expected is int and isinstance(value, bool)
    ):
        raise ConfigError(f"{name!r} must be of type {expected.__name__}")
    return value


def resolve_config_path(explicit: Optional[str] = None) -> Path:
    """Pick the configuration file path: explicit, system-wide, then user."""
    if explicit:
        return Path(explicit).expanduser()
    user_path = paths.user_config_path()
    if paths.SYSTEM_CONFIG_PATH.exists():
        if user_path.exists():
            SETTINGS_LOGGER.warning(
                "Found config files at both locations, using system config",
                extra={
                    "event": "config_conflict",
                    "path": str(paths.SYSTEM_CONFIG_PATH),
                    "ignored_path": str(user_path),
                },
            )
        return paths.SYSTEM_CONFIG_PATH
    return user_path


def load_config(explicit: Optional[str] = None) -> BunnylolConfig:
    """Load the configuration, creating a default file when none exists."""
    config_path = resolve_config_path(explicit)
    if not config_path.exists():
        config = BunnylolConfig()
        try:
            config.write_to_file(config_path)
        except OSError as error:
            SETTINGS_LOGGER.warning(
                "Failed to write default config file",
                extra={
                    "event": "config_write_failed",
                    "path": str(config_path),
                    "error_type": type(error).__name__,
                },
            )
        else:
            SETTINGS_LOGGER.info(
                "Created default config file",
                extra={"event": "config_created", "path": str(config_path)},
            )
        return config

    try:
        text = config_path.read_text(encoding="utf-8")
    except OSError as error:
        raise ConfigError(f"Failed to read config file {config_path}: {error}") from error
    try:
        config = BunnylolConfig.from_toml(text)
    except ConfigError as error:
        raise ConfigError(f"Failed to parse config file {config_path}: {error}") from error
    SETTINGS_LOGGER.debug(
        "Configuration loaded", extra={"event": "config_loaded", "path": str(config_path)}
    )
    return config


def load_config_or_default(explicit: Optional[str] = None) -> BunnylolConfig:
    """Like load_config, but log and fall back to defaults on a bad file."""
    try:
        return load_config(explicit)
    except ConfigError as error:
        SETTINGS_LOGGER.warning(
            "Continuing with default configuration",
            extra={"event": "config_invalid", "error": str(error)},
        )
        return BunnylolConfig()
