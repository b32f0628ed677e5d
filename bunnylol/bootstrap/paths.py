"""Filesystem locations for configuration, data and plugins."""

import functools
import os
from pathlib import Path
from typing import Optional

APP_PREFIX = "bunnylol"
SYSTEM_CONFIG_PATH = Path("/etc") / APP_PREFIX / "config.toml"
BREW_CANDIDATES = ("/opt/homebrew", "/usr/local", "/home/linuxbrew/.linuxbrew")
LEGACY_BREW_PLUGIN_DIRS = (
    Path("/opt/homebrew/etc") / APP_PREFIX / "commands",
    Path("/usr/local/etc") / APP_PREFIX / "commands",
)


def _xdg_home(variable: str, fallback: str) -> Path:
    value = os.getenv(variable)
    # XDG ignores relative values.
    if value and os.path.isabs(value):
        return Path(value)
    return Path.home() / fallback


def config_dir() -> Path:
    """$XDG_CONFIG_HOME/bunnylol, defaulting to ~/.config/bunnylol."""
    return _xdg_home("XDG_CONFIG_HOME", ".config") / APP_PREFIX


def data_dir() -> Path:
    """$XDG_DATA_HOME/bunnylol, defaulting to ~/.local/share/bunnylol."""
    return _xdg_home("XDG_DATA_HOME", ".local/share") / APP_PREFIX


def user_config_path() -> Path:
    return config_dir() / "config.toml"


def history_path() -> Path:
    return data_dir() / "history"


@functools.lru_cache(maxsize=1)
def brew_prefix() -> Optional[Path]:
    """Return the first Homebrew prefix that has a brew executable."""
    for candidate in BREW_CANDIDATES:
        prefix = Path(candidate)
        if (prefix / "bin" / "brew").is_file():
            return prefix
    return None


def brew_plugin_dir() -> Optional[Path]:
    prefix = brew_prefix()
    if prefix is None:
        return None
    return prefix / "share" / APP_PREFIX / "commands"


def user_plugin_dir(create: bool = True) -> Path:
    path = data_dir() / "commands"
    if create:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass
    return path


def plugin_dirs(extra: tuple[str, ...] | list[str] = ()) -> list[Path]:
    """Existing plugin directories, lowest precedence first."""
    candidates: list[Optional[Path]] = [
        brew_plugin_dir(),
        *LEGACY_BREW_PLUGIN_DIRS,
        user_plugin_dir(),
        *(Path(item).expanduser() for item in extra),
    ]
    seen: set[Path] = set()
    found = []
    for candidate in candidates:
        if candidate is None or candidate in seen or not candidate.is_dir():
            continue
        seen.add(candidate)
        found.append(candidate)
    return found
