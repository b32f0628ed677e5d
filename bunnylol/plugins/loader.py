"""Discovery and execution of command plugins.

A plugin is a Python file defining two functions::

    def info():
        return {"bindings": ["gh", "github"],
                "description": "Navigate to GitHub repositories",
                "example": "gh facebook/react"}

    def process(full_args):
        return "https://github.com/..."

``process`` receives the whole query (binding included) and returns the
destination URL.
"""

import hashlib
import importlib.util
import sys
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from bunnylol.bootstrap import paths
from bunnylol.bootstrap.config import env_plugin_dirs
from bunnylol.commands.command_info import CommandInfo
from bunnylol.domain.correlation_id import get_logger

PLUGINS_LOGGER = get_logger("plugins")

PLUGIN_SUFFIX = ".py"
MODULE_PREFIX = "bunnylol_plugin_"


class PluginLoadError(Exception):
    """Raised when a plugin file cannot be imported or describes itself badly."""


def _is_usable_url(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    return not any(ord(char) < 0x20 or ord(char) == 0x7F for char in value)


@dataclass(frozen=True)
class Plugin:
    info: CommandInfo
    path: Path
    process_fn: Callable[[str], Any]

    def execute(self, full_args: str) -> Optional[str]:
        """Run the plugin, returning None when it fails or returns garbage."""
        try:
            result = self.process_fn(full_args)
        except Exception as error:  # pylint: disable=broad-except
            PLUGINS_LOGGER.warning(
                "Plugin raised while processing command",
                extra={
                    "event": "plugin_failed",
                    "plugin": self.path.name,
                    "error_type": type(error).__name__,
                    "error": str(error),
                },
            )
            return None
        if not _is_usable_url(result):
            PLUGINS_LOGGER.warning(
                "Plugin returned an unusable URL",
                extra={"event": "plugin_invalid_result", "plugin": self.path.name},
            )
            return None
        return result.strip()


def parse_info(raw: Any, source: Path) -> CommandInfo:
    """Validate the mapping returned by a plugin's ``info()``."""
    if not isinstance(raw, Mapping):
        raise PluginLoadError(f"{source.name}: info() must return a mapping")
    bindings = raw.get("bindings")
    if isinstance(bindings, str) or not isinstance(bindings, Iterable):
        raise PluginLoadError(f"{source.name}: bindings must be a list of strings")
    cleaned = tuple(b for b in bindings if isinstance(b, str) and b)
    if not cleaned:
        raise PluginLoadError(f"{source.name}: no usable bindings")
    description = raw.get("description")
    example = raw.get("example")
    if not isinstance(description, str) or not isinstance(example, str):
        raise PluginLoadError(f"{source.name}: description and example are required")
    return CommandInfo(cleaned, description, example)


def _module_name(path: Path) -> str:
    digest = hashlib.sha1(str(path.resolve()).encode()).hexdigest()[:12]
    return f"{MODULE_PREFIX}{path.stem}_{digest}"


def load_plugin(path: Path) -> Plugin:
    """Import a plugin file and read its metadata."""
    module_name = _module_name(path)
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise PluginLoadError(f"{path.name}: not an importable file")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as error:  # pylint: disable=broad-except
        sys.modules.pop(module_name, None)
        raise PluginLoadError(f"{path.name}: {type(error).__name__}: {error}") from error

    info_fn = getattr(module, "info", None)
    process_fn = getattr(module, "process", None)
    if not callable(info_fn) or not callable(process_fn):
        raise PluginLoadError(f"{path.name}: info() and process() must be defined")
    try:
        raw_info = info_fn()
    except Exception as error:  # pylint: disable=broad-except
        raise PluginLoadError(f"{path.name}: info() raised {error!r}") from error
    return Plugin(parse_info(raw_info, path), path, process_fn)


class PluginRegistry:
    """Binding to plugin lookup table.

    Later registrations win when two plugins claim the same binding.
    """

    def __init__(self) -> None:
        self._plugins: dict[str, Plugin] = {}

    def __len__(self) -> int:
        return len(self._plugins)

    def __contains__(self, binding: str) -> bool:
        return binding in self._plugins

    def register(self, plugin: Plugin) -> None:
        for binding in plugin.info.bindings:
            self._plugins[binding] = plugin

    def process(self, command: str, full_args: str) -> Optional[str]:
        """Return the plugin URL for a command, or None when nothing handles it."""
        plugin = self._plugins.get(command)
        if plugin is None:
            return None
        return plugin.execute(full_args)

    def commands(self) -> list[CommandInfo]:
        """Command metadata, one entry per primary binding."""
        seen: set[str] = set()
        infos = []
        for plugin in self._plugins.values():
            primary = plugin.info.primary
            if primary in seen:
                continue
            seen.add(primary)
            infos.append(plugin.info)
        return infos

    def scan_directory(self, directory: Path) -> int:
        """Load every plugin file of a directory in name order."""
        loaded = 0
        try:
            entries = sorted(directory.iterdir())
        except OSError as error:
            PLUGINS_LOGGER.warning(
                "Cannot read plugin directory",
                extra={
                    "event": "plugin_dir_unreadable",
                    "directory": str(directory),
                    "error_type": type(error).__name__,
                },
            )
            return 0
        for path in entries:
            if path.suffix != PLUGIN_SUFFIX or not path.is_file():
                continue
            try:
                plugin = load_plugin(path)
            except PluginLoadError as error:
                PLUGINS_LOGGER.warning(
                    "Skipping plugin",
                    extra={
                        "event": "plugin_skipped",
                        "plugin": path.name,
                        "error": str(error),
                    },
                )
                continue
            self.register(plugin)
            loaded += 1
            PLUGINS_LOGGER.debug(
                "Plugin loaded",
                extra={
                    "event": "plugin_loaded",
                    "plugin": path.name,
                    "binding": plugin.info.primary,
                },
            )
        return loaded

    @classmethod
    def from_directories(cls, directories: Iterable[Path]) -> "PluginRegistry":
        registry = cls()
        plugin_count = 0
        for directory in directories:
            plugin_count += registry.scan_directory(Path(directory))
        PLUGINS_LOGGER.info(
            "Plugins loaded",
            extra={
                "event": "plugins_loaded",
                "plugin_count": plugin_count,
                "binding_count": len(registry),
            },
        )
        return registry


def discover_plugins(extra_dirs: Iterable[str] = ()) -> PluginRegistry:
    """Load the standard plugin directories plus any extra ones."""
    directories = paths.plugin_dirs([*env_plugin_dirs(), *extra_dirs])
    return PluginRegistry.from_directories(directories)
