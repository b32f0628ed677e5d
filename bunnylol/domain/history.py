"""Append-only command history stored as JSON lines."""

import json
import os
import tempfile
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from bunnylol.bootstrap import paths
from bunnylol.bootstrap.settings import BunnylolConfig
from bunnylol.domain.correlation_id import get_logger

HISTORY_LOGGER = get_logger("history")


@dataclass(frozen=True)
class HistoryEntry:
    timestamp: str
    command: str
    user: str


class History:
    """Command log capped at ``max_entries`` lines, newest last."""

    def __init__(self, path: Path, max_entries: int) -> None:
        self.path = path
        self.max_entries = max(0, max_entries)
        self._lock = threading.Lock()

    @classmethod
    def from_config(
        cls, config: BunnylolConfig, path: Optional[Path] = None
    ) -> Optional["History"]:
        """Return a History when enabled in the configuration, else None."""
        if not config.history.enabled:
            return None
        return cls(path or paths.history_path(), config.history.max_entries)

    def add(self, command: str, user: str) -> HistoryEntry:
        """Append a command. Raises OSError when the file cannot be written.

        The CLI and the server may write the same file. Each entry is one
        appended write; trimming replaces the file from a private temp file.
        """
        entry = HistoryEntry(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            command=command,
            user=user,
        )
        line = json.dumps(asdict(entry), ensure_ascii=False) + "\n"
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as handle:
                handle.write(line)
            lines = self._read_lines()
            if len(lines) > self.max_entries:
                self._rewrite(lines[len(lines) - self.max_entries :])
        return entry

    def _rewrite(self, lines: list[str]) -> None:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            handle.write("".join(f"{item}\n" for item in lines))
        try:
            os.replace(handle.name, self.path)
        except OSError:
            os.unlink(handle.name)
            raise

    def entries(self) -> list[HistoryEntry]:
        """Return the stored entries, skipping lines that do not parse."""
        with self._lock:
            lines = self._read_lines()
        parsed = []
        for line in lines:
            try:
                parsed.append(HistoryEntry(**json.loads(line)))
            except (ValueError, TypeError):
                HISTORY_LOGGER.debug(
                    "Skipping malformed history line", extra={"event": "history_skip"}
                )
        return parsed

    def _read_lines(self) -> list[str]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        return [line for line in text.splitlines() if line.strip()]


def record_command(history: Optional[History], command: str, user: str) -> None:
    """Best-effort history write that only logs failures."""
    if history is None:
        return
    try:
        history.add(command, user)
    except OSError as error:
        HISTORY_LOGGER.warning(
            "Failed to save command to history",
            extra={
                "event": "history_write_failed",
                "path": str(history.path),
                "error_type": type(error).__name__,
            },
        )
