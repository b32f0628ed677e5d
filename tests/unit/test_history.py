"""Unit tests for the command history file."""

import json
import logging
import threading
from pathlib import Path

from bunnylol.bootstrap.settings import BunnylolConfig, HistoryConfig
from bunnylol.domain.history import History, record_command


def test_from_config_respects_enabled_flag(tmp_path: Path):
    """Disabled history yields no History object."""
    disabled = BunnylolConfig(history=HistoryConfig(enabled=False))
    assert History.from_config(disabled) is None

    history = History.from_config(BunnylolConfig(), tmp_path / "history")
    assert history is not None
    assert history.max_entries == 1000


def test_from_config_defaults_to_xdg_data_home(isolated_home: Path):
    """The default file lives under XDG_DATA_HOME."""
    history = History.from_config(BunnylolConfig())
    assert history.path == isolated_home / "data" / "bunnylol" / "history"


def test_add_appends_json_lines(tmp_path: Path):
    """Each command becomes one JSON object per line."""
    history = History(tmp_path / "nested" / "history", max_entries=10)
    history.add("gh facebook/react", "alice")
    history.add("yt rust", "127.0.0.1")

    lines = (tmp_path / "nested" / "history").read_text().splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first["command"] == "gh facebook/react"
    assert first["user"] == "alice"
    assert "timestamp" in first
    assert [entry.command for entry in history.entries()] == ["gh facebook/react", "yt rust"]


def test_add_keeps_only_newest_entries(tmp_path: Path):
    """Older entries are dropped once max_entries is exceeded."""
    history = History(tmp_path / "history", max_entries=3)
    for index in range(5):
        history.add(f"cmd {index}", "user")
    assert [entry.command for entry in history.entries()] == ["cmd 2", "cmd 3", "cmd 4"]


def test_entries_skips_malformed_lines(tmp_path: Path):
    """Garbage lines in the file are ignored."""
    path = tmp_path / "history"
    path.write_text('not json\n{"timestamp": "t", "command": "gh", "user": "u"}\n[1]\n')
    entries = History(path, 10).entries()
    assert len(entries) == 1
    assert entries[0].command == "gh"


def test_entries_on_missing_file_is_empty(tmp_path: Path):
    """A history that was never written has no entries."""
    assert not History(tmp_path / "history", 10).entries()


def test_concurrent_adds_are_not_lost(tmp_path: Path):
    """Writes from several threads all land in the file."""
    history = History(tmp_path / "history", max_entries=100)

    def writer(worker_id: int):
        for index in range(5):
            history.add(f"cmd {worker_id}-{index}", "user")

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert len(history.entries()) == 20


def test_separate_writers_on_one_file_keep_every_entry(tmp_path: Path):
    """Two History objects on one path (CLI and server) never drop entries."""
    path = tmp_path / "history"
    cli_history = History(path, max_entries=1000)
    server_history = History(path, max_entries=1000)
    errors = []

    def writer(history: History, name: str):
        for index in range(200):
            try:
                history.add(f"{name} {index}", name)
            except OSError as error:
                errors.append(error)

    threads = [
        threading.Thread(target=writer, args=(cli_history, "cli")),
        threading.Thread(target=writer, args=(server_history, "server")),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert not errors
    entries = server_history.entries()
    assert len(entries) == 400
    assert sum(1 for entry in entries if entry.user == "cli") == 200


def test_separate_writers_trim_without_shared_temp_file(tmp_path: Path):
    """Concurrent trimming stays within the cap and leaves no temp files."""
    path = tmp_path / "history"
    writers = [History(path, max_entries=10), History(path, max_entries=10)]
    errors = []

    def writer(history: History):
        for index in range(100):
            try:
                history.add(f"cmd {index}", "user")
            except OSError as error:
                errors.append(error)

    threads = [threading.Thread(target=writer, args=(h,)) for h in writers]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert not errors
    assert 0 < len(writers[0].entries()) <= 10
    assert sorted(p.name for p in tmp_path.iterdir()) == ["history"]


def test_record_command_ignores_missing_history():
    """No history configured means nothing to do."""
    record_command(None, "gh", "user")


def test_record_command_logs_write_failures(tmp_path: Path, caplog):
    """Write errors are logged and swallowed."""
    blocker = tmp_path / "blocker"
    blocker.write_text("a file, not a directory")
    history = History(blocker / "history", 10)
    caplog.set_level(logging.WARNING)

    record_command(history, "gh", "user")

    record = next(
        r for r in caplog.records if getattr(r, "event", None) == "history_write_failed"
    )
    assert record.path == str(blocker / "history")
