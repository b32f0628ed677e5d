"""Shared fixtures for unit tests."""

import logging

import pytest


@pytest.fixture(autouse=True)
def enable_log_propagation():
    """Ensure logs propagate to root so caplog can catch them."""
    logger = logging.getLogger("bunnylol")
    old_propagate = logger.propagate
    old_level = logger.level
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
    yield
    logger.propagate = old_propagate
    logger.setLevel(old_level)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep config, history and user plugins inside the test's tmp_path."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.delenv("BUNNYLOL_PLUGIN_PATH", raising=False)
    monkeypatch.delenv("BUNNYLOL_CONFIG", raising=False)
    monkeypatch.delenv("BUNNYLOL_LOG_LEVEL", raising=False)
    return tmp_path
