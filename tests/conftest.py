"""Shared fixtures for moose tests."""

import logging

import pytest

from moose import logging as moose_logging


@pytest.fixture(autouse=True)
def reset_logger():
    """Reset the logger so each test binds handlers to its own streams."""
    moose_logging._logger = None
    logging.getLogger("moose").handlers.clear()
    yield
    moose_logging._logger = None
    logging.getLogger("moose").handlers.clear()


@pytest.fixture(autouse=True)
def isolated_user_settings(tmp_path, monkeypatch):
    """Point the user settings file into tmp_path so real settings never leak in."""
    settings_path = tmp_path / "user-settings.toml"
    monkeypatch.setenv("MOOSE_SETTINGS", str(settings_path))
    return settings_path
