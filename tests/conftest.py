"""Pytest configuration and fixtures for TabSync tests."""

from datetime import datetime, timezone

import pytest

from tabsync.config import reset_settings
from tabsync.models.records import Project

# Fixed clock for tests that depend on "now"
FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Run every test from an empty directory with freshly loaded settings.

    No config.toml or secrets.env is found in the working directory, so
    the defaults apply.
    """
    monkeypatch.chdir(tmp_path)
    for name in ("TABSYNC_REMOTE_ACCESS_TOKEN", "TABSYNC_WEBHOOK_URL", "TABSYNC_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def now() -> datetime:
    """A fixed timestamp used for missing dates."""
    return FIXED_NOW


@pytest.fixture
def known_projects() -> list[Project]:
    """Projects that tickets and purchases can link to."""
    return [
        Project(
            id="prj-1",
            name="Brickell Tower",
            client="Acme Builders",
            address="1 Brickell Ave",
        ),
        Project(
            id="prj-2",
            name="Coral Gables Clinic",
            client="Gables Health",
            address="200 Miracle Mile",
        ),
    ]

