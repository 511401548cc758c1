"""Pytest configuration and shared fixtures."""

import logging

import pytest

from mapbox_backup.config.settings import Settings
from mapbox_backup.observability.logger import ROOT_LOGGER
from mapbox_backup.storage.local import LocalStore

from .fixtures.fakes import FakeClock, FakeMapboxClient
from .fixtures.mapbox_responses import ACCESS_TOKEN, STYLES_PAGE_1, STYLES_PAGE_2


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handlers and propagation changes made by setup_logging."""
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock starting at t=0 whose sleep advances it."""
    return FakeClock()


@pytest.fixture
def store(tmp_path) -> LocalStore:
    """Local store rooted in a temporary output directory."""
    return LocalStore(tmp_path / "testuser")


@pytest.fixture
def settings() -> Settings:
    """Settings with no retry delay and no .env lookup."""
    return Settings(
        _env_file=None,
        access_token=ACCESS_TOKEN,
        retry_delay=0.0,
    )


@pytest.fixture
def style_client() -> FakeMapboxClient:
    """Client serving three styles over two pages."""
    return FakeMapboxClient(styles=[STYLES_PAGE_1, STYLES_PAGE_2])
