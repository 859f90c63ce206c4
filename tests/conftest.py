"""
Pytest configuration and shared fixtures.
"""

import pytest
from typing import Dict, Any

from jobbookings.database import configure, dispose_engine
from jobbookings.logger import get_logger, reset_logger
from jobbookings.manager import BookingManager


@pytest.fixture(autouse=True)
def quiet_logger(tmp_path):
    """Global logger writing only to a temporary log directory."""
    reset_logger()
    get_logger(log_dir=tmp_path / "logs", enable_console=False)
    yield
    reset_logger()


@pytest.fixture
def db_url(tmp_path) -> str:
    """Point the shared engine at a fresh SQLite file."""
    url = f"sqlite:///{tmp_path / 'bookings.db'}"
    configure(url)
    yield url
    dispose_engine()


@pytest.fixture
def manager(db_url) -> BookingManager:
    return BookingManager()


@pytest.fixture
def sample_job() -> Dict[str, Any]:
    """Job document as a caller would book it."""
    return {
        "title": "Replace water heater",
        "customer": "Acme Corp",
        "address": "12 Main St",
        "hours": 3,
    }


@pytest.fixture
def populated(manager) -> Dict[str, Any]:
    """Two dates: three jobs on 2024-05-01, one on 2024-05-02. Returns their ids."""
    ids = {
        "a": manager.add("2024-05-01", {"title": "A"}),
        "b": manager.add("2024-05-01", {"title": "B"}),
        "c": manager.add("2024-05-01", {"title": "C"}),
        "x": manager.add("2024-05-02", {"title": "X"}),
    }
    return ids
