"""Shared test fixtures for Mileage Log."""

import uuid
from datetime import datetime, timedelta

import pytest
from PySide6.QtCore import QCoreApplication

from mileage_log.core.config import _reset_config
from mileage_log.core.models import TripRecord

# Fixed local "now" used by date-sensitive tests (a Wednesday afternoon)
NOW = datetime(2025, 6, 18, 15, 0).astimezone()


@pytest.fixture(scope="session")
def qapp():
    """Provide a QCoreApplication so queued signals can be delivered."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch, tmp_path):
    """Point config at a temp dir and drop the cached instance around each test."""
    monkeypatch.setenv("MILEAGE_LOG_EXPORT_DIR", str(tmp_path / "exports"))
    monkeypatch.setenv("MILEAGE_LOG_STORE_PATH", str(tmp_path / "trips.json"))
    _reset_config()
    yield
    _reset_config()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_trip():
    """Factory for trips; start defaults to NOW, duration to 30 minutes."""

    def factory(
        start: datetime = NOW,
        minutes: float = 30,
        distance: float = 1000.0,
        notes: str = "",
        reason: str = "Business",
        **kwargs,
    ) -> TripRecord:
        kwargs.setdefault("id", uuid.uuid4())
        return TripRecord(
            date=start,
            start_time=start,
            end_time=start + timedelta(minutes=minutes),
            distance=distance,
            notes=notes,
            reason=reason,
            **kwargs,
        )

    return factory
