from datetime import datetime, timedelta, timezone

import pytest

from backend.lib.balance_core.models import AnalyticsConfig, Reading
from backend.lib.local_store import LocalReadingStore
from backend.lib.settings import Settings

T0 = datetime(2025, 11, 1, 0, 0, tzinfo=timezone.utc)


def make_series(values, start=T0, step=timedelta(hours=1), room_id="507"):
    """Readings for `values` spaced `step` apart starting at `start`."""
    return [Reading(room_id, start + i * step, float(v)) for i, v in enumerate(values)]


@pytest.fixture
def config():
    """Analytics config with UTC calendar days."""
    return AnalyticsConfig(reference_tz=timezone.utc)


@pytest.fixture
def settings(tmp_path):
    return Settings(room_id="507", data_dir=tmp_path, reference_tz="UTC", scrape_on_startup=False)


@pytest.fixture
def local_store(tmp_path):
    return LocalReadingStore(tmp_path / "readings.jsonl")
