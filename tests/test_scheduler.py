# tests/test_scheduler.py
from backend.lib.scheduler import ScrapeScheduler, seconds_until_next_run
from datetime import datetime, timezone
import threading
import pytest


class CountingScraper:
    def __init__(self, fail=False):
        self.calls = 0
        self.fail = fail
        self.called = threading.Event()

    def scrape(self):
        self.calls += 1
        self.called.set()
        if self.fail:
            raise RuntimeError("boom")
        return "ok"


def test_next_run_is_top_of_hour():
    now = datetime(2025, 11, 1, 10, 15, 30, tzinfo=timezone.utc)
    assert seconds_until_next_run(now, 60) == 44 * 60 + 30

def test_next_run_exactly_on_boundary_waits_full_interval():
    now = datetime(2025, 11, 1, 10, 0, 0, tzinfo=timezone.utc)
    assert seconds_until_next_run(now, 60) == 3600

def test_next_run_other_interval():
    now = datetime(2025, 11, 1, 10, 7, 0, tzinfo=timezone.utc)
    assert seconds_until_next_run(now, 15) == 8 * 60

def test_next_run_rolls_over_midnight():
    now = datetime(2025, 11, 1, 23, 59, 0, tzinfo=timezone.utc)
    assert seconds_until_next_run(now, 60) == 60

def test_invalid_interval():
    with pytest.raises(ValueError):
        seconds_until_next_run(datetime(2025, 11, 1, tzinfo=timezone.utc), 0)

def test_run_once_swallows_errors():
    scraper = CountingScraper(fail=True)
    scheduler = ScrapeScheduler(scraper)
    assert scheduler.run_once() is None
    assert scraper.calls == 1

def test_start_runs_on_startup_and_stops():
    scraper = CountingScraper()
    scheduler = ScrapeScheduler(scraper, interval_minutes=60, run_on_start=True)
    scheduler.start()
    try:
        assert scraper.called.wait(5)
        assert scheduler.running
    finally:
        scheduler.stop(timeout=5)
    assert not scheduler.running
    assert scraper.calls >= 1

def test_failing_startup_scrape_keeps_thread_alive():
    scraper = CountingScraper(fail=True)
    scheduler = ScrapeScheduler(scraper, run_on_start=True)
    scheduler.start()
    try:
        assert scraper.called.wait(5)
        assert scheduler.running
    finally:
        scheduler.stop(timeout=5)
