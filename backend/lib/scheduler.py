"""
Runs the balance scraper on a fixed cadence in a background thread.

With the default 60 minute interval the runs fall on the top of every hour,
the same as a `0 * * * *` cron entry.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def seconds_until_next_run(now: datetime, interval_minutes: int) -> float:
    """Seconds from `now` to the next multiple of the interval since midnight."""
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    elapsed = (now - midnight).total_seconds()
    period = interval_minutes * 60
    next_offset = (int(elapsed // period) + 1) * period
    return (midnight + timedelta(seconds=next_offset) - now).total_seconds()


class ScrapeScheduler:
    def __init__(self, scraper, interval_minutes: int = 60, run_on_start: bool = True):
        self.scraper = scraper
        self.interval_minutes = interval_minutes
        self.run_on_start = run_on_start
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self):
        """Run a single scrape. Errors are logged, never raised."""
        logger.info("Scheduled scrape running")
        try:
            return self.scraper.scrape()
        except Exception:
            # do not crash loop
            logger.exception("Scheduled scrape failed")
            return None

    def _loop(self):
        if self.run_on_start:
            logger.info("Initializing data scrape on startup")
            self.run_once()
        while not self._stop.is_set():
            wait = seconds_until_next_run(datetime.now(timezone.utc), self.interval_minutes)
            if self._stop.wait(wait):
                break
            self.run_once()

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="scrape-scheduler", daemon=True)
        self._thread.start()
        logger.info("Scrape scheduler started (every %d minutes)", self.interval_minutes)

    def stop(self, timeout: Optional[float] = None):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
