"""
Balance acquisition: fetch the prepaid electricity page for the configured
room, pull out the remaining kWh and store it as a new reading.

A failed attempt (network error, unexpected page, store error) is logged and
reported in the ScrapeResult. scrape() never raises, so the scheduler keeps
running and the tick simply yields no reading.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import requests

from backend.lib.balance_core.io import parse_balance_page
from backend.lib.store import StoreError

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Linux; U; Android 4.1.2; zh-cn; Chitanda/Akari) AppleWebKit/534.30 "
        "(KHTML, like Gecko) Version/4.0 Mobile Safari/534.30 "
        "MicroMessenger/6.0.0.58_r884092.501 NetType/WIFI"
    ),
}
REQUEST_TIMEOUT_SECONDS = 10


@dataclass
class ScrapeResult:
    success: bool
    kwh: Optional[float] = None
    timestamp: Optional[datetime] = None
    inserted: bool = False
    error: Optional[str] = None

    def to_dict(self):
        return {
            "success": self.success,
            "kwh": self.kwh,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "inserted": self.inserted,
            "error": self.error,
        }


class BalanceScraper:
    def __init__(self, settings, store, session=None, clock=None):
        self.settings = settings
        self.store = store
        self.session = session or requests.Session()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def fetch_page(self, url: str) -> str:
        response = self.session.get(url, headers=HEADERS, timeout=REQUEST_TIMEOUT_SECONDS)
        response.raise_for_status()
        # without a declared charset requests assumes ISO-8859-1 for text/html
        if "charset" not in response.headers.get("Content-Type", "").lower():
            response.encoding = "utf-8"
        return response.text

    def scrape(self) -> ScrapeResult:
        room_id = self.settings.room_id
        if not room_id:
            logger.error("ROOM_ID is not set. Cannot scrape.")
            return ScrapeResult(success=False, error="ROOM_ID not configured")

        url = self.settings.scrape_url()
        logger.info("Scraping room %s from %s", room_id, url)

        try:
            page = self.fetch_page(url)
        except requests.RequestException as e:
            logger.error("Error scraping room %s: %s", room_id, e)
            return ScrapeResult(success=False, error=str(e))

        kwh = parse_balance_page(page)
        if kwh is None:
            logger.warning("Failed to parse balance for room %s. Response starts with: %r",
                           room_id, page[:100])
            return ScrapeResult(success=False, error="Parse error")

        timestamp = self._clock()
        try:
            inserted = self.store.insert_if_absent(room_id, timestamp, kwh)
        except StoreError as e:
            logger.error("Could not store reading for room %s: %s", room_id, e)
            return ScrapeResult(success=False, kwh=kwh, timestamp=timestamp, error=str(e))

        if inserted:
            logger.info("Stored room %s: %s kWh", room_id, kwh)
        else:
            logger.info("Reading for room %s at %s already stored", room_id, timestamp.isoformat())
        return ScrapeResult(success=True, kwh=kwh, timestamp=timestamp, inserted=inserted)
