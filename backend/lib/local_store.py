"""
=============================================================================
LOCAL READING STORE - JSON Lines file storage
=============================================================================
Used when DynamoDB is not enabled. Every reading is one JSON object per line:

    {"room_id": "507", "timestamp": "2025-11-01T00:00:00.000+00:00",
     "kwh": 42.5, "recorded_at": "2025-11-01T00:00:01.203+00:00"}

The file is append-only. (room_id, timestamp) is the natural key: a reading
is only written if no reading with the same key exists yet. A lock makes the
check-then-append atomic for every thread of this process, so a scheduled
scrape and a manual scrape cannot both store the same sample.
=============================================================================
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple

from backend.lib.balance_core.io import format_timestamp, parse_timestamp
from backend.lib.balance_core.models import Reading
from backend.lib.store import StoreError

logger = logging.getLogger(__name__)


class LocalReadingStore:
    def __init__(self, path):
        self.path = Path(path)
        self._lock = threading.Lock()
        # (room_id, timestamp) keys already on disk; loaded on first insert
        self._keys: Optional[Set[Tuple[str, str]]] = None

    def _records(self) -> Iterator[dict]:
        """Yield every stored record, skipping lines that cannot be parsed."""
        if not self.path.exists():
            return
        with self.path.open("r", encoding="utf-8") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping unreadable line %d in %s", line_no, self.path)
                    continue
                if not obj.get("room_id") or not obj.get("timestamp"):
                    logger.warning("Skipping incomplete line %d in %s", line_no, self.path)
                    continue
                yield obj

    def insert_if_absent(self, room_id: str, timestamp: datetime, kwh: float) -> bool:
        """
        Store a reading unless one with the same room and timestamp exists.

        Returns:
            bool: True if the reading was written, False if it was a duplicate
        """
        key = (room_id, format_timestamp(timestamp))
        with self._lock:
            try:
                if self._keys is None:
                    self._keys = {(o["room_id"], o["timestamp"]) for o in self._records()}
                if key in self._keys:
                    return False
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps({
                        "room_id": room_id,
                        "timestamp": key[1],
                        "kwh": float(kwh),
                        "recorded_at": format_timestamp(datetime.now(timezone.utc)),
                    }) + "\n")
            except OSError as e:
                raise StoreError(f"Failed to write reading to {self.path}: {e}") from e
            self._keys.add(key)
            return True

    def query_range(self, room_id: Optional[str], since: datetime) -> List[Reading]:
        """
        Readings with timestamp >= since, for one room or (room_id None) all
        rooms, in file order.
        """
        since = parse_timestamp(since)
        readings = []
        try:
            for obj in self._records():
                if room_id is not None and obj["room_id"] != room_id:
                    continue
                try:
                    ts = parse_timestamp(obj["timestamp"])
                except ValueError:
                    logger.warning("Skipping reading with bad timestamp: %s", obj.get("timestamp"))
                    continue
                if ts < since:
                    continue
                recorded_at = None
                if obj.get("recorded_at"):
                    try:
                        recorded_at = parse_timestamp(obj["recorded_at"])
                    except ValueError:
                        logger.warning("Ignoring bad recorded_at %r for reading at %s",
                                       obj["recorded_at"], obj["timestamp"])
                readings.append(Reading(
                    room_id=obj["room_id"],
                    timestamp=ts,
                    kwh=obj.get("kwh"),
                    recorded_at=recorded_at,
                ))
        except OSError as e:
            raise StoreError(f"Failed to read {self.path}: {e}") from e
        return readings

    def list_rooms(self) -> List[str]:
        try:
            return sorted({obj["room_id"] for obj in self._records()})
        except OSError as e:
            raise StoreError(f"Failed to read {self.path}: {e}") from e
