import csv
import math
import re
from datetime import datetime, timezone
from io import StringIO
from typing import Dict, List, Optional, Union

from .models import Reading

# the balance page renders the remaining credit as e.g. "剩余电量: 42.37度"
BALANCE_PATTERN = re.compile(r"(\d+(\.\d+)?)度")


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO8601 timestamp such as 2025-11-01T00:00:00Z.
    Naive values are taken to be UTC.
    """
    if isinstance(value, datetime):
        ts = value
    else:
        # Convert timestamp with Z to +00:00 for fromisoformat
        ts = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def format_timestamp(value: datetime) -> str:
    """
    Canonical storage form: UTC with millisecond precision, so that string
    order and time order agree (the store sorts and range-queries on it).
    """
    return parse_timestamp(value).astimezone(timezone.utc).isoformat(timespec="milliseconds")


def valid_balance(value) -> Optional[float]:
    """Return the balance as a float, or None when it is missing, non-finite or negative."""
    if value is None or isinstance(value, bool):
        return None
    try:
        kwh = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(kwh) or kwh < 0:
        return None
    return kwh


def parse_balance_page(text: str) -> Optional[float]:
    if not text:
        return None
    match = BALANCE_PATTERN.search(text)
    if not match:
        return None
    return float(match.group(1))


def parse_csv_string(csv_text: str) -> List[Reading]:
    """
    Parse CSV text with header: room_id,timestamp,kwh
    Timestamp should be ISO8601, e.g. 2025-11-01T00:00:00Z
    """
    f = StringIO(csv_text.strip())
    reader = csv.DictReader(f)
    readings = []
    for row in reader:
        # Basic validation
        if not row.get('room_id') or not row.get('timestamp') or not row.get('kwh'):
            raise ValueError(f"Missing field in row: {row}")
        timestamp = parse_timestamp(row['timestamp'])
        kwh = valid_balance(row["kwh"])
        if kwh is None:
            raise ValueError(f"kwh must be a finite number >= 0: {row['kwh']!r}")
        readings.append(Reading(room_id=row['room_id'].strip(), timestamp=timestamp, kwh=kwh))
    return readings


def reading_to_record(reading: Reading) -> Dict[str, object]:
    return {
        "timestamp": format_timestamp(reading.timestamp),
        "room_id": reading.room_id,
        "kWh": reading.kwh,
    }
