from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from .io import parse_timestamp, valid_balance
from .models import Reading

# sorts below every real insertion time
_NEVER = datetime.min.replace(tzinfo=timezone.utc)


def _precedence(reading: Reading) -> Tuple[datetime, float]:
    # latest insert wins; without insertion times the higher balance wins
    recorded_at = parse_timestamp(reading.recorded_at) if reading.recorded_at else _NEVER
    return (recorded_at, reading.kwh)


def normalize_series(readings: Iterable[Reading], room_id: Optional[str] = None) -> List[Reading]:
    """
    Turn raw readings into an ascending, duplicate-free series.

    - readings with an unusable balance are dropped
    - readings for other rooms are dropped when room_id is given
    - of several readings sharing a timestamp one survives, chosen by
      _precedence, which only looks at reading content so the result
      does not depend on input order

    No smoothing or gap filling is done.
    """
    by_timestamp: Dict[datetime, Reading] = {}
    for r in readings:
        if room_id is not None and r.room_id != room_id:
            continue
        kwh = valid_balance(r.kwh)
        if kwh is None:
            continue
        timestamp = parse_timestamp(r.timestamp)
        if type(r.kwh) is not float or timestamp is not r.timestamp:
            r = Reading(room_id=r.room_id, timestamp=timestamp, kwh=kwh, recorded_at=r.recorded_at)
        kept = by_timestamp.get(r.timestamp)
        if kept is None or _precedence(r) > _precedence(kept):
            by_timestamp[r.timestamp] = r
    return [by_timestamp[ts] for ts in sorted(by_timestamp)]
