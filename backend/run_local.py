# backend/run_local.py
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

from backend.lib.balance_core.io import parse_csv_string
from backend.lib.balance_core.processor import analyze_readings


def main(csv_path, room_id=None, now=None):
    """Print the analytics of every room (or one room) found in a CSV of readings."""
    text = Path(csv_path).read_text(encoding="utf-8")
    readings = parse_csv_string(text)
    print(f"Parsed {len(readings)} readings")
    now = now or datetime.now(timezone.utc)
    rooms = [room_id] if room_id else sorted({r.room_id for r in readings})
    for room in rooms:
        result = analyze_readings(readings, room, now)
        if not result.has_data:
            print(f"No readings for room {room}")
            continue
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    csv = sys.argv[1] if len(sys.argv) > 1 else "tests/sample.csv"
    room = sys.argv[2] if len(sys.argv) > 2 else None
    main(csv, room)
