# tests/test_normalizer.py
from backend.lib.balance_core.models import Reading
from backend.lib.balance_core.normalizer import normalize_series, valid_balance
from conftest import T0, make_series
from datetime import datetime, timedelta, timezone
from decimal import Decimal
import itertools

HOUR = timedelta(hours=1)

def test_empty_input_gives_empty_series():
    assert normalize_series([]) == []

def test_sorts_ascending():
    series = make_series([100, 99, 98, 97])
    shuffled = [series[2], series[0], series[3], series[1]]
    assert normalize_series(shuffled) == series

def test_drops_invalid_balances():
    readings = [
        Reading("507", T0, 10.0),
        Reading("507", T0 + HOUR, float("nan")),
        Reading("507", T0 + 2 * HOUR, float("inf")),
        Reading("507", T0 + 3 * HOUR, -1.0),
        Reading("507", T0 + 4 * HOUR, None),
        Reading("507", T0 + 5 * HOUR, "n/a"),
        Reading("507", T0 + 6 * HOUR, 9.0),
    ]
    result = normalize_series(readings)
    assert [r.kwh for r in result] == [10.0, 9.0]

def test_zero_balance_is_valid():
    assert valid_balance(0) == 0.0
    assert valid_balance(True) is None

def test_decimal_balance_becomes_float():
    result = normalize_series([Reading("507", T0, Decimal("42.5"))])
    assert result[0].kwh == 42.5
    assert isinstance(result[0].kwh, float)

def test_filters_room():
    readings = make_series([10, 9]) + make_series([50], room_id="508")
    result = normalize_series(readings, room_id="508")
    assert [r.room_id for r in result] == ["508"]

def test_duplicate_timestamp_keeps_latest_recorded():
    first = Reading("507", T0, 10.0, recorded_at=T0)
    second = Reading("507", T0, 12.0, recorded_at=T0 + timedelta(seconds=5))
    assert normalize_series([first, second]) == [second]
    assert normalize_series([second, first]) == [second]

def test_duplicate_without_recorded_at_keeps_higher_balance():
    low = Reading("507", T0, 10.0)
    high = Reading("507", T0, 10.5)
    assert normalize_series([low, high]) == [high]
    assert normalize_series([high, low]) == [high]

def test_same_instant_in_other_offset_is_duplicate():
    shanghai = timezone(timedelta(hours=8))
    a = Reading("507", T0, 10.0)
    b = Reading("507", datetime(2025, 11, 1, 8, 0, tzinfo=shanghai), 11.0)
    assert len(normalize_series([a, b])) == 1

def test_naive_timestamps_are_treated_as_utc():
    naive = Reading("507", datetime(2025, 11, 1, 1, 0), 9.0)
    result = normalize_series([Reading("507", T0, 10.0), naive])
    assert result[1].timestamp == T0 + HOUR

def test_idempotent():
    readings = make_series([5, 4, 20, 19]) + [Reading("507", T0, 7.0, recorded_at=T0)]
    once = normalize_series(readings)
    assert normalize_series(once) == once

def test_order_independent():
    readings = [
        Reading("507", T0, 10.0),
        Reading("507", T0, 11.0),
        Reading("507", T0 + HOUR, 9.0, recorded_at=T0),
        Reading("507", T0 + HOUR, 8.0, recorded_at=T0 + HOUR),
        Reading("507", T0 + 2 * HOUR, 7.5),
    ]
    expected = normalize_series(readings)
    for perm in itertools.permutations(readings):
        assert normalize_series(list(perm)) == expected
