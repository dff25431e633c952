import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .estimator import ExhaustionEstimator
from .io import parse_timestamp
from .models import AnalyticsConfig, AnalyticsResult, DailyConsumption, Reading, RechargeEvent
from .normalizer import normalize_series

logger = logging.getLogger(__name__)

CHART_RANGES_DAYS = (1, 3, 7, 30)
DEFAULT_LOOKBACK_DAYS = 30


def sum_decreases(series: Sequence[Reading]) -> float:
    """
    Total kWh consumed across an ascending series: only drops between
    consecutive readings count, a rise is a recharge and contributes nothing.
    """
    total = 0.0
    for prev, curr in zip(series, series[1:]):
        if prev.kwh > curr.kwh:
            total += prev.kwh - curr.kwh
    return total


def consumption_between(series: Sequence[Reading], since: datetime,
                        until: Optional[datetime] = None) -> float:
    window = [r for r in series
              if r.timestamp >= since and (until is None or r.timestamp <= until)]
    return sum_decreases(window)


class BalanceAnalyzer:
    def __init__(self, readings: Iterable[Reading], config: Optional[AnalyticsConfig] = None):
        self.config = config or AnalyticsConfig()
        # Ensure readings are deduplicated and sorted by timestamp
        self.readings = normalize_series(readings)

    def current(self) -> Optional[Reading]:
        return self.readings[-1] if self.readings else None

    def consumption(self, window: timedelta, now: datetime) -> Optional[float]:
        """
        kWh consumed over [now - window, now]. None only when there is no
        data at all; a window holding fewer than two readings gives 0.0.
        """
        if not self.readings:
            return None
        now = parse_timestamp(now)
        return consumption_between(self.readings, now - window, now)

    def daily_consumption(self) -> Dict[date, float]:
        """
        Returns a dict keyed by calendar day (in the reference timezone) -> kWh.

        Each drop between consecutive readings is credited to the day on which
        that interval starts, so the daily figures add up to the consumption
        of the whole series. Days on which no interval starts are left out.
        """
        tz = self.config.reference_tz
        daily: Dict[date, float] = {}
        for prev, curr in zip(self.readings, self.readings[1:]):
            day = prev.timestamp.astimezone(tz).date()
            used = prev.kwh - curr.kwh if prev.kwh > curr.kwh else 0.0
            daily[day] = daily.get(day, 0.0) + used
        return daily

    def daily_extremes(self) -> Tuple[Optional[DailyConsumption], Optional[DailyConsumption]]:
        """
        (max, min) daily consumption among days above the noise floor.
        On equal values max keeps the earliest day and min the latest one.
        """
        floor = self.config.noise_floor_kwh
        max_daily = None
        min_daily = None
        for day, kwh in sorted(self.daily_consumption().items()):
            if kwh <= floor:
                continue
            if max_daily is None or kwh > max_daily.kwh:
                max_daily = DailyConsumption(day=day, kwh=kwh)
            if min_daily is None or kwh <= min_daily.kwh:
                min_daily = DailyConsumption(day=day, kwh=kwh)
        return max_daily, min_daily

    def last_recharge(self) -> Optional[RechargeEvent]:
        """
        Most recent upward jump larger than the recharge threshold, scanning
        from the newest pair backwards. A jump of exactly the threshold is jitter.
        """
        threshold = self.config.recharge_threshold_kwh
        for i in range(len(self.readings) - 1, 0, -1):
            prev = self.readings[i - 1]
            curr = self.readings[i]
            if curr.kwh > prev.kwh + threshold:
                return RechargeEvent(time=curr.timestamp, amount=curr.kwh - prev.kwh)
        return None

    def chart_points(self, now: datetime, days: int) -> List[Reading]:
        """
        Readings newer than now - days, one per minute (the latest reading
        of a minute wins).
        """
        if days not in CHART_RANGES_DAYS:
            raise ValueError(f"days must be one of {CHART_RANGES_DAYS}")
        cutoff = parse_timestamp(now) - timedelta(days=days)
        by_minute: Dict[datetime, Reading] = {}
        for r in self.readings:
            if r.timestamp > cutoff:
                minute = r.timestamp.astimezone(timezone.utc).replace(second=0, microsecond=0)
                by_minute[minute] = r
        return list(by_minute.values())


def analyze_readings(readings: Iterable[Reading], room_id: str, now: datetime,
                     config: Optional[AnalyticsConfig] = None) -> AnalyticsResult:
    """
    Derive every metric for one room as of `now`.

    Readings stamped after `now` are ignored. An empty series is a normal
    outcome: the result comes back with every metric set to None.
    """
    config = config or AnalyticsConfig()
    now = parse_timestamp(now)
    series = [r for r in normalize_series(readings, room_id=room_id) if r.timestamp <= now]

    result = AnalyticsResult(room_id=room_id, generated_at=now, reading_count=len(series))
    if not series:
        return result

    analyzer = BalanceAnalyzer(series, config)
    latest = analyzer.current()
    result.current_kwh = latest.kwh
    result.last_reading_at = latest.timestamp

    result.consumption_3h = analyzer.consumption(config.short_window, now)
    result.consumption_24h = analyzer.consumption(config.day_window, now)
    result.consumption_7d = analyzer.consumption(config.week_window, now)

    result.max_daily, result.min_daily = analyzer.daily_extremes()

    recharge = analyzer.last_recharge()
    if recharge is not None:
        result.last_recharge = recharge
        result.days_since_recharge = (now - recharge.time).days

    estimator = ExhaustionEstimator(config.noise_floor_kwh, config.fallback_daily_kwh)
    rate, source = estimator.daily_burn_rate(result.consumption_24h, result.consumption_7d)
    result.days_remaining = estimator.days_remaining(result.current_kwh, rate)
    if result.days_remaining is not None:
        result.daily_burn_rate = rate
        result.burn_rate_source = source
    return result


def compute_analytics(store, room_id: str, now: datetime,
                      lookback_days: int = DEFAULT_LOOKBACK_DAYS,
                      config: Optional[AnalyticsConfig] = None) -> AnalyticsResult:
    """
    Load the room's readings for the lookback window from `store` and analyze them.

    Only store failures propagate; sparse or empty data never raises.
    """
    if lookback_days <= 0:
        raise ValueError("lookback_days must be positive")
    now = parse_timestamp(now)
    since = now - timedelta(days=lookback_days)
    readings = store.query_range(room_id, since)
    logger.debug("Loaded %d readings for room %s since %s", len(readings), room_id, since.isoformat())
    return analyze_readings(readings, room_id, now, config)
