from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

DEFAULT_REFERENCE_TZ = "Asia/Shanghai"


@dataclass(frozen=True)
class Reading:
    room_id: str
    timestamp: datetime
    kwh: float
    # when the store accepted the reading; only used to break duplicate timestamps
    recorded_at: Optional[datetime] = None


@dataclass(frozen=True)
class RechargeEvent:
    time: datetime
    amount: float


@dataclass(frozen=True)
class DailyConsumption:
    day: date
    kwh: float


@dataclass
class AnalyticsConfig:
    """
    Thresholds and windows used by the analytics engine.

    noise_floor_kwh: consumption at or below this is meter jitter, not usage
    recharge_threshold_kwh: an upward jump must exceed this to count as a top-up
    fallback_daily_kwh: burn rate used when recent data is too quiet to trust
    reference_tz: timezone whose calendar days partition the daily figures
    """
    noise_floor_kwh: float = 0.1
    recharge_threshold_kwh: float = 1.0
    fallback_daily_kwh: float = 5.0
    reference_tz: tzinfo = field(default_factory=lambda: ZoneInfo(DEFAULT_REFERENCE_TZ))
    short_window: timedelta = timedelta(hours=3)
    day_window: timedelta = timedelta(days=1)
    week_window: timedelta = timedelta(days=7)


def _round(value: Optional[float], places: int) -> Optional[float]:
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class AnalyticsResult:
    room_id: str
    generated_at: datetime
    reading_count: int = 0
    current_kwh: Optional[float] = None
    last_reading_at: Optional[datetime] = None
    consumption_3h: Optional[float] = None
    consumption_24h: Optional[float] = None
    consumption_7d: Optional[float] = None
    max_daily: Optional[DailyConsumption] = None
    min_daily: Optional[DailyConsumption] = None
    last_recharge: Optional[RechargeEvent] = None
    days_since_recharge: Optional[int] = None
    daily_burn_rate: Optional[float] = None
    burn_rate_source: Optional[str] = None
    days_remaining: Optional[float] = None

    @property
    def has_data(self) -> bool:
        return self.reading_count > 0

    def to_dict(self) -> Dict[str, Any]:
        """
        JSON-shaped view of the result. Missing metrics stay None so callers
        can tell "no data" apart from a real zero.
        """
        def daily(entry: Optional[DailyConsumption]):
            if entry is None:
                return None
            return {"date": entry.day.isoformat(), "kwh": _round(entry.kwh, 2)}

        recharge = None
        if self.last_recharge is not None:
            recharge = {
                "time": _iso(self.last_recharge.time),
                "amount": _round(self.last_recharge.amount, 2),
                "daysAgo": self.days_since_recharge,
            }

        return {
            "roomId": self.room_id,
            "generatedAt": _iso(self.generated_at),
            "readingCount": self.reading_count,
            "current": _round(self.current_kwh, 2),
            "lastReadingAt": _iso(self.last_reading_at),
            "consumption3h": _round(self.consumption_3h, 2),
            "consumption24h": _round(self.consumption_24h, 2),
            "consumption7d": _round(self.consumption_7d, 2),
            "maxDaily": daily(self.max_daily),
            "minDaily": daily(self.min_daily),
            "lastRecharge": recharge,
            "dailyBurnRate": _round(self.daily_burn_rate, 2),
            "burnRateSource": self.burn_rate_source,
            "estimateDays": _round(self.days_remaining, 1),
        }
