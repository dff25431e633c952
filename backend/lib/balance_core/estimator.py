from typing import Optional, Tuple

SOURCE_24H = "24h"
SOURCE_7D = "7d"
SOURCE_FALLBACK = "fallback"


class ExhaustionEstimator:
    def __init__(self, noise_floor_kwh: float = 0.1, fallback_daily_kwh: float = 5.0):
        """
        noise_floor_kwh: the last 24h only counts as a burn rate above this
        fallback_daily_kwh: kWh/day assumed when recent data is near-silent
        """
        self.noise_floor = float(noise_floor_kwh)
        self.fallback = float(fallback_daily_kwh)

    def daily_burn_rate(self, consumption_24h: Optional[float],
                        consumption_7d: Optional[float]) -> Tuple[float, str]:
        """
        Pick the kWh/day rate to extrapolate with, and say where it came from.
        Prefers the last 24h, then the 7-day average, then the fallback.
        """
        if consumption_24h is not None and consumption_24h > self.noise_floor:
            return consumption_24h, SOURCE_24H
        weekly_avg = (consumption_7d or 0.0) / 7
        if weekly_avg > 0:
            return weekly_avg, SOURCE_7D
        return self.fallback, SOURCE_FALLBACK

    def days_remaining(self, current_kwh: Optional[float], daily_rate: float) -> Optional[float]:
        """
        current_kwh / daily_rate, or None when the balance is unknown or the
        rate is not positive (the forecast would be infinite or negative).
        """
        if current_kwh is None or daily_rate is None or daily_rate <= 0:
            return None
        return current_kwh / daily_rate
