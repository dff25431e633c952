"""
=============================================================================
SETTINGS - Configuration loaded from environment variables
=============================================================================
All configuration comes from environment variables (or a .env file loaded
with python-dotenv). The values are collected once into a Settings object
and passed explicitly to the store, the scraper and the analytics engine,
so nothing below this layer reads the environment on its own.

Variables:
    ROOM_ID                  room/account to track (required for scraping)
    ROOM_URL                 full balance page URL (optional)
    BUILD_ID, PART_ID        building number and campus (display name only)
    PORT                     HTTP port (default 8080)
    USE_DYNAMODB             'true' to store readings in DynamoDB
    DYNAMODB_TABLE_NAME      table name (default ElectricityReadings)
    AWS_REGION               AWS region (default us-east-1)
    DATA_DIR                 local storage folder (default backend/data)
    LOOKBACK_DAYS            readings considered by analytics (default 30)
    REFERENCE_TZ             timezone for calendar days (default Asia/Shanghai)
    SCRAPE_INTERVAL_MINUTES  acquisition cadence (default 60)
    SCRAPE_ON_STARTUP        scrape once when the server starts (default true)
    NOISE_FLOOR_KWH, RECHARGE_THRESHOLD_KWH, FALLBACK_DAILY_KWH
=============================================================================
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from backend.lib.balance_core.models import DEFAULT_REFERENCE_TZ, AnalyticsConfig

VERSION = "Docker-v1.1"

# Used when ROOM_URL is not given
DEFAULT_BASE_URL = "https://yktyd.ecust.edu.cn/epay/wxpage/wanxiao/eleresult"
DEFAULT_BASE_PARAMS = "sysid=1&areaid=3&buildid=20"

# PART_ID -> campus name
CAMPUSES = {"0": "奉贤", "1": "徐汇"}


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() == "true"


@dataclass
class Settings:
    room_id: Optional[str] = None
    room_url: Optional[str] = None
    build_id: Optional[str] = None
    part_id: Optional[str] = None
    port: int = 8080
    use_dynamodb: bool = False
    table_name: str = "ElectricityReadings"
    aws_region: str = "us-east-1"
    data_dir: Path = Path("backend/data")
    lookback_days: int = 30
    reference_tz: str = DEFAULT_REFERENCE_TZ
    scrape_interval_minutes: int = 60
    scrape_on_startup: bool = True
    noise_floor_kwh: float = 0.1
    recharge_threshold_kwh: float = 1.0
    fallback_daily_kwh: float = 5.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from the environment.

        When `environ` is None the process environment is used, after loading
        the .env file. Invalid numbers raise ValueError at startup rather than
        surfacing later.
        """
        if environ is None:
            # This must be called before accessing any environment variables
            load_dotenv()
            environ = os.environ
        env = environ

        return cls(
            room_id=env.get("ROOM_ID") or None,
            room_url=env.get("ROOM_URL") or None,
            build_id=env.get("BUILD_ID") or None,
            part_id=env.get("PART_ID") or None,
            port=int(env.get("PORT", "8080")),
            use_dynamodb=_flag(env.get("USE_DYNAMODB"), False),
            table_name=env.get("DYNAMODB_TABLE_NAME", "ElectricityReadings"),
            aws_region=env.get("AWS_REGION", "us-east-1"),
            data_dir=Path(env.get("DATA_DIR", "backend/data")),
            lookback_days=int(env.get("LOOKBACK_DAYS", "30")),
            reference_tz=env.get("REFERENCE_TZ", DEFAULT_REFERENCE_TZ),
            scrape_interval_minutes=int(env.get("SCRAPE_INTERVAL_MINUTES", "60")),
            scrape_on_startup=_flag(env.get("SCRAPE_ON_STARTUP"), True),
            noise_floor_kwh=float(env.get("NOISE_FLOOR_KWH", "0.1")),
            recharge_threshold_kwh=float(env.get("RECHARGE_THRESHOLD_KWH", "1.0")),
            fallback_daily_kwh=float(env.get("FALLBACK_DAILY_KWH", "5.0")),
        )

    @property
    def readings_file(self) -> Path:
        # JSONL = JSON Lines format
        return Path(self.data_dir) / "readings.jsonl"

    def analytics_config(self) -> AnalyticsConfig:
        return AnalyticsConfig(
            noise_floor_kwh=self.noise_floor_kwh,
            recharge_threshold_kwh=self.recharge_threshold_kwh,
            fallback_daily_kwh=self.fallback_daily_kwh,
            reference_tz=ZoneInfo(self.reference_tz),
        )

    def scrape_url(self) -> Optional[str]:
        """ROOM_URL when configured, otherwise the default URL for ROOM_ID."""
        if self.room_url:
            return self.room_url
        if not self.room_id:
            return None
        return f"{DEFAULT_BASE_URL}?{DEFAULT_BASE_PARAMS}&roomid={self.room_id}"

    def display_name(self) -> str:
        """
        Human readable room name, e.g. 徐汇-18号楼-507.
        Falls back to "Room <id>" when building or campus is not configured.
        """
        room_id = self.room_id or "Unset"
        if not self.build_id or not self.part_id:
            return f"Room {room_id}"
        campus = CAMPUSES["0"] if self.part_id == "0" else CAMPUSES["1"]
        return f"{campus}-{self.build_id}号楼-{room_id}"
