# tests/test_settings.py
from backend.lib.settings import Settings
from datetime import timedelta
from pathlib import Path
import pytest

def test_defaults_from_empty_environment():
    settings = Settings.from_env({})
    assert settings.room_id is None
    assert settings.port == 8080
    assert settings.use_dynamodb is False
    assert settings.lookback_days == 30
    assert settings.reference_tz == "Asia/Shanghai"
    assert settings.scrape_interval_minutes == 60
    assert settings.readings_file == Path("backend/data") / "readings.jsonl"

def test_values_from_environment():
    settings = Settings.from_env({
        "ROOM_ID": "507",
        "USE_DYNAMODB": "True",
        "LOOKBACK_DAYS": "14",
        "REFERENCE_TZ": "UTC",
        "RECHARGE_THRESHOLD_KWH": "2.5",
        "SCRAPE_ON_STARTUP": "false",
    })
    assert settings.room_id == "507"
    assert settings.use_dynamodb is True
    assert settings.lookback_days == 14
    assert settings.scrape_on_startup is False
    config = settings.analytics_config()
    assert config.recharge_threshold_kwh == 2.5
    assert config.noise_floor_kwh == 0.1
    assert config.day_window == timedelta(days=1)

def test_invalid_number_fails_fast():
    with pytest.raises(ValueError):
        Settings.from_env({"LOOKBACK_DAYS": "a month"})

def test_scrape_url():
    assert Settings(room_id="507").scrape_url().endswith("&roomid=507")
    custom = Settings(room_id="507", room_url="https://example.com/balance?room=507")
    assert custom.scrape_url() == "https://example.com/balance?room=507"
    assert Settings().scrape_url() is None

def test_display_name():
    assert Settings(room_id="507").display_name() == "Room 507"
    assert Settings().display_name() == "Room Unset"
    assert Settings(room_id="507", build_id="18", part_id="1").display_name() == "徐汇-18号楼-507"
    assert Settings(room_id="302", build_id="5", part_id="0").display_name() == "奉贤-5号楼-302"
