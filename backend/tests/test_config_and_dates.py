from __future__ import annotations

import sys
from datetime import date, datetime
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import Settings  # noqa: E402
from utils.datetime_utils import (  # noqa: E402
    is_valid_timezone,
    local_date,
    normalize_day_key,
    short_label,
    weekday_index,
    weekday_name,
    window_bounds,
    window_days,
)


def test_production_security_gate_rejects_default_secret_values():
    settings = Settings(
        ENVIRONMENT="production",
        SECRET_KEY="change-me-in-production",
        AUTH_COOKIE_SECURE=False,
    )
    with pytest.raises(RuntimeError):
        settings.validate_security_configuration()


def test_production_security_gate_accepts_hardened_values():
    settings = Settings(
        ENVIRONMENT="production",
        SECRET_KEY="a-long-random-production-secret",
        AUTH_COOKIE_SECURE=True,
    )
    settings.validate_security_configuration()


def test_development_skips_security_gate():
    Settings(ENVIRONMENT="development", SECRET_KEY="short").validate_security_configuration()


def test_stats_window_configuration_is_checked():
    Settings().validate_stats_configuration()

    with pytest.raises(RuntimeError):
        Settings(STATS_MIN_WINDOW_DAYS=10, STATS_MAX_WINDOW_DAYS=5).validate_stats_configuration()
    with pytest.raises(RuntimeError):
        Settings(STATS_DEFAULT_WINDOW_DAYS=45).validate_stats_configuration()


def test_day_keys_are_normalized_or_rejected():
    assert normalize_day_key("2024-03-05") == "2024-03-05"
    assert normalize_day_key(" 2024-03-05 ") == "2024-03-05"
    for raw in ("", None, "05/03/2024", "2024-02-30", "yesterday"):
        with pytest.raises(ValueError):
            normalize_day_key(raw)


def test_weekdays_start_on_sunday():
    assert weekday_index(date(2024, 3, 3)) == 0
    assert weekday_name(date(2024, 3, 3)) == "Sunday"
    assert weekday_name(date(2024, 3, 9)) == "Saturday"
    assert short_label(date(2024, 3, 5)) == "Mar 05"


def test_window_helpers():
    today = date(2024, 3, 1)
    assert window_bounds(today, 7) == (date(2024, 2, 24), today)
    days = window_days(today, 7)
    assert days[0] == date(2024, 2, 24)
    assert days[-1] == today
    assert window_days(today, 0) == []


def test_timezone_validation():
    assert is_valid_timezone("America/Edmonton")
    assert not is_valid_timezone("Mars/Olympus")
    assert not is_valid_timezone(None)


def test_local_date_converts_stored_utc_timestamps():
    stored = datetime(2024, 3, 6, 3, 0)
    assert local_date(stored, "America/Edmonton") == date(2024, 3, 5)
    assert local_date(stored, "Asia/Tokyo") == date(2024, 3, 6)
    assert local_date(stored, None) == date(2024, 3, 6)
