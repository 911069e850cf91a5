from datetime import datetime, date, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DAY_KEY_FORMAT = "%Y-%m-%d"
WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def is_valid_timezone(tz_name: str | None) -> bool:
    if not tz_name:
        return False
    try:
        ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def now_for_tz(tz_name: str | None) -> datetime:
    """Return the current wall-clock time in the user's timezone (UTC if unknown)."""
    if is_valid_timezone(tz_name):
        return datetime.now(ZoneInfo(tz_name))
    return utcnow()


def today_for_tz(tz_name: str | None) -> date:
    """Return today's date in the user's timezone."""
    return now_for_tz(tz_name).date()


def local_date(value: datetime, tz_name: str | None) -> date:
    """Calendar day of a naive-UTC timestamp in the user's timezone (UTC if unknown)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if is_valid_timezone(tz_name):
        return value.astimezone(ZoneInfo(tz_name)).date()
    return value.astimezone(timezone.utc).date()


def day_key(d: date) -> str:
    return d.strftime(DAY_KEY_FORMAT)


def parse_day_key(raw: str) -> date:
    """Parse a YYYY-MM-DD key; raises ValueError on anything else."""
    return datetime.strptime((raw or "").strip(), DAY_KEY_FORMAT).date()


def normalize_day_key(raw: str | None) -> str:
    """Validate a client-supplied day key and return it in canonical form."""
    try:
        return day_key(parse_day_key(raw or ""))
    except ValueError:
        raise ValueError(f"Invalid date {raw!r}; expected YYYY-MM-DD")


def short_label(d: date) -> str:
    """Short display label, e.g. 'Mar 05'."""
    return d.strftime("%b %d")


def weekday_index(d: date) -> int:
    """Weekday with Sunday as 0 and Saturday as 6."""
    return (d.weekday() + 1) % 7


def weekday_name(d: date) -> str:
    return WEEKDAY_NAMES[weekday_index(d)]


def window_bounds(today: date, days: int) -> tuple[date, date]:
    """Inclusive [start, end] of a trailing window of `days` days ending today."""
    if days < 1:
        return today, today - timedelta(days=1)
    return today - timedelta(days=days - 1), today


def window_days(today: date, days: int) -> list[date]:
    """Every day of the trailing window, oldest first."""
    start, end = window_bounds(today, days)
    span = (end - start).days + 1
    return [start + timedelta(days=offset) for offset in range(max(span, 0))]
