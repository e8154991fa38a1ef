import calendar
import re
from datetime import datetime, timedelta, timezone

# Readings stamped before this are sensor clock resets, not real data.
EPOCH_FLOOR = datetime(2020, 1, 1, tzinfo=timezone.utc)

_DIGITS_ONLY = re.compile(r"\d+", re.ASCII)


def local_now() -> datetime:
    return datetime.now().astimezone()


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.astimezone()
    return value


def parse_timestamp(value: object) -> datetime | None:
    """Parse a stored timestamp into an aware datetime.

    Strings are ISO-8601 (a trailing ``Z`` is accepted), numbers are Unix epoch
    milliseconds and datetimes pass through. Offset-less values are taken as
    local time. Anything else gives ``None``.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, datetime):
        return _aware(value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return _aware(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def is_valid_timestamp(value: object) -> bool:
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("1970-") or _DIGITS_ONLY.fullmatch(text):
            return False
    parsed = parse_timestamp(value)
    return parsed is not None and parsed > EPOCH_FLOOR


def time_range_floor(time_range: str, now: datetime | None = None) -> datetime:
    now = _aware(now) if now is not None else local_now()
    if time_range == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if time_range == "week":
        return now - timedelta(days=7)
    if time_range == "month":
        year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        day = min(now.day, calendar.monthrange(year, month)[1])
        return now.replace(year=year, month=month, day=day)
    return EPOCH_FLOOR


def format_time_ago(value: object, now: datetime | None = None) -> str:
    if not is_valid_timestamp(value):
        return "invalid time"
    now = _aware(now) if now is not None else local_now()
    diff_seconds = (now - parse_timestamp(value)).total_seconds()
    diff_mins = int(diff_seconds // 60)
    if diff_mins < 60:
        return f"{diff_mins} minutes ago"
    diff_hours = int(diff_seconds // 3600)
    if diff_hours < 24:
        return f"{diff_hours} hours ago"
    return f"{int(diff_seconds // 86400)} days ago"
