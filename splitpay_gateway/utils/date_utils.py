"""Date manipulation utilities"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a stored ISO-8601 timestamp.

    Accepts the trailing "Z" written by JavaScript's toISOString(). Naive values
    are taken to be UTC. Empty or unparseable values yield None.
    """
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    """Serialize as UTC ISO-8601 with millisecond precision and a "Z" suffix"""
    utc_value = value.astimezone(timezone.utc)
    return utc_value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc_value.microsecond // 1000:03d}Z"


def calendar_date_in(moment: datetime, tz_name: str) -> date:
    """Calendar date of an instant as seen in the given IANA zone"""
    return moment.astimezone(ZoneInfo(tz_name)).date()


def add_days(moment: datetime, days: int) -> datetime:
    return moment + timedelta(days=days)


def parse_month_day(value: str, year: int) -> date:
    """Resolve a "MM-DD" setting to a date in the given year"""
    month, day = (int(part) for part in value.split("-", 1))
    return date(year, month, day)
