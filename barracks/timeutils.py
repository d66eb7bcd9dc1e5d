"""Wall-clock helpers evaluated in the facility timezone.

Every helper takes an optional aware ``now`` and ``tz`` so callers and tests
can pin the clock; the defaults are ``django.utils.timezone.now()`` and the
``WOTS_TIMEZONE`` setting.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone

DEFAULT_TIMEZONE = "America/New_York"

BREAKFAST = "breakfast"
LUNCH = "lunch"
DINNER = "dinner"


def get_timezone(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or getattr(settings, "WOTS_TIMEZONE", DEFAULT_TIMEZONE))


def local_now(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> datetime:
    """Return ``now`` (or the current instant) converted to the facility zone."""
    now = now or timezone.now()
    return now.astimezone(tz or get_timezone())


def today_in(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> date:
    return local_now(now, tz).date()


def tomorrow_in(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> date:
    return today_in(now, tz) + timedelta(days=1)


def current_hour(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> int:
    return local_now(now, tz).hour


def current_minutes(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> int:
    local = local_now(now, tz)
    return local.hour * 60 + local.minute


def parse_hhmm(value: str) -> int:
    """Parse ``"HH:MM"`` into minutes since midnight."""
    try:
        hours, minutes = value.split(":")
        hours, minutes = int(hours), int(minutes)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time of day: {value!r}")
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Invalid time of day: {value!r}")
    return hours * 60 + minutes


def is_today(value: date, now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> bool:
    return value == today_in(now, tz)


def is_past(value: date, now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> bool:
    return value < today_in(now, tz)


def determine_target_slot(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> str:
    hour = current_hour(now, tz)
    if hour < 10:
        return BREAKFAST
    if hour < 15:
        return LUNCH
    return DINNER


def format_for_notification(value: datetime, tz: Optional[ZoneInfo] = None) -> str:
    """Render an instant as ``"HH:MM Mon D"`` in the facility zone."""
    local = value.astimezone(tz or get_timezone())
    return f"{local:%H:%M} {local:%b} {local.day}"


def combine_local(day: date, minutes: int, tz: Optional[ZoneInfo] = None) -> datetime:
    """Aware datetime for ``minutes`` past midnight on ``day`` in the facility zone."""
    naive = datetime.combine(day, time(minutes // 60, minutes % 60))
    return naive.replace(tzinfo=tz or get_timezone())


def _sunday_based(day: date) -> int:
    # 0 = Sunday ... 6 = Saturday, the numbering the deadline settings use.
    return (day.weekday() + 1) % 7


def next_weekend(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> Tuple[date, date]:
    """The coming Saturday and Sunday; on a Saturday this is the following week."""
    today = today_in(now, tz)
    days_until_saturday = (6 - _sunday_based(today)) % 7 or 7
    saturday = today + timedelta(days=days_until_saturday)
    return saturday, saturday + timedelta(days=1)


def current_weekend(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> Optional[date]:
    """Saturday of the running weekend on Saturday, Sunday or Monday; else ``None``."""
    today = today_in(now, tz)
    days_back = {6: 0, 0: 1, 1: 2}.get(_sunday_based(today))
    if days_back is None:
        return None
    return today - timedelta(days=days_back)


def _deadline_settings() -> Tuple[int, int]:
    day = getattr(settings, "WOTS_LIBERTY_DEADLINE_DAY", 2)
    at = getattr(settings, "WOTS_LIBERTY_DEADLINE_TIME", "23:59")
    return day, parse_hhmm(at)


def is_before_liberty_deadline(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> bool:
    deadline_day, deadline_minutes = _deadline_settings()
    weekday = _sunday_based(today_in(now, tz))
    if weekday < deadline_day:
        return True
    if weekday == deadline_day:
        return current_minutes(now, tz) <= deadline_minutes
    return False


def liberty_deadline(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> datetime:
    """The next submission deadline not yet passed, including the rest of its final minute."""
    tz = tz or get_timezone()
    now = now or timezone.now()
    deadline_day, deadline_minutes = _deadline_settings()
    today = today_in(now, tz)
    days_until = (deadline_day - _sunday_based(today)) % 7
    deadline = combine_local(today + timedelta(days=days_until), deadline_minutes, tz)
    deadline = deadline.replace(second=59, microsecond=999999)
    if deadline < now:
        deadline = combine_local(deadline.date() + timedelta(days=7), deadline_minutes, tz)
        deadline = deadline.replace(second=59, microsecond=999999)
    return deadline


def board_weekend(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> date:
    """Saturday shown on the liberty board: the running weekend through Monday, else the next one."""
    return current_weekend(now, tz) or next_weekend(now, tz)[0]


def liberty_window(now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None) -> dict:
    saturday, sunday = next_weekend(now, tz)
    return {
        "weekendDate": saturday.isoformat(),
        "sunday": sunday.isoformat(),
        "deadline": liberty_deadline(now, tz).isoformat(),
        "canSubmit": is_before_liberty_deadline(now, tz),
    }
