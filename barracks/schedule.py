"""CQ schedule reads: shift windows, swap-target availability and the caller's next shift."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from . import timeutils
from .models import CQScheduleEntry

ShiftType = CQScheduleEntry.ShiftType

MAX_SWAP_TARGETS = 30
SHIFT1_CUTOFF_HOUR = 20


@dataclass(frozen=True)
class SwapTarget:
    entry: CQScheduleEntry
    shift_type: str

    @property
    def date(self):
        return self.entry.date

    def as_dict(self) -> dict:
        return {
            "scheduleId": self.entry.pk,
            "date": self.entry.date.isoformat(),
            "shiftType": self.shift_type,
            "crew": [name for _, name in self.entry.crew(self.shift_type)],
        }


def shift_window(
    entry: CQScheduleEntry,
    shift_type: str,
    tz: Optional[ZoneInfo] = None,
) -> Tuple[datetime, datetime]:
    """Aware start and end of a shift.

    Shift 1 opens on the entry's date and closes after midnight; shift 2 is
    the early morning of the following calendar day.
    """
    start, end = CQScheduleEntry.SHIFT_TIMES[shift_type]
    start_minutes, end_minutes = timeutils.parse_hhmm(start), timeutils.parse_hhmm(end)
    start_day = entry.date if shift_type == ShiftType.SHIFT1 else entry.date + timedelta(days=1)
    end_day = start_day + timedelta(days=1) if end_minutes <= start_minutes else start_day
    return (
        timeutils.combine_local(start_day, start_minutes, tz),
        timeutils.combine_local(end_day, end_minutes, tz),
    )


def is_swap_target_available(
    entry: CQScheduleEntry,
    shift_type: str,
    current_entry: CQScheduleEntry,
    current_shift_type: str,
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> bool:
    if timeutils.is_past(entry.date, now, tz):
        return False
    if entry.status == CQScheduleEntry.Status.COMPLETED:
        return False
    if entry.pk == current_entry.pk and shift_type == current_shift_type:
        return False
    if timeutils.is_today(entry.date, now, tz):
        if shift_type == ShiftType.SHIFT2:
            return False
        if timeutils.current_hour(now, tz) >= SHIFT1_CUTOFF_HOUR:
            return False
    return True


def available_swap_targets(
    entries: Iterable[CQScheduleEntry],
    current_entry: CQScheduleEntry,
    current_shift_type: str,
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> List[SwapTarget]:
    """Shifts a full-shift swap may target, soonest first."""
    targets = []
    for entry in sorted(entries, key=lambda e: e.date):
        for shift_type in ShiftType.values:
            if is_swap_target_available(entry, shift_type, current_entry, current_shift_type, now, tz):
                targets.append(SwapTarget(entry, shift_type))
    return targets[:MAX_SWAP_TARGETS]


@dataclass
class MyShift:
    entry: CQScheduleEntry
    shift_type: str
    position: int
    partner_name: str
    context: str

    def as_dict(self) -> dict:
        return {
            "scheduleId": self.entry.pk,
            "date": self.entry.date.isoformat(),
            "status": self.entry.status,
            "myShiftType": self.shift_type,
            "myPosition": self.position,
            "partnerName": self.partner_name,
            "shiftContext": self.context,
        }


def my_shift(
    entries: Iterable[CQScheduleEntry],
    person_id: str,
    now: Optional[datetime] = None,
    tz: Optional[ZoneInfo] = None,
) -> Optional[MyShift]:
    """The person's shift today, or failing that tomorrow."""
    today = timeutils.today_in(now, tz)
    days = {today: "today", today + timedelta(days=1): "tomorrow"}
    live = [
        entry
        for entry in entries
        if entry.date in days and entry.status != CQScheduleEntry.Status.COMPLETED
    ]
    for day, context in days.items():
        for entry in live:
            if entry.date != day:
                continue
            seat = entry.position_of(person_id)
            if seat is None:
                continue
            shift_type, position = seat
            partner_position = 2 if position == 1 else 1
            return MyShift(
                entry=entry,
                shift_type=shift_type,
                position=position,
                partner_name=entry.seat(shift_type, partner_position)[1],
                context=context,
            )
    return None
