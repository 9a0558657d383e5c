"""
Time and date utilities for slot scheduling.

Key concepts:
  - Configured timezone: every "is it time yet?" and "did it already fire
    today?" question is answered in the IANA timezone from
    ``ScheduleConfig.timezone``, never in server-local time.
  - Slot times: administrators configure ``"HH:MM"`` (24-hour). The legacy
    ``"HHMM"`` form is accepted as well.
  - Target slot inference: a manual check without an explicit slot targets
    breakfast before 10:00, lunch before 15:00, dinner otherwise.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

_SLOT_TIME_RE = re.compile(r"^\s*(\d{1,2}):?(\d{2})\s*$")

# Upper-bound local hour (exclusive) → slot key, checked in order.
SLOT_HOUR_BOUNDS: tuple[tuple[int, str], ...] = (
    (10, "breakfast"),
    (15, "lunch"),
)
LAST_SLOT = "dinner"


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def isoformat_utc(moment: Optional[datetime]) -> Optional[str]:
    """Serialise ``moment`` as a UTC ISO-8601 string for storage.

    Stored instants are always UTC so that string comparison in SQL orders
    them correctly. Naive datetimes are assumed to be UTC already.
    """
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def to_local(moment: datetime, tz_name: str) -> datetime:
    """Convert ``moment`` to the given IANA timezone.

    Naive datetimes are assumed to be UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(ZoneInfo(tz_name))


def local_today(moment: datetime, tz_name: str) -> date:
    """Return the calendar date of ``moment`` in ``tz_name``."""
    return to_local(moment, tz_name).date()


def parse_slot_time(value: Optional[str]) -> Optional[tuple[int, int]]:
    """Parse ``"HH:MM"`` or ``"HHMM"`` into ``(hour, minute)``.

    Returns ``None`` for empty or malformed values instead of raising; a slot
    with an unreadable time simply never matches.
    """
    if not value:
        return None
    match = _SLOT_TIME_RE.match(value)
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def is_slot_time(slot_time: Optional[str], moment: datetime, tz_name: str) -> bool:
    """True when the local wall-clock minute of ``moment`` equals ``slot_time``."""
    parsed = parse_slot_time(slot_time)
    if parsed is None:
        return False
    local = to_local(moment, tz_name)
    return (local.hour, local.minute) == parsed


def is_same_local_day(
    stamp: Optional[datetime],
    moment: datetime,
    tz_name: str,
) -> bool:
    """True when ``stamp`` falls on the same local calendar date as ``moment``."""
    if stamp is None:
        return False
    return local_today(stamp, tz_name) == local_today(moment, tz_name)


def determine_target_slot(moment: datetime, tz_name: str) -> str:
    """Infer the meal slot a check at ``moment`` is meant for."""
    hour = to_local(moment, tz_name).hour
    for bound, slot in SLOT_HOUR_BOUNDS:
        if hour < bound:
            return slot
    return LAST_SLOT
