"""
Twilight calculator: astronomy data + reference instant → light-condition flags.

Windows
-------
    morning = [sunrise - half_width, sunrise + half_width]
    evening = [sunset  - half_width, sunset  + half_width]

Both windows are inclusive at their edges.

    is_twilight  = reference in morning OR reference in evening
    is_nighttime = reference > evening end OR reference < morning start

Sunrise and sunset arrive as ``"hh:mm AM|PM"`` strings and are placed on the
calendar date (and timezone) of the reference instant. A naive reference is
treated as wall-clock time with no timezone.

Missing or unparsable strings never raise: the result is
``is_twilight=False`` with a ``reason``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from uotd.models.weather import AstronomyData, TwilightStatus

logger = logging.getLogger(__name__)

DEFAULT_TWILIGHT_MINUTES = 30

REASON_NO_DATA = "No astronomy data available"
REASON_UNPARSABLE = "Could not parse sunrise/sunset times"

_CLOCK_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*(AM|PM)\s*$", re.IGNORECASE)


def parse_clock_time(value: Optional[str], reference: datetime) -> Optional[datetime]:
    """Place a ``"hh:mm AM|PM"`` string on the date of ``reference``.

    Args:
        value:     12-hour clock string, e.g. ``"06:45 AM"``.
        reference: Instant whose calendar date and tzinfo are used.

    Returns:
        The resulting datetime, or ``None`` if ``value`` is missing or
        malformed (hour outside 1–12, minute outside 0–59, bad suffix).
    """
    if not value:
        return None
    match = _CLOCK_RE.match(value)
    if not match:
        return None

    hour, minute = int(match.group(1)), int(match.group(2))
    if not 1 <= hour <= 12 or minute > 59:
        return None

    meridiem = match.group(3).upper()
    if meridiem == "PM" and hour != 12:
        hour += 12
    elif meridiem == "AM" and hour == 12:
        hour = 0

    return reference.replace(hour=hour, minute=minute, second=0, microsecond=0)


def get_twilight_status(
    astronomy: Optional[AstronomyData],
    check_time: datetime,
    twilight_minutes: int = DEFAULT_TWILIGHT_MINUTES,
) -> TwilightStatus:
    """Compute twilight and nighttime flags for ``check_time``.

    Args:
        astronomy:        Sunrise/sunset data; may be ``None``.
        check_time:       Reference instant, ideally in the location's timezone.
        twilight_minutes: Half-width of each twilight window.

    Returns:
        ``TwilightStatus``. Never raises for bad astronomy input.
    """
    if astronomy is None or not astronomy.sunrise or not astronomy.sunset:
        return TwilightStatus(is_twilight=False, reason=REASON_NO_DATA)

    sunrise = parse_clock_time(astronomy.sunrise, check_time)
    sunset = parse_clock_time(astronomy.sunset, check_time)
    if sunrise is None or sunset is None:
        logger.debug(
            "Unparsable astronomy times: sunrise=%r sunset=%r",
            astronomy.sunrise, astronomy.sunset,
        )
        return TwilightStatus(
            is_twilight=False,
            sunrise=astronomy.sunrise,
            sunset=astronomy.sunset,
            reason=REASON_UNPARSABLE,
        )

    half_width = timedelta(minutes=twilight_minutes)
    morning_start, morning_end = sunrise - half_width, sunrise + half_width
    evening_start, evening_end = sunset - half_width, sunset + half_width

    in_morning = morning_start <= check_time <= morning_end
    in_evening = evening_start <= check_time <= evening_end
    is_night = check_time > evening_end or check_time < morning_start

    return TwilightStatus(
        is_twilight=in_morning or in_evening,
        is_nighttime=is_night,
        in_morning_twilight=in_morning,
        in_evening_twilight=in_evening,
        sunrise=astronomy.sunrise,
        sunset=astronomy.sunset,
        sunrise_time=sunrise,
        sunset_time=sunset,
    )
