# homedash/dates.py
import os
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Tuple, Union

import pytz
from dateutil import parser as dateparser

DEFAULT_TZ = os.getenv("DEFAULT_TIMEZONE", "Europe/Oslo")

# Monday=1 .. Friday=5; school schedules only cover the five weekdays
WEEKDAY_NUMBERS = {
    "Monday": 1,
    "Tuesday": 2,
    "Wednesday": 3,
    "Thursday": 4,
    "Friday": 5,
}

# "8:00", "08.00", "08:00:00", "2:30 PM", "3pm", "11 a.m."
_TIME_RE = re.compile(r"^(\d{1,2})(?:[:.](\d{2}))?(?::\d{2})?\s*([ap]\.?\s*m\.?)?$", re.I)


@dataclass(frozen=True)
class SchoolYearWindow:
    start: date
    end: date

    def __contains__(self, d: date) -> bool:
        return self.start <= d <= self.end


def school_year_window(anchor: date) -> SchoolYearWindow:
    """Aug 1 - Jul 31 span containing the anchor date."""
    if anchor.month >= 8:
        return SchoolYearWindow(date(anchor.year, 8, 1), date(anchor.year + 1, 7, 31))
    return SchoolYearWindow(date(anchor.year - 1, 8, 1), date(anchor.year, 7, 31))


def week_start(d: date) -> date:
    """Monday of the week containing d (Sunday belongs to the week that started six days earlier)."""
    return d - timedelta(days=d.weekday())


def weekday_number(name: Optional[str]) -> Optional[int]:
    if not name:
        return None
    return WEEKDAY_NUMBERS.get(name.strip().title())


def weekday_date(monday: date, day_num: int) -> date:
    return monday + timedelta(days=day_num - 1)


def format_local_date(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def parse_local_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    """Accept a date, a datetime or a string like '2024-08-19' / 'Aug 19 2024'."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return dateparser.parse(str(value)).date()
    except (ValueError, OverflowError):
        return None


def normalize_time(value: Optional[str]) -> Optional[str]:
    """
    '8:00' -> '08:00', '2:30 PM' -> '14:30'.

    Anything else that is not empty is returned trimmed but otherwise as given;
    only a missing/blank value gives None.
    """
    if value is None:
        return None
    raw = str(value).strip()
    if not raw:
        return None
    m = _TIME_RE.match(raw)
    if not m:
        return raw
    hh, minutes, meridiem = int(m.group(1)), m.group(2), m.group(3)
    mm = int(minutes or 0)
    if meridiem:
        if 1 <= hh <= 12 and mm <= 59:
            suffix = meridiem.replace(".", "").replace(" ", "")
            return dateparser.parse(f"{hh}:{mm:02d} {suffix}").strftime("%H:%M")
    elif minutes is not None and hh <= 23 and mm <= 59:
        return f"{hh:02d}:{mm:02d}"
    return raw


def _tz(tz_name: Optional[str]):
    return pytz.timezone(tz_name or DEFAULT_TZ)


def to_local(ts: datetime, tz_name: Optional[str] = None) -> datetime:
    """Project a stored timestamp (naive means UTC) into the local zone."""
    if ts.tzinfo is None:
        ts = pytz.utc.localize(ts)
    return ts.astimezone(_tz(tz_name))


def local_date_and_time(ts: datetime, tz_name: Optional[str] = None) -> Tuple[date, str]:
    local = to_local(ts, tz_name)
    return local.date(), local.strftime("%H:%M")


def local_day_bounds_utc(start: date, end: date, tz_name: Optional[str] = None) -> Tuple[datetime, datetime]:
    """Naive-UTC [start, end) covering local calendar days start..end inclusive."""
    tz = _tz(tz_name)
    start_local = tz.localize(datetime(start.year, start.month, start.day), is_dst=False)
    after = end + timedelta(days=1)
    end_local = tz.localize(datetime(after.year, after.month, after.day), is_dst=False)
    return (
        start_local.astimezone(pytz.utc).replace(tzinfo=None),
        end_local.astimezone(pytz.utc).replace(tzinfo=None),
    )
