# homedash/materializer.py
"""
Expand the parsed school plan into dated rows in ``activities``.

Recurring patterns get one row per weekly occurrence from the anchor week up to
the end of the school year. One-time activities get a single row inside the
anchor week. Before writing, earlier generated rows of the same kind dated on
or after the anchor week are removed, so importing twice leaves the same rows.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from .dates import (
    SchoolYearWindow,
    format_local_date,
    parse_local_date,
    school_year_window,
    week_start,
    weekday_date,
    weekday_number,
)
from .logger import logger
from .models import Activity, SCHOOL_ACTIVITY, SCHOOL_SCHEDULE, type_tag
from .parser import ONE_TIME, RECURRING, ActivityEntry, ScheduleEntry
from .store import insert_many, purge_generated

SCHEDULE_TITLE = "School"
SCHEDULE_SAMPLES_PER_DAY = 10
ACTIVITY_SAMPLES_PER_ENTRY = 5


@dataclass
class StageResult:
    created: int = 0
    deleted: int = 0
    skipped: int = 0
    samples: List[Dict[str, Any]] = field(default_factory=list)


def resolve_anchor(
    week_start_override: Union[str, date, None] = None,
    today: Optional[date] = None,
) -> Tuple[date, SchoolYearWindow]:
    """
    Monday of the anchor week and the school year it belongs to.

    An explicit override is snapped back to its Monday; otherwise ``today``
    (defaults to the current date) is used.
    """
    if week_start_override:
        base = parse_local_date(week_start_override)
        if base is None:
            raise ValueError(f"Invalid week start date: {week_start_override!r}")
    else:
        base = today or date.today()
    return week_start(base), school_year_window(base)


def weekly_dates(monday: date, day_num: int, until: date) -> Iterator[date]:
    """Every occurrence of weekday ``day_num`` from the week of ``monday`` through ``until``."""
    d = weekday_date(monday, day_num)
    while d <= until:
        yield d
        d += timedelta(days=7)


def materialize_schedule(
    db: Session,
    member_id: int,
    schedule: Optional[Dict[str, ScheduleEntry]],
    anchor: date,
    window: SchoolYearWindow,
) -> StageResult:
    result = StageResult()
    if schedule is None:
        logger.debug("[MATERIALIZE] no schedule in plan; leaving existing school_schedule rows alone")
        return result

    result.deleted = purge_generated(db, member_id, SCHOOL_SCHEDULE, anchor)

    rows = []
    description = f"Regular school schedule {type_tag(SCHOOL_SCHEDULE)}"
    for day, entry in schedule.items():
        day_num = weekday_number(day)
        if not day_num:
            logger.warning(f"[MATERIALIZE] skipping unrecognized weekday {day!r}")
            result.skipped += 1
            continue
        if not (entry.start and entry.end):
            logger.warning(f"[MATERIALIZE] skipping {day}: missing start/end ({entry.start!r}-{entry.end!r})")
            result.skipped += 1
            continue

        count = 0
        for d in weekly_dates(anchor, day_num, window.end):
            rows.append({
                "member_id": member_id,
                "title": SCHEDULE_TITLE,
                "date": d,
                "start_time": entry.start,
                "end_time": entry.end,
                "description": description,
                "activity_type": SCHOOL_SCHEDULE,
                "recurrence_type": "weekly",
                "recurrence_end_date": window.end,
                "notes": entry.notes,
            })
            count += 1
            if count <= SCHEDULE_SAMPLES_PER_DAY:
                result.samples.append({
                    "day": day,
                    "date": format_local_date(d),
                    "start": entry.start,
                    "end": entry.end,
                    "notes": entry.notes,
                })
        logger.debug(f"[MATERIALIZE] prepared {count} school_schedule rows for {day}")

    result.created = insert_many(db, Activity, rows)
    logger.info(
        f"[MATERIALIZE] member={member_id} school_schedule: deleted={result.deleted} "
        f"created={result.created} skipped={result.skipped}"
    )
    return result


def _activity_row(member_id: int, entry: ActivityEntry, d: date, window: SchoolYearWindow) -> Dict[str, Any]:
    recurring = entry.kind == RECURRING
    return {
        "member_id": member_id,
        "title": entry.name,
        "date": d,
        "start_time": entry.start,
        "end_time": entry.end,
        "description": f"School activity: {entry.name} {type_tag(SCHOOL_ACTIVITY)}",
        "activity_type": SCHOOL_ACTIVITY,
        "recurrence_type": "weekly" if recurring else "none",
        "recurrence_end_date": window.end if recurring else None,
    }


def _activity_sample(entry: ActivityEntry, d: date) -> Dict[str, Any]:
    return {
        "day": entry.day,
        "name": entry.name,
        "date": format_local_date(d),
        "start": entry.start,
        "end": entry.end,
        "type": entry.kind,
    }


def materialize_activities(
    db: Session,
    member_id: int,
    activities: List[ActivityEntry],
    anchor: date,
    window: SchoolYearWindow,
) -> StageResult:
    result = StageResult()
    if not activities:
        logger.debug("[MATERIALIZE] no activities in plan; leaving existing school_activity rows alone")
        return result

    result.deleted = purge_generated(db, member_id, SCHOOL_ACTIVITY, anchor)

    rows = []
    for entry in activities:
        if not (entry.day and entry.name and entry.start and entry.end):
            logger.warning(f"[MATERIALIZE] skipping activity with missing fields: {entry}")
            result.skipped += 1
            continue
        day_num = weekday_number(entry.day)
        if not day_num:
            logger.warning(f"[MATERIALIZE] skipping activity {entry.name!r}: unrecognized weekday {entry.day!r}")
            result.skipped += 1
            continue

        if entry.kind == ONE_TIME:
            d = weekday_date(anchor, day_num)
            if not (anchor <= d <= window.end):
                logger.warning(f"[MATERIALIZE] one-time {entry.name!r} on {d} is outside the school year; skipped")
                result.skipped += 1
                continue
            rows.append(_activity_row(member_id, entry, d, window))
            result.samples.append(_activity_sample(entry, d))
            logger.debug(f"[MATERIALIZE] one-time {entry.name!r} on {d}")
            continue

        count = 0
        for d in weekly_dates(anchor, day_num, window.end):
            rows.append(_activity_row(member_id, entry, d, window))
            count += 1
            if count <= ACTIVITY_SAMPLES_PER_ENTRY:
                result.samples.append(_activity_sample(entry, d))
        logger.debug(f"[MATERIALIZE] prepared {count} weekly rows for {entry.name!r} on {entry.day}")

    result.created = insert_many(db, Activity, rows)
    logger.info(
        f"[MATERIALIZE] member={member_id} school_activity: deleted={result.deleted} "
        f"created={result.created} skipped={result.skipped}"
    )
    return result
