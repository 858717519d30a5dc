# homedash/agenda.py
"""
Read-time merge of everything on a member's calendar.

Three sources, queried separately and then merged:
    activities         locally owned rows (manual, calendar imports, school plan)
    spond_activities   group activities from groups the member has switched on
    exchange_events    mailbox events from active calendars, minus cancelled ones

External timestamps are stored in UTC and projected to the local zone before
merging. A generic school-hours row is hidden on any day where the member also
has an entry from the municipal calendar (closures, planning days...).
"""
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import exists
from sqlalchemy.orm import Session

from .dates import format_local_date, local_date_and_time, local_day_bounds_utc
from .logger import logger
from .models import (
    Activity, ExchangeCalendar, ExchangeEvent, SCHOOL_SCHEDULE, SpondActivity, SpondGroup, type_tag,
)
from .store import query_where

SOURCE_MANUAL = "manual"
SOURCE_SPOND = "spond"
SOURCE_EXCHANGE = "exchange"
AUTHORITY_SOURCE = "municipal_calendar"

_MIDNIGHT = "00:00"


@dataclass
class AgendaItem:
    member_id: int
    date: date
    start_time: Optional[str]
    end_time: Optional[str]
    title: str
    description: Optional[str]
    source: str
    id: Any = None
    location: Optional[str] = None
    activity_type: Optional[str] = None
    # mailbox events only
    response_status: Optional[str] = None
    show_as: Optional[str] = None
    is_all_day: Optional[bool] = None
    is_cancelled: bool = False

    @property
    def sort_key(self) -> Tuple[date, str]:
        return self.date, self.start_time or _MIDNIGHT

    @property
    def is_school_schedule(self) -> bool:
        return type_tag(SCHOOL_SCHEDULE) in (self.description or "")

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["date"] = format_local_date(self.date)
        return d


@dataclass
class AgendaResult:
    items: List[AgendaItem] = field(default_factory=list)
    suppressed: int = 0
    counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [i.to_dict() for i in self.items],
            "suppressed": self.suppressed,
            "counts": self.counts,
        }


def _date_range(on_date: Optional[date], start_date: Optional[date], end_date: Optional[date]):
    if on_date is not None:
        return on_date, on_date
    return start_date, end_date


def _utc_bounds(start: Optional[date], end: Optional[date], tz_name: Optional[str]):
    lo = local_day_bounds_utc(start, start, tz_name)[0] if start else None
    hi = local_day_bounds_utc(end, end, tz_name)[1] if end else None
    return lo, hi


def _local_items(db: Session, member_id, start, end) -> List[AgendaItem]:
    criteria = []
    if member_id is not None:
        criteria.append(Activity.member_id == member_id)
    if start is not None:
        criteria.append(Activity.date >= start)
    if end is not None:
        criteria.append(Activity.date <= end)
    rows = query_where(db, Activity, *criteria, order_by=[Activity.date, Activity.start_time])
    return [
        AgendaItem(
            member_id=a.member_id,
            date=a.date,
            start_time=a.start_time,
            end_time=a.end_time,
            title=a.title,
            description=a.description,
            source=a.source or SOURCE_MANUAL,
            id=a.id,
            activity_type=a.activity_type,
        )
        for a in rows
    ]


def _spond_items(db: Session, member_id, lo, hi, tz_name) -> List[AgendaItem]:
    active_group = exists().where(
        SpondGroup.id == SpondActivity.group_id,
        SpondGroup.member_id == SpondActivity.member_id,
        SpondGroup.is_active.is_(True),
    )
    criteria = [active_group]
    if member_id is not None:
        criteria.append(SpondActivity.member_id == member_id)
    if lo is not None:
        criteria.append(SpondActivity.start_timestamp >= lo)
    if hi is not None:
        criteria.append(SpondActivity.start_timestamp < hi)
    rows = query_where(db, SpondActivity, *criteria, order_by=[SpondActivity.start_timestamp])

    items = []
    for s in rows:
        d, start_time = local_date_and_time(s.start_timestamp, tz_name)
        _, end_time = local_date_and_time(s.end_timestamp, tz_name)
        items.append(AgendaItem(
            member_id=s.member_id,
            date=d,
            start_time=start_time,
            end_time=end_time,
            title=s.title,
            description=s.description,
            source=SOURCE_SPOND,
            id=s.id,
            location=s.location_name,
            activity_type=s.activity_type,
            response_status=s.response_status,
            is_cancelled=bool(s.is_cancelled),
        ))
    return items


def _exchange_items(db: Session, member_id, lo, hi, tz_name) -> List[AgendaItem]:
    active_calendar = exists().where(
        ExchangeCalendar.id == ExchangeEvent.calendar_id,
        ExchangeCalendar.member_id == ExchangeEvent.member_id,
        ExchangeCalendar.is_active.is_(True),
    )
    criteria = [active_calendar, ExchangeEvent.is_cancelled.is_(False)]
    if member_id is not None:
        criteria.append(ExchangeEvent.member_id == member_id)
    if lo is not None:
        criteria.append(ExchangeEvent.start_timestamp >= lo)
    if hi is not None:
        criteria.append(ExchangeEvent.start_timestamp < hi)
    rows = query_where(db, ExchangeEvent, *criteria, order_by=[ExchangeEvent.start_timestamp])

    items = []
    for e in rows:
        d, start_time = local_date_and_time(e.start_timestamp, tz_name)
        _, end_time = local_date_and_time(e.end_timestamp, tz_name)
        items.append(AgendaItem(
            member_id=e.member_id,
            date=d,
            start_time=start_time,
            end_time=end_time,
            title=e.subject,
            description=e.body_preview,
            source=SOURCE_EXCHANGE,
            id=e.id,
            location=e.location_name,
            response_status=e.response_status,
            show_as=e.show_as,
            is_all_day=bool(e.is_all_day),
        ))
    return items


def suppress_overridden_schedule(items: List[AgendaItem]) -> Tuple[List[AgendaItem], int]:
    """Drop school-hours rows on (member, date) pairs that have a municipal calendar entry."""
    overridden = {(i.member_id, i.date) for i in items if i.source == AUTHORITY_SOURCE}
    if not overridden:
        return items, 0
    kept = []
    for i in items:
        if i.is_school_schedule and (i.member_id, i.date) in overridden:
            logger.debug(f"[AGENDA] hiding school_schedule for member={i.member_id} on {i.date} (municipal calendar event)")
            continue
        kept.append(i)
    return kept, len(items) - len(kept)


def build_agenda(
    db: Session,
    member_id: Optional[int] = None,
    on_date: Optional[date] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    tz_name: Optional[str] = None,
) -> AgendaResult:
    """
    Merged agenda for one member (or everyone) over a single day or a date range.

    ``on_date`` wins over ``start_date``/``end_date``; either range end may be
    left open. Items come back sorted by (date, start time), missing start
    times sorting as midnight.
    """
    start, end = _date_range(on_date, start_date, end_date)
    lo, hi = _utc_bounds(start, end, tz_name)

    # One Session, so the three reads run back to back.
    local = _local_items(db, member_id, start, end)
    spond = _spond_items(db, member_id, lo, hi, tz_name)
    exchange = _exchange_items(db, member_id, lo, hi, tz_name)
    logger.debug(f"[AGENDA] found {len(local)} local, {len(spond)} Spond, {len(exchange)} Exchange items")

    merged = sorted(local + spond + exchange, key=lambda i: i.sort_key)
    items, suppressed = suppress_overridden_schedule(merged)
    if suppressed:
        logger.debug(f"[AGENDA] suppressed {suppressed} school_schedule items due to municipal calendar events")

    return AgendaResult(
        items=items,
        suppressed=suppressed,
        counts={
            "local": len(local),
            SOURCE_SPOND: len(spond),
            SOURCE_EXCHANGE: len(exchange),
            "total": len(items),
        },
    )
