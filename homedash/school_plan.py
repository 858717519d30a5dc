# homedash/school_plan.py
"""
End-to-end school plan import: parse the model response, write the schedule,
the activities and the homework for one member.

Stages run one after another and each commits on its own. If a later stage
fails, the PersistenceError carries what was already saved in ``.saved``.
"""
from datetime import date
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import Session

from .dates import format_local_date
from .errors import PersistenceError
from .homework import import_homework
from .logger import logger
from .materializer import materialize_activities, materialize_schedule, resolve_anchor
from .models import Homework, SCHOOL_ACTIVITY, SCHOOL_SCHEDULE
from .parser import ParsedSchoolPlan, parse_school_plan
from .store import delete_where, purge_generated


def _empty_summary(anchor: date, window) -> Dict[str, Any]:
    return {
        "anchor_week": format_local_date(anchor),
        "school_year": {"start": format_local_date(window.start), "end": format_local_date(window.end)},
        "schedules": [],
        "activities": [],
        "homework": [],
        "counts": {"schedules": 0, "activities": 0, "homework": 0, "deleted": 0, "skipped": 0},
    }


def save_school_plan(
    db: Session,
    member_id: int,
    plan: ParsedSchoolPlan,
    source_image: Optional[str] = None,
    week_start: Union[str, date, None] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    anchor, window = resolve_anchor(week_start, today)
    logger.debug(
        f"[MATERIALIZE] member={member_id} anchor week {anchor}, school year {window.start} - {window.end}"
    )
    saved = _empty_summary(anchor, window)

    stages = (
        ("schedules", lambda: materialize_schedule(db, member_id, plan.schedule, anchor, window)),
        ("activities", lambda: materialize_activities(db, member_id, plan.activities, anchor, window)),
        ("homework", lambda: import_homework(db, member_id, plan.homework, anchor, source_image)),
    )
    for key, run in stages:
        try:
            res = run()
        except PersistenceError as e:
            logger.error(f"[MATERIALIZE] {key} stage failed for member={member_id}; saved so far: {saved['counts']}")
            e.saved = saved
            raise
        saved[key] = res.samples
        saved["counts"][key] = res.created
        saved["counts"]["deleted"] += res.deleted
        saved["counts"]["skipped"] += res.skipped

    return saved


def import_school_plan(
    db: Session,
    member_id: int,
    response_text: str,
    source_image: Optional[str] = None,
    week_start: Union[str, date, None] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Parse ``response_text`` and save whatever datasets decoded cleanly.

    Datasets that failed to decode are reported under ``errors`` (dataset name,
    message and the raw text) and simply not written.
    """
    plan = parse_school_plan(response_text)
    for err in plan.errors:
        logger.warning(f"[PARSE] {err}")

    saved = save_school_plan(db, member_id, plan, source_image=source_image, week_start=week_start, today=today)
    return {
        "parsed": plan.to_dict(),
        "saved": saved,
        "errors": [e.to_dict() for e in plan.errors],
    }


def clear_school_plan(db: Session, member_id: int) -> Dict[str, int]:
    """Remove every imported schedule/activity row and all homework for a member."""
    counts = {
        "schedules": purge_generated(db, member_id, SCHOOL_SCHEDULE),
        "activities": purge_generated(db, member_id, SCHOOL_ACTIVITY),
        "homework": delete_where(db, Homework, Homework.member_id == member_id),
    }
    logger.info(f"[MATERIALIZE] cleared school plan for member={member_id}: {counts}")
    return counts
