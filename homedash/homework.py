# homedash/homework.py
import os
from datetime import date
from typing import Any, Iterable, List, Mapping, Optional, Union

from sqlalchemy.orm import Session

from .dates import format_local_date
from .logger import logger
from .materializer import StageResult
from .models import Homework
from .parser import HomeworkEntry
from .store import delete_where, insert_many, query_where

IMPORT_SOURCE_MARKER = os.getenv("IMPORT_SOURCE_MARKER", "school_plan_import")


def _fields(item: Union[HomeworkEntry, Mapping[str, Any]]):
    if isinstance(item, HomeworkEntry):
        subject, assignment = item.subject, item.assignment
    elif isinstance(item, Mapping):
        subject, assignment = item.get("subject"), item.get("assignment")
    else:
        return None, None
    subject = (subject or "").strip() if isinstance(subject, str) else ""
    assignment = (assignment or "").strip() if isinstance(assignment, str) else ""
    return subject, assignment


def import_homework(
    db: Session,
    member_id: int,
    entries: Iterable[Union[HomeworkEntry, Mapping[str, Any]]],
    anchor: date,
    source_image: Optional[str] = None,
) -> StageResult:
    """
    Replace the image-derived homework for (member, anchor week) with ``entries``.

    Hand-entered homework (no ``extracted_from_image``) and other weeks are left
    alone. Entries without a subject or assignment are skipped one by one.
    """
    result = StageResult()
    entries = list(entries or [])
    if not entries:
        logger.debug("[HOMEWORK] nothing to import")
        return result

    marker = source_image or IMPORT_SOURCE_MARKER
    logger.debug(f"[HOMEWORK] {len(entries)} assignments for week {format_local_date(anchor)} (source={marker})")

    result.deleted = delete_where(
        db, Homework,
        Homework.member_id == member_id,
        Homework.week_start_date == anchor,
        Homework.extracted_from_image.isnot(None),
    )

    rows = []
    for item in entries:
        subject, assignment = _fields(item)
        if not (subject and assignment):
            logger.warning(f"[HOMEWORK] skipping homework with missing data: {item!r}")
            result.skipped += 1
            continue
        rows.append({
            "member_id": member_id,
            "subject": subject,
            "assignment": assignment,
            "week_start_date": anchor,
            "extracted_from_image": marker,
        })
        result.samples.append({
            "subject": subject,
            "assignment": assignment,
            "week_start_date": format_local_date(anchor),
        })

    result.created = insert_many(db, Homework, rows)
    logger.info(
        f"[HOMEWORK] member={member_id} week={format_local_date(anchor)}: "
        f"deleted={result.deleted} created={result.created} skipped={result.skipped}"
    )
    return result


def list_homework(db: Session, member_id: Optional[int] = None, week_start: Optional[date] = None) -> List[Homework]:
    criteria = []
    if member_id is not None:
        criteria.append(Homework.member_id == member_id)
    if week_start is not None:
        criteria.append(Homework.week_start_date == week_start)
    rows = query_where(db, Homework, *criteria, order_by=[Homework.created_at.desc(), Homework.id.desc()])
    logger.debug(f"[HOMEWORK] found {len(rows)} homework items (member={member_id}, week={week_start})")
    return rows


def homework_to_dict(hw: Homework) -> dict:
    return {
        "id": hw.id,
        "member_id": hw.member_id,
        "subject": hw.subject,
        "assignment": hw.assignment,
        "week_start_date": format_local_date(hw.week_start_date),
        "due_date": format_local_date(hw.due_date) if hw.due_date else None,
        "completed": bool(hw.completed),
        "extracted_from_image": hw.extracted_from_image,
    }
