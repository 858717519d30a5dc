# homedash/views.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .agenda import build_agenda
from .db import get_db
from .errors import PersistenceError, build_error_notice
from .homework import homework_to_dict, list_homework
from .logger import logger
from .models import FamilyMember
from .school_plan import clear_school_plan, import_school_plan

router = APIRouter(prefix="/api")


class SchoolPlanImport(BaseModel):
    member_id: int
    response_text: str
    source_image: Optional[str] = None
    week_start_date: Optional[date] = None


def _member_or_404(db: Session, member_id: int) -> FamilyMember:
    member = db.query(FamilyMember).filter_by(id=member_id).first()
    if not member:
        raise HTTPException(status_code=404, detail="Family member not found")
    return member


def _failure(exc: Exception, op: str, **extra) -> JSONResponse:
    notice = build_error_notice(exc, {"op": op})
    logger.error(f"[{notice.code}] {notice.debug} (ref={notice.support_id})")
    body = notice.to_dict()
    body.update(extra)
    return JSONResponse(body, status_code=500)


@router.post("/school-plan/import")
def import_plan(payload: SchoolPlanImport, db: Session = Depends(get_db)):
    member = _member_or_404(db, payload.member_id)
    logger.debug(f"[IMPORT] school plan for member={member.id} ({member.name}), {len(payload.response_text)} chars")
    try:
        result = import_school_plan(
            db,
            member.id,
            payload.response_text,
            source_image=payload.source_image,
            week_start=payload.week_start_date,
        )
    except PersistenceError as e:
        return _failure(e, "school_plan_import", saved=e.saved)
    return {"ok": True, **result}


@router.get("/activities")
def get_activities(
    member_id: Optional[int] = Query(None),
    on_date: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    try:
        agenda = build_agenda(db, member_id=member_id, on_date=on_date, start_date=start_date, end_date=end_date)
    except PersistenceError as e:
        return _failure(e, "agenda")
    return agenda.to_dict()


@router.get("/homework")
def get_homework(
    member_id: Optional[int] = Query(None),
    week_start_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    try:
        rows = list_homework(db, member_id=member_id, week_start=week_start_date)
    except PersistenceError as e:
        return _failure(e, "homework_list")
    return [homework_to_dict(h) for h in rows]


@router.delete("/activities/school-schedule/{member_id}")
def delete_school_plan(member_id: int, db: Session = Depends(get_db)):
    _member_or_404(db, member_id)
    try:
        deleted = clear_school_plan(db, member_id)
    except PersistenceError as e:
        return _failure(e, "school_plan_clear")
    return {"ok": True, "deleted": deleted}
