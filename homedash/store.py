# homedash/store.py
"""
Thin persistence layer over a SQLAlchemy Session.

Each write commits on its own; there is no transaction spanning several calls,
so a failure half-way through an import leaves the earlier stages saved.
"""
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PersistenceError
from .logger import logger
from .models import Activity, type_tag


def insert_many(db: Session, model, rows: Sequence[Dict[str, Any]]) -> int:
    """One multi-row INSERT (executemany) for all rows. Returns the number inserted."""
    if not rows:
        return 0
    table = model.__tablename__
    try:
        db.execute(insert(model), list(rows))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[STORE] insert into {table} failed ({len(rows)} rows): {e}")
        raise PersistenceError("insert", table, e) from e
    logger.debug(f"[STORE] inserted {len(rows)} rows into {table}")
    return len(rows)


def delete_where(db: Session, model, *criteria) -> int:
    table = model.__tablename__
    try:
        n = db.query(model).filter(*criteria).delete(synchronize_session=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[STORE] delete from {table} failed: {e}")
        raise PersistenceError("delete", table, e) from e
    logger.debug(f"[STORE] deleted {n} rows from {table}")
    return n


def query_where(db: Session, model, *criteria, order_by: Optional[Sequence] = None) -> List[Any]:
    table = model.__tablename__
    try:
        q = db.query(model).filter(*criteria)
        if order_by:
            q = q.order_by(*order_by)
        return q.all()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[STORE] query on {table} failed: {e}")
        raise PersistenceError("query", table, e) from e


def purge_generated(db: Session, member_id: int, kind: str, from_date: Optional[date] = None) -> int:
    """
    Delete a member's activities carrying ``[TYPE:<kind>]``, dated on/after
    ``from_date`` when given (all of them otherwise). Rows before ``from_date``
    are never touched.
    """
    criteria = [
        Activity.member_id == member_id,
        Activity.description.contains(type_tag(kind), autoescape=True),
    ]
    if from_date is not None:
        criteria.append(Activity.date >= from_date)
    n = delete_where(db, Activity, *criteria)
    logger.debug(f"[STORE] purged {n} {kind} rows for member {member_id} from {from_date or 'the beginning'}")
    return n
