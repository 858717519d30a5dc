# homedash/errors.py
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import OperationalError, SQLAlchemyError


class DatasetDecodeError(Exception):
    """An extracted region of the generated text is not valid JSON.

    Carries the dataset name and the raw text that failed so a human can see
    what the model actually produced.
    """

    def __init__(self, dataset: str, raw_text: str, cause: Optional[Exception] = None):
        self.dataset = dataset
        self.raw_text = raw_text
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Could not decode {dataset}{detail}")

    def to_dict(self) -> Dict[str, Any]:
        return {"dataset": self.dataset, "message": str(self), "raw_text": self.raw_text}


class PersistenceError(Exception):
    """A storage operation failed. Stages committed before the failure stay committed."""

    def __init__(self, operation: str, table: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.table = table
        self.cause = cause
        self.saved: Optional[Dict[str, Any]] = None  # partial import summary, set by the caller
        super().__init__(f"{operation} on {table} failed: {cause}")


@dataclass
class ErrorNotice:
    code: str                  # short machine code, e.g. "PARSE_SCHOOL_SCHEDULE", "DB_CONN"
    title: str                 # short, user-facing title
    user_message: str          # safe message you can show to users (what to try next)
    hint: Optional[str] = None # optional extra hint
    support_id: str = ""       # unique ID to correlate logs
    debug: Optional[str] = None  # long detail for logs only

    def to_dict(self) -> Dict[str, Any]:
        """JSON body for API error responses."""
        return {
            "error": self.title,
            "message": self.user_message,
            "hint": self.hint,
            "ref": self.support_id,
            "code": self.code,
        }


def _db_conn_error(exc: Exception) -> bool:
    s = str(exc).lower()
    return ("could not connect to server" in s or "connection refused" in s
            or "unable to open database file" in s)


def build_error_notice(exc: Exception, context: Optional[Dict[str, Any]] = None) -> ErrorNotice:
    """
    Map raw exceptions to user-safe, helpful notices.
    Keep messages short; add 'hint' for one actionable step.
    """
    ctx = context or {}
    op = ctx.get("op", "operation")
    support_id = uuid.uuid4().hex[:8]

    # 1) Generated text had a section we could not read
    if isinstance(exc, DatasetDecodeError):
        return ErrorNotice(
            code=f"PARSE_{exc.dataset.upper()}",
            title="Could not read the school plan",
            user_message=f"The {exc.dataset} section of the response was not valid JSON.",
            hint="Try the extraction again; the raw text is attached for inspection.",
            support_id=support_id,
            debug=f"{op}: {exc!r} raw={exc.raw_text[:500]!r}",
        )

    # 2) Database connectivity
    root = getattr(exc, "cause", None) or exc
    if isinstance(root, OperationalError) and _db_conn_error(root):
        return ErrorNotice(
            code="DB_CONN",
            title="Database unavailable",
            user_message="We couldn't connect to the database.",
            hint="Please try again shortly.",
            support_id=support_id,
            debug=f"{op}: {exc!r}",
        )

    # 3) A write/read failed mid-import; earlier stages may already be saved
    if isinstance(exc, PersistenceError):
        saved = exc.saved or {}
        counts = saved.get("counts") or {}
        done = ", ".join(f"{k}={v}" for k, v in counts.items() if v) or "nothing"
        return ErrorNotice(
            code="DB_WRITE",
            title="Saving failed",
            user_message=f"We could not finish saving ({exc.operation} on {exc.table}). Saved so far: {done}.",
            hint="Run the import again; it replaces earlier imported entries.",
            support_id=support_id,
            debug=f"{op}: {exc!r}",
        )

    if isinstance(exc, SQLAlchemyError):
        return ErrorNotice(
            code="DB_ERROR",
            title="Database error",
            user_message="A database operation failed.",
            hint="Please retry. If it persists, contact support.",
            support_id=support_id,
            debug=f"{op}: {exc!r}",
        )

    # 4) Fallback catch-all
    return ErrorNotice(
        code="UNKNOWN",
        title="Something went wrong",
        user_message="An unexpected error occurred.",
        hint="Please retry. If it persists, contact support.",
        support_id=support_id,
        debug=f"{op}: {exc!r}",
    )
