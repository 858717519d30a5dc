# homedash/parser.py
"""
Recover the three school-plan datasets from a model response.

The response is expected to contain, in any order and wrapped in any amount of
prose or markdown:
    Dataset 1 - a JSON object keyed by weekday ("Monday": {"start", "end", "notes"})
    Dataset 2 - school_activities: a JSON array of {day, name, start, end, type, specific_date}
    Dataset 3 - school_homework: a fenced JSON array of {subject, assignment}
Any of them may be missing.
"""
import json
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from .blocks import enclosing_brace, extract_balanced, find_array_after
from .dates import format_local_date, normalize_time, parse_local_date
from .errors import DatasetDecodeError
from .logger import logger

SCHEDULE = "school_schedule"
ACTIVITIES = "school_activities"
HOMEWORK = "school_homework"

RECURRING = "recurring"
ONE_TIME = "one_time"
ACTIVITY_KINDS = (RECURRING, ONE_TIME)

_SCHEDULE_MARKER = '"Monday"'

# Most specific first; each ends on the opening bracket of the array.
_ACTIVITY_PATTERNS = [
    re.compile(r"\*\*Dataset 2 - school_activities:\*\*\s*```(?:json)?\s*\[", re.I),
    re.compile(r"Dataset 2 - school_activities:\s*```(?:json)?\s*\[", re.I),
    re.compile(r"Dataset 2 - school_activities:\s*\[", re.I),
    re.compile(r"school_activities\"?[:\s]*\[", re.I),
    re.compile(r"activities\"?[:\s]*\[", re.I),
]

_HOMEWORK_PATTERN = re.compile(
    r"Dataset 3[^:]*school_homework[^:]*:\s*\**\s*```(?:json)?\s*\[", re.I
)


@dataclass
class ScheduleEntry:
    start: Optional[str]
    end: Optional[str]
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {"start": self.start, "end": self.end}
        if self.notes:
            out["notes"] = self.notes
        return out


@dataclass
class ActivityEntry:
    day: Optional[str]
    name: Optional[str]
    start: Optional[str]
    end: Optional[str]
    kind: str = RECURRING
    # Parsed but informational only: one-time entries are placed by weekday
    # inside the anchor week.
    specific_date: Optional[date] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "day": self.day,
            "name": self.name,
            "start": self.start,
            "end": self.end,
            "type": self.kind,
            "specific_date": format_local_date(self.specific_date) if self.specific_date else None,
        }


@dataclass
class HomeworkEntry:
    subject: str
    assignment: str

    def to_dict(self) -> Dict[str, Any]:
        return {"subject": self.subject, "assignment": self.assignment}


@dataclass
class ParsedSchoolPlan:
    schedule: Optional[Dict[str, ScheduleEntry]] = None
    activities: List[ActivityEntry] = field(default_factory=list)
    homework: List[HomeworkEntry] = field(default_factory=list)
    errors: List[DatasetDecodeError] = field(default_factory=list)

    def raise_for_errors(self) -> None:
        if self.errors:
            raise self.errors[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            SCHEDULE: {day: e.to_dict() for day, e in self.schedule.items()} if self.schedule is not None else None,
            ACTIVITIES: [a.to_dict() for a in self.activities],
            HOMEWORK: [h.to_dict() for h in self.homework],
        }


def _decode(dataset: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error(f"[PARSE] {dataset} is not valid JSON: {e}")
        raise DatasetDecodeError(dataset, raw, e) from e


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


# --- Dataset 1 ----------------------------------------------------------------

def _find_schedule_region(text: str) -> Optional[str]:
    pos = text.find(_SCHEDULE_MARKER)
    while pos != -1:
        brace = enclosing_brace(text, pos)
        if brace != -1:
            return extract_balanced(text, brace, opener="{")
        pos = text.find(_SCHEDULE_MARKER, pos + 1)
    return None


def parse_schedule(text: str) -> Optional[Dict[str, ScheduleEntry]]:
    """Weekday -> ScheduleEntry, or None when the response has no schedule object."""
    raw = _find_schedule_region(text or "")
    if raw is None:
        logger.debug("[PARSE] no school_schedule object found")
        return None

    logger.debug(f"[PARSE] school_schedule JSON text: {raw}")
    data = _decode(SCHEDULE, raw)

    schedule: Dict[str, ScheduleEntry] = {}
    for day, times in data.items():
        if not isinstance(times, dict):
            # keep the day so materialization can log and skip it
            schedule[day] = ScheduleEntry(start=None, end=None)
            continue
        schedule[day] = ScheduleEntry(
            start=normalize_time(times.get("start")),
            end=normalize_time(times.get("end")),
            notes=_clean_str(times.get("notes") or times.get("note")),
        )
    logger.debug(f"[PARSE] school_schedule with {len(schedule)} days")
    return schedule


# --- Dataset 2 ----------------------------------------------------------------

def _activity_from(obj: Dict[str, Any]) -> ActivityEntry:
    kind = (_clean_str(obj.get("type")) or RECURRING).lower()
    if kind not in ACTIVITY_KINDS:
        logger.warning(f"[PARSE] unknown activity type {kind!r} for {obj.get('name')!r}; treating as {RECURRING}")
        kind = RECURRING
    return ActivityEntry(
        day=_clean_str(obj.get("day")),
        name=_clean_str(obj.get("name")),
        start=normalize_time(obj.get("start")),
        end=normalize_time(obj.get("end")),
        kind=kind,
        specific_date=parse_local_date(obj.get("specific_date")),
    )


def parse_activities(text: str) -> List[ActivityEntry]:
    text = text or ""
    for pattern in _ACTIVITY_PATTERNS:
        m = pattern.search(text)
        if not m:
            continue
        raw = find_array_after(text, m.end() - 1)
        if raw is None:
            logger.debug(f"[PARSE] activities label matched ({pattern.pattern}) but array is unterminated")
            continue

        logger.debug(f"[PARSE] school_activities JSON text: {raw}")
        items = _decode(ACTIVITIES, raw)
        out = []
        for obj in items:
            if not isinstance(obj, dict):
                logger.warning(f"[PARSE] skipping non-object activity entry: {obj!r}")
                continue
            out.append(_activity_from(obj))
        logger.debug(
            f"[PARSE] school_activities with {len(out)} activities: "
            + ", ".join(f"{a.name}:{a.kind}" for a in out)
        )
        return out

    logger.debug("[PARSE] no school_activities found")
    return []


# --- Dataset 3 ----------------------------------------------------------------

def parse_homework(text: str) -> List[HomeworkEntry]:
    text = text or ""
    m = _HOMEWORK_PATTERN.search(text)
    if not m:
        logger.debug("[PARSE] no homework section found")
        return []
    raw = find_array_after(text, m.end() - 1)
    if raw is None:
        logger.debug("[PARSE] homework section is unterminated")
        return []

    logger.debug(f"[PARSE] school_homework JSON text: {raw}")
    items = _decode(HOMEWORK, raw)
    out = []
    for obj in items:
        subject = _clean_str(obj.get("subject")) if isinstance(obj, dict) else None
        assignment = _clean_str(obj.get("assignment")) if isinstance(obj, dict) else None
        if not (subject and assignment):
            logger.warning(f"[PARSE] skipping homework with missing data: {obj!r}")
            continue
        out.append(HomeworkEntry(subject=subject, assignment=assignment))
    logger.debug(f"[PARSE] school_homework with {len(out)} assignments")
    return out


def parse_school_plan(text: str) -> ParsedSchoolPlan:
    """
    Parse all three datasets. A dataset that fails to decode is recorded in
    ``errors`` and left empty; the other two are still parsed.
    """
    plan = ParsedSchoolPlan()
    try:
        plan.schedule = parse_schedule(text)
    except DatasetDecodeError as e:
        plan.errors.append(e)
    try:
        plan.activities = parse_activities(text)
    except DatasetDecodeError as e:
        plan.errors.append(e)
    try:
        plan.homework = parse_homework(text)
    except DatasetDecodeError as e:
        plan.errors.append(e)
    return plan
