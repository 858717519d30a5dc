from datetime import date, timedelta

import pytest

from homedash.errors import PersistenceError
from homedash.materializer import (
    materialize_activities,
    materialize_schedule,
    resolve_anchor,
)
from homedash.models import Activity, FamilyMember, SCHOOL_ACTIVITY, SCHOOL_SCHEDULE
from homedash.parser import (
    ONE_TIME, RECURRING, ActivityEntry, HomeworkEntry, ParsedSchoolPlan, ScheduleEntry,
    parse_activities, parse_schedule,
)
from homedash.school_plan import clear_school_plan, save_school_plan
import homedash.school_plan as school_plan_mod

MONDAY_ONLY = {"Monday": ScheduleEntry(start="08:00", end="14:00")}


def _rows(db, member_id, kind):
    return (
        db.query(Activity)
        .filter(Activity.member_id == member_id, Activity.activity_type == kind)
        .order_by(Activity.date)
        .all()
    )


def test_resolve_anchor_snaps_override_to_monday():
    anchor, window = resolve_anchor("2024-08-22")
    assert anchor == date(2024, 8, 19)
    assert (window.start, window.end) == (date(2024, 8, 1), date(2025, 7, 31))

    anchor, _ = resolve_anchor(None, today=date(2024, 9, 8))   # Sunday
    assert anchor == date(2024, 9, 2)

    with pytest.raises(ValueError):
        resolve_anchor("someday")


def test_monday_schedule_expands_to_school_year_end(db_session, member):
    anchor, window = resolve_anchor(date(2024, 8, 19))
    res = materialize_schedule(db_session, member.id, MONDAY_ONLY, anchor, window)

    rows = _rows(db_session, member.id, SCHOOL_SCHEDULE)
    expected = [date(2024, 8, 19) + timedelta(weeks=i) for i in range(50)]
    assert [r.date for r in rows] == expected
    assert rows[-1].date == date(2025, 7, 28)
    assert res.created == 50
    assert len(res.samples) == 10
    for r in rows:
        assert r.title == "School"
        assert "[TYPE:school_schedule]" in r.description
        assert r.recurrence_type == "weekly"
        assert r.recurrence_end_date == date(2025, 7, 31)
        assert (r.start_time, r.end_time) == ("08:00", "14:00")
        assert r.source == "manual"


def test_reimport_from_later_week_keeps_earlier_rows(db_session, member):
    anchor, window = resolve_anchor(date(2024, 8, 19))
    materialize_schedule(db_session, member.id, MONDAY_ONLY, anchor, window)
    before = {r.date: r.id for r in _rows(db_session, member.id, SCHOOL_SCHEDULE)}

    anchor, window = resolve_anchor(date(2024, 9, 2))
    res = materialize_schedule(db_session, member.id, MONDAY_ONLY, anchor, window)

    after = {r.date: r.id for r in _rows(db_session, member.id, SCHOOL_SCHEDULE)}
    assert res.deleted == 48
    assert res.created == 48
    assert sorted(after) == sorted(before)
    assert after[date(2024, 8, 19)] == before[date(2024, 8, 19)]
    assert after[date(2024, 8, 26)] == before[date(2024, 8, 26)]


def test_import_twice_is_idempotent(db_session, member):
    anchor, window = resolve_anchor(date(2024, 8, 19))
    schedule = {
        "Monday": ScheduleEntry(start="08:00", end="14:00"),
        "Friday": ScheduleEntry(start="08:00", end="12:00", notes="Short day"),
    }
    materialize_schedule(db_session, member.id, schedule, anchor, window)
    first = [(r.date, r.start_time, r.end_time, r.notes) for r in _rows(db_session, member.id, SCHOOL_SCHEDULE)]
    materialize_schedule(db_session, member.id, schedule, anchor, window)
    second = [(r.date, r.start_time, r.end_time, r.notes) for r in _rows(db_session, member.id, SCHOOL_SCHEDULE)]
    assert first == second
    assert len(second) == len(set(second))


def test_bad_weekday_and_missing_times_are_skipped(db_session, member):
    anchor, window = resolve_anchor(date(2024, 8, 19))
    schedule = {
        "Saturday": ScheduleEntry(start="10:00", end="11:00"),
        "Tuesday": ScheduleEntry(start="08:00", end=None),
        "Monday": ScheduleEntry(start="08:00", end="14:00"),
    }
    res = materialize_schedule(db_session, member.id, schedule, anchor, window)
    assert res.skipped == 2
    assert {r.date.weekday() for r in _rows(db_session, member.id, SCHOOL_SCHEDULE)} == {0}


def test_schedule_none_leaves_existing_rows(db_session, member):
    anchor, window = resolve_anchor(date(2024, 8, 19))
    materialize_schedule(db_session, member.id, MONDAY_ONLY, anchor, window)
    res = materialize_schedule(db_session, member.id, None, anchor, window)
    assert (res.created, res.deleted) == (0, 0)
    assert len(_rows(db_session, member.id, SCHOOL_SCHEDULE)) == 50


def test_one_time_activity_lands_in_anchor_week(db_session, member):
    anchor, window = resolve_anchor(date(2024, 8, 19))
    trip = ActivityEntry(day="Wednesday", name="Field trip", start="09:00", end="12:00", kind=ONE_TIME)
    res = materialize_activities(db_session, member.id, [trip], anchor, window)

    (row,) = _rows(db_session, member.id, SCHOOL_ACTIVITY)
    assert row.date == date(2024, 8, 21)
    assert row.title == "Field trip"
    assert row.description == "School activity: Field trip [TYPE:school_activity]"
    assert row.recurrence_type == "none"
    assert row.recurrence_end_date is None
    assert res.samples == [{
        "day": "Wednesday", "name": "Field trip", "date": "2024-08-21",
        "start": "09:00", "end": "12:00", "type": ONE_TIME,
    }]


def test_recurring_activity_and_schedule_are_purged_separately(db_session, member):
    anchor, window = resolve_anchor(date(2024, 8, 19))
    chess = ActivityEntry(day="Thursday", name="Chess club", start="14:00", end="15:00", kind=RECURRING)
    materialize_schedule(db_session, member.id, MONDAY_ONLY, anchor, window)
    res = materialize_activities(db_session, member.id, [chess], anchor, window)

    assert res.created == 50   # Thursdays 2024-08-22 .. 2025-07-31
    assert len(res.samples) == 5
    rows = _rows(db_session, member.id, SCHOOL_ACTIVITY)
    assert rows[-1].date == date(2025, 7, 31)
    assert all(r.recurrence_type == "weekly" for r in rows)

    # activities re-import must not touch the schedule rows
    materialize_activities(db_session, member.id, [chess], anchor, window)
    assert len(_rows(db_session, member.id, SCHOOL_SCHEDULE)) == 50
    assert len(_rows(db_session, member.id, SCHOOL_ACTIVITY)) == 50


def test_activity_missing_fields_skipped(db_session, member):
    anchor, window = resolve_anchor(date(2024, 8, 19))
    entries = [
        ActivityEntry(day="Funday", name="Party", start="10:00", end="11:00"),
        ActivityEntry(day="Monday", name=None, start="10:00", end="11:00"),
        ActivityEntry(day="Monday", name="Choir", start=None, end="11:00"),
    ]
    res = materialize_activities(db_session, member.id, entries, anchor, window)
    assert (res.created, res.skipped) == (0, 3)


def test_other_members_are_untouched(db_session, member):
    sibling = FamilyMember(name="Kari")
    db_session.add(sibling)
    db_session.commit()

    anchor, window = resolve_anchor(date(2024, 8, 19))
    materialize_schedule(db_session, sibling.id, MONDAY_ONLY, anchor, window)
    materialize_schedule(db_session, member.id, MONDAY_ONLY, anchor, window)
    materialize_schedule(db_session, member.id, MONDAY_ONLY, anchor, window)
    assert len(_rows(db_session, sibling.id, SCHOOL_SCHEDULE)) == 50


def test_save_school_plan_summary_and_clear(db_session, member):
    plan = ParsedSchoolPlan(
        schedule=MONDAY_ONLY,
        activities=[ActivityEntry(day="Wednesday", name="Field trip", start="09:00", end="12:00", kind=ONE_TIME)],
        homework=[HomeworkEntry(subject="Math", assignment="p.12")],
    )
    saved = save_school_plan(db_session, member.id, plan, source_image="plan.jpg", week_start="2024-08-19")

    assert saved["anchor_week"] == "2024-08-19"
    assert saved["school_year"] == {"start": "2024-08-01", "end": "2025-07-31"}
    assert saved["counts"]["schedules"] == 50
    assert saved["counts"]["activities"] == 1
    assert saved["counts"]["homework"] == 1

    cleared = clear_school_plan(db_session, member.id)
    assert cleared == {"schedules": 50, "activities": 1, "homework": 1}
    assert db_session.query(Activity).filter(Activity.member_id == member.id).count() == 0


def test_failure_reports_what_was_saved(db_session, member, monkeypatch):
    def boom(*args, **kwargs):
        raise PersistenceError("insert", "homework", RuntimeError("disk full"))

    monkeypatch.setattr(school_plan_mod, "import_homework", boom)
    plan = ParsedSchoolPlan(schedule=MONDAY_ONLY, homework=[HomeworkEntry(subject="Math", assignment="p.12")])

    with pytest.raises(PersistenceError) as exc:
        save_school_plan(db_session, member.id, plan, week_start="2024-08-19")

    assert exc.value.saved["counts"]["schedules"] == 50
    assert exc.value.saved["counts"]["homework"] == 0
    # the committed stage stays committed
    assert len(_rows(db_session, member.id, SCHOOL_SCHEDULE)) == 50


def test_twelve_hour_times_saved_in_order(db_session, member):
    anchor, window = resolve_anchor(date(2024, 8, 19))
    schedule = parse_schedule('{"Monday": {"start": "8:15 AM", "end": "2:30 PM"}}')
    res = materialize_schedule(db_session, member.id, schedule, anchor, window)

    rows = _rows(db_session, member.id, SCHOOL_SCHEDULE)
    assert res.created == len(rows) == 50
    assert all((r.start_time, r.end_time) == ("08:15", "14:30") for r in rows)


def test_activity_with_unusual_times_is_saved(db_session, member):
    anchor, window = resolve_anchor(date(2024, 8, 19))
    entries = parse_activities(
        'school_activities: [{"day": "Monday", "name": "Band", "start": "15", "end": "16", "type": "one_time"}]'
    )
    res = materialize_activities(db_session, member.id, entries, anchor, window)

    assert (res.created, res.skipped) == (1, 0)
    (row,) = _rows(db_session, member.id, SCHOOL_ACTIVITY)
    assert (row.start_time, row.end_time) == ("15", "16")


def test_purge_matches_type_tag_literally(db_session, member):
    lookalike = Activity(member_id=member.id, title="Note", date=date(2024, 9, 2), start_time="08:00",
                         end_time="09:00", description="Pasted text [TYPE:school-schedule] from last year")
    db_session.add(lookalike)
    db_session.commit()

    anchor, window = resolve_anchor(date(2024, 8, 19))
    materialize_schedule(db_session, member.id, MONDAY_ONLY, anchor, window)
    materialize_schedule(db_session, member.id, MONDAY_ONLY, anchor, window)

    assert db_session.query(Activity).filter(Activity.title == "Note").count() == 1
