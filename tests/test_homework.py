from datetime import date

import pytest

from homedash.errors import PersistenceError
from homedash.homework import import_homework, list_homework
from homedash.models import Activity, Homework
from homedash.parser import HomeworkEntry
from homedash.store import insert_many

WEEK = date(2024, 8, 19)


def test_entry_missing_subject_is_skipped(db_session, member):
    entries = [
        {"subject": "Math", "assignment": "p.12"},
        {"subject": "", "assignment": "missing subject"},
    ]
    res = import_homework(db_session, member.id, entries, WEEK, source_image="plan.jpg")

    assert (res.created, res.skipped) == (1, 1)
    (hw,) = db_session.query(Homework).filter_by(member_id=member.id).all()
    assert (hw.subject, hw.assignment) == ("Math", "p.12")
    assert hw.week_start_date == WEEK
    assert hw.extracted_from_image == "plan.jpg"
    assert hw.completed is False


def test_reimport_replaces_only_generated_rows_for_that_week(db_session, member):
    db_session.add(Homework(member_id=member.id, subject="Norsk", assignment="Read ch. 2", week_start_date=WEEK))
    db_session.add(Homework(member_id=member.id, subject="Math", assignment="old", week_start_date=date(2024, 8, 12),
                            extracted_from_image="last_week.jpg"))
    db_session.commit()

    import_homework(db_session, member.id, [HomeworkEntry("Math", "p.12")], WEEK, source_image="a.jpg")
    res = import_homework(db_session, member.id, [HomeworkEntry("Math", "p.14")], WEEK, source_image="b.jpg")

    assert res.deleted == 1
    this_week = {(h.subject, h.assignment) for h in list_homework(db_session, member.id, WEEK)}
    assert this_week == {("Norsk", "Read ch. 2"), ("Math", "p.14")}
    assert len(list_homework(db_session, member.id, date(2024, 8, 12))) == 1


def test_default_source_marker(db_session, member):
    import_homework(db_session, member.id, [HomeworkEntry("Math", "p.12")], WEEK)
    (hw,) = list_homework(db_session, member_id=member.id)
    assert hw.extracted_from_image == "school_plan_import"


def test_empty_list_is_a_no_op(db_session, member):
    res = import_homework(db_session, member.id, [], WEEK)
    assert (res.created, res.deleted, res.skipped) == (0, 0, 0)


def test_list_homework_newest_first(db_session, member):
    import_homework(db_session, member.id, [HomeworkEntry("Math", "p.12"), HomeworkEntry("Science", "lab")], WEEK)
    assert [h.subject for h in list_homework(db_session, member_id=member.id)] == ["Science", "Math"]


def test_insert_failure_becomes_persistence_error(db_session, member):
    with pytest.raises(PersistenceError) as exc:
        insert_many(db_session, Activity, [{"member_id": member.id, "title": None, "date": WEEK,
                                            "start_time": "08:00", "end_time": "09:00"}])
    assert exc.value.operation == "insert"
    assert exc.value.table == "activities"
    assert exc.value.__cause__ is not None
    # session is usable after the rollback
    assert db_session.query(Activity).count() == 0
