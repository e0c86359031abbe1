from datetime import datetime

import pytest

from fellowship.errors import DuplicateAttendance, NotFound, ValidationError
from fellowship.extensions import db
from fellowship.models import Attendance, AttendanceTypeEnum, Notification
from fellowship.services import attendance as engine
from fellowship.services import notifications


def roll_call(*children, status="present"):
    return [{"child_id": c.id, "status": status} for c in children]


def take_class(klass, when, records, recorder):
    return engine.take_attendance(AttendanceTypeEnum.class_, klass.id, when, records, recorder_id=recorder.id)


def test_second_roll_call_same_day_is_rejected(teacher, parent, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)
    first = take_class(nasareth_class, "2024-03-01T09:00:00", roll_call(child), teacher)

    with pytest.raises(DuplicateAttendance) as excinfo:
        take_class(nasareth_class, "2024-03-01T18:30:00", roll_call(child), teacher)

    assert excinfo.value.attendance_id == first.id
    assert excinfo.value.to_dict()["attendanceId"] == first.id
    assert Attendance.query.count() == 1


def test_day_boundary_separates_events(teacher, parent, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)
    late_night = take_class(nasareth_class, "2024-03-01T23:59:59", roll_call(child), teacher)
    next_morning = take_class(nasareth_class, "2024-03-02T00:00:00", roll_call(child), teacher)

    assert late_night.id != next_morning.id
    assert late_night.attendance_day.isoformat() == "2024-03-01"
    assert next_morning.attendance_day.isoformat() == "2024-03-02"


def test_class_and_group_events_do_not_collide(teacher, parent, nasareth_class, choir, make_child):
    child = make_child(parent, nasareth_class, groups=[choir])
    take_class(nasareth_class, "2024-03-01", roll_call(child), teacher)
    group_event = engine.take_attendance(
        "group", choir.id, "2024-03-01", roll_call(child), recorder_id=teacher.id
    )

    assert group_event.type == AttendanceTypeEnum.group
    assert group_event.group_id == choir.id
    assert group_event.class_id is None


def test_constraint_backstop_reports_duplicate(monkeypatch, teacher, parent, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)
    first = take_class(nasareth_class, "2024-03-01T09:00:00", roll_call(child), teacher)

    real_lookup = engine.find_event_on_day
    calls = []

    def racing_lookup(*args):
        # the pre-insert check misses the concurrent write
        calls.append(args)
        return None if len(calls) == 1 else real_lookup(*args)

    monkeypatch.setattr(engine, "find_event_on_day", racing_lookup)

    with pytest.raises(DuplicateAttendance) as excinfo:
        take_class(nasareth_class, "2024-03-01T10:00:00", roll_call(child), teacher)

    assert excinfo.value.attendance_id == first.id
    assert Attendance.query.count() == 1


def test_unknown_or_inactive_target_is_not_found(teacher, parent, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)
    with pytest.raises(NotFound):
        engine.take_attendance("class", 999, "2024-03-01", roll_call(child), recorder_id=teacher.id)

    nasareth_class.soft_delete()
    db.session.commit()
    with pytest.raises(NotFound):
        take_class(nasareth_class, "2024-03-01", roll_call(child), teacher)


@pytest.mark.parametrize("records, field", [
    ([], "records"),
    ("nope", "records"),
    ([{"status": "present"}], "records[0].child_id"),
    ([{"child_id": 999, "status": "present"}], "records[0].child_id"),
])
def test_malformed_records_are_rejected(teacher, nasareth_class, records, field):
    with pytest.raises(ValidationError) as excinfo:
        take_class(nasareth_class, "2024-03-01", records, teacher)
    assert field in [e["field"] for e in excinfo.value.errors]


def test_invalid_status_and_repeated_child(teacher, parent, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)

    with pytest.raises(ValidationError) as excinfo:
        take_class(nasareth_class, "2024-03-01", [{"child_id": child.id, "status": "asleep"}], teacher)
    assert excinfo.value.errors[0]["field"] == "records[0].status"

    with pytest.raises(ValidationError) as excinfo:
        take_class(nasareth_class, "2024-03-01", roll_call(child, child), teacher)
    assert excinfo.value.errors[0]["field"] == "records[1].child_id"


def test_missing_status_defaults_to_absent(teacher, parent, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)
    event = take_class(nasareth_class, "2024-03-01", [{"child_id": child.id}], teacher)
    assert event.records[0].status.value == "absent"


def test_records_keep_submission_order(teacher, parent, nasareth_class, make_child):
    zara = make_child(parent, nasareth_class, first_name="Zara")
    ada = make_child(parent, nasareth_class, first_name="Ada")
    event = take_class(nasareth_class, "2024-03-01", roll_call(zara, ada), teacher)
    assert [r.child_id for r in event.records] == [zara.id, ada.id]


def test_fan_out_creates_one_notification_per_record(teacher, parent, nasareth_class, make_child):
    ada = make_child(parent, nasareth_class, first_name="Ada", last_name="Obi")
    tobi = make_child(parent, nasareth_class, first_name="Tobi", last_name="Obi")
    event = take_class(
        nasareth_class, "2024-03-01",
        [{"child_id": ada.id, "status": "late"}, {"child_id": tobi.id, "status": "excused"}],
        teacher,
    )

    sent = Notification.query.filter_by(recipient_id=parent.id).order_by(Notification.id).all()
    assert [n.title for n in sent] == ["Attendance Update - Ada", "Attendance Update - Tobi"]
    assert sent[0].message == "Ada Obi was marked late for class today."
    assert sent[1].message == "Tobi Obi was excused for class today."
    assert all(n.related_attendance_id == event.id for n in sent)


def test_fan_out_failure_does_not_undo_event(monkeypatch, teacher, parent, nasareth_class, make_child):
    ada = make_child(parent, nasareth_class, first_name="Ada")
    tobi = make_child(parent, nasareth_class, first_name="Tobi")
    real_notify = notifications.notify_parent

    def flaky_notify(child_id, *args):
        if child_id == ada.id:
            raise RuntimeError("outbox unavailable")
        return real_notify(child_id, *args)

    monkeypatch.setattr(notifications, "notify_parent", flaky_notify)
    event = take_class(nasareth_class, "2024-03-01", roll_call(ada, tobi), teacher)

    assert db.session.get(Attendance, event.id) is not None
    messages = [n.related_child_id for n in Notification.query.all()]
    assert messages == [tobi.id]


def test_update_replaces_records_without_notifying(teacher, parent, nasareth_class, make_child):
    ada = make_child(parent, nasareth_class, first_name="Ada")
    tobi = make_child(parent, nasareth_class, first_name="Tobi")
    event = take_class(nasareth_class, "2024-03-01", roll_call(ada, tobi), teacher)
    before = Notification.query.count()

    updated = engine.update_attendance(event.id, [{"child_id": tobi.id, "status": "late"}], notes="Rain delay")

    assert [(r.child_id, r.status.value) for r in updated.records] == [(tobi.id, "late")]
    assert updated.notes == "Rain delay"
    assert Notification.query.count() == before

    with pytest.raises(NotFound):
        engine.update_attendance(4242, roll_call(ada))
    # a missing event wins over a bad payload
    with pytest.raises(NotFound):
        engine.update_attendance(4242, [{"child_id": 424242}])


def test_history_is_newest_first_and_paginated(teacher, parent, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)
    for day in ("2024-03-01", "2024-03-08", "2024-03-15"):
        take_class(nasareth_class, day, roll_call(child), teacher)

    events, pagination = engine.get_history("class", nasareth_class.id, page=1, limit=2)
    assert [e.date.day for e in events] == [15, 8]
    assert pagination == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    events, _ = engine.get_history("class", nasareth_class.id, start="2024-03-01", end="2024-03-08")
    assert [e.date.day for e in events] == [8, 1]


def test_child_history_spans_classes_and_groups(teacher, parent, nasareth_class, choir, make_child):
    child = make_child(parent, nasareth_class, groups=[choir])
    sibling = make_child(parent, nasareth_class, first_name="Tobi")
    take_class(nasareth_class, "2024-03-01T09:00:00", [
        {"child_id": child.id, "status": "present", "notes": "Brought Bible"},
        {"child_id": sibling.id, "status": "absent"},
    ], teacher)
    engine.take_attendance(
        "group", choir.id, "2024-03-02T16:00:00",
        [{"child_id": child.id, "status": "late"}], recorder_id=teacher.id,
    )

    history = engine.get_child_history(child.id)
    assert [(h["type"], h["status"]) for h in history] == [("group", "late"), ("class", "present")]
    assert history[0]["group"]["name"] == "Kingdom Choir"
    assert history[1]["class"]["name"] == "Nasareth Gem"
    assert history[1]["notes"] == "Brought Bible"
    assert "records" not in history[0]

    only_class = engine.get_child_history(child.id, attendance_type="class")
    assert len(only_class) == 1


def test_report_rates_and_idempotence(teacher, parent, nasareth_class, make_child):
    child = make_child(parent, nasareth_class)
    for day, status in [(1, "present"), (2, "present"), (3, "present"), (4, "late"), (5, "absent")]:
        take_class(nasareth_class, datetime(2024, 3, day, 9), roll_call(child, status=status), teacher)

    report = engine.get_report(class_id=nasareth_class.id)
    assert report["summary"]["totalSessions"] == 5
    assert report["summary"]["byStatus"] == {"present": 3, "absent": 1, "late": 1, "excused": 0}

    stats = report["childrenStats"]
    assert len(stats) == 1
    assert stats[0]["child"]["id"] == child.id
    assert (stats[0]["present"], stats[0]["late"], stats[0]["absent"], stats[0]["total"]) == (3, 1, 1, 5)
    assert stats[0]["attendanceRate"] == 80
    assert len(report["events"]) == 5

    assert engine.get_report(class_id=nasareth_class.id) == report


def test_report_lists_only_children_with_records(teacher, parent, nasareth_class, make_child):
    present = make_child(parent, nasareth_class, first_name="Ada")
    make_child(parent, nasareth_class, first_name="Tobi")
    take_class(nasareth_class, "2024-03-01", roll_call(present), teacher)

    report = engine.get_report(start="2024-03-01", end="2024-03-01")
    assert [s["child"]["id"] for s in report["childrenStats"]] == [present.id]

    empty = engine.get_report(start="2025-01-01")
    assert empty["summary"]["totalSessions"] == 0
    assert empty["childrenStats"] == []


@pytest.mark.parametrize("present, late, total, expected", [
    (0, 0, 0, 0),
    (1, 0, 3, 33),
    (2, 0, 3, 67),
    (1, 0, 8, 13),
    (0, 1, 2, 50),
    (4, 0, 4, 100),
])
def test_attendance_rate_rounds_half_up(present, late, total, expected):
    assert engine.attendance_rate(present, late, total) == expected
