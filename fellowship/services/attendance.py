"""
Attendance engine: one roll call per class or group per calendar day.

Events are written once per (type, target, day), may have their records and
notes amended afterwards, and back the per-child history and report views.
Store failures surface as ``ServerError``; parent notifications are sent only
after the event is committed and never affect the outcome of the write.
"""
from decimal import Decimal, ROUND_HALF_UP
from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import selectinload
from fellowship.extensions import db
from fellowship.errors import DuplicateAttendance, NotFound, ServerError, ValidationError
from fellowship.models import (
    Attendance, AttendanceRecord, AttendanceStatusEnum, AttendanceTypeEnum, Child, Class, Group,
)
from fellowship.services.notifications import send_attendance_notifications
from fellowship.utils.dates import day_bounds, parse_datetime, resolve_date_range
from fellowship.utils.lookups import coerce_id
from fellowship.utils.pagination import paginate
from fellowship.utils.serialization import enum_values

# attendance type -> (roster model, foreign key column, display name)
TARGETS = {
    AttendanceTypeEnum.class_: (Class, "class_id", "Class"),
    AttendanceTypeEnum.group: (Group, "group_id", "Group"),
}


def parse_attendance_type(value):
    if isinstance(value, AttendanceTypeEnum):
        return value
    try:
        return AttendanceTypeEnum(value)
    except ValueError:
        raise ValidationError(
            f"type must be one of {enum_values(AttendanceTypeEnum)}", field="type"
        )


def attendance_rate(present, late, total):
    """Percentage of sessions attended (present or late), rounded half up to an integer."""
    if not total:
        return 0
    rate = Decimal(100 * (present + late)) / Decimal(total)
    return int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _with_details(query):
    return query.options(
        selectinload(Attendance.records).selectinload(AttendanceRecord.child),
        selectinload(Attendance.class_),
        selectinload(Attendance.group),
        selectinload(Attendance.taken_by),
    )


def _child_ref(raw, field):
    if isinstance(raw, dict):
        raw = raw.get("id")
    if raw is None:
        raise ValidationError("child is required", field=field)
    return coerce_id(raw, field)


def normalize_records(records):
    """Validate a roll call payload into ``[(child_id, status, notes), ...]`` in submission order."""
    if not isinstance(records, list) or not records:
        raise ValidationError("records must be a non-empty list", field="records")

    errors = []
    normalized = []
    seen = set()
    for index, item in enumerate(records):
        prefix = f"records[{index}]"
        if not isinstance(item, dict):
            errors.append({"field": prefix, "message": "record must be an object"})
            continue

        try:
            child_id = _child_ref(item.get("child_id", item.get("child")), f"{prefix}.child_id")
        except ValidationError as err:
            errors.extend(err.errors)
            continue

        raw_status = item.get("status") or AttendanceStatusEnum.absent.value
        try:
            status = AttendanceStatusEnum(raw_status)
        except ValueError:
            errors.append({
                "field": f"{prefix}.status",
                "message": f"status must be one of {enum_values(AttendanceStatusEnum)}",
            })
            continue

        notes = item.get("notes") or ""
        if not isinstance(notes, str):
            errors.append({"field": f"{prefix}.notes", "message": "notes must be a string"})
            continue

        if child_id in seen:
            errors.append({"field": f"{prefix}.child_id", "message": "child listed more than once"})
            continue
        seen.add(child_id)
        normalized.append((child_id, status, notes))

    if not errors:
        known = {
            cid for (cid,) in db.session.query(Child.id).filter(Child.id.in_(seen)).all()
        }
        for index, (child_id, _, _) in enumerate(normalized):
            if child_id not in known:
                errors.append({"field": f"records[{index}].child_id", "message": f"Child {child_id} not found"})

    if errors:
        raise ValidationError("Invalid attendance records", errors=errors)
    return normalized


def _build_records(normalized):
    return [
        AttendanceRecord(child_id=child_id, status=status, notes=notes, position=position)
        for position, (child_id, status, notes) in enumerate(normalized)
    ]


def _normalize_notes(notes):
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise ValidationError("notes must be a string", field="notes")
    return notes


def find_event_on_day(attendance_type, target_id, moment):
    """The event already recorded for this target on ``moment``'s calendar day, if any."""
    _, column, _ = TARGETS[attendance_type]
    start, end = day_bounds(moment)
    return (
        Attendance.query
        .filter(
            Attendance.type == attendance_type,
            getattr(Attendance, column) == target_id,
            Attendance.date >= start,
            Attendance.date < end,
        )
        .order_by(Attendance.id)
        .first()
    )


def take_attendance(attendance_type, target_id, date, records, notes="", recorder_id=None):
    attendance_type = parse_attendance_type(attendance_type)
    model, column, label = TARGETS[attendance_type]
    target_id = coerce_id(target_id, column)
    moment = parse_datetime(date, "date")
    notes = _normalize_notes(notes) or ""
    if recorder_id is None:
        raise ValidationError("recorder is required", field="taken_by")

    try:
        normalized = normalize_records(records)

        target = db.session.get(model, target_id)
        if target is None or not target.is_active:
            raise NotFound(label, target_id)

        existing = find_event_on_day(attendance_type, target_id, moment)
        if existing is not None:
            raise DuplicateAttendance(attendance_type.value, existing.id)

        attendance = Attendance(
            date=moment,
            attendance_day=moment.date(),
            type=attendance_type,
            taken_by_id=recorder_id,
            notes=notes,
        )
        setattr(attendance, column, target_id)
        attendance.records = _build_records(normalized)

        db.session.add(attendance)
        db.session.commit()
    except IntegrityError as err:
        # lost a race with a concurrent submission, the unique constraint caught it
        db.session.rollback()
        existing = find_event_on_day(attendance_type, target_id, moment)
        if existing is not None:
            raise DuplicateAttendance(attendance_type.value, existing.id) from None
        raise ServerError("Could not save attendance", detail=str(err.orig)) from err
    except SQLAlchemyError as err:
        db.session.rollback()
        raise ServerError("Could not save attendance", detail=str(err)) from err

    attendance_id = attendance.id
    current_app.logger.info(
        "Attendance %s recorded for %s %s on %s by user %s (%d records)",
        attendance_id, attendance_type.value, target_id, moment.date(), recorder_id, len(normalized),
    )

    send_attendance_notifications(attendance)
    return get_attendance(attendance_id)


def update_attendance(attendance_id, records, notes=None):
    """Replace the roll call of an event. Parents are not re-notified."""
    notes = _normalize_notes(notes)
    try:
        attendance = db.session.get(Attendance, attendance_id)
        if attendance is None:
            raise NotFound("Attendance", attendance_id)

        normalized = normalize_records(records)

        attendance.records = _build_records(normalized)
        if notes is not None:
            attendance.notes = notes
        db.session.commit()
    except SQLAlchemyError as err:
        db.session.rollback()
        raise ServerError("Could not update attendance", detail=str(err)) from err

    current_app.logger.info("Attendance %s amended (%d records)", attendance_id, len(normalized))
    return get_attendance(attendance_id)


def get_attendance(attendance_id):
    try:
        attendance = _with_details(Attendance.query).filter(Attendance.id == attendance_id).first()
    except SQLAlchemyError as err:
        raise ServerError(detail=str(err)) from err
    if attendance is None:
        raise NotFound("Attendance", attendance_id)
    return attendance


def _apply_range(query, start_at, end_at):
    if start_at is not None:
        query = query.filter(Attendance.date >= start_at)
    if end_at is not None:
        query = query.filter(Attendance.date < end_at)
    return query


def get_history(attendance_type, target_id, start=None, end=None, page=1, limit=20):
    """Events of one class or group, newest first. Returns ``(events, pagination)``."""
    attendance_type = parse_attendance_type(attendance_type)
    model, column, label = TARGETS[attendance_type]
    start_at, end_at = resolve_date_range(start, end)

    try:
        if db.session.get(model, target_id) is None:
            raise NotFound(label, target_id)

        query = _with_details(Attendance.query).filter(
            Attendance.type == attendance_type,
            getattr(Attendance, column) == target_id,
        )
        query = _apply_range(query, start_at, end_at)
        query = query.order_by(Attendance.date.desc(), Attendance.id.desc())
        return paginate(query, page, limit)
    except SQLAlchemyError as err:
        raise ServerError(detail=str(err)) from err


def get_child_history(child_id, start=None, end=None, attendance_type=None):
    """
    Every event the child was recorded in, across classes and groups, newest first.

    Only the child's own status and notes are exposed for each event.
    """
    if attendance_type not in (None, ""):
        attendance_type = parse_attendance_type(attendance_type)
    else:
        attendance_type = None
    start_at, end_at = resolve_date_range(start, end)

    try:
        if db.session.get(Child, child_id) is None:
            raise NotFound("Child", child_id)

        query = Attendance.query.options(
            selectinload(Attendance.records),
            selectinload(Attendance.class_),
            selectinload(Attendance.group),
        ).filter(Attendance.records.any(AttendanceRecord.child_id == child_id))
        if attendance_type is not None:
            query = query.filter(Attendance.type == attendance_type)
        query = _apply_range(query, start_at, end_at)
        events = query.order_by(Attendance.date.desc(), Attendance.id.desc()).all()
    except SQLAlchemyError as err:
        raise ServerError(detail=str(err)) from err

    history = []
    for event in events:
        record = event.record_for(child_id)
        history.append({
            "id": event.id,
            "date": event.date.isoformat(),
            "type": event.type.value,
            "class": event.class_.summary() if event.class_ else None,
            "group": event.group.summary() if event.group else None,
            "status": record.status.value if record else None,
            "notes": record.notes if record else None,
        })
    return history


def get_report(attendance_type=None, class_id=None, group_id=None, start=None, end=None):
    """
    Tally statuses over the matching events.

    ``summary`` counts sessions and every status across all records;
    ``childrenStats`` has one entry per child with at least one record.
    """
    if attendance_type not in (None, ""):
        attendance_type = parse_attendance_type(attendance_type)
    else:
        attendance_type = None
    class_id = coerce_id(class_id, "class_id") if class_id not in (None, "") else None
    group_id = coerce_id(group_id, "group_id") if group_id not in (None, "") else None
    start_at, end_at = resolve_date_range(start, end)

    try:
        query = _with_details(Attendance.query)
        if attendance_type is not None:
            query = query.filter(Attendance.type == attendance_type)
        if class_id is not None:
            query = query.filter(Attendance.class_id == class_id)
        if group_id is not None:
            query = query.filter(Attendance.group_id == group_id)
        query = _apply_range(query, start_at, end_at)
        events = query.order_by(Attendance.date.desc(), Attendance.id.desc()).all()
    except SQLAlchemyError as err:
        raise ServerError(detail=str(err)) from err

    statuses = enum_values(AttendanceStatusEnum)
    summary = {
        "totalSessions": len(events),
        "byStatus": {status: 0 for status in statuses},
    }
    children_stats = {}

    for event in events:
        for record in event.records:
            status = record.status.value
            summary["byStatus"][status] += 1

            stat = children_stats.get(record.child_id)
            if stat is None:
                stat = {"child": record.child.summary() if record.child else {"id": record.child_id}}
                stat.update({s: 0 for s in statuses})
                stat["total"] = 0
                children_stats[record.child_id] = stat
            stat[status] += 1
            stat["total"] += 1

    for stat in children_stats.values():
        stat["attendanceRate"] = attendance_rate(stat["present"], stat["late"], stat["total"])

    return {
        "summary": summary,
        "childrenStats": list(children_stats.values()),
        "events": [event.to_dict() for event in events],
    }
