"""Parent notifications raised as a side effect of recording attendance."""
from flask import current_app
from fellowship.extensions import db
from fellowship.models import Child, Notification, NotificationTypeEnum, AttendanceStatusEnum

STATUS_PHRASES = {
    AttendanceStatusEnum.present: "marked present",
    AttendanceStatusEnum.absent: "marked absent",
    AttendanceStatusEnum.late: "marked late",
    AttendanceStatusEnum.excused: "excused",
}


def attendance_message(child, status, attendance_type):
    phrase = STATUS_PHRASES[status]
    return f"{child.first_name} {child.last_name} was {phrase} for {attendance_type.value} today."


def notify_parent(child_id, status, attendance_type, attendance_id):
    """Store one notification for the child's parent. Returns it, or None when there is no parent to tell."""
    child = db.session.get(Child, child_id)
    if child is None or child.parent_id is None:
        return None

    notification = Notification(
        recipient_id=child.parent_id,
        type=NotificationTypeEnum.attendance,
        title=f"Attendance Update - {child.first_name}",
        message=attendance_message(child, status, attendance_type),
        related_child_id=child.id,
        related_attendance_id=attendance_id,
    )
    db.session.add(notification)
    db.session.commit()
    return notification


def send_attendance_notifications(attendance):
    """
    Fan out one notification per record of an already committed attendance event.

    Each record commits on its own; a failure is logged, rolled back and
    skipped so the rest of the roster is still notified. Nothing is raised.
    """
    # snapshot first, a rollback expires the loaded event
    attendance_id = attendance.id
    attendance_type = attendance.type
    records = [(r.child_id, r.status) for r in attendance.records]

    sent = 0
    for child_id, status in records:
        try:
            if notify_parent(child_id, status, attendance_type, attendance_id) is not None:
                sent += 1
        except Exception:
            db.session.rollback()
            current_app.logger.exception(
                "Attendance notification failed for child %s (attendance %s)", child_id, attendance_id
            )

    current_app.logger.debug("Sent %d attendance notifications for attendance %s", sent, attendance_id)
    return sent
