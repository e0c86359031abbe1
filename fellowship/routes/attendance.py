from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user
from fellowship.models import Child, RoleEnum, AttendanceTypeEnum
from fellowship.errors import Forbidden
from fellowship.services import attendance as engine
from fellowship.utils.decorators import role_required, assignment_required, ensure_child_access
from fellowship.utils.lookups import get_or_404, json_body
from fellowship.utils.pagination import get_page_args

attendance_bp = Blueprint("attendance", __name__)


def ensure_event_access(event):
    """Teachers act on events of their own classes/groups; parents only read events naming their child."""
    if current_user.role == RoleEnum.teacher:
        kind = "class" if event.type == AttendanceTypeEnum.class_ else "group"
        if not current_user.is_assigned_to(kind, event.target_id):
            raise Forbidden(f"You are not assigned to this {kind}")
    elif current_user.role == RoleEnum.parent:
        own = {c.id for c in current_user.children}
        if not any(r.child_id in own for r in event.records):
            raise Forbidden("Not authorized to view this attendance")


def take(attendance_type, target_key):
    data = json_body()
    event = engine.take_attendance(
        attendance_type,
        data.get(target_key),
        data.get("date"),
        data.get("records"),
        notes=data.get("notes"),
        recorder_id=current_user.id,
    )
    return jsonify(event.to_dict(include_parent=True)), 201


@attendance_bp.route("/class", methods=["POST"])
@jwt_required()
@role_required("teacher", "admin")
@assignment_required("class")
def take_class_attendance():
    return take(AttendanceTypeEnum.class_, "class_id")


@attendance_bp.route("/group", methods=["POST"])
@jwt_required()
@role_required("teacher", "admin")
@assignment_required("group")
def take_group_attendance():
    return take(AttendanceTypeEnum.group, "group_id")


@attendance_bp.route("/report", methods=["GET"])
@jwt_required()
@role_required("teacher", "admin")
def attendance_report():
    args = request.args
    report = engine.get_report(
        attendance_type=args.get("type"),
        class_id=args.get("class_id"),
        group_id=args.get("group_id"),
        start=args.get("start_date"),
        end=args.get("end_date"),
    )
    return jsonify(report), 200


def history(attendance_type, target_id):
    page, limit = get_page_args()
    events, pagination = engine.get_history(
        attendance_type,
        target_id,
        start=request.args.get("start_date"),
        end=request.args.get("end_date"),
        page=page,
        limit=limit,
    )
    return jsonify({"events": [e.to_dict() for e in events], "pagination": pagination}), 200


@attendance_bp.route("/class/<int:class_id>", methods=["GET"])
@jwt_required()
@role_required("teacher", "admin")
@assignment_required("class")
def class_history(class_id):
    return history(AttendanceTypeEnum.class_, class_id)


@attendance_bp.route("/group/<int:group_id>", methods=["GET"])
@jwt_required()
@role_required("teacher", "admin")
@assignment_required("group")
def group_history(group_id):
    return history(AttendanceTypeEnum.group, group_id)


@attendance_bp.route("/child/<int:child_id>", methods=["GET"])
@jwt_required()
def child_history(child_id):
    ensure_child_access(get_or_404(Child, child_id, "Child"))
    entries = engine.get_child_history(
        child_id,
        start=request.args.get("start_date"),
        end=request.args.get("end_date"),
        attendance_type=request.args.get("type"),
    )
    return jsonify(entries), 200


@attendance_bp.route("/<int:attendance_id>", methods=["GET"])
@jwt_required()
def get_attendance(attendance_id):
    event = engine.get_attendance(attendance_id)
    ensure_event_access(event)
    return jsonify(event.to_dict(include_parent=True)), 200


@attendance_bp.route("/<int:attendance_id>", methods=["PUT"])
@jwt_required()
@role_required("teacher", "admin")
def update_attendance(attendance_id):
    ensure_event_access(engine.get_attendance(attendance_id))
    data = json_body()
    event = engine.update_attendance(attendance_id, data.get("records"), notes=data.get("notes"))
    return jsonify(event.to_dict(include_parent=True)), 200
