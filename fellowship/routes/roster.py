"""
Classes, groups and sessions share one set of CRUD and teacher-assignment routes.

Each roster has a closed set of names; creation only accepts a name from that
set that is not already taken, and ``/init`` creates whichever defaults are missing.
"""
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user
from fellowship.extensions import db
from fellowship.models import (
    Class, Group, Session, Child, User, RoleEnum,
    DEFAULT_CLASSES, DEFAULT_GROUPS, DEFAULT_SESSIONS, ensure_defaults,
)
from fellowship.errors import ValidationError
from fellowship.utils.audit import log_event, record_admin_action
from fellowship.utils.decorators import role_required
from fellowship.utils.lookups import coerce_id, get_or_404, json_body, require_fields
from fellowship.utils.serialization import parse_enum, enum_values


def parse_age(value, field):
    if value in (None, ""):
        return None
    age = coerce_id(value, field)
    if age < 0:
        raise ValidationError(f"{field} must not be negative", field=field)
    return age


def apply_age_range(roster, age_range):
    if not isinstance(age_range, dict):
        raise ValidationError("age_range must be an object", field="age_range")
    if "min" in age_range:
        roster.age_min = parse_age(age_range["min"], "age_range.min")
    if "max" in age_range:
        roster.age_max = parse_age(age_range["max"], "age_range.max")
    if roster.age_min is not None and roster.age_max is not None and roster.age_min > roster.age_max:
        raise ValidationError("age_range.min must not exceed age_range.max", field="age_range")


def teacher_from_body(data):
    require_fields(data, "teacher_id")
    teacher = db.session.get(User, coerce_id(data["teacher_id"], "teacher_id"))
    if not teacher or teacher.role != RoleEnum.teacher or not teacher.is_active:
        raise ValidationError("Invalid teacher", field="teacher_id")
    return teacher


def make_roster_blueprint(name, model, label, defaults):
    bp = Blueprint(name, __name__)

    def load(roster_id, active_only=False):
        return get_or_404(model, roster_id, label, active_only=active_only)

    @bp.route("", methods=["GET"])
    @jwt_required()
    def list_rosters():
        rosters = model.query.filter_by(is_active=True).order_by(model.id).all()
        return jsonify([r.to_dict() for r in rosters]), 200

    @bp.route("/<int:roster_id>", methods=["GET"])
    @jwt_required()
    def get_roster(roster_id):
        return jsonify(load(roster_id).to_dict()), 200

    @bp.route("", methods=["POST"])
    @jwt_required()
    @role_required("admin")
    def create_roster():
        data = json_body()
        require_fields(data, "name")
        roster_name = parse_enum(model.name_enum, data["name"])
        if roster_name is None:
            raise ValidationError(f"name must be one of {enum_values(model.name_enum)}", field="name")
        if model.query.filter_by(name=roster_name).first():
            raise ValidationError(f"{label} already exists", field="name")

        roster = model(name=roster_name, description=data.get("description") or "")
        if model is Class and data.get("age_range") is not None:
            apply_age_range(roster, data["age_range"])

        db.session.add(roster)
        db.session.commit()
        return jsonify(roster.to_dict()), 201

    @bp.route("/<int:roster_id>", methods=["PUT"])
    @jwt_required()
    @role_required("admin")
    def update_roster(roster_id):
        roster = load(roster_id)
        data = json_body()

        if "description" in data:
            roster.description = data["description"] or ""
        if model is Class and data.get("age_range") is not None:
            apply_age_range(roster, data["age_range"])
        if data.get("is_active") is True and not roster.is_active:
            roster.restore()

        db.session.commit()
        return jsonify(roster.to_dict()), 200

    @bp.route("/<int:roster_id>", methods=["DELETE"])
    @jwt_required()
    @role_required("admin")
    def delete_roster(roster_id):
        roster = load(roster_id)
        roster.soft_delete()
        record_admin_action(current_user.id, f"Deactivated {label.lower()} {roster.id}", request.remote_addr)
        db.session.commit()

        log_event(f"{label.upper()}_DEACTIVATED", user_id=current_user.id, ip=request.remote_addr,
                  description=roster.name.value)
        return jsonify({"message": f"{label} deactivated successfully"}), 200

    @bp.route("/<int:roster_id>/assign-teacher", methods=["POST"])
    @jwt_required()
    @role_required("admin")
    def assign_teacher(roster_id):
        roster = load(roster_id, active_only=True)
        teacher = teacher_from_body(json_body())
        if teacher not in roster.teachers:
            roster.teachers.append(teacher)
            db.session.commit()
        return jsonify(roster.to_dict()), 200

    @bp.route("/<int:roster_id>/remove-teacher", methods=["POST"])
    @jwt_required()
    @role_required("admin")
    def remove_teacher(roster_id):
        roster = load(roster_id)
        data = json_body()
        require_fields(data, "teacher_id")
        teacher_id = coerce_id(data["teacher_id"], "teacher_id")

        remaining = [t for t in roster.teachers if t.id != teacher_id]
        if len(remaining) != len(roster.teachers):
            roster.teachers = remaining
            db.session.commit()
        return jsonify(roster.to_dict()), 200

    @bp.route("/init", methods=["POST"])
    @jwt_required()
    @role_required("admin")
    def init_defaults():
        created = ensure_defaults(model, defaults)
        db.session.commit()
        return jsonify({
            "message": f"{name.capitalize()} initialized",
            "created": len(created),
            name: [r.to_dict() for r in created],
        }), 201

    return bp


classes_bp = make_roster_blueprint("classes", Class, "Class", DEFAULT_CLASSES)
groups_bp = make_roster_blueprint("groups", Group, "Group", DEFAULT_GROUPS)
sessions_bp = make_roster_blueprint("sessions", Session, "Session", DEFAULT_SESSIONS)


@groups_bp.route("/<int:roster_id>/add-child", methods=["POST"])
@jwt_required()
@role_required("teacher", "admin")
def add_child_to_group(roster_id):
    group = get_or_404(Group, roster_id, "Group", active_only=True)
    data = json_body()
    require_fields(data, "child_id")
    child = get_or_404(Child, coerce_id(data["child_id"], "child_id"), "Child", active_only=True)

    if group not in child.groups:
        child.groups.append(group)
        db.session.commit()
    return jsonify({"message": "Child added to group", "child": child.to_dict(include_related=True)}), 200


@groups_bp.route("/<int:roster_id>/remove-child", methods=["POST"])
@jwt_required()
@role_required("teacher", "admin")
def remove_child_from_group(roster_id):
    get_or_404(Group, roster_id, "Group")
    data = json_body()
    require_fields(data, "child_id")
    child = get_or_404(Child, coerce_id(data["child_id"], "child_id"), "Child")

    remaining = [g for g in child.groups if g.id != roster_id]
    if len(remaining) != len(child.groups):
        child.groups = remaining
        db.session.commit()
    return jsonify({"message": "Child removed from group", "child": child.to_dict(include_related=True)}), 200
