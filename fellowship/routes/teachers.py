from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user
from sqlalchemy import or_
from fellowship.extensions import db
from fellowship.models import User, RoleEnum
from fellowship.errors import ValidationError, NotFound
from fellowship.utils.audit import log_event, record_admin_action
from fellowship.utils.decorators import role_required
from fellowship.utils.lookups import json_body, require_fields, text_field
from fellowship.utils.pagination import apply_search
from fellowship.routes.auth import normalize_email, validate_password

teachers_bp = Blueprint("teachers", __name__)


def get_teacher_or_404(teacher_id):
    teacher = User.query.filter_by(id=teacher_id, role=RoleEnum.teacher).first()
    if not teacher:
        raise NotFound("Teacher", teacher_id)
    return teacher


@teachers_bp.route("", methods=["GET"])
@jwt_required()
@role_required("admin")
def list_teachers():
    query = User.query.filter_by(role=RoleEnum.teacher, is_active=True)
    query = apply_search(query, User, request.args.get("search", type=str), ["first_name", "last_name", "email"])
    teachers = query.order_by(User.first_name, User.last_name).all()
    return jsonify([t.to_dict(include_related=True) for t in teachers]), 200


@teachers_bp.route("/parents", methods=["GET"])
@jwt_required()
@role_required("teacher", "admin")
def list_parents():
    query = User.query.filter_by(role=RoleEnum.parent, is_active=True)
    query = apply_search(
        query, User, request.args.get("search", type=str),
        ["first_name", "last_name", "email", "phone_number"],
    )
    parents = query.order_by(User.first_name, User.last_name).all()
    return jsonify([p.to_dict(include_related=True) for p in parents]), 200


@teachers_bp.route("/<int:teacher_id>", methods=["GET"])
@jwt_required()
def get_teacher(teacher_id):
    return jsonify(get_teacher_or_404(teacher_id).to_dict(include_related=True)), 200


@teachers_bp.route("", methods=["POST"])
@jwt_required()
@role_required("admin")
def create_teacher():
    data = json_body()
    require_fields(data, "first_name", "last_name", "email", "phone_number", "password")
    email = normalize_email(data["email"])
    phone_number = str(data["phone_number"]).strip()
    validate_password(data["password"])

    if User.query.filter(or_(User.email == email, User.phone_number == phone_number)).first():
        raise ValidationError("User already exists with this email or phone number")

    teacher = User(
        first_name=text_field(data, "first_name"),
        last_name=text_field(data, "last_name"),
        email=email,
        phone_number=phone_number,
        role=RoleEnum.teacher,
    )
    teacher.set_password(data["password"])
    db.session.add(teacher)
    db.session.commit()

    log_event("TEACHER_CREATED", user_id=current_user.id, ip=request.remote_addr, description=f"Created teacher {email}")
    return jsonify(teacher.to_dict()), 201


@teachers_bp.route("/<int:teacher_id>", methods=["PUT"])
@jwt_required()
@role_required("admin")
def update_teacher(teacher_id):
    teacher = get_teacher_or_404(teacher_id)
    data = json_body()

    if "phone_number" in data and data["phone_number"]:
        phone_number = str(data["phone_number"]).strip()
        if User.query.filter(User.phone_number == phone_number, User.id != teacher.id).first():
            raise ValidationError("Phone number already in use", field="phone_number")
        teacher.phone_number = phone_number
    if data.get("first_name"):
        teacher.first_name = text_field(data, "first_name")
    if data.get("last_name"):
        teacher.last_name = text_field(data, "last_name")

    db.session.commit()
    return jsonify(teacher.to_dict(include_related=True)), 200


@teachers_bp.route("/<int:teacher_id>", methods=["DELETE"])
@jwt_required()
@role_required("admin")
def deactivate_teacher(teacher_id):
    teacher = get_teacher_or_404(teacher_id)
    teacher.soft_delete()
    record_admin_action(current_user.id, f"Deactivated teacher {teacher.id}", request.remote_addr)
    db.session.commit()

    log_event("TEACHER_DEACTIVATED", user_id=current_user.id, ip=request.remote_addr, description=f"Teacher {teacher.id}")
    return jsonify({"message": "Teacher deactivated successfully"}), 200
