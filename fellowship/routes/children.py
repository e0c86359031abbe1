from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import jwt_required, current_user
from fellowship.extensions import db, limiter
from fellowship.models import Child, Class, Group, User, RoleEnum, GenderEnum
from fellowship.errors import ValidationError, NotFound
from fellowship.utils.audit import log_event, record_admin_action
from fellowship.utils.dates import parse_date
from fellowship.utils.decorators import role_required, ensure_child_access
from fellowship.utils.lookups import coerce_id, get_or_404, json_body, require_fields, text_field
from fellowship.utils.pagination import apply_search, get_page_args, paginate
from fellowship.utils.serialization import parse_enum, enum_values
from fellowship.utils.uploads import allowed_file, save_file

children_bp = Blueprint("children", __name__)

TEXT_FIELDS = ("allergies", "medical_notes")
EMERGENCY_FIELDS = {
    "name": "emergency_contact_name",
    "phone": "emergency_contact_phone",
    "relationship": "emergency_contact_relationship",
}


def active_class(class_id, field="class_id"):
    return get_or_404(Class, coerce_id(class_id, field), "Class", active_only=True)


def active_groups(group_ids):
    if not isinstance(group_ids, list):
        raise ValidationError("group_ids must be a list", field="group_ids")
    return [get_or_404(Group, coerce_id(g, "group_ids"), "Group", active_only=True) for g in group_ids]


def apply_child_fields(child, data):
    """Copy editable profile fields present in ``data`` onto ``child``."""
    for field in ("first_name", "last_name"):
        if field in data:
            setattr(child, field, text_field(data, field))

    if "date_of_birth" in data:
        child.date_of_birth = parse_date(data["date_of_birth"], "date_of_birth")

    if "gender" in data:
        gender = parse_enum(GenderEnum, data["gender"])
        if gender is None:
            raise ValidationError(f"gender must be one of {enum_values(GenderEnum)}", field="gender")
        child.gender = gender

    if "class_id" in data:
        child.class_ = active_class(data["class_id"])

    if "group_ids" in data:
        child.groups = active_groups(data["group_ids"] or [])

    for field in TEXT_FIELDS:
        if field in data:
            child_value = data[field] or ""
            if not isinstance(child_value, str):
                raise ValidationError(f"{field} must be a string", field=field)
            setattr(child, field, child_value)

    contact = data.get("emergency_contact")
    if contact is not None:
        if not isinstance(contact, dict):
            raise ValidationError("emergency_contact must be an object", field="emergency_contact")
        for key, column in EMERGENCY_FIELDS.items():
            if key in contact:
                setattr(child, column, contact[key])


def child_for_user(child_id):
    child = get_or_404(Child, child_id, "Child")
    ensure_child_access(child)
    return child


@children_bp.route("", methods=["POST"])
@jwt_required()
@limiter.limit("30 per minute", override_defaults=False)
def register_child():
    data = json_body()
    require_fields(data, "first_name", "last_name", "date_of_birth", "gender", "class_id")

    if current_user.role == RoleEnum.parent:
        parent = current_user
    else:
        if data.get("parent_id") in (None, ""):
            raise ValidationError("Please select a parent for the child", field="parent_id")
        parent = User.query.filter_by(
            id=coerce_id(data["parent_id"], "parent_id"), role=RoleEnum.parent, is_active=True
        ).first()
        if not parent:
            raise NotFound("Parent", data["parent_id"])

    # bump the code counter before the child joins any relationship
    child = Child(
        parent_id=parent.id,
        unique_id=Child.generate_unique_id(current_app.config["CHILD_CODE_PREFIX"]),
    )
    with db.session.no_autoflush:
        apply_child_fields(child, data)

    db.session.add(child)
    db.session.commit()

    current_app.logger.info("Child %s registered as %s by user %s", child.id, child.unique_id, current_user.id)
    return jsonify(child.to_dict(include_related=True)), 201


@children_bp.route("", methods=["GET"])
@jwt_required()
def list_children():
    page, limit = get_page_args()
    query = Child.query.filter(Child.is_active.is_(True))

    if current_user.role == RoleEnum.parent:
        query = query.filter(Child.parent_id == current_user.id)

    class_id = request.args.get("class_id", type=int)
    if class_id:
        query = query.filter(Child.class_id == class_id)
    group_id = request.args.get("group_id", type=int)
    if group_id:
        query = query.filter(Child.groups.any(Group.id == group_id))

    query = apply_search(query, Child, request.args.get("search", type=str), ["first_name", "last_name", "unique_id"])
    children, pagination = paginate(query.order_by(Child.created_at.desc(), Child.id.desc()), page, limit)

    return jsonify({
        "children": [c.to_dict(include_related=True) for c in children],
        "pagination": pagination,
    }), 200


@children_bp.route("/search", methods=["GET"])
@jwt_required()
def search_child():
    unique_id = request.args.get("unique_id", type=str)
    phone = request.args.get("phone", type=str)

    if unique_id:
        child = Child.query.filter_by(unique_id=unique_id.strip().upper(), is_active=True).first()
        if not child:
            raise NotFound("Child")
        ensure_child_access(child)
        return jsonify(child.to_dict(include_related=True)), 200

    if phone:
        parent = User.query.filter_by(phone_number=phone.strip(), role=RoleEnum.parent).first()
        children = []
        if parent and (current_user.role != RoleEnum.parent or parent.id == current_user.id):
            children = Child.query.filter_by(parent_id=parent.id, is_active=True).order_by(Child.first_name).all()
        if not children:
            raise NotFound("Child")
        return jsonify([c.to_dict(include_related=True) for c in children]), 200

    raise ValidationError("Provide unique_id or phone to search")


@children_bp.route("/class/<int:class_id>", methods=["GET"])
@jwt_required()
@role_required("teacher", "admin")
def children_by_class(class_id):
    get_or_404(Class, class_id, "Class")
    children = (
        Child.query.filter_by(class_id=class_id, is_active=True)
        .order_by(Child.first_name, Child.last_name)
        .all()
    )
    return jsonify([c.to_dict(include_related=True) for c in children]), 200


@children_bp.route("/group/<int:group_id>", methods=["GET"])
@jwt_required()
@role_required("teacher", "admin")
def children_by_group(group_id):
    get_or_404(Group, group_id, "Group")
    children = (
        Child.query.filter(Child.is_active.is_(True), Child.groups.any(Group.id == group_id))
        .order_by(Child.first_name, Child.last_name)
        .all()
    )
    return jsonify([c.to_dict(include_related=True) for c in children]), 200


@children_bp.route("/<int:child_id>", methods=["GET"])
@jwt_required()
def get_child(child_id):
    return jsonify(child_for_user(child_id).to_dict(include_related=True)), 200


@children_bp.route("/<int:child_id>", methods=["PUT"])
@jwt_required()
def update_child(child_id):
    child = child_for_user(child_id)
    apply_child_fields(child, json_body())
    db.session.commit()
    return jsonify(child.to_dict(include_related=True)), 200


@children_bp.route("/<int:child_id>", methods=["DELETE"])
@jwt_required()
@role_required("admin")
def delete_child(child_id):
    child = get_or_404(Child, child_id, "Child")
    child.soft_delete()
    record_admin_action(current_user.id, f"Deactivated child {child.id} ({child.unique_id})", request.remote_addr)
    db.session.commit()

    log_event("CHILD_DEACTIVATED", user_id=current_user.id, ip=request.remote_addr, description=child.unique_id)
    return jsonify({"message": "Child deactivated successfully"}), 200


@children_bp.route("/<int:child_id>/photo", methods=["POST"])
@jwt_required()
def upload_photo(child_id):
    child = child_for_user(child_id)

    file = request.files.get("photo")
    if not file or not file.filename:
        raise ValidationError("Please upload a photo", field="photo")
    if not allowed_file(file):
        raise ValidationError("Only image files are allowed", field="photo")

    child.photo = save_file(file, "children", child.photo)
    db.session.commit()

    return jsonify({"photo": child.photo, "message": "Photo uploaded successfully"}), 200


@children_bp.route("/<int:child_id>/transfer-class", methods=["PUT"])
@jwt_required()
@role_required("teacher", "admin")
def transfer_class(child_id):
    data = json_body()
    require_fields(data, "new_class_id")
    child = get_or_404(Child, child_id, "Child", active_only=True)

    previous_class_id = child.class_id
    child.class_ = active_class(data["new_class_id"], "new_class_id")
    db.session.commit()

    current_app.logger.info("Child %s moved from class %s to %s", child.id, previous_class_id, child.class_id)
    return jsonify({
        "message": "Child transferred to new class successfully",
        "child": child.to_dict(include_related=True),
        "previous_class_id": previous_class_id,
    }), 200


@children_bp.route("/<int:child_id>/join-group", methods=["PUT"])
@jwt_required()
@role_required("teacher", "admin")
def join_group(child_id):
    data = json_body()
    require_fields(data, "group_id")
    child = get_or_404(Child, child_id, "Child", active_only=True)
    group = get_or_404(Group, coerce_id(data["group_id"], "group_id"), "Group", active_only=True)

    if group not in child.groups:
        child.groups.append(group)
        db.session.commit()

    return jsonify({
        "message": "Child added to group successfully",
        "child": child.to_dict(include_related=True),
    }), 200


@children_bp.route("/<int:child_id>/leave-group", methods=["PUT"])
@jwt_required()
@role_required("teacher", "admin")
def leave_group(child_id):
    data = json_body()
    require_fields(data, "group_id")
    child = get_or_404(Child, child_id, "Child", active_only=True)
    group_id = coerce_id(data["group_id"], "group_id")

    remaining = [g for g in child.groups if g.id != group_id]
    if len(remaining) != len(child.groups):
        child.groups = remaining
        db.session.commit()

    return jsonify({
        "message": "Child removed from group successfully",
        "child": child.to_dict(include_related=True),
    }), 200
