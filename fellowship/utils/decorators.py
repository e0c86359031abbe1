from functools import wraps
from flask import request
from flask_jwt_extended import current_user, get_current_user
from fellowship.errors import Forbidden, Unauthorized, ValidationError
from fellowship.models import RoleEnum


def role_required(*allowed_roles):
    """
    Restrict access to users with specific roles.
    Usage: @role_required("admin", "teacher")
    Must sit below @jwt_required() so the user is already loaded.
    """
    allowed_roles = set(role.lower() for role in allowed_roles)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = get_current_user()
            if user is None:
                raise Unauthorized("Missing or invalid token")

            if user.role.value not in allowed_roles:
                raise Forbidden(f"Role '{user.role.value}' is not authorized to access this route")

            return fn(*args, **kwargs)
        return wrapper
    return decorator


def _requested_target_id(kind, kwargs):
    raw = kwargs.get(f"{kind}_id")
    if raw is None and request.is_json:
        raw = (request.get_json(silent=True) or {}).get(f"{kind}_id")
    if raw is None:
        raw = request.args.get(f"{kind}_id")
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{kind}_id must be an integer", field=f"{kind}_id")


def assignment_required(kind):
    """
    Teachers may only act on the classes/groups/sessions they are assigned to.
    Admins pass through. The target id is read from the URL, the JSON body or the query string.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_user.role == RoleEnum.admin:
                return fn(*args, **kwargs)

            target_id = _requested_target_id(kind, kwargs)
            if target_id is None:
                return fn(*args, **kwargs)

            if current_user.role != RoleEnum.teacher or not current_user.is_assigned_to(kind, target_id):
                raise Forbidden(f"You are not assigned to this {kind}")

            return fn(*args, **kwargs)
        return wrapper
    return decorator


def ensure_child_access(child):
    """Parents only see and edit their own children; staff see everyone."""
    if current_user.role == RoleEnum.parent and child.parent_id != current_user.id:
        raise Forbidden("Not authorized to access this child")
