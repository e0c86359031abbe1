from fellowship.extensions import db
from fellowship.errors import NotFound, ValidationError


def coerce_id(value, field):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", field=field)


def get_or_404(model, pk, resource=None, active_only=False):
    """Load ``model`` by primary key or raise NotFound; soft-deleted rows count as missing with active_only."""
    instance = db.session.get(model, pk) if pk is not None else None
    if instance is None or (active_only and not getattr(instance, "is_active", True)):
        raise NotFound(resource or model.__name__, pk)
    return instance


def json_body():
    """The request's JSON object, or an empty dict when no body was sent."""
    from flask import request

    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_fields(data, *fields):
    missing = [f for f in fields if data.get(f) in (None, "") or (isinstance(data.get(f), str) and not data.get(f).strip())]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            errors=[{"field": f, "message": f"{f} is required"} for f in missing],
        )


def text_field(data, field, required=True):
    """``data[field]`` stripped; anything but a string is a ValidationError."""
    value = data.get(field)
    if value is None:
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    value = value.strip()
    if required and not value:
        raise ValidationError(f"{field} is required", field=field)
    return value
