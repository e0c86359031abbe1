from enum import Enum
from datetime import datetime, date
from sqlalchemy.inspection import inspect

HIDDEN_COLUMNS = {"password_hash", "reset_password_token", "reset_password_expires", "deactivated_at"}


def to_dict(model_instance, include_hidden=False, exclude=()):
    """Column-only dict of a model instance with enums and dates made JSON friendly."""
    output = {}
    mapper = inspect(model_instance.__class__)

    for column in mapper.columns:
        key = column.key
        if key in exclude:
            continue
        if not include_hidden and key in HIDDEN_COLUMNS:
            continue

        value = getattr(model_instance, key)
        if isinstance(value, Enum):
            output[key] = value.value
        elif isinstance(value, (datetime, date)):
            output[key] = value.isoformat()
        else:
            output[key] = value

    return output


def parse_enum(enum_class, value):
    """Accept either the stored value ("Kingdom Choir") or the member name ("kingdom_choir")."""
    if isinstance(value, enum_class):
        return value
    if value is None:
        return None
    try:
        return enum_class(value)
    except ValueError:
        try:
            return enum_class[value]
        except KeyError:
            return None


def enum_values(enum_class):
    return [member.value for member in enum_class]
