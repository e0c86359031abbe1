from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from flask import current_app
from fellowship.errors import ValidationError


def reference_timezone():
    name = current_app.config.get("ATTENDANCE_TIMEZONE", "UTC")
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        current_app.logger.warning("Unknown ATTENDANCE_TIMEZONE %r, falling back to UTC", name)
        return ZoneInfo("UTC")


def to_reference_time(value):
    """Naive datetime in the reference timezone; naive input is assumed to already be local."""
    if value.tzinfo is not None:
        value = value.astimezone(reference_timezone()).replace(tzinfo=None)
    return value


def parse_datetime(value, field="date"):
    if value is None or value == "":
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, datetime):
        return to_reference_time(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO 8601 date", field=field)

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid {field}, use YYYY-MM-DD or an ISO 8601 timestamp", field=field)
    return to_reference_time(parsed)


def parse_date(value, field="date"):
    return parse_datetime(value, field).date()


def day_bounds(moment):
    start = datetime.combine(moment.date(), time.min)
    return start, start + timedelta(days=1)


def is_date_only(value):
    if isinstance(value, str):
        return len(value.strip()) == 10
    return isinstance(value, date) and not isinstance(value, datetime)


def resolve_date_range(start=None, end=None):
    """
    Turn optional start/end inputs into ``(start_inclusive, end_exclusive)`` datetimes.

    A date-only end covers its whole day, so ``end_date=2024-03-01`` still
    matches an event recorded at 2024-03-01T18:00.
    """
    start_at = parse_datetime(start, "start_date") if start not in (None, "") else None
    end_at = None
    if end not in (None, ""):
        end_at = parse_datetime(end, "end_date")
        if is_date_only(end):
            end_at = end_at + timedelta(days=1)
        else:
            end_at = end_at + timedelta(microseconds=1)

    if start_at and end_at and start_at >= end_at:
        raise ValidationError("start_date must not be after end_date", field="start_date")
    return start_at, end_at
