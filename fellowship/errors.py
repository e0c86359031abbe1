from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Base error rendered as ``{"error": message, ...payload}`` with ``status_code``."""
    status_code = 500

    def __init__(self, message, payload=None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_dict(self):
        data = {"error": self.message}
        data.update(self.payload)
        return data


class ValidationError(ApiError):
    status_code = 400

    def __init__(self, message, field=None, errors=None):
        if errors is None and field:
            errors = [{"field": field, "message": message}]
        super().__init__(message, {"errors": errors} if errors else None)
        self.errors = errors or []


class DuplicateAttendance(ApiError):
    status_code = 400

    def __init__(self, attendance_type, attendance_id):
        super().__init__(
            f"Attendance already taken for this {attendance_type} today",
            {"attendanceId": attendance_id},
        )
        self.attendance_id = attendance_id


class NotFound(ApiError):
    status_code = 404

    def __init__(self, resource="Resource", resource_id=None):
        message = f"{resource} not found"
        super().__init__(message, {"id": resource_id} if resource_id is not None else None)


class Unauthorized(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class ServerError(ApiError):
    status_code = 500

    def __init__(self, message="Server error", detail=None):
        super().__init__(message, {"detail": detail} if detail else None)


def register_error_handlers(app):

    @app.errorhandler(ApiError)
    def handle_api_error(err):
        from fellowship.extensions import db

        # drop half-applied changes from the failed request
        db.session.rollback()
        if err.status_code >= 500:
            app.logger.error("%s: %s", err.__class__.__name__, err.to_dict())
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(err):
        from fellowship.extensions import db

        db.session.rollback()
        app.logger.exception("Unhandled database error")
        return jsonify(ServerError(detail=str(err)).to_dict()), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(err):
        return jsonify({"error": err.description or err.name}), err.code
