import re
from datetime import datetime
from flask import Blueprint, request, jsonify, current_app
from flask_jwt_extended import create_access_token, jwt_required, get_jwt, current_user
from sqlalchemy import or_
from fellowship.models import User, RoleEnum, TokenBlocklist
from fellowship.models.User import hash_reset_token
from fellowship.extensions import db, limiter
from fellowship.errors import ValidationError, NotFound, Forbidden, ServerError
from fellowship.utils.audit import log_event
from fellowship.utils.lookups import json_body, require_fields, text_field
from fellowship.utils.mailer import send_email, password_reset_html

auth_bp = Blueprint('auth', __name__)

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 6
SELF_REGISTER_ROLES = {RoleEnum.parent, RoleEnum.teacher}


def issue_token(user):
    return create_access_token(identity=str(user.id), additional_claims={"role": user.role.value})


def validate_password(password, field="password"):
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field=field)


def normalize_email(email):
    if email is not None and not isinstance(email, str):
        raise ValidationError("Please provide a valid email", field="email")
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError("Please provide a valid email", field="email")
    return email


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per minute", override_defaults=False)
def register():
    data = json_body()
    require_fields(data, "first_name", "last_name", "email", "phone_number", "password")

    email = normalize_email(data["email"])
    phone_number = str(data["phone_number"]).strip()
    validate_password(data["password"])

    try:
        role = RoleEnum(data.get("role") or RoleEnum.parent.value)
    except ValueError:
        raise ValidationError("Invalid role", field="role")
    if role not in SELF_REGISTER_ROLES:
        raise Forbidden("Admin accounts cannot be self-registered")

    exists = User.query.filter(or_(User.email == email, User.phone_number == phone_number)).first()
    if exists:
        raise ValidationError("User already exists with this email or phone number")

    user = User(
        first_name=text_field(data, "first_name"),
        last_name=text_field(data, "last_name"),
        email=email,
        phone_number=phone_number,
        role=role,
    )
    user.set_password(data["password"])

    db.session.add(user)
    db.session.commit()

    log_event("REGISTER", user_id=user.id, ip=request.remote_addr, description=f"{email} registered as {role.value}")
    return jsonify({"user": user.to_dict(), "token": issue_token(user)}), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("5 per minute", override_defaults=False)
def login():
    data = json_body()
    email = (text_field(data, "email", required=False) or '').lower()
    password = data.get('password') or ''
    ip = request.remote_addr

    if not email or not password:
        raise ValidationError("Email and password are required")

    user = User.query.filter_by(email=email).first()

    if user and not user.is_active:
        log_event("LOGIN_BLOCKED", user_id=user.id, ip=ip, description=f"Deactivated account {email}", level="WARNING")
        return jsonify({"error": "Your account has been deactivated"}), 401

    if user and user.check_password(password):
        log_event("LOGIN_SUCCESS", user_id=user.id, ip=ip, description=f"{email} logged in")
        return jsonify({"user": user.to_dict(), "token": issue_token(user)}), 200

    log_event("LOGIN_FAILED", ip=ip, description=f"Failed login attempt for {email}", level="WARNING")
    return jsonify({"error": "Invalid email or password"}), 401


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_current_user():
    return jsonify(current_user.to_dict(include_related=True)), 200


@auth_bp.route('/profile', methods=['PUT'])
@jwt_required()
def update_profile():
    data = json_body()
    user = current_user

    if data.get("phone_number"):
        phone_number = str(data["phone_number"]).strip()
        taken = User.query.filter(User.phone_number == phone_number, User.id != user.id).first()
        if taken:
            raise ValidationError("Phone number already in use", field="phone_number")
        user.phone_number = phone_number
    if data.get("first_name"):
        user.first_name = text_field(data, "first_name")
    if data.get("last_name"):
        user.last_name = text_field(data, "last_name")

    db.session.commit()
    return jsonify(user.to_dict()), 200


@auth_bp.route('/password', methods=['PUT'])
@jwt_required()
def change_password():
    data = json_body()
    require_fields(data, "current_password", "new_password")
    user = current_user

    if not user.check_password(data["current_password"]):
        raise ValidationError("Current password is incorrect", field="current_password")
    validate_password(data["new_password"], field="new_password")

    user.set_password(data["new_password"])
    db.session.commit()

    log_event("PASSWORD_CHANGED", user_id=user.id, ip=request.remote_addr)
    return jsonify({"message": "Password updated successfully"}), 200


@auth_bp.route('/forgot-password', methods=['POST'])
@limiter.limit("3 per minute", override_defaults=False)
def forgot_password():
    data = json_body()
    require_fields(data, "email")
    email = text_field(data, "email").lower()

    user = User.query.filter_by(email=email, is_active=True).first()
    if not user:
        raise NotFound("User")

    token = user.generate_reset_token()
    db.session.commit()

    reset_url = f"{current_app.config['FRONTEND_URL'].rstrip('/')}/reset-password/{token}"
    sent = send_email(user.email, "JCKC - Password Reset Request", password_reset_html(user.first_name, reset_url))
    if not sent:
        user.clear_reset_token()
        db.session.commit()
        raise ServerError("Email could not be sent. Please try again later.")

    log_event("PASSWORD_RESET_REQUESTED", user_id=user.id, ip=request.remote_addr)
    return jsonify({"message": "Password reset email sent successfully. Please check your inbox."}), 200


@auth_bp.route('/reset-password/<token>', methods=['PUT'])
@limiter.limit("5 per minute", override_defaults=False)
def reset_password(token):
    data = json_body()
    validate_password(data.get("password"))

    user = User.query.filter(
        User.reset_password_token == hash_reset_token(token),
        User.reset_password_expires > datetime.utcnow(),
    ).first()
    if not user:
        raise ValidationError("Invalid or expired reset token")

    user.set_password(data["password"])
    user.clear_reset_token()
    db.session.commit()

    log_event("PASSWORD_RESET", user_id=user.id, ip=request.remote_addr)
    return jsonify({"message": "Password reset successful. You can now login with your new password."}), 200


@auth_bp.route("/logout", methods=["POST"])
@jwt_required()
def logout():
    claims = get_jwt()
    token_block = TokenBlocklist(
        jti=claims["jti"],
        token_type=claims.get("type", "access"),
        user_id=current_user.id,
        expires_at=datetime.utcfromtimestamp(claims["exp"]),
    )
    db.session.add(token_block)
    db.session.commit()

    log_event("LOGOUT", user_id=current_user.id, ip=request.remote_addr)
    return jsonify({"message": "Successfully logged out"}), 200
