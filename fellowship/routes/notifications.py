from datetime import datetime
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, current_user
from fellowship.extensions import db
from fellowship.models import Notification, NotificationTypeEnum, User, Child
from fellowship.errors import ValidationError, NotFound
from fellowship.utils.decorators import role_required
from fellowship.utils.lookups import coerce_id, get_or_404, json_body, require_fields, text_field
from fellowship.utils.pagination import get_page_args, paginate
from fellowship.utils.serialization import parse_enum, enum_values

notifications_bp = Blueprint("notifications", __name__)


def own_notification(notification_id):
    notification = Notification.query.filter_by(id=notification_id, recipient_id=current_user.id).first()
    if not notification:
        raise NotFound("Notification", notification_id)
    return notification


def parse_message(data):
    """Validated (type, title, message) of an outgoing notification."""
    require_fields(data, "title", "message")
    notification_type = parse_enum(NotificationTypeEnum, data.get("type") or NotificationTypeEnum.general.value)
    if notification_type is None:
        raise ValidationError(f"type must be one of {enum_values(NotificationTypeEnum)}", field="type")
    return notification_type, text_field(data, "title"), text_field(data, "message")


def active_recipients(ids):
    recipients = User.query.filter(User.id.in_(ids), User.is_active.is_(True)).all()
    found = {u.id for u in recipients}
    missing = [i for i in ids if i not in found]
    if missing:
        raise ValidationError(
            "Unknown recipients",
            errors=[{"field": "recipient_ids", "message": f"User {i} not found"} for i in missing],
        )
    return recipients


@notifications_bp.route("", methods=["GET"])
@jwt_required()
def list_notifications():
    page, limit = get_page_args()
    unread_only = request.args.get("unread_only", "false").lower() == "true"

    query = Notification.query.filter_by(recipient_id=current_user.id)
    if unread_only:
        query = query.filter_by(is_read=False)

    notifications, pagination = paginate(
        query.order_by(Notification.created_at.desc(), Notification.id.desc()), page, limit
    )
    unread_count = Notification.query.filter_by(recipient_id=current_user.id, is_read=False).count()

    return jsonify({
        "notifications": [n.to_dict() for n in notifications],
        "unreadCount": unread_count,
        "pagination": pagination,
    }), 200


@notifications_bp.route("/read-all", methods=["PUT"])
@jwt_required()
def mark_all_read():
    updated = (
        Notification.query
        .filter_by(recipient_id=current_user.id, is_read=False)
        .update({"is_read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
    )
    db.session.commit()
    return jsonify({"message": "All notifications marked as read", "updated": updated}), 200


@notifications_bp.route("/<int:notification_id>/read", methods=["PUT"])
@jwt_required()
def mark_read(notification_id):
    notification = own_notification(notification_id)
    notification.mark_read()
    db.session.commit()
    return jsonify(notification.to_dict()), 200


@notifications_bp.route("/<int:notification_id>", methods=["DELETE"])
@jwt_required()
def delete_notification(notification_id):
    db.session.delete(own_notification(notification_id))
    db.session.commit()
    return jsonify({"message": "Notification deleted"}), 200


@notifications_bp.route("", methods=["POST"])
@jwt_required()
@role_required("teacher", "admin")
def send_notification():
    data = json_body()
    require_fields(data, "recipient_id")
    notification_type, title, message = parse_message(data)
    recipient = active_recipients([coerce_id(data["recipient_id"], "recipient_id")])[0]

    related_child_id = None
    if data.get("related_child_id") not in (None, ""):
        related_child_id = get_or_404(Child, coerce_id(data["related_child_id"], "related_child_id"), "Child").id

    notification = Notification(
        recipient_id=recipient.id,
        type=notification_type,
        title=title,
        message=message,
        related_child_id=related_child_id,
    )
    db.session.add(notification)
    db.session.commit()
    return jsonify(notification.to_dict()), 201


@notifications_bp.route("/bulk", methods=["POST"])
@jwt_required()
@role_required("teacher", "admin")
def send_bulk_notifications():
    data = json_body()
    recipient_ids = data.get("recipient_ids")
    if not isinstance(recipient_ids, list) or not recipient_ids:
        raise ValidationError("recipient_ids must be a non-empty list", field="recipient_ids")
    notification_type, title, message = parse_message(data)

    # duplicates collapse to one message per user
    ids = list(dict.fromkeys(coerce_id(i, "recipient_ids") for i in recipient_ids))
    recipients = active_recipients(ids)

    notifications = [
        Notification(recipient_id=r.id, type=notification_type, title=title, message=message)
        for r in recipients
    ]
    db.session.add_all(notifications)
    db.session.commit()

    return jsonify({"message": f"{len(notifications)} notifications sent", "count": len(notifications)}), 201
