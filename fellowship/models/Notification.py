from datetime import datetime
from fellowship.extensions import db
from fellowship.utils.serialization import to_dict
from .base import NotificationTypeEnum, enum_column


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    type = enum_column(NotificationTypeEnum, nullable=False, default=NotificationTypeEnum.general)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    related_child_id = db.Column(db.Integer, db.ForeignKey('children.id'), nullable=True)
    related_attendance_id = db.Column(db.Integer, db.ForeignKey('attendance.id'), nullable=True)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    # set together with is_read
    read_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    recipient = db.relationship('User', backref=db.backref('notifications', lazy='dynamic'))
    related_child = db.relationship('Child')

    __table_args__ = (
        db.Index('ix_notifications_recipient_read', 'recipient_id', 'is_read'),
    )

    def mark_read(self):
        if not self.is_read:
            self.is_read = True
            self.read_at = datetime.utcnow()

    def to_dict(self):
        data = to_dict(self)
        data["related_child"] = self.related_child.summary() if self.related_child else None
        return data
