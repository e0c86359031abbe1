import hashlib
import secrets
from datetime import datetime, timedelta
from werkzeug.security import generate_password_hash, check_password_hash
from fellowship.extensions import db
from .base import SoftDeleteMixin, TimestampMixin, RoleEnum, enum_column


RESET_TOKEN_TTL = timedelta(minutes=10)

teacher_classes = db.Table(
    'teacher_classes',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('class_id', db.Integer, db.ForeignKey('classes.id'), primary_key=True),
)

teacher_groups = db.Table(
    'teacher_groups',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('group_id', db.Integer, db.ForeignKey('groups.id'), primary_key=True),
)

teacher_sessions = db.Table(
    'teacher_sessions',
    db.Column('user_id', db.Integer, db.ForeignKey('users.id'), primary_key=True),
    db.Column('session_id', db.Integer, db.ForeignKey('sessions.id'), primary_key=True),
)


def hash_reset_token(token):
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class User(db.Model, SoftDeleteMixin, TimestampMixin):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    phone_number = db.Column(db.String(30), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(512), nullable=False)
    role = enum_column(RoleEnum, nullable=False, default=RoleEnum.parent, index=True)

    reset_password_token = db.Column(db.String(64), nullable=True, index=True)
    reset_password_expires = db.Column(db.DateTime, nullable=True)

    assigned_classes = db.relationship('Class', secondary=teacher_classes, back_populates='teachers')
    assigned_groups = db.relationship('Group', secondary=teacher_groups, back_populates='teachers')
    assigned_sessions = db.relationship('Session', secondary=teacher_sessions, back_populates='teachers')
    children = db.relationship('Child', back_populates='parent', lazy=True)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def generate_reset_token(self):
        """Store the hash of a fresh reset token and return the raw token for the email link."""
        token = secrets.token_hex(20)
        self.reset_password_token = hash_reset_token(token)
        self.reset_password_expires = datetime.utcnow() + RESET_TOKEN_TTL
        return token

    def clear_reset_token(self):
        self.reset_password_token = None
        self.reset_password_expires = None

    def is_assigned_to(self, kind, target_id):
        collection = {
            "class": self.assigned_classes,
            "group": self.assigned_groups,
            "session": self.assigned_sessions,
        }[kind]
        return any(item.id == target_id for item in collection)

    def summary(self):
        return {"id": self.id, "first_name": self.first_name, "last_name": self.last_name}

    def to_dict(self, include_related=False):
        data = {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "phone_number": self.phone_number,
            "role": self.role.value,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

        if include_related:
            if self.role == RoleEnum.parent:
                data["children"] = [
                    {
                        "id": c.id,
                        "first_name": c.first_name,
                        "last_name": c.last_name,
                        "unique_id": c.unique_id,
                    }
                    for c in self.children if c.is_active
                ]
            else:
                data["assigned_classes"] = [{"id": c.id, "name": c.name.value} for c in self.assigned_classes]
                data["assigned_groups"] = [{"id": g.id, "name": g.name.value} for g in self.assigned_groups]
                data["assigned_sessions"] = [{"id": s.id, "name": s.name.value} for s in self.assigned_sessions]

        return data


class TokenBlocklist(db.Model):
    __tablename__ = 'token_blocklist'

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(36), nullable=False, index=True)
    token_type = db.Column(db.String(10), nullable=False, default="access")
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    user = db.relationship("User", backref="revoked_tokens")
