from datetime import datetime
from fellowship.extensions import db
import enum


class SoftDeleteMixin:
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    deactivated_at = db.Column(db.DateTime)

    def soft_delete(self):
        self.is_active = False
        self.deactivated_at = datetime.utcnow()

    def restore(self):
        self.is_active = True
        self.deactivated_at = None


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


def enum_column(enum_class, **kwargs):
    """Enum column persisted by value ("Nasareth Gem", "present") rather than member name."""
    return db.Column(
        db.Enum(
            enum_class,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            validate_strings=True,
            length=64,
        ),
        **kwargs
    )


class RoleEnum(enum.Enum):
    teacher = "teacher"
    parent = "parent"
    admin = "admin"


class GenderEnum(enum.Enum):
    male = "male"
    female = "female"


class ClassNameEnum(enum.Enum):
    nasareth_gem = "Nasareth Gem"
    holy_innocent_junior = "Holy Innocent Junior"
    holy_innocent_senior = "Holy Innocent Senior"
    future_glory_junior = "Future Glory Junior"
    future_glory_senior = "Future Glory Senior"


class GroupNameEnum(enum.Enum):
    kingdom_choir = "Kingdom Choir"
    kingdom_dancers = "Kingdom Dancers"


class SessionNameEnum(enum.Enum):
    technical_team = "Technical Team"
    welfare_team = "Welfare Team"


class AttendanceTypeEnum(enum.Enum):
    class_ = "class"
    group = "group"


class AttendanceStatusEnum(enum.Enum):
    present = "present"
    absent = "absent"
    late = "late"
    excused = "excused"


class NotificationTypeEnum(enum.Enum):
    attendance = "attendance"
    announcement = "announcement"
    reminder = "reminder"
    general = "general"
