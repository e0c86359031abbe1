from .base import (
    SoftDeleteMixin, RoleEnum, GenderEnum, ClassNameEnum, GroupNameEnum, SessionNameEnum,
    AttendanceTypeEnum, AttendanceStatusEnum, NotificationTypeEnum,
)
from .User import User, TokenBlocklist
from .Roster import Class, Group, Session, DEFAULT_CLASSES, DEFAULT_GROUPS, DEFAULT_SESSIONS, ensure_defaults
from .Child import Child, CodeSequence
from .Attendance import Attendance, AttendanceRecord
from .Notification import Notification
from .AuditLog import AuditLog
