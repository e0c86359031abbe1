from fellowship.extensions import db
from .base import TimestampMixin, AttendanceTypeEnum, AttendanceStatusEnum, enum_column


class Attendance(db.Model, TimestampMixin):
    __tablename__ = 'attendance'

    id = db.Column(db.Integer, primary_key=True)
    date = db.Column(db.DateTime, nullable=False, index=True)
    # calendar day of `date` in the reference timezone; backs the one-event-per-day constraints
    attendance_day = db.Column(db.Date, nullable=False)
    type = enum_column(AttendanceTypeEnum, nullable=False, index=True)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=True, index=True)
    group_id = db.Column(db.Integer, db.ForeignKey('groups.id'), nullable=True, index=True)
    taken_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    notes = db.Column(db.Text, nullable=False, default="")

    class_ = db.relationship('Class')
    group = db.relationship('Group')
    taken_by = db.relationship('User')
    records = db.relationship(
        'AttendanceRecord',
        back_populates='attendance',
        cascade="all, delete-orphan",
        order_by='AttendanceRecord.position',
    )

    __table_args__ = (
        db.CheckConstraint(
            "(type = 'class' AND class_id IS NOT NULL AND group_id IS NULL) OR "
            "(type = 'group' AND group_id IS NOT NULL AND class_id IS NULL)",
            name='ck_attendance_target_matches_type',
        ),
        db.UniqueConstraint('class_id', 'attendance_day', name='uq_attendance_class_day'),
        db.UniqueConstraint('group_id', 'attendance_day', name='uq_attendance_group_day'),
    )

    @property
    def target_id(self):
        return self.class_id if self.type == AttendanceTypeEnum.class_ else self.group_id

    def record_for(self, child_id):
        return next((r for r in self.records if r.child_id == child_id), None)

    def to_dict(self, include_parent=False):
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "type": self.type.value,
            "class": self.class_.summary() if self.class_ else None,
            "group": self.group.summary() if self.group else None,
            "taken_by": self.taken_by.summary() if self.taken_by else None,
            "notes": self.notes,
            "records": [r.to_dict(include_parent=include_parent) for r in self.records],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class AttendanceRecord(db.Model):
    __tablename__ = 'attendance_records'

    id = db.Column(db.Integer, primary_key=True)
    attendance_id = db.Column(db.Integer, db.ForeignKey('attendance.id'), nullable=False, index=True)
    child_id = db.Column(db.Integer, db.ForeignKey('children.id'), nullable=False, index=True)
    status = enum_column(AttendanceStatusEnum, nullable=False, default=AttendanceStatusEnum.absent)
    notes = db.Column(db.Text, nullable=False, default="")
    position = db.Column(db.Integer, nullable=False, default=0)

    attendance = db.relationship('Attendance', back_populates='records')
    child = db.relationship('Child')

    def to_dict(self, include_parent=False):
        return {
            "id": self.id,
            "child": self.child.summary(include_parent=include_parent) if self.child else {"id": self.child_id},
            "status": self.status.value,
            "notes": self.notes,
        }
