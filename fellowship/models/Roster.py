from fellowship.extensions import db
from .base import (
    SoftDeleteMixin, TimestampMixin, enum_column,
    ClassNameEnum, GroupNameEnum, SessionNameEnum,
)
from .User import teacher_classes, teacher_groups, teacher_sessions

child_groups = db.Table(
    'child_groups',
    db.Column('child_id', db.Integer, db.ForeignKey('children.id'), primary_key=True),
    db.Column('group_id', db.Integer, db.ForeignKey('groups.id'), primary_key=True),
)


class RosterMixin(SoftDeleteMixin, TimestampMixin):
    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(255), nullable=False, default="")

    # closed set of allowed names, overridden per roster
    name_enum = None

    def summary(self):
        return {"id": self.id, "name": self.name.value}

    def to_dict(self, include_teachers=True):
        data = {
            "id": self.id,
            "name": self.name.value,
            "description": self.description,
            "is_active": self.is_active,
        }
        if include_teachers:
            data["teachers"] = [
                {
                    "id": t.id,
                    "first_name": t.first_name,
                    "last_name": t.last_name,
                    "email": t.email,
                }
                for t in self.teachers
            ]
        return data


class Class(db.Model, RosterMixin):
    __tablename__ = 'classes'

    name_enum = ClassNameEnum
    name = enum_column(ClassNameEnum, unique=True, nullable=False)
    age_min = db.Column(db.Integer, nullable=True)
    age_max = db.Column(db.Integer, nullable=True)

    teachers = db.relationship('User', secondary=teacher_classes, back_populates='assigned_classes')
    children = db.relationship('Child', back_populates='class_', lazy=True)

    def to_dict(self, include_teachers=True):
        data = super().to_dict(include_teachers)
        data["age_range"] = {"min": self.age_min, "max": self.age_max}
        data["children_count"] = sum(1 for c in self.children if c.is_active)
        return data


class Group(db.Model, RosterMixin):
    __tablename__ = 'groups'

    name_enum = GroupNameEnum
    name = enum_column(GroupNameEnum, unique=True, nullable=False)

    teachers = db.relationship('User', secondary=teacher_groups, back_populates='assigned_groups')
    members = db.relationship('Child', secondary=child_groups, back_populates='groups')

    def to_dict(self, include_teachers=True):
        data = super().to_dict(include_teachers)
        data["members_count"] = sum(1 for c in self.members if c.is_active)
        return data


class Session(db.Model, RosterMixin):
    __tablename__ = 'sessions'

    name_enum = SessionNameEnum
    name = enum_column(SessionNameEnum, unique=True, nullable=False)

    teachers = db.relationship('User', secondary=teacher_sessions, back_populates='assigned_sessions')


DEFAULT_CLASSES = [
    {"name": ClassNameEnum.nasareth_gem, "description": "Nasareth Gem Class for the youngest children"},
    {"name": ClassNameEnum.holy_innocent_junior, "description": "Holy Innocent Junior Class"},
    {"name": ClassNameEnum.holy_innocent_senior, "description": "Holy Innocent Senior Class"},
    {"name": ClassNameEnum.future_glory_junior, "description": "Future Glory Junior Class"},
    {"name": ClassNameEnum.future_glory_senior, "description": "Future Glory Senior Class"},
]

DEFAULT_GROUPS = [
    {"name": GroupNameEnum.kingdom_choir, "description": "Kingdom Choir Group for singing"},
    {"name": GroupNameEnum.kingdom_dancers, "description": "Kingdom Dancers Group for dancing"},
]

DEFAULT_SESSIONS = [
    {"name": SessionNameEnum.technical_team, "description": "Technical Team for technical support"},
    {"name": SessionNameEnum.welfare_team, "description": "Welfare Team for welfare activities"},
]


def ensure_defaults(model, defaults):
    """Add the default rosters that do not exist yet. The caller commits."""
    created = []
    for entry in defaults:
        if not model.query.filter_by(name=entry["name"]).first():
            roster = model(**entry)
            db.session.add(roster)
            created.append(roster)
    db.session.flush()
    return created
