from datetime import date, datetime
from sqlalchemy import update
from fellowship.extensions import db
from .base import SoftDeleteMixin, TimestampMixin, GenderEnum, enum_column
from .Roster import child_groups


class CodeSequence(db.Model):
    """Named monotonically increasing counters, bumped with a single UPDATE."""
    __tablename__ = 'code_sequences'

    name = db.Column(db.String(50), primary_key=True)
    value = db.Column(db.Integer, nullable=False, default=0)

    @classmethod
    def next_value(cls, name):
        bump = (
            update(cls)
            .where(cls.name == name)
            .values(value=cls.value + 1)
            .execution_options(synchronize_session=False)
        )
        if db.session.execute(bump).rowcount == 0:
            db.session.add(cls(name=name, value=1))
            db.session.flush()
            return 1
        return db.session.execute(db.select(cls.value).where(cls.name == name)).scalar_one()


class Child(db.Model, SoftDeleteMixin, TimestampMixin):
    __tablename__ = 'children'

    id = db.Column(db.Integer, primary_key=True)
    unique_id = db.Column(db.String(20), unique=True, nullable=False, index=True)
    first_name = db.Column(db.String(80), nullable=False)
    last_name = db.Column(db.String(80), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=False)
    gender = enum_column(GenderEnum, nullable=False)
    photo = db.Column(db.String(255), nullable=True)

    class_id = db.Column(db.Integer, db.ForeignKey('classes.id'), nullable=False, index=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    allergies = db.Column(db.Text, nullable=False, default="")
    medical_notes = db.Column(db.Text, nullable=False, default="")
    emergency_contact_name = db.Column(db.String(120), nullable=True)
    emergency_contact_phone = db.Column(db.String(30), nullable=True)
    emergency_contact_relationship = db.Column(db.String(50), nullable=True)

    class_ = db.relationship('Class', back_populates='children')
    parent = db.relationship('User', back_populates='children')
    groups = db.relationship('Group', secondary=child_groups, back_populates='members')

    @staticmethod
    def generate_unique_id(prefix):
        year = datetime.utcnow().strftime("%y")
        number = CodeSequence.next_value("child_unique_id")
        return f"{prefix}{year}{number:04d}"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def age(self):
        if not self.date_of_birth:
            return None
        today = date.today()
        born = self.date_of_birth
        return today.year - born.year - ((today.month, today.day) < (born.month, born.day))

    def summary(self, include_parent=False):
        data = {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "unique_id": self.unique_id,
            "photo": self.photo,
        }
        if include_parent:
            data["parent_id"] = self.parent_id
        return data

    def to_dict(self, include_related=False):
        data = {
            "id": self.id,
            "unique_id": self.unique_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "age": self.age,
            "gender": self.gender.value if self.gender else None,
            "photo": self.photo,
            "class_id": self.class_id,
            "parent_id": self.parent_id,
            "group_ids": [g.id for g in self.groups],
            "allergies": self.allergies,
            "medical_notes": self.medical_notes,
            "emergency_contact": {
                "name": self.emergency_contact_name,
                "phone": self.emergency_contact_phone,
                "relationship": self.emergency_contact_relationship,
            },
            "is_active": self.is_active,
        }

        if include_related:
            data["class"] = self.class_.summary() if self.class_ else None
            data["groups"] = [g.summary() for g in self.groups]
            data["parent"] = {
                "id": self.parent.id,
                "first_name": self.parent.first_name,
                "last_name": self.parent.last_name,
                "phone_number": self.parent.phone_number,
                "email": self.parent.email,
            } if self.parent else None

        return data
