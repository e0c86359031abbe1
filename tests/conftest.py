import itertools
from datetime import date

import pytest
from flask_jwt_extended import create_access_token

from fellowship import create_app
from fellowship.config import TestingConfig
from fellowship.extensions import db
from fellowship.models import (
    User, RoleEnum, Class, Group, Child, ClassNameEnum, GroupNameEnum, GenderEnum,
)


@pytest.fixture
def app(tmp_path):
    class Config(TestingConfig):
        AUDIT_LOG_FILE = str(tmp_path / "logs" / "audit.log")
        UPLOAD_FOLDER = str(tmp_path / "uploads")

    app = create_app(Config)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(role=RoleEnum.parent, password="secret123", **fields):
        n = next(counter)
        user = User(
            first_name=fields.get("first_name", f"{role.value.title()}{n}"),
            last_name=fields.get("last_name", "Tester"),
            email=fields.get("email", f"{role.value}{n}@example.com"),
            phone_number=fields.get("phone_number", f"0700{n:06d}"),
            role=role,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def admin(make_user):
    return make_user(RoleEnum.admin)


@pytest.fixture
def teacher(make_user):
    return make_user(RoleEnum.teacher)


@pytest.fixture
def parent(make_user):
    return make_user(RoleEnum.parent, first_name="Grace", last_name="Obi")


@pytest.fixture
def auth_header(app):
    def _header(user):
        return {"Authorization": f"Bearer {create_access_token(identity=str(user.id))}"}

    return _header


@pytest.fixture
def nasareth_class(app):
    klass = Class(name=ClassNameEnum.nasareth_gem, description="Youngest children")
    db.session.add(klass)
    db.session.commit()
    return klass


@pytest.fixture
def choir(app):
    group = Group(name=GroupNameEnum.kingdom_choir, description="Singing")
    db.session.add(group)
    db.session.commit()
    return group


@pytest.fixture
def make_child(app):
    def _make(parent, klass, first_name="Ada", last_name="Obi", groups=()):
        child = Child(
            first_name=first_name,
            last_name=last_name,
            date_of_birth=date(2016, 5, 17),
            gender=GenderEnum.female,
            class_id=klass.id,
            parent_id=parent.id,
        )
        child.groups = list(groups)
        child.unique_id = Child.generate_unique_id("JCKC")
        db.session.add(child)
        db.session.commit()
        return child

    return _make
