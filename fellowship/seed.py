import os
from flask import current_app
from fellowship.extensions import db
from fellowship.models import (
    User, RoleEnum, Class, Group, Session, DEFAULT_CLASSES, DEFAULT_GROUPS, DEFAULT_SESSIONS, ensure_defaults,
)

ADMIN_EMAIL = "admin@jckc.com"


def seed_data():
    """Create the default rosters and the first admin account. Safe to run repeatedly."""
    created = {
        "classes": len(ensure_defaults(Class, DEFAULT_CLASSES)),
        "groups": len(ensure_defaults(Group, DEFAULT_GROUPS)),
        "sessions": len(ensure_defaults(Session, DEFAULT_SESSIONS)),
    }

    admin_email = os.getenv("ADMIN_EMAIL", ADMIN_EMAIL)
    if not User.query.filter_by(email=admin_email).first():
        admin = User(
            first_name="Admin",
            last_name="User",
            email=admin_email,
            phone_number=os.getenv("ADMIN_PHONE", "0000000000"),
            role=RoleEnum.admin,
        )
        admin.set_password(os.getenv("ADMIN_PASSWORD", "admin123"))
        db.session.add(admin)
        created["admin"] = 1
        current_app.logger.warning("Created admin %s, change the default password after first login", admin_email)

    db.session.commit()
    current_app.logger.info("Seed complete: %s", created)
    return created
