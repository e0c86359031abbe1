from .auth import auth_bp
from .base_route import base_bp
from .teachers import teachers_bp
from .children import children_bp
from .roster import classes_bp, groups_bp, sessions_bp
from .attendance import attendance_bp
from .notifications import notifications_bp


def register_routes(app):
    app.register_blueprint(base_bp)
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(teachers_bp, url_prefix='/api/teachers')
    app.register_blueprint(children_bp, url_prefix='/api/children')
    app.register_blueprint(classes_bp, url_prefix='/api/classes')
    app.register_blueprint(groups_bp, url_prefix='/api/groups')
    app.register_blueprint(sessions_bp, url_prefix='/api/sessions')
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
