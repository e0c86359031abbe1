from flask import Flask, jsonify
from flask_cors import CORS
from .config import Config
from fellowship.extensions import db, jwt, limiter, migrate
from fellowship.errors import register_error_handlers
from fellowship.utils.logging import configure_logging


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app)

    db.init_app(app)
    jwt.init_app(app)
    CORS(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)
    limiter.init_app(app)
    migrate.init_app(app, db)

    register_jwt_callbacks()
    register_error_handlers(app)

    from fellowship.routes import register_routes
    register_routes(app)

    with app.app_context():
        db.create_all()

    return app


def register_jwt_callbacks():
    from fellowship.models import TokenBlocklist, User

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        jti = jwt_payload["jti"]
        token = db.session.query(TokenBlocklist.id).filter_by(jti=jti).first()
        return token is not None

    @jwt.user_lookup_loader
    def load_user(jwt_header, jwt_payload):
        identity = jwt_payload["sub"]
        try:
            user = db.session.get(User, int(identity))
        except (TypeError, ValueError):
            return None
        # deactivated accounts lose access immediately
        if user is None or not user.is_active:
            return None
        return user

    @jwt.user_lookup_error_loader
    def user_lookup_failed(jwt_header, jwt_payload):
        return jsonify({"error": "User not found or deactivated"}), 401

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"error": "Not authorized, no token"}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"error": "Not authorized, token failed"}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "Token has expired"}), 401

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return jsonify({"error": "Token has been revoked"}), 401
