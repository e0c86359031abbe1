import os
from datetime import timedelta
from dotenv import load_dotenv


load_dotenv()


def _bool_env(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("JWT_SECRET_KEY", "fallback-jwt")  # used for both Flask and JWT
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "fallback-jwt")
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=int(os.getenv("JWT_EXPIRE_DAYS", "7")))

    SQLALCHEMY_DATABASE_URI = os.getenv("SQLALCHEMY_DATABASE_URI", "sqlite:///fellowship.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    REDIS_URL = os.getenv("REDIS_URL")
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")
    RATELIMIT_ENABLED = True

    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "uploads")
    MAX_CONTENT_LENGTH = 5 * 1024 * 1024  # child photos only
    CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

    # Calendar-day boundaries for the duplicate attendance guard are computed here
    ATTENDANCE_TIMEZONE = os.getenv("ATTENDANCE_TIMEZONE", "UTC")
    CHILD_CODE_PREFIX = os.getenv("CHILD_CODE_PREFIX", "JCKC")
    DEFAULT_PAGE_SIZE = 20

    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
    MAIL_SERVER = os.getenv("SMTP_HOST", "smtp.gmail.com")
    MAIL_PORT = int(os.getenv("SMTP_PORT", "587"))
    MAIL_USERNAME = os.getenv("SMTP_USER")
    MAIL_PASSWORD = os.getenv("SMTP_PASS")
    MAIL_USE_TLS = _bool_env("SMTP_USE_TLS", True)
    MAIL_DEFAULT_SENDER = os.getenv("FROM_EMAIL", "no-reply@jckc.local")
    MAIL_SENDER_NAME = os.getenv("FROM_NAME", "JCKC Fellowship")
    MAIL_SUPPRESS_SEND = _bool_env("MAIL_SUPPRESS_SEND", False)

    AUDIT_LOG_FILE = os.getenv("AUDIT_LOG_FILE", os.path.join("logs", "audit.log"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET_KEY = "test-secret-key-that-is-long-enough-for-hs256"
    SECRET_KEY = JWT_SECRET_KEY
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"
    MAIL_SUPPRESS_SEND = True
    ATTENDANCE_TIMEZONE = "UTC"
    LOG_LEVEL = "DEBUG"
