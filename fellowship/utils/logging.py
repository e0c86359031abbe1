import logging
import sys
from flask import request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(app):
    """Attach a stdout handler to the app logger at the configured level."""
    level = app.config.get("LOG_LEVEL", "INFO")
    app.logger.setLevel(level)

    if not any(getattr(h, "_fellowship", False) for h in app.logger.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._fellowship = True
        app.logger.addHandler(handler)


def log_rate_limit_violation(request_limit):
    # imported here, models pull in the extensions module
    from fellowship.utils.audit import log_event

    try:
        verify_jwt_in_request(optional=True)
        user_id = get_jwt_identity()
    except Exception:
        user_id = None

    log_event(
        "RATE_LIMIT_EXCEEDED",
        user_id=user_id,
        ip=request.remote_addr,
        description=f"{request.method} {request.path} ({request_limit.limit})",
        level="WARNING",
    )
