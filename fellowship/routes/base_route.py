import os
from flask import Blueprint, current_app, jsonify, send_from_directory
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from fellowship.extensions import db

base_bp = Blueprint("base", __name__)


@base_bp.route("/")
def home():
    return jsonify({"message": "Welcome to the JCKC Fellowship API!"})


@base_bp.route("/api/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        current_app.logger.error("Health check database failure: %s", e)
        database = "unavailable"
    return jsonify({"status": "ok", "message": "Server is running", "database": database}), 200


@base_bp.route("/uploads/<path:filename>")
def uploaded_file(filename):
    directory = os.path.abspath(current_app.config["UPLOAD_FOLDER"])
    return send_from_directory(directory, filename)
