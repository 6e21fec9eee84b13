"""Flask application factory for the keycut job API."""

import os
import tempfile
from pathlib import Path

from flask import Flask, jsonify

from keycut.ffutil import ConfigurationError

MAX_UPLOAD_ENV = "KEYCUT_MAX_UPLOAD_MB"
DEFAULT_MAX_UPLOAD_MB = 10 * 1024


def max_upload_bytes(value: str | None = None) -> int:
    """Upload size limit in bytes, from ``KEYCUT_MAX_UPLOAD_MB`` by default."""
    value = value if value is not None else os.environ.get(MAX_UPLOAD_ENV)
    if not value:
        return DEFAULT_MAX_UPLOAD_MB * 1024 * 1024
    try:
        megabytes = int(value)
    except ValueError:
        raise ConfigurationError(f"{MAX_UPLOAD_ENV} must be a whole number of MB, got {value!r}")
    if megabytes <= 0:
        raise ConfigurationError(f"{MAX_UPLOAD_ENV} must be positive, got {megabytes}")
    return megabytes * 1024 * 1024


def create_app(work_dir: Path | None = None, max_upload: int | None = None) -> Flask:
    """Build the job API; uploads and cut outputs live under ``work_dir``."""
    app = Flask(__name__)
    app.config["WORK_DIR"] = work_dir or Path(tempfile.mkdtemp(prefix="keycut_"))
    app.config["MAX_CONTENT_LENGTH"] = max_upload or max_upload_bytes()

    from keycut.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def upload_too_large(error):
        limit_mb = app.config["MAX_CONTENT_LENGTH"] // (1024 * 1024)
        return jsonify({"error": f"Upload exceeds the {limit_mb} MB limit"}), 413

    return app
