import logging
import os

from flask import request
from flask_cors import CORS


logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
]


def allowed_origins():
    raw = os.environ.get("CORS_ORIGINS", "")
    extra = [o.strip() for o in raw.split(",") if o.strip()]
    return extra or DEFAULT_ORIGINS


def configure_cors(app):
    # Ingest endpoint is called from the web client and from scheduled jobs
    CORS(app, resources={
        r"/api/*": {
            "origins": allowed_origins(),
            "methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-Requested-With"],
        }
    }, supports_credentials=True)

    @app.after_request
    def log_cors(response):
        origin = request.headers.get("Origin")
        if origin:
            logger.debug("CORS %s %s from %s -> %s", request.method, request.path, origin, response.status_code)
        return response

    return app
