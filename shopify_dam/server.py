# server.py
import json
import logging
from typing import Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from .config import Settings, get_settings
from .service import DamService

# Room for the multipart envelope around a maximum-size file.
FORM_OVERHEAD_BYTES = 1024 * 1024


def create_app(
    service: Optional[DamService] = None, settings: Optional[Settings] = None
) -> Flask:
    """Create and configure the Flask application."""
    settings = settings or get_settings()
    if service is None:
        service = DamService.from_settings(settings)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.DAM_MAX_FILE_SIZE + FORM_OVERHEAD_BYTES
    app.config["DAM_SETTINGS"] = settings
    app.config["DAM_SERVICE"] = service

    from .api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error):
        return (
            jsonify(
                {
                    "success": False,
                    "error": f"File exceeds the maximum size of {settings.DAM_MAX_FILE_SIZE} bytes",
                }
            ),
            400,
        )

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        response = error.get_response()
        response.data = json.dumps({"success": False, "error": error.description})
        response.content_type = "application/json"
        return response

    logging.info("DAM server initialized.")
    return app


def run_server(settings: Optional[Settings] = None):
    """Run the DAM web server."""
    settings = settings or get_settings()
    app = create_app(settings=settings)

    logging.info(f"Starting DAM server on http://{settings.SERVER_HOST}:{settings.SERVER_PORT}")
    app.run(host=settings.SERVER_HOST, port=settings.SERVER_PORT, threaded=True)
