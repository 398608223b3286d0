from flask import Blueprint, jsonify, request, send_from_directory, current_app
from werkzeug.exceptions import HTTPException

from ..errors import DesignError
from ..rendering import ASPECT_RATIOS, DEFAULT_VIEWPORT

api_bp = Blueprint("api", __name__)
media_bp = Blueprint("media", __name__)


@api_bp.get("/test")
def api_test():
    return jsonify({"status": "ok", "message": "Server is running correctly"})


@api_bp.get("/aspect-ratios")
def api_aspect_ratios():
    presets = [
        {"id": key, "width": w, "height": h, "description": desc}
        for key, (w, h, desc) in ASPECT_RATIOS.items()
    ]
    return jsonify({
        "aspectRatios": presets,
        "default": {"width": DEFAULT_VIEWPORT[0], "height": DEFAULT_VIEWPORT[1]},
    })


@media_bp.get("/media/<path:filename>")
def media_file(filename):
    return send_from_directory(current_app.config["MEDIA_FOLDER"], filename)


def register_error_handlers(app):
    """JSON bodies for errors raised under /api."""

    @app.errorhandler(DesignError)
    def handle_design_error(e):
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if request.path.startswith("/api/"):
            return jsonify({"error": e.description or e.name}), e.code
        return e
