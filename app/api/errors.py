"""Error handlers for the application."""
import traceback

from flask import render_template, jsonify, request
from werkzeug.exceptions import HTTPException

from app.core.provisioning_service import ProvisioningError


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        if _wants_json():
            return jsonify({"error": "Bad Request", "message": str(error)}), 400
        return render_template(
            "errors/error.html",
            title="Bad Request",
            message=getattr(error, "description", None) or "The request could not be understood.",
        ), 400

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        if _wants_json():
            return jsonify({"error": "Not Found", "message": "Resource not found"}), 404
        return render_template(
            "errors/error.html",
            title="Not Found",
            message="Check the URL and try again.",
        ), 404

    @app.errorhandler(ProvisioningError)
    def provisioning_error(error):
        """Handle provisioning errors raised outside the onboarding workflow (JSON endpoints)."""
        app.logger.warning(f"Provisioning error: {error.detail}")
        if _wants_json():
            return jsonify(error.to_dict()), error.status
        return render_template(
            "errors/error.html",
            title="Directory Error",
            message=error.detail,
        ), error.status

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error."""
        app.logger.error(f"Internal error: {error}", exc_info=True)
        return _internal_error_response(traceback.format_exc())

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        if isinstance(error, HTTPException):
            return error

        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return _internal_error_response(traceback.format_exc())

    def _internal_error_response(error_details: str):
        if _wants_json():
            return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500

        # Tracebacks only in debug/demo mode
        show_details = app.debug or app.config.get("DEMO_MODE", False)

        return render_template(
            "errors/500.html",
            title="Internal Server Error",
            error_message=error_details if show_details else None,
            show_debug=show_details,
        ), 500


def _wants_json():
    """Check if the client wants a JSON response."""
    if request.is_json:
        return True
    return request.accept_mimetypes.accept_json and \
           not request.accept_mimetypes.accept_html
