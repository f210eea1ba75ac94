from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
import logging

from services.errors import AuthError, InfrastructureError, InvalidRefreshToken
from .cookies import clear_auth_cookies

logger = logging.getLogger(__name__)


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    # Domain errors carry their own status and stable code
    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        details = dict(err.details)
        if isinstance(err, InfrastructureError):
            logger.warning("Infrastructure failure: %s", err.error_code)
            details["retryable"] = True
        response, status = error_response(err.error_code, err.message, err.status_code, details or None)
        if isinstance(err, InvalidRefreshToken) and err.clear_tokens:
            clear_auth_cookies(response)
        return response, status

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", 404)

    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        return error_response("VALIDATION_ERROR", "Invalid input", 422, details=err.messages)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response("BAD_REQUEST" if (err.code or 400) < 500 else "INTERNAL_ERROR",
                              err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        # In dev, include exception details to speed up debugging
        details = None
        logger.exception("Unhandled exception", exc_info=err)
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
