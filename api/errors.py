from flask import jsonify, abort
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from utils.results import ErrorKind, Result

logger = logging.getLogger(__name__)

STATUS_CODES = {kind.status: kind.code for kind in ErrorKind}


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def unwrap(result: Result):
    """Return the value of a successful Result, or abort with its error kind."""
    if result.ok:
        return result.value
    abort(result.error.status, description=result.message)


def register_error_handlers(app):
    # 400 Bad Request (generic)
    @app.errorhandler(400)
    def bad_request(e):
        message = getattr(e, "description", "Bad request")
        return error_response("VALIDATION_ERROR", message, 400)

    # 401 Unauthorized: one message per failure class, never the reason
    @app.errorhandler(401)
    def unauthorized(e):
        message = getattr(e, "description", None) or "Unauthorized"
        return error_response("UNAUTHORIZED", message, 401)

    @app.errorhandler(403)
    def forbidden(e):
        message = getattr(e, "description", None) or "Forbidden"
        return error_response("FORBIDDEN", message, 403)

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        message = getattr(e, "description", None) or "Resource not found"
        return error_response("NOT_FOUND", message, 404)

    # 409 Conflict
    @app.errorhandler(409)
    def conflict(e):
        message = getattr(e, "description", "Conflict")
        return error_response("CONFLICT", message, 409)

    # Marshmallow validation errors map to 400
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        return error_response("VALIDATION_ERROR", "Invalid input", 400, details=err.messages)

    # Integrity errors (unique constraints, FK violations, check constraints)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        lower_msg = str(getattr(err, "orig", err)).lower()
        logger.warning("integrity error: %s", lower_msg)
        if "unique constraint" in lower_msg or "unique violation" in lower_msg:
            return error_response("CONFLICT", "Unique constraint violated.", 409)
        return error_response("VALIDATION_ERROR", "Integrity error.", 400)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = err.code or 400
        return error_response(STATUS_CODES.get(status, "BAD_REQUEST"), err.description, status)

    # 500 Internal Error (catch-all): log it, expose nothing
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500)
