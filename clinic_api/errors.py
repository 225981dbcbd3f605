"""
Domain error taxonomy and the JSON error handlers that render it.
"""
import logging

from flask import current_app, jsonify
from pydantic import ValidationError as SchemaValidationError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

logger = logging.getLogger(__name__)


class ClinicError(Exception):
    """Base class for errors that map onto an HTTP status."""
    status_code = 500
    message = 'Internal server error'

    def __init__(self, message=None, details=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details


class ValidationError(ClinicError):
    status_code = 400
    message = 'Invalid request'


class AuthError(ClinicError):
    status_code = 401
    message = 'Unauthorized'


class CsrfError(AuthError):
    status_code = 403
    message = 'Invalid CSRF token'


class ForbiddenError(ClinicError):
    status_code = 403
    message = 'Forbidden'


class NotFoundError(ClinicError):
    status_code = 404
    message = 'Not found'


class ConflictError(ClinicError):
    status_code = 409
    message = 'Conflict'


class IntegrationError(ClinicError):
    """A remote provider (billing, mail) call failed."""
    status_code = 502
    message = 'Upstream service failed'


def file_too_large(max_bytes):
    return ValidationError(f"File too large (max {max_bytes // (1024 * 1024)} MB)")


def error_response(message, status_code, details=None):
    body = {'success': False, 'error': message}
    if details:
        body['details'] = details
    return jsonify(body), status_code


def _schema_errors(exc):
    return [
        {
            'field': '.'.join(str(part) for part in err.get('loc', ())),
            'message': err.get('msg'),
        }
        for err in exc.errors()
    ]


def register_error_handlers(app):
    """Attach JSON error handlers for the taxonomy above."""

    @app.errorhandler(ClinicError)
    def handle_clinic_error(e):
        if e.status_code >= 500:
            logger.error(f"{type(e).__name__}: {e.message}", exc_info=True)
        return error_response(e.message, e.status_code, e.details)

    @app.errorhandler(SchemaValidationError)
    def handle_schema_error(e):
        return error_response('Validation failed', 400, _schema_errors(e))

    @app.errorhandler(RequestEntityTooLarge)
    def handle_request_too_large(e):
        # Uploads past MAX_CONTENT_LENGTH are reported like any oversized avatar
        error = file_too_large(current_app.config['AVATAR_MAX_BYTES'])
        return error_response(error.message, error.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return error_response(e.description or e.name, e.code)

    @app.errorhandler(Exception)
    def handle_exception(e):
        # Real cause stays in the server log
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return error_response('Internal server error. Check server logs for details.', 500)
