"""
Error taxonomy and JSON error handlers.

Every API failure is reported as ``{"success": false, "error": ..., "code": ...}``.
"""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response."""
    status = 500
    code = 'INTERNAL_ERROR'
    message = 'Internal server error.'

    def __init__(self, message=None, code=None, status=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        if code:
            self.code = code
        if status:
            self.status = status

    def to_dict(self):
        return {'success': False, 'error': self.message, 'code': self.code}


class ValidationError(ApiError):
    status = 400
    code = 'VALIDATION_ERROR'
    message = 'Invalid request.'


class AuthError(ApiError):
    status = 401
    code = 'UNAUTHORIZED'
    message = 'Authentication required.'


class NoTokenError(AuthError):
    code = 'NO_TOKEN'
    message = 'Access denied. No token provided.'


class InvalidTokenError(AuthError):
    code = 'INVALID_TOKEN'
    message = 'Invalid token.'


class InvalidCredentialsError(AuthError):
    code = 'INVALID_CREDENTIALS'
    message = 'Invalid credentials.'


class ForbiddenError(ApiError):
    status = 403
    code = 'FORBIDDEN'
    message = 'Permission denied.'


class NotFoundError(ApiError):
    status = 404
    code = 'NOT_FOUND'
    message = 'Resource not found.'


class ConflictError(ApiError):
    status = 409
    code = 'CONFLICT'
    message = 'Resource already exists.'


class RateLimitedError(ApiError):
    status = 429
    code = 'RATE_LIMITED'
    message = 'Too many requests from this IP, please try again later.'


class UpstreamUnavailableError(ApiError):
    status = 503
    code = 'SERVICE_UNAVAILABLE'
    message = 'Service unavailable.'


class InternalError(ApiError):
    pass


# Email pipeline errors. These never reach an HTTP caller; the worker logs
# them and hands them to the queue's retry policy.

class EmailPipelineError(Exception):
    pass


class TemplateNotFoundError(EmailPipelineError):
    def __init__(self, template):
        super().__init__(f"Template {template} not found")
        self.template = template


class TemplateRenderError(EmailPipelineError):
    pass


class InvalidJobError(EmailPipelineError):
    pass


class MailDeliveryError(EmailPipelineError):
    pass


def error_response(error: ApiError):
    return jsonify(error.to_dict()), error.status


_HTTP_CODES = {
    400: ('Bad request.', 'BAD_REQUEST'),
    404: ('Route not found', 'NOT_FOUND'),
    405: ('Method not allowed', 'METHOD_NOT_ALLOWED'),
    413: ('Request body too large', 'PAYLOAD_TOO_LARGE'),
    429: (RateLimitedError.message, RateLimitedError.code),
}


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status >= 500:
            logger.error(f"{error.code}: {error.message}")
        return error_response(error)

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        message, code = _HTTP_CODES.get(error.code, (error.description, 'HTTP_ERROR'))
        return jsonify({'success': False, 'error': message, 'code': code}), error.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return error_response(InternalError())
