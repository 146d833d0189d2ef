"""
API error taxonomy.

Route handlers and services raise these; app.py renders them as
{"message": ..., "errors": {...}} with the matching status code.
"""


class ApiError(Exception):
    status_code = 500
    default_message = 'Internal server error'

    def __init__(self, message=None, errors=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.errors = errors

    def to_dict(self):
        body = {'message': self.message}
        if self.errors:
            body['errors'] = self.errors
        return body


class ValidationError(ApiError):
    status_code = 400
    default_message = 'Invalid request data'


class AuthError(ApiError):
    status_code = 401
    default_message = 'Authentication required'


class PermissionDenied(ApiError):
    status_code = 403
    default_message = 'Forbidden: Insufficient permissions.'


class NotFound(ApiError):
    status_code = 404
    default_message = 'Not found'


class Conflict(ApiError):
    status_code = 409
    default_message = 'Conflict'


class PayloadTooLarge(ApiError):
    status_code = 413
    default_message = 'File too large'


class ConfigurationError(ApiError):
    status_code = 500
    default_message = 'Internal server configuration error.'


class PaymentError(ApiError):
    status_code = 500
    default_message = 'Payment provider request failed'


class UpstreamError(ApiError):
    status_code = 502
    default_message = 'Upstream service unavailable'


def field_errors(exc):
    """Flattens a pydantic ValidationError into {field: [messages]}."""
    result = {}
    for err in exc.errors():
        loc = [str(part) for part in err.get('loc', ()) if part != '__root__']
        key = loc[0] if loc else '_schema'
        msg = err.get('msg', 'Invalid value')
        # pydantic prefixes messages raised from validators
        if msg.startswith('Value error, '):
            msg = msg[len('Value error, '):]
        result.setdefault(key, []).append(msg)
    return result
