"""Failure kinds of issuance and redemption.

Each kind carries the HTTP status it is rendered with; the error handler
registered in :func:`qrlock.create_app` turns any of them into
``{"success": false, "message": ...}``.
"""


class QrLockError(Exception):
    status_code = 500
    default_message = 'internal error'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MalformedPayload(QrLockError):
    status_code = 400
    default_message = 'malformed payload'


class Expired(QrLockError):
    status_code = 400
    default_message = 'token expired'


class Unauthenticated(QrLockError):
    status_code = 401
    default_message = 'authentication required'


class InvalidSignature(QrLockError):
    status_code = 401
    default_message = 'tampered QR code'


class Forbidden(QrLockError):
    status_code = 403
    default_message = 'forbidden'


class ScheduleViolation(QrLockError):
    status_code = 403
    default_message = 'outside the allowed schedule'


class UseLimitExceeded(QrLockError):
    status_code = 403
    default_message = 'use limit exceeded'


class NotFound(QrLockError):
    status_code = 404
    default_message = 'not found'


class RateLimited(QrLockError):
    status_code = 429
    default_message = 'rate exceeded'
