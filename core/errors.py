"""Error taxonomy shared by the booking and settlement code.

Every error carries the HTTP status the API layer answers with, so routes
can simply let them propagate to the handler registered in ``app.py``.
"""


class AppError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None, **details):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self):
        body = {"error": self.message}
        body.update(self.details)
        return body


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class InvalidStatus(ValidationError):
    default_message = "Invalid status"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class AccessDenied(AppError):
    status_code = 403
    default_message = "Access denied"


class TransitionNotAllowed(AccessDenied):
    default_message = "Status update not allowed"


class Conflict(AppError):
    status_code = 409
    default_message = "Conflict"


class InvalidState(AppError):
    status_code = 400
    default_message = "Invalid state"


class UpstreamFailure(AppError):
    """Payment gateway rejected or failed a call; its message is surfaced."""
    status_code = 500
    default_message = "Payment gateway error"


class InternalFailure(AppError):
    status_code = 500
    default_message = "Internal server error"
