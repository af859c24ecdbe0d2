"""Domain errors raised by the service layer and mapped to HTTP responses."""


class ServiceError(Exception):
    """Base class for failures that are reported to API callers."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ServiceError):
    status_code = 400
    default_message = "Validation failed"


class DuplicateEmail(ServiceError):
    status_code = 400
    default_message = "User already exists with this email"


class InvalidCredentials(ServiceError):
    status_code = 401
    default_message = "Invalid credentials"


class Unauthorized(ServiceError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ServiceError):
    status_code = 403
    default_message = "Forbidden: Insufficient permissions"


class NotFound(ServiceError):
    status_code = 404
    default_message = "Resource not found"


class InternalError(ServiceError):
    default_message = "Database error"
