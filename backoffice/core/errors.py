"""Domain errors raised by services and mapped once to HTTP responses.

Every error carries the message shown to the client and the HTTP status it maps
to. Storage-layer exceptions (e.g. IntegrityError) are translated into these at
the point where the database call is made and never inspected downstream.
"""


class ServiceError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailedError(ServiceError):
    """Malformed or missing input."""

    status_code = 400
    default_message = "Validation error"


class ConflictError(ServiceError):
    """Uniqueness violation (e.g. email already registered)."""

    status_code = 409
    default_message = "Resource already exists"


class InvalidCredentialsError(ServiceError):
    """Bad login or bad current password. Never says which part was wrong."""

    status_code = 401
    default_message = "Invalid email or password"


class InvalidTokenError(ServiceError):
    """Bad, expired, or wrong-type access/refresh token."""

    status_code = 401
    default_message = "Invalid or expired token"


class InvalidResetTokenError(ServiceError):
    """Password reset token unknown, already used, or expired."""

    status_code = 400
    default_message = "Token is invalid or expired"


class UnauthorizedError(ServiceError):
    """Request carries no usable bearer credentials."""

    status_code = 401
    default_message = "Authentication is required"


class ForbiddenError(ServiceError):
    status_code = 403
    default_message = "Insufficient permissions to perform this action"


class NotFoundError(ServiceError):
    status_code = 404
    default_message = "Not found"


class InternalError(ServiceError):
    status_code = 500
    default_message = "Internal server error"


class TokenConfigurationError(InternalError):
    """Raised instead of issuing a token when no signing secret is configured."""

    default_message = "Token signing is not configured"
