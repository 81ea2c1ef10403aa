"""Custom exceptions for the ImobiPRO application."""


class ImobiproException(Exception):
    """Base exception for ImobiPRO application."""

    pass


class ValidationError(ImobiproException):
    """Raised when validation fails."""

    pass


class NotFoundError(ImobiproException):
    """Raised when a resource is not found."""

    pass


class ConflictError(ImobiproException):
    """Raised when a write collides with existing state (duplicates, overlaps)."""

    pass


class DatabaseError(ImobiproException):
    """Raised when a database operation fails."""

    pass


class ServiceError(ImobiproException):
    """Raised when a service operation fails."""

    pass


class IntegrationError(ServiceError):
    """Raised when an outbound call to n8n, Google or SMTP fails after retries."""

    pass


class ConfigurationError(ImobiproException):
    """Raised when configuration is invalid."""

    pass


class AuthenticationError(ImobiproException):
    """Raised when authentication fails."""

    pass


class AuthorizationError(ImobiproException):
    """Raised when an authenticated user lacks access."""

    pass


class InvalidTransitionError(ValidationError):
    """Raised when a disallowed state transition is attempted."""

    pass


class ImmutableRecordError(ImobiproException):
    """Raised when an append-only record is modified."""

    pass
