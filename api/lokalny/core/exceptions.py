"""
Custom exceptions for the application.
"""


class LokalnyException(Exception):
    """Base exception for all Lokalny application exceptions."""
    pass


class ValidationError(LokalnyException):
    """Raised when validation fails (empty card text, malformed session data)."""
    pass


class InvalidParameterError(ValidationError):
    """Raised when a request parameter is not one of the recognized values."""
    pass


class NotFoundError(LokalnyException):
    """Raised when a requested resource is not found."""
    pass


class ConflictError(LokalnyException):
    """Raised when a concurrent write is detected and every retry has been used up."""
    pass
