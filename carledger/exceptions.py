"""Domain-specific exceptions for the car ledger services."""

class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class RecordNotFoundError(LookupError):
    """Raised by the outer surfaces when an expense record cannot be located."""


class PersistenceError(IOError):
    """Raised when a JSON snapshot cannot be read or written."""


class AuthenticationError(PermissionError):
    """Raised when a request does not identify its owner."""
