class EventValidationError(ValueError):
    """Raised when an ingested event is malformed. Nothing is written."""


class PolicyValidationError(ValueError):
    """Raised when a policy definition cannot be stored."""


class NotFoundError(LookupError):
    """Raised when a referenced record does not exist."""
