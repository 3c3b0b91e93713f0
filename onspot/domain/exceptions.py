"""
Domain-specific exception hierarchy for the OnSpot core.
"""


class OnSpotError(Exception):
    """Base class for all application-level errors."""

    reason = "error"


class ValidationError(OnSpotError, ValueError):
    """Raised when input is malformed, e.g. out-of-range coordinates."""

    reason = "invalid_input"


class ConflictError(OnSpotError):
    """Raised when an active relationship or an identifier already exists."""

    reason = "conflict"


class InvalidTransitionError(OnSpotError):
    """Raised when a partnership request is no longer PENDING."""

    reason = "invalid_transition"


class NotFoundError(OnSpotError):
    """Raised when a referenced user, business or request is missing."""

    reason = "not_found"


class StorageUnavailableError(OnSpotError):
    """Raised when the document store cannot be reached or fails a write."""

    reason = "storage_unavailable"


class NotificationUnavailableError(OnSpotError):
    """Raised by notifier adapters when a push cannot be delivered."""

    reason = "notification_unavailable"
