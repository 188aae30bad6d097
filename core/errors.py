# propmarket/core/errors.py
"""
Caller-visible error taxonomy for the booking core.

Every error here is recoverable: the HTTP layer (or any other caller)
catches MarketplaceError and maps statusCode/message to its response.
"""


class MarketplaceError(Exception):
    """Base error for booking and commission operations."""

    statusCode = 500
    code = "ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(MarketplaceError):
    """Referenced Property/Booking/Dealer/User is absent."""
    statusCode = 404
    code = "NOT_FOUND"


class InvalidState(MarketplaceError):
    """Operation attempted from a state that forbids it."""
    statusCode = 400
    code = "INVALID_STATE"


class InvalidInput(MarketplaceError):
    """Malformed argument (payment reference, amount, percentage)."""
    statusCode = 400
    code = "INVALID_INPUT"


class Conflict(MarketplaceError):
    """Overlapping CONFIRMED booking detected."""
    statusCode = 409
    code = "CONFLICT"


class Forbidden(MarketplaceError):
    """Actor does not own the resource."""
    statusCode = 403
    code = "FORBIDDEN"


class TooLate(MarketplaceError):
    """Cancellation requested inside the 24-hour cutoff."""
    statusCode = 400
    code = "TOO_LATE"


class Unavailable(MarketplaceError):
    """Storage or collaborator failure; the write was not applied."""
    statusCode = 503
    code = "UNAVAILABLE"
