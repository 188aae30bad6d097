"""
Status enumerations stored as plain strings in the ledger.
"""
from enum import Enum


class PropertyStatus(Enum):
    """Availability flag of a listing."""
    FREE = "FREE"
    BOOKED = "BOOKED"
    SOLD = "SOLD"


class BookingStatus(Enum):
    """Booking lifecycle states."""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class DealerStatus(Enum):
    """Dealer application states."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class UserRole(Enum):
    USER = "USER"
    DEALER = "DEALER"
    ADMIN = "ADMIN"
