"""
Booking and commission policy constants.
Fixed business rules, deliberately not operator-configurable.
"""
from datetime import timedelta
from decimal import Decimal
from typing import Dict

from models.enums import PropertyStatus, BookingStatus, DealerStatus, UserRole


# Allowed booking transitions; CANCELLED and EXPIRED are terminal.
BOOKING_TRANSITIONS: Dict[BookingStatus, frozenset] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.CANCELLED, BookingStatus.EXPIRED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.EXPIRED: frozenset(),
}

# Booking slot: "now" to "now + 3 days"
BOOKING_WINDOW = timedelta(days=3)

# Flat booking fee, independent of property price
BOOKING_CHARGES = Decimal("1000")

# Manual UPI payments only
PAYMENT_METHOD_UPI = "UPI"
MIN_PAYMENT_REF_LENGTH = 4

# Owner cancellation must happen more than 24h before start
CANCELLATION_CUTOFF = timedelta(hours=24)

# Commission chain
DEFAULT_COMMISSION_LEVELS: Dict[int, Decimal] = {
    1: Decimal("10.00"),
    2: Decimal("5.00"),
    3: Decimal("2.50"),
}
DEFAULT_MAX_COMMISSION_LEVELS = 3
COMMISSION_QUANTUM = Decimal("0.01")

# Referral codes: 6 upper-case alphanumerics
REFERRAL_CODE_LENGTH = 6
REFERRAL_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    """Check a booking transition against BOOKING_TRANSITIONS."""
    return target in BOOKING_TRANSITIONS.get(current, frozenset())
