# models/listeners/ledger_listeners.py
"""
Ledger protection listeners.

Architecture:
    Booking.status (ORM set)      → must follow BOOKING_TRANSITIONS
    Booking (DELETE)              → forbidden, history is auditable
    Commission (UPDATE/DELETE)    → forbidden, the ledger is append-only

NOTE: Bulk Core UPDATE statements (the expiry sweep) bypass ORM events;
      they carry their own WHERE status guard instead.
"""
import logging

from sqlalchemy import event

from core.errors import InvalidState
from booking_system.config.policy import BookingStatus, can_transition

logger = logging.getLogger(__name__)


def register_booking_transition_guard():
    """
    Reject ORM writes of Booking.status that skip the state machine.

    Called once during application startup from models/listeners/__init__.py
    """
    from models.booking import Booking

    @event.listens_for(Booking.status, 'set')
    def check_booking_transition(target, value, oldvalue, initiator):
        # Construction or unloaded attribute: nothing to compare against
        if not isinstance(oldvalue, str) or value == oldvalue:
            return

        current = BookingStatus(oldvalue)
        requested = BookingStatus(value)

        if not can_transition(current, requested):
            logger.error(
                f"Illegal booking transition blocked: booking={target.bookingID}, "
                f"{current.value} → {requested.value}"
            )
            raise InvalidState(
                f"Booking cannot move from {current.value} to {requested.value}"
            )


def register_append_only_protection():
    """Forbid UPDATE/DELETE of commission rows and DELETE of bookings."""
    from models.booking import Booking
    from models.commission import Commission

    def forbid_commission_change(mapper, connection, target):
        logger.error(f"Attempt to modify commission ledger row {target.commissionID}")
        raise InvalidState("Commission entries are append-only")

    def forbid_booking_delete(mapper, connection, target):
        logger.error(f"Attempt to delete booking {target.bookingID}")
        raise InvalidState("Bookings are never deleted; cancel or expire them instead")

    event.listen(Commission, 'before_update', forbid_commission_change)
    event.listen(Commission, 'before_delete', forbid_commission_change)
    event.listen(Booking, 'before_delete', forbid_booking_delete)
