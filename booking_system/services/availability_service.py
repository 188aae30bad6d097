# booking_system/services/availability_service.py
"""
Availability checks - overlap queries over the booking ledger.
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session
import logging

from core.db import LedgerStore
from models.booking import Booking
from booking_system.config.policy import BookingStatus

logger = logging.getLogger(__name__)


def _overlapping(
        session: Session,
        propertyId: int,
        status: BookingStatus,
        start: datetime,
        end: datetime,
        excludeBookingId: Optional[int] = None
):
    """Inclusive overlap: B.startDate <= end AND B.endDate >= start."""
    query = session.query(Booking).filter(
        Booking.propertyID == propertyId,
        Booking.status == status.value,
        Booking.startDate <= end,
        Booking.endDate >= start
    )
    if excludeBookingId is not None:
        query = query.filter(Booking.bookingID != excludeBookingId)
    return query


class AvailabilityService:
    """
    Answers "is this window free?" for a property.

    Only CONFIRMED bookings block. PENDING bookings never do: several
    manual-payment submissions may queue for the same slot until an
    admin approves one of them.
    """

    def __init__(self, store: LedgerStore):
        self.store = store

    def isAvailable(self, propertyId: int, start: datetime, end: datetime) -> bool:
        """
        Check a window against CONFIRMED bookings. No side effects.

        Args:
            propertyId: Property to check
            start: Window start
            end: Window end

        Returns:
            True if no CONFIRMED booking overlaps [start, end]
        """
        return self.store.read(
            lambda session: self.isAvailableIn(session, propertyId, start, end)
        )

    @staticmethod
    def isAvailableIn(session: Session, propertyId: int, start: datetime, end: datetime) -> bool:
        """Same check, inside the caller's transaction."""
        conflicts = AvailabilityService.findConfirmedOverlaps(
            session, propertyId, start, end
        )
        if conflicts:
            logger.debug(
                f"Property {propertyId} unavailable for {start} - {end}: "
                f"confirmed bookings {[b.bookingID for b in conflicts]}"
            )
        return not conflicts

    @staticmethod
    def findConfirmedOverlaps(
            session: Session,
            propertyId: int,
            start: datetime,
            end: datetime,
            excludeBookingId: Optional[int] = None
    ) -> List[Booking]:
        """CONFIRMED bookings on the property overlapping [start, end]."""
        return _overlapping(
            session, propertyId, BookingStatus.CONFIRMED, start, end, excludeBookingId
        ).all()

    @staticmethod
    def findPendingOverlaps(
            session: Session,
            propertyId: int,
            start: datetime,
            end: datetime,
            excludeBookingId: Optional[int] = None
    ) -> List[Booking]:
        """PENDING bookings on the property overlapping [start, end]."""
        return _overlapping(
            session, propertyId, BookingStatus.PENDING, start, end, excludeBookingId
        ).all()
