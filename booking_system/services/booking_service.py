# booking_system/services/booking_service.py
"""
Booking state machine - manual-payment booking lifecycle.

    PENDING   -> CONFIRMED | CANCELLED
    CONFIRMED -> CANCELLED | EXPIRED
    CANCELLED, EXPIRED: terminal

Every operation that touches Booking.status and Property.status changes
both inside one unit of work, after re-reading them under the property
row lock.
"""
import logging
import math
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from core.db import LedgerStore
from core.errors import Conflict, Forbidden, InvalidInput, InvalidState, NotFound, TooLate, Unavailable
from models.booking import Booking
from models.dealer import Dealer
from models.property import Property
from models.user import User
from notifications.base import Notifier, NullNotifier, safeNotify
from booking_system.config.policy import (
    BookingStatus,
    DealerStatus,
    PropertyStatus,
    BOOKING_CHARGES,
    BOOKING_WINDOW,
    CANCELLATION_CUTOFF,
    MIN_PAYMENT_REF_LENGTH,
    PAYMENT_METHOD_UPI,
)
from booking_system.services.availability_service import AvailabilityService
from booking_system.services.payment_service import ManualPaymentService, PaymentService
from booking_system.utils.time_machine import TimeMachine, timeMachine

logger = logging.getLogger(__name__)


class BookingService:
    """Owns the lifecycle of bookings and the companion Property.status flag."""

    def __init__(
            self,
            store: LedgerStore,
            notifier: Optional[Notifier] = None,
            paymentService: Optional[PaymentService] = None,
            clock: Optional[TimeMachine] = None
    ):
        self.store = store
        self.notifier = notifier or NullNotifier()
        self.paymentService = paymentService or ManualPaymentService()
        self.clock = clock or timeMachine
        self.availability = AvailabilityService(store)

    # ═══════════════════════════════════════════════════════════════════
    # LIFECYCLE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════

    async def createBooking(
            self,
            propertyId: int,
            userId: int,
            paymentRef: str,
            dealerCode: Optional[str] = None,
            paymentProof: Optional[str] = None
    ) -> Booking:
        """
        Submit a manual-payment booking request (status PENDING).

        The window is always [now, now + 3 days] and the charge is the flat
        booking fee. Property stays FREE: competing PENDING requests may
        queue until an admin approves one.

        Raises:
            NotFound: Property or user missing
            InvalidState: Property is not FREE
            InvalidInput: Payment reference shorter than 4 characters
            Conflict: A CONFIRMED booking overlaps the window
        """
        now = self.clock.now
        startDate = now
        endDate = now + BOOKING_WINDOW

        with self.store.unit_of_work() as session:
            property = self._lockProperty(session, propertyId)
            if not property:
                raise NotFound("Property not found")

            if property.status != PropertyStatus.FREE.value:
                raise InvalidState("Property is not available for booking")

            cleanRef = (paymentRef or "").strip()
            if len(cleanRef) < MIN_PAYMENT_REF_LENGTH:
                raise InvalidInput(
                    f"Payment reference is required (at least {MIN_PAYMENT_REF_LENGTH} characters)"
                )

            user = session.get(User, userId)
            if not user:
                raise NotFound("User not found")

            if not self.availability.isAvailableIn(session, propertyId, startDate, endDate):
                raise Conflict("Property is not available for the selected dates")

            booking = Booking(
                property=property,
                user=user,
                dealerCode=self._checkDealerCode(session, dealerCode),
                startDate=startDate,
                endDate=endDate,
                status=BookingStatus.PENDING.value,
                paymentMethod=PAYMENT_METHOD_UPI,
                paymentRef=cleanRef,
                paymentProof=paymentProof or None,
                bookingCharges=BOOKING_CHARGES,
                totalAmount=BOOKING_CHARGES,
                createdAt=now,
                updatedAt=now
            )
            session.add(booking)
            session.flush()

        logger.info(
            f"🎯 Booking {booking.bookingID} created: property={propertyId}, "
            f"user={userId}, paymentRef={cleanRef}, window={startDate:%Y-%m-%d %H:%M} → {endDate:%Y-%m-%d %H:%M}"
        )

        await safeNotify(self.notifier, "notifyAdminOfNewBooking", booking)

        return booking

    async def approveBooking(self, bookingId: int) -> Booking:
        """
        Admin approval of a PENDING booking.

        In one transaction, under the property row lock:
        1. Re-check that no other CONFIRMED booking overlaps
        2. Cancel every other overlapping PENDING booking (they lost the race)
        3. Confirm this booking and mark the property BOOKED

        Raises:
            NotFound: Booking missing
            InvalidState: Booking is not PENDING
            Conflict: Another booking already holds the slot (this one stays PENDING)
        """
        with self.store.unit_of_work() as session:
            booking = self._getBookingLocked(session, bookingId)

            if booking.status != BookingStatus.PENDING.value:
                raise InvalidState("Only pending bookings can be approved")

            property = booking.property

            conflicts = AvailabilityService.findConfirmedOverlaps(
                session, booking.propertyID, booking.startDate, booking.endDate,
                excludeBookingId=booking.bookingID
            )
            if conflicts:
                logger.warning(
                    f"Approval of booking {bookingId} refused: slot held by "
                    f"{[b.bookingID for b in conflicts]}"
                )
                raise Conflict(
                    "Another booking is already confirmed for this property in the same time slot"
                )

            siblings = AvailabilityService.findPendingOverlaps(
                session, booking.propertyID, booking.startDate, booking.endDate,
                excludeBookingId=booking.bookingID
            )
            now = self.clock.now
            for sibling in siblings:
                sibling.status = BookingStatus.CANCELLED.value
                sibling.updatedAt = now

            booking.status = BookingStatus.CONFIRMED.value
            booking.updatedAt = now
            property.status = PropertyStatus.BOOKED.value
            property.updatedAt = now

        logger.info(
            f"✓ Booking {bookingId} approved, property {booking.propertyID} BOOKED, "
            f"cancelled {len(siblings)} competing request(s): {[s.bookingID for s in siblings]}"
        )
        return booking

    async def rejectBooking(self, bookingId: int) -> None:
        """
        Admin rejection of a PENDING booking.

        NOTE: The property is set FREE unconditionally, even if other
        PENDING requests exist for it.

        Raises:
            NotFound: Booking missing
            InvalidState: Booking is not PENDING
        """
        with self.store.unit_of_work() as session:
            booking = self._getBookingLocked(session, bookingId)

            if booking.status != BookingStatus.PENDING.value:
                raise InvalidState("Only pending bookings can be rejected")

            now = self.clock.now
            booking.status = BookingStatus.CANCELLED.value
            booking.updatedAt = now
            booking.property.status = PropertyStatus.FREE.value
            booking.property.updatedAt = now

        logger.info(f"✓ Booking {bookingId} rejected, property {booking.propertyID} FREE")

    async def cancelBooking(self, bookingId: int, userId: int) -> Booking:
        """
        Owner cancellation of a CONFIRMED booking, more than 24h before start.

        The refund is requested first; if it is refused nothing changes.

        Raises:
            NotFound: Booking missing
            Forbidden: Caller does not own the booking
            InvalidState: Booking is not CONFIRMED
            TooLate: now >= startDate - 24h
            Unavailable: Refund refused or failed
        """
        booking = self.store.read(lambda session: session.get(Booking, bookingId))
        self._checkCancellable(booking, userId)

        await self._requestRefund(booking)

        with self.store.unit_of_work() as session:
            booking = self._getBookingLocked(session, bookingId)

            # State may have moved while the refund was in flight
            if booking.status != BookingStatus.CONFIRMED.value:
                logger.error(
                    f"Booking {bookingId} left CONFIRMED during refund "
                    f"(now {booking.status}); refund for {booking.paymentRef} needs manual review"
                )
            self._checkCancellable(booking, userId)

            now = self.clock.now
            booking.status = BookingStatus.CANCELLED.value
            booking.updatedAt = now
            booking.property.status = PropertyStatus.FREE.value
            booking.property.updatedAt = now

        logger.info(f"✓ Booking {bookingId} cancelled by owner {userId}, property {booking.propertyID} FREE")
        return booking

    async def unbookProperty(self, bookingId: int) -> Booking:
        """
        Admin override: cancel a CONFIRMED booking at any time.

        Raises:
            NotFound: Booking missing
            InvalidState: Booking is not CONFIRMED
        """
        with self.store.unit_of_work() as session:
            booking = self._getBookingLocked(session, bookingId)

            if booking.status != BookingStatus.CONFIRMED.value:
                raise InvalidState("Only confirmed bookings can be unbooked")

            now = self.clock.now
            booking.status = BookingStatus.CANCELLED.value
            booking.updatedAt = now
            booking.property.status = PropertyStatus.FREE.value
            booking.property.updatedAt = now

        logger.info(f"✓ Booking {bookingId} unbooked by admin, property {booking.propertyID} FREE")
        return booking

    async def sweepExpiredBookings(self) -> int:
        """
        Demote CONFIRMED bookings whose endDate has passed to EXPIRED and
        free their properties.

        Each booking is expired in its own transaction with a conditional
        UPDATE (status must still be CONFIRMED), so concurrent or repeated
        sweeps never expire a booking twice.

        Returns:
            Number of bookings expired by this run
        """
        now = self.clock.now

        candidates = self.store.read(
            lambda session: [
                (b.bookingID, b.propertyID)
                for b in session.query(Booking).filter(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.endDate < now
                ).all()
            ]
        )

        if not candidates:
            logger.debug("Expiry sweep: nothing to expire")
            return 0

        expired = 0
        failed = 0

        for bookingId, propertyId in candidates:
            try:
                with self.store.unit_of_work() as session:
                    result = session.execute(
                        update(Booking)
                        .where(
                            Booking.bookingID == bookingId,
                            Booking.status == BookingStatus.CONFIRMED.value
                        )
                        .values(status=BookingStatus.EXPIRED.value, updatedAt=now)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount != 1:
                        logger.debug(f"Booking {bookingId} no longer CONFIRMED, skipping")
                        continue

                    session.execute(
                        update(Property)
                        .where(Property.propertyID == propertyId)
                        .values(status=PropertyStatus.FREE.value, updatedAt=now)
                        .execution_options(synchronize_session=False)
                    )
                expired += 1
                logger.info(f"Booking {bookingId} EXPIRED, property {propertyId} FREE")

            except Unavailable as e:
                # Left CONFIRMED; the next sweep retries it
                failed += 1
                logger.error(f"Could not expire booking {bookingId}: {e}")

        logger.info(f"✓ Expiry sweep done: {expired} expired, {failed} failed, {len(candidates)} candidates")
        return expired

    # ═══════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════

    def getBooking(self, bookingId: int) -> Booking:
        booking = self.store.read(lambda session: session.get(Booking, bookingId))
        if not booking:
            raise NotFound("Booking not found")
        return booking

    def getUserBookings(self, userId: int) -> List[Booking]:
        """User's bookings, newest first."""
        return self.store.read(
            lambda session: session.query(Booking)
            .filter(Booking.userID == userId)
            .order_by(Booking.createdAt.desc(), Booking.bookingID.desc())
            .all()
        )

    def getAllBookings(
            self,
            page: int = 1,
            limit: int = 10,
            status: Optional[str] = None,
            search: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Admin listing with paging, status filter and free-text search over
        user name/email, property title and payment reference.
        """
        if page < 1 or limit < 1:
            raise InvalidInput("page and limit must be positive")
        if status is not None and status not in {s.value for s in BookingStatus}:
            raise InvalidInput(f"Unknown booking status: {status}")

        def _query(session: Session) -> Dict[str, Any]:
            query = (
                session.query(Booking)
                .join(User, Booking.userID == User.userID)
                .join(Property, Booking.propertyID == Property.propertyID)
            )
            if status:
                query = query.filter(Booking.status == status)
            if search:
                pattern = f"%{search.lower()}%"
                query = query.filter(or_(
                    func.lower(User.name).like(pattern),
                    func.lower(User.email).like(pattern),
                    func.lower(Property.title).like(pattern),
                    func.lower(Booking.paymentRef).like(pattern),
                ))

            total = query.count()
            bookings = (
                query.order_by(Booking.createdAt.desc(), Booking.bookingID.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            return {
                "bookings": bookings,
                "total": total,
                "page": page,
                "limit": limit,
                "totalPages": math.ceil(total / limit),
            }

        return self.store.read(_query)

    def getBookingStats(self) -> Dict[str, Any]:
        """Counts per status and revenue from confirmed bookings."""

        def _stats(session: Session) -> Dict[str, Any]:
            counts = dict(
                session.query(Booking.status, func.count(Booking.bookingID))
                .group_by(Booking.status)
                .all()
            )
            revenue = session.query(
                func.coalesce(func.sum(Booking.totalAmount), 0)
            ).filter(
                Booking.status == BookingStatus.CONFIRMED.value
            ).scalar()

            return {
                "totalBookings": sum(counts.values()),
                "confirmedBookings": counts.get(BookingStatus.CONFIRMED.value, 0),
                "pendingBookings": counts.get(BookingStatus.PENDING.value, 0),
                "cancelledBookings": counts.get(BookingStatus.CANCELLED.value, 0),
                "expiredBookings": counts.get(BookingStatus.EXPIRED.value, 0),
                "totalRevenue": revenue,
            }

        return self.store.read(_stats)

    # ═══════════════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════════════

    @staticmethod
    def _lockProperty(session: Session, propertyId: int) -> Optional[Property]:
        """SELECT ... FOR UPDATE on the property row (no-op on SQLite, which locks at BEGIN)."""
        return (
            session.query(Property)
            .filter(Property.propertyID == propertyId)
            .with_for_update(of=Property)
            .populate_existing()
            .one_or_none()
        )

    def _getBookingLocked(self, session: Session, bookingId: int) -> Booking:
        """Load booking, lock its property, then re-read the booking under the lock."""
        booking = session.get(Booking, bookingId)
        if not booking:
            raise NotFound("Booking not found")

        self._lockProperty(session, booking.propertyID)
        session.refresh(booking)
        return booking

    def _checkCancellable(self, booking: Optional[Booking], userId: int) -> None:
        if not booking:
            raise NotFound("Booking not found")

        if booking.userID != userId:
            raise Forbidden("Unauthorized to cancel this booking")

        if booking.status != BookingStatus.CONFIRMED.value:
            raise InvalidState("Booking cannot be cancelled")

        if self.clock.now >= booking.startDate - CANCELLATION_CUTOFF:
            raise TooLate("Booking cannot be cancelled within 24 hours of start date")

    async def _requestRefund(self, booking: Booking) -> None:
        try:
            refunded = await self.paymentService.refundPayment(booking.paymentRef)
        except Exception as e:
            logger.error(f"Refund for booking {booking.bookingID} failed: {e}", exc_info=True)
            raise Unavailable("Refund could not be processed, booking unchanged") from e

        if not refunded:
            logger.warning(f"Refund refused for booking {booking.bookingID} ({booking.paymentRef})")
            raise Unavailable("Refund was refused, booking unchanged")

    @staticmethod
    def _checkDealerCode(session: Session, dealerCode: Optional[str]) -> Optional[str]:
        """
        Normalize the attribution code. Unknown or unapproved codes are
        logged and kept: the booking itself must not fail on them.
        """
        if not dealerCode or not dealerCode.strip():
            return None

        code = dealerCode.strip().upper()
        dealer = session.query(Dealer).filter_by(referralCode=code).first()
        if not dealer or dealer.status != DealerStatus.APPROVED.value:
            logger.warning(f"⚠️ Invalid dealer code: {code} - proceeding with booking anyway")
        return code

