# tests/test_ledger_listeners.py
"""
Tests for ledger protection listeners and LedgerStore error mapping.

Architecture under test:
    Booking.status set     → BOOKING_TRANSITIONS guard
    Booking DELETE         → forbidden
    Commission UPDATE/DEL  → forbidden
    unit_of_work()         → IntegrityError becomes Conflict, rollback

Run:
    pytest tests/test_ledger_listeners.py -v
"""
from decimal import Decimal

import pytest

from core.errors import Conflict, InvalidState
from models import Booking, Commission, User
from models.enums import BookingStatus


# =============================================================================
# TEST CLASS: Booking transition guard
# =============================================================================

class TestBookingTransitionGuard:
    """ORM writes of Booking.status must follow the state machine."""

    @pytest.mark.parametrize("start,target", [
        (BookingStatus.PENDING, BookingStatus.EXPIRED),
        (BookingStatus.CONFIRMED, BookingStatus.PENDING),
        (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
        (BookingStatus.EXPIRED, BookingStatus.CANCELLED),
    ])
    def test_illegal_transition_blocked(self, store, make_property, make_user, make_booking, load, start, target):
        """
        TEST: Illegal transition → InvalidState, stored status unchanged.
        """
        booking = make_booking(make_property(), make_user(), status=start.value)

        with pytest.raises(InvalidState):
            with store.unit_of_work() as session:
                row = session.get(Booking, booking.bookingID)
                row.status = target.value

        assert load(Booking, booking.bookingID).status == start.value

    def test_legal_transition_allowed(self, store, make_property, make_user, make_booking, load):
        booking = make_booking(make_property(), make_user())

        with store.unit_of_work() as session:
            session.get(Booking, booking.bookingID).status = BookingStatus.CONFIRMED.value

        assert load(Booking, booking.bookingID).status == BookingStatus.CONFIRMED.value

    def test_same_status_is_noop(self, store, make_property, make_user, make_booking):
        booking = make_booking(make_property(), make_user(), status=BookingStatus.EXPIRED.value)

        with store.unit_of_work() as session:
            session.get(Booking, booking.bookingID).status = BookingStatus.EXPIRED.value


# =============================================================================
# TEST CLASS: Append-only protection
# =============================================================================

class TestAppendOnly:
    """Bookings are never deleted; commission rows are never changed."""

    def test_booking_delete_blocked(self, store, make_property, make_user, make_booking, load):
        booking = make_booking(make_property(), make_user())

        with pytest.raises(InvalidState):
            with store.unit_of_work() as session:
                session.delete(session.get(Booking, booking.bookingID))

        assert load(Booking, booking.bookingID) is not None

    def test_commission_delete_blocked(self, store, make_dealer, make_property, load):
        dealer = make_dealer()
        property = make_property(dealer=dealer)
        with store.unit_of_work() as session:
            commission = Commission(
                dealerID=dealer.dealerID,
                propertyID=property.propertyID,
                amount=Decimal("10.00"),
                level=1
            )
            session.add(commission)
            session.flush()

        with pytest.raises(InvalidState):
            with store.unit_of_work() as session:
                session.delete(session.get(Commission, commission.commissionID))

        assert load(Commission, commission.commissionID).amount == Decimal("10.00")


# =============================================================================
# TEST CLASS: unit_of_work error mapping
# =============================================================================

class TestUnitOfWork:
    """Commit on success, rollback and typed errors on failure."""

    def test_integrity_error_becomes_conflict(self, store, make_user):
        """
        TEST: Duplicate unique email → Conflict; the whole unit is rolled back.
        """
        make_user(email="taken@example.com")

        with pytest.raises(Conflict):
            with store.unit_of_work() as session:
                session.add(User(email="fresh@example.com", name="Fresh"))
                session.add(User(email="taken@example.com", name="Duplicate"))

        assert store.read(lambda s: s.query(User).filter_by(email="fresh@example.com").count()) == 0

    def test_domain_error_rolls_back(self, store):
        with pytest.raises(InvalidState):
            with store.unit_of_work() as session:
                session.add(User(email="ghost@example.com"))
                session.flush()
                raise InvalidState("abort")

        assert store.read(lambda s: s.query(User).count()) == 0

    def test_read_returns_detached_objects(self, store, make_user):
        """
        TEST: Objects from read() stay usable after the session closes.
        """
        user = make_user(name="Asha")

        loaded = store.read(lambda s: s.get(User, user.userID))

        assert loaded.name == "Asha"
