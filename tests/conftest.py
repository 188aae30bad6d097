# tests/conftest.py
"""
Pytest configuration and shared fixtures for the booking core tests.

Every test gets its own in-memory SQLite LedgerStore and a frozen clock.

Run:
    pytest tests/ -v
"""
import itertools
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from core.db import LedgerStore
from models import User, Dealer, Property, Booking, CommissionConfig
from models.enums import BookingStatus, DealerStatus, PropertyStatus, UserRole
from notifications.base import Notifier
from booking_system.services.booking_service import BookingService
from booking_system.services.commission_service import CommissionService
from booking_system.services.dealer_service import DealerService
from booking_system.services.payment_service import PaymentService
from booking_system.utils.time_machine import TimeMachine

# =============================================================================
# CONSTANTS
# =============================================================================

NOW = datetime(2025, 3, 10, 12, 0, 0)


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class RecordingNotifier(Notifier):
    """Records every call; optionally fails after recording."""

    name = "recording"

    def __init__(self, fail: bool = False):
        self.calls = []
        self.fail = fail

    async def _record(self, method, *args):
        self.calls.append((method,) + args)
        if self.fail:
            raise RuntimeError("notification channel down")

    async def notifyAdminOfNewBooking(self, booking):
        await self._record("notifyAdminOfNewBooking", booking)

    async def notifyDealerOfCommission(self, dealer, amount, level, propertyTitle=""):
        await self._record("notifyDealerOfCommission", dealer, amount, level, propertyTitle)

    async def notifyAdminOfDealerApplication(self, dealer):
        await self._record("notifyAdminOfDealerApplication", dealer)

    def methods(self):
        return [call[0] for call in self.calls]


class FakePaymentService(PaymentService):
    """Refund collaborator with a scripted answer."""

    def __init__(self, result: bool = True, error: Exception = None):
        self.result = result
        self.error = error
        self.refunded = []

    async def refundPayment(self, paymentRef):
        self.refunded.append(paymentRef)
        if self.error:
            raise self.error
        return self.result


# =============================================================================
# CORE FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return TimeMachine(NOW)


@pytest.fixture
def store():
    """Fresh in-memory ledger per test."""
    ledger = LedgerStore("sqlite://")
    ledger.setup_database()
    yield ledger
    ledger.dispose()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def payments():
    return FakePaymentService()


@pytest.fixture
def booking_service(store, notifier, payments, clock):
    return BookingService(store, notifier=notifier, paymentService=payments, clock=clock)


@pytest.fixture
def commission_service(store, notifier, clock):
    return CommissionService(store, notifier=notifier, maxLevels=3, clock=clock)


@pytest.fixture
def dealer_service(store, notifier, clock):
    return DealerService(store, notifier=notifier, clock=clock)


@pytest.fixture
def default_config(store):
    """Commission levels 10 / 5 / 2.5 percent."""
    with store.unit_of_work() as session:
        session.add_all([
            CommissionConfig(level=1, percentage=Decimal("10.00")),
            CommissionConfig(level=2, percentage=Decimal("5.00")),
            CommissionConfig(level=3, percentage=Decimal("2.50")),
        ])


# =============================================================================
# FACTORY FIXTURES
# =============================================================================

@pytest.fixture
def make_user(store):
    """Create a user: make_user(role='USER')."""
    counter = itertools.count(1)

    def _make(role=UserRole.USER.value, name=None, email=None, telegramID=None):
        n = next(counter)
        with store.unit_of_work() as session:
            user = User(
                email=email or f"user{n}@example.com",
                name=name or f"User {n}",
                role=role,
                telegramID=telegramID
            )
            session.add(user)
            session.flush()
        return user

    return _make


@pytest.fixture
def make_dealer(store, make_user, clock):
    """Create a dealer with its own user: make_dealer(parent=other, status='APPROVED')."""
    counter = itertools.count(1)

    def _make(parent=None, status=DealerStatus.APPROVED.value, commission=Decimal("0"), referralCode=None):
        n = next(counter)
        user = make_user(role=UserRole.DEALER.value, name=f"Dealer {n}", email=f"dealer{n}@example.com")
        with store.unit_of_work() as session:
            dealer = Dealer(
                userID=user.userID,
                referralCode=referralCode or f"DLR{n:03d}",
                status=status,
                parentID=parent.dealerID if parent else None,
                commission=commission,
                createdAt=clock.now + timedelta(seconds=n)
            )
            session.add(dealer)
            session.flush()
        return dealer

    return _make


@pytest.fixture
def make_property(store):
    """Create a property: make_property(dealer=d, status='FREE')."""
    counter = itertools.count(1)

    def _make(dealer=None, status=PropertyStatus.FREE.value, price=Decimal("5000000"), title=None):
        n = next(counter)
        with store.unit_of_work() as session:
            property = Property(
                title=title or f"Sea View Villa {n}",
                price=price,
                status=status,
                dealerID=dealer.dealerID if dealer else None
            )
            session.add(property)
            session.flush()
        return property

    return _make


@pytest.fixture
def make_booking(store, clock):
    """Insert a booking row directly, bypassing the state machine."""

    def _make(property, user, status=BookingStatus.PENDING.value, start=None, end=None, paymentRef="UPI-REF-0001"):
        start = start or clock.now
        end = end or start + timedelta(days=3)
        with store.unit_of_work() as session:
            booking = Booking(
                propertyID=property.propertyID,
                userID=user.userID,
                startDate=start,
                endDate=end,
                status=status,
                paymentRef=paymentRef,
                bookingCharges=Decimal("1000"),
                totalAmount=Decimal("1000"),
                createdAt=clock.now
            )
            session.add(booking)
            session.flush()
        return booking

    return _make


@pytest.fixture
def load(store):
    """Reload a row by class and primary key: load(Booking, id)."""

    def _load(model, pk):
        return store.read(lambda session: session.get(model, pk))

    return _load


@pytest.fixture
def now(clock):
    """The frozen test time."""
    return clock.now
