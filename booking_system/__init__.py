"""
Booking system - booking state machine, referral tree and commissions.
"""

# Services
from booking_system.services.availability_service import AvailabilityService
from booking_system.services.booking_service import BookingService
from booking_system.services.commission_service import CommissionService
from booking_system.services.dealer_service import DealerService
from booking_system.services.payment_service import PaymentService, ManualPaymentService

# Policy
from booking_system.config.policy import BOOKING_TRANSITIONS, can_transition

# Utilities
from booking_system.utils.referral_tree import ReferralTree
from booking_system.utils.time_machine import TimeMachine, timeMachine

__all__ = [
    # Services
    'AvailabilityService',
    'BookingService',
    'CommissionService',
    'DealerService',
    'PaymentService',
    'ManualPaymentService',

    # Policy
    'BOOKING_TRANSITIONS',
    'can_transition',

    # Utils
    'ReferralTree',
    'TimeMachine',
    'timeMachine',
]
