# booking_system/services/payment_service.py
"""
Refund collaborator for manually confirmed (UPI) payments.
"""
import logging

logger = logging.getLogger(__name__)


class PaymentService:
    """Refund interface used by BookingService.cancelBooking."""

    async def refundPayment(self, paymentRef: str) -> bool:
        """
        Request a refund for a payment reference.

        Returns:
            True if the refund was accepted
        """
        raise NotImplementedError


class ManualPaymentService(PaymentService):
    """
    Manual flow: payments were verified by an admin, so refunds are
    queued for the finance team and accepted immediately.
    """

    async def refundPayment(self, paymentRef: str) -> bool:
        if not paymentRef:
            logger.warning("Refund requested without payment reference")
            return False

        logger.info(f"💸 Refund queued for manual processing: paymentRef={paymentRef}")
        return True
