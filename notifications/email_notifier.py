# propmarket/notifications/email_notifier.py
"""
Email channel: admin booking alerts and dealer commission mail.
"""
import logging
from decimal import Decimal

from email_system import EmailService
from notifications.base import Notifier

logger = logging.getLogger(__name__)


class EmailNotifier(Notifier):
    """Sends notification mail through EmailService."""

    name = "email"

    def __init__(self, email_service: EmailService, adminEmail: str):
        self.email_service = email_service
        self.adminEmail = adminEmail

    async def notifyAdminOfNewBooking(self, booking) -> None:
        sent = await self.email_service.send_template(
            to=self.adminEmail,
            template_key="booking_submitted",
            variables={
                "booking_id": booking.bookingID,
                "user": booking.user.email if booking.user else booking.userID,
                "property": booking.property.title if booking.property else booking.propertyID,
                "payment_ref": booking.paymentRef,
                "proof_url": booking.paymentProof,
                "start": booking.startDate.strftime("%a %b %d %Y"),
                "end": booking.endDate.strftime("%a %b %d %Y"),
            }
        )
        if not sent:
            logger.warning(f"Admin mail for booking {booking.bookingID} was not sent")

    async def notifyDealerOfCommission(self, dealer, amount: Decimal, level: int, propertyTitle: str = "") -> None:
        if not dealer.user or not dealer.user.email:
            logger.warning(f"Dealer {dealer.dealerID} has no email, commission mail skipped")
            return

        await self.email_service.send_template(
            to=dealer.user.email,
            template_key="commission_earned",
            variables={
                "dealer_name": dealer.user.name or "Dealer",
                "property": propertyTitle,
                "amount": f"{amount:.2f}",
                "level": level,
            }
        )

    async def notifyAdminOfDealerApplication(self, dealer) -> None:
        parent_code = dealer.parent.referralCode if dealer.parent else None
        await self.email_service.send_template(
            to=self.adminEmail,
            template_key="dealer_application",
            variables={
                "dealer_name": dealer.user.name if dealer.user else dealer.userID,
                "dealer_email": dealer.user.email if dealer.user else "",
                "parent_code": parent_code,
            }
        )
