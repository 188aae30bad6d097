# propmarket/notifications/base.py
"""
Notifier interface consumed by the booking core.

The core never lets a notifier failure fail or roll back an operation;
implementations may raise, callers log and move on.
"""
import logging
from decimal import Decimal
from typing import Iterable, List

logger = logging.getLogger(__name__)


class Notifier:
    """Outbound notification channel. Default methods do nothing."""

    name = "base"

    async def notifyAdminOfNewBooking(self, booking) -> None:
        """A PENDING booking is waiting for payment review."""

    async def notifyDealerOfCommission(self, dealer, amount: Decimal, level: int, propertyTitle: str = "") -> None:
        """A commission row was written for this dealer."""

    async def notifyAdminOfDealerApplication(self, dealer) -> None:
        """A dealer application is waiting for approval."""


class NullNotifier(Notifier):
    """Drops everything (tests, or no channel configured)."""

    name = "null"


class CompositeNotifier(Notifier):
    """
    Fan out to several channels.
    A failing channel is logged and does not stop the others.
    """

    name = "composite"

    def __init__(self, notifiers: Iterable[Notifier]):
        self.notifiers: List[Notifier] = list(notifiers)

    async def _fan_out(self, method: str, *args, **kwargs) -> None:
        for notifier in self.notifiers:
            try:
                await getattr(notifier, method)(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"Notifier '{notifier.name}' failed in {method}: {e}",
                    exc_info=True
                )

    async def notifyAdminOfNewBooking(self, booking) -> None:
        await self._fan_out("notifyAdminOfNewBooking", booking)

    async def notifyDealerOfCommission(self, dealer, amount: Decimal, level: int, propertyTitle: str = "") -> None:
        await self._fan_out("notifyDealerOfCommission", dealer, amount, level, propertyTitle)

    async def notifyAdminOfDealerApplication(self, dealer) -> None:
        await self._fan_out("notifyAdminOfDealerApplication", dealer)


async def safeNotify(notifier: Notifier, method: str, *args) -> None:
    """Call a notifier method from core code; failures are logged, never raised."""
    try:
        await getattr(notifier, method)(*args)
    except Exception as e:
        logger.error(f"Notification {method} failed (non-blocking): {e}", exc_info=True)
