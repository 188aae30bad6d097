# propmarket/core/system_services.py
"""
System services management for PropMarket.
Handles service wiring, background sweeper lifecycle and graceful shutdown.
"""
import asyncio
import logging
import signal
from typing import Any, Dict, List, Optional
from aiogram import Bot

from config import Config
from core.db import LedgerStore
from notifications import CompositeNotifier, EmailNotifier, Notifier, TelegramNotifier

logger = logging.getLogger(__name__)


class ServiceManager:
    """
    Owner of the ledger store, the booking core services and the expiry sweeper.
    Handles service lifecycle and graceful shutdown.
    """

    def __init__(self, store: LedgerStore, notifier: Optional[Notifier] = None):
        """
        Initialize service manager.

        Args:
            store: Ledger store shared by all services
            notifier: Outbound notification channel(s)
        """
        from booking_system import BookingService, CommissionService, DealerService, ManualPaymentService

        self.store = store
        self.notifier = notifier or CompositeNotifier([])

        self.booking_service = BookingService(
            store, notifier=self.notifier, paymentService=ManualPaymentService()
        )
        self.commission_service = CommissionService(store, notifier=self.notifier)
        self.dealer_service = DealerService(store, notifier=self.notifier)

        self.expiry_sweeper: Optional['ExpirySweeper'] = None

        self._shutdown_event = asyncio.Event()

    async def start_services(self) -> None:
        """
        Start background services.

        Services to start:
        - Expiry sweeper (CONFIRMED bookings past endDate)
        """
        logger.info("=" * 60)
        logger.info("STARTING BACKGROUND SERVICES")
        logger.info("=" * 60)

        from background.expiry_sweeper import ExpirySweeper

        self.expiry_sweeper = ExpirySweeper(self.booking_service)
        await self.expiry_sweeper.start()

        logger.info("=" * 60)
        logger.info("✅ Background services started")
        logger.info("=" * 60)

    async def stop_services(self) -> None:
        """Stop all background services gracefully."""
        logger.info("=" * 60)
        logger.info("STOPPING BACKGROUND SERVICES")
        logger.info("=" * 60)

        if self.expiry_sweeper:
            logger.info("Stopping expiry sweeper...")
            await self.expiry_sweeper.stop()

        for notifier in getattr(self.notifier, "notifiers", []):
            close = getattr(notifier, "close", None)
            if close:
                await close()

        self.store.dispose()

        logger.info("=" * 60)
        logger.info("✅ ALL BACKGROUND SERVICES STOPPED")
        logger.info("=" * 60)

    def signal_shutdown(self) -> None:
        """Signal that shutdown has been requested."""
        self._shutdown_event.set()

    async def wait_for_shutdown(self) -> None:
        """Wait for shutdown signal."""
        await self._shutdown_event.wait()

    def get_status(self) -> Dict[str, Any]:
        return {
            "database": self.store._safe_url(),
            "notifiers": [n.name for n in getattr(self.notifier, "notifiers", [])],
            "sweeper": self.expiry_sweeper.getStatus() if self.expiry_sweeper else None,
        }


# ═══════════════════════════════════════════════════════════════════════════
# RESOURCE SETUP
# ═══════════════════════════════════════════════════════════════════════════

async def build_notifier() -> CompositeNotifier:
    """
    Assemble notification channels from Config.

    Email is added when SMTP is configured, Telegram when a bot token and
    at least one admin chat are configured.

    Returns:
        CompositeNotifier (possibly with no channels)
    """
    channels: List[Notifier] = []

    from email_system import EmailService

    email_service = EmailService()
    await email_service.initialize()
    if email_service.is_configured:
        channels.append(EmailNotifier(email_service, Config.get(Config.ADMIN_EMAIL)))
        logger.info("✓ Email notifications enabled")
    else:
        logger.warning("Email notifications disabled (SMTP not configured)")

    token = Config.get(Config.TELEGRAM_BOT_TOKEN)
    admin_ids = Config.get_admin_telegram_ids()
    if token and admin_ids:
        channels.append(TelegramNotifier(Bot(token=token), admin_ids))
        logger.info(f"✓ Telegram notifications enabled ({len(admin_ids)} admin chats)")
    else:
        logger.warning("Telegram notifications disabled (no bot token or admin chats)")

    return CompositeNotifier(channels)


# ═══════════════════════════════════════════════════════════════════════════
# GRACEFUL SHUTDOWN
# ═══════════════════════════════════════════════════════════════════════════

def setup_signal_handlers(loop: asyncio.AbstractEventLoop, service_manager: ServiceManager) -> None:
    """
    Setup signal handlers for graceful shutdown.

    Args:
        loop: Event loop
        service_manager: Manager whose shutdown event the signals set
    """
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service_manager.signal_shutdown)
        except NotImplementedError:
            # Signal handlers not available on Windows
            logger.warning(f"Signal handler for {sig} not available on this platform")


# ═══════════════════════════════════════════════════════════════════════════
# EXPORT
# ═══════════════════════════════════════════════════════════════════════════

__all__ = [
    'ServiceManager',
    'build_notifier',
    'setup_signal_handlers',
]
