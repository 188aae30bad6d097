"""
SQLAlchemy Event Listeners Package.

Registers all event listeners for the application.
LedgerStore calls register_all_listeners() on construction.

Listeners:
    - ledger_listeners: booking transition guard, append-only ledger protection
"""
import logging

logger = logging.getLogger(__name__)

_listeners_registered = False


def register_all_listeners():
    """
    Register all event listeners.

    Safe to call multiple times - listeners are registered only once.
    """
    global _listeners_registered

    if _listeners_registered:
        logger.debug("Listeners already registered, skipping")
        return

    from models.listeners.ledger_listeners import (
        register_booking_transition_guard,
        register_append_only_protection
    )

    register_booking_transition_guard()
    logger.info("Booking transition guard registered")

    register_append_only_protection()
    logger.info("Append-only protection registered (Commission, Booking)")

    _listeners_registered = True
    logger.info("All event listeners registered successfully")
