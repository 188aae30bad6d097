# propmarket/notifications/__init__.py
"""
Notification channels used by the booking core.
"""
from notifications.base import Notifier, NullNotifier, CompositeNotifier, safeNotify
from notifications.email_notifier import EmailNotifier
from notifications.telegram_notifier import TelegramNotifier

__all__ = [
    'Notifier',
    'NullNotifier',
    'CompositeNotifier',
    'safeNotify',
    'EmailNotifier',
    'TelegramNotifier',
]
