# propmarket/email_system/__init__.py
"""
Email system for PropMarket.
Sends booking and commission notification mail.
"""
from email_system.services.email_service import EmailService

__all__ = ['EmailService']
