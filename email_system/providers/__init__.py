# propmarket/email_system/providers/__init__.py
"""
Email providers for PropMarket.
"""
from email_system.providers.smtp_provider import SMTPProvider

__all__ = ['SMTPProvider']
