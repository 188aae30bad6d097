# propmarket/email_system/services/email_service.py
"""
Email service for booking and commission notifications.
"""
import logging
from typing import Any, Dict, Optional

from config import Config
from email_system.providers import SMTPProvider
from email_system import templates

logger = logging.getLogger(__name__)


class EmailService:
    """
    Templated mail over the configured SMTP provider.

    Usage:
        email_service = EmailService()
        await email_service.initialize()
        sent = await email_service.send_template(
            to='admin@example.com',
            template_key='booking_submitted',
            variables={'booking_id': 7, ...}
        )
    """

    def __init__(self, provider: Optional[SMTPProvider] = None):
        self.provider = provider
        self._initialized = provider is not None

    async def initialize(self) -> None:
        """
        Build the SMTP provider from Config.
        Called during service startup.
        """
        if self._initialized:
            logger.warning("EmailService already initialized")
            return

        logger.info("Initializing EmailService...")

        smtp_host = Config.get(Config.SMTP_HOST)
        smtp_username = Config.get(Config.SMTP_USERNAME)
        smtp_password = Config.get(Config.SMTP_PASSWORD)

        if smtp_host and smtp_username and smtp_password:
            smtp_port = Config.get(Config.SMTP_PORT, 587)
            self.provider = SMTPProvider(
                host=smtp_host,
                port=smtp_port,
                username=smtp_username,
                password=smtp_password,
                from_email=Config.get(Config.SMTP_FROM_EMAIL)
            )
            logger.info(f"✓ SMTP provider added: {smtp_host}:{smtp_port}")
        else:
            logger.warning("SMTP provider not configured (missing credentials)")

        self._initialized = True

    @property
    def is_configured(self) -> bool:
        return self.provider is not None

    async def send_template(self, to: str, template_key: str, variables: Dict[str, Any]) -> bool:
        """
        Render a template and send it.

        Returns:
            True if sent, False if no provider or the provider failed
        """
        if not self.provider:
            logger.warning(f"Email '{template_key}' to {to} skipped: no provider configured")
            return False

        subject, html_body = templates.render(template_key, variables)
        return await self.provider.send_email(to=to, subject=subject, html_body=html_body)
