# propmarket/email_system/providers/smtp_provider.py
"""
SMTP delivery for notification mail (aiosmtplib).
Port 465 uses implicit TLS, any other port upgrades with STARTTLS.
"""
import logging
from email.message import EmailMessage
from typing import Optional

import aiosmtplib
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465


def html_to_text(html_body: str) -> str:
    """Plain-text alternative of an HTML body, one text block per line."""
    return BeautifulSoup(html_body, "html.parser").get_text("\n", strip=True)


class SMTPProvider:
    """Sends admin and dealer notification mail through one SMTP account."""

    def __init__(
            self,
            host: str,
            port: int,
            username: str,
            password: str,
            from_email: Optional[str] = None,
            sender_name: str = "PropMarket",
            timeout: int = 30
    ):
        self.host = host
        self.port = int(port)
        self.username = username
        self.password = password
        self.from_email = from_email or username
        self.sender_name = sender_name
        self.timeout = timeout

        logger.info(f"SMTPProvider ready: {host}:{self.port} as {self.from_email}")

    def build_message(self, to: str, subject: str, html_body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = f"{self.sender_name} <{self.from_email}>"
        message["To"] = to
        message["Subject"] = subject
        message.set_content(html_to_text(html_body))
        message.add_alternative(html_body, subtype="html")
        return message

    async def send_email(self, to: str, subject: str, html_body: str) -> bool:
        """
        Deliver one message.

        Returns:
            True if the server accepted it; SMTP and network errors are
            logged and reported as False
        """
        implicit_tls = self.port == IMPLICIT_TLS_PORT
        try:
            await aiosmtplib.send(
                self.build_message(to, subject, html_body),
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                use_tls=implicit_tls,
                start_tls=not implicit_tls,
                timeout=self.timeout
            )
        except aiosmtplib.SMTPException as e:
            logger.error(f"SMTP rejected mail '{subject}' to {to}: {e}")
            return False
        except OSError as e:
            logger.error(f"SMTP server {self.host}:{self.port} unreachable: {e}")
            return False

        logger.info(f"✓ Mail '{subject}' delivered to {to}")
        return True
