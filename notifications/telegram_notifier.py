# propmarket/notifications/telegram_notifier.py
"""
Telegram channel on aiogram: admin chat alerts and dealer DMs.
"""
import logging
from decimal import Decimal
from html import escape
from typing import List

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError

from notifications.base import Notifier

logger = logging.getLogger(__name__)


class TelegramNotifier(Notifier):
    """Posts notifications to admin chats and to dealers with a linked Telegram ID."""

    name = "telegram"

    def __init__(self, bot: Bot, adminChatIds: List[int]):
        self.bot = bot
        self.adminChatIds = list(adminChatIds)

    async def _send(self, chat_id: int, text: str) -> bool:
        try:
            await self.bot.send_message(chat_id=chat_id, text=text, parse_mode="HTML")
            return True
        except TelegramAPIError as e:
            logger.error(f"Telegram send to {chat_id} failed: {e}")
            return False

    async def _broadcast_admins(self, text: str) -> int:
        delivered = 0
        for chat_id in self.adminChatIds:
            if await self._send(chat_id, text):
                delivered += 1
        logger.debug(f"Telegram admin broadcast delivered to {delivered}/{len(self.adminChatIds)} chats")
        return delivered

    async def notifyAdminOfNewBooking(self, booking) -> None:
        user = escape(booking.user.email) if booking.user else str(booking.userID)
        title = escape(booking.property.title) if booking.property else str(booking.propertyID)
        text = (
            f"🎯 <b>New booking #{booking.bookingID}</b>\n"
            f"👤 {user}\n"
            f"🏠 {title}\n"
            f"💰 Payment ref: <code>{escape(booking.paymentRef)}</code>\n"
            f"📅 {booking.startDate:%Y-%m-%d} → {booking.endDate:%Y-%m-%d}"
        )
        await self._broadcast_admins(text)

    async def notifyDealerOfCommission(self, dealer, amount: Decimal, level: int, propertyTitle: str = "") -> None:
        chat_id = dealer.user.telegramID if dealer.user else None
        if not chat_id:
            logger.debug(f"Dealer {dealer.dealerID} has no Telegram chat, skipping")
            return

        text = (
            f"💸 <b>Commission earned</b>\n"
            f"Level {level}: <b>{amount:.2f}</b>\n"
            f"Property: {escape(propertyTitle)}"
        )
        await self._send(chat_id, text)

    async def notifyAdminOfDealerApplication(self, dealer) -> None:
        who = escape(dealer.user.email) if dealer.user else str(dealer.userID)
        await self._broadcast_admins(f"🧾 <b>New dealer application</b>\n{who}")

    async def close(self) -> None:
        await self.bot.session.close()
