"""
Chat transport.

The dispatcher only needs one operation: send text to a recipient.
Every error a transport can produce is reported as TransportFailure,
which the dispatcher treats as retryable.
"""

from abc import ABC, abstractmethod
from typing import Optional

from telegram import Bot
from telegram.error import TelegramError


class TransportFailure(Exception):
    """A single send attempt failed (network error, rate limit, timeout)."""
    pass


class TransportInterface(ABC):

    @abstractmethod
    async def send(self, recipient_id: str, text: str, parse_mode: Optional[str] = None) -> None:
        """
        Deliver one message.

        Raises:
            TransportFailure: If the message was not accepted
        """
        pass


class TelegramTransport(TransportInterface):
    """Sends messages through the Telegram Bot API."""

    def __init__(self, bot: Bot, default_parse_mode: Optional[str] = "Markdown"):
        self._bot = bot
        self._default_parse_mode = default_parse_mode

    async def send(self, recipient_id: str, text: str, parse_mode: Optional[str] = None) -> None:
        try:
            await self._bot.send_message(
                chat_id=recipient_id,
                text=text,
                parse_mode=parse_mode or self._default_parse_mode,
            )
        except TelegramError as e:
            raise TransportFailure(f"Telegram send failed: {e}") from e
