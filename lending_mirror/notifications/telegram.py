"""Telegram notification channel for snapshot logs and tier alerts."""
import logging
import ssl

import aiohttp
import certifi

from ..config import TelegramConfig

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class TelegramNotifier:
    """Deliver messages through two bots: an unmuted alert bot and a log bot."""

    def __init__(self, config: TelegramConfig, timeout: int = 10) -> None:
        self.alert_bot_token = config.alert_bot_token
        self.log_bot_token = config.log_bot_token
        self.chat_id = config.chat_id
        self.timeout = timeout

    async def _send_message(
        self, message: str, bot_token: str, silent: bool = False
    ) -> bool:
        """Post ``message`` with ``bot_token``; False when not delivered."""
        if not bot_token or not self.chat_id:
            logger.warning("Telegram credentials not configured")
            return False

        payload = {
            "chat_id": self.chat_id,
            "text": message,
            "disable_notification": silent,
            "disable_web_page_preview": True,
        }

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        async with aiohttp.ClientSession(connector=connector) as session:
            async with session.post(
                f"{TELEGRAM_API}/bot{bot_token}/sendMessage",
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                if response.status != 200:
                    logger.error("Telegram sendMessage returned HTTP %s", response.status)
                    return False
                return True

    async def send_alert(self, message: str, subject: str = "") -> bool:
        """Send a tier alert; ``subject`` becomes the first line."""
        text = f"{subject}\n\n{message}" if subject else message
        delivered = await self._send_message(text, self.alert_bot_token, silent=False)
        if delivered:
            logger.info("Telegram alert sent")
        return delivered

    async def send_log(self, message: str, silent: bool = True) -> bool:
        """Send a snapshot log line through the log bot."""
        delivered = await self._send_message(message, self.log_bot_token, silent=silent)
        if delivered:
            logger.debug("Telegram log sent")
        return delivered
