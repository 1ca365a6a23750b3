"""Messaging helpers for ecuwake."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from .handshake import Outcome

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class TelegramNotifier:
    """Sends connection failures via the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        *,
        api_base: str = TELEGRAM_API,
        timeout: float = 10.0,
    ) -> None:
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def send_message(self, text: str) -> Optional[requests.Response]:
        """Post *text* to the configured chat; network errors are logged, not raised."""
        if not self.configured:
            logger.debug("No Telegram chat configured; dropping %r", text)
            return None

        try:
            response = requests.post(
                f"{self.api_base}/bot{self.bot_token}/sendMessage",
                params={"chat_id": self.chat_id, "text": text},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("Telegram notification to %s failed: %s", self.chat_id, exc)
            return None

        if response.status_code != 200:
            logger.warning("Telegram rejected notification (%s): %s", response.status_code, response.text)
        else:
            logger.debug("Telegram notification delivered to %s", self.chat_id)
        return response

    def notify_outcome(
        self, operation: str, port: str, outcome: Outcome
    ) -> Optional[requests.Response]:
        if not outcome.is_failed:
            return None
        return self.send_message(f"ecuwake: {operation} on {port} failed: {outcome.reason}")
