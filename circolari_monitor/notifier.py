"""Telegram notifier.

Posts plain-text messages to a channel through the Telegram Bot API.  The
bot must be an administrator of the channel.  Retrying is left to the
delivery pipeline: every method here makes a single attempt and raises
``NotifierError`` when Telegram does not confirm it.
"""
from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

import requests

from .utils import get_http_session

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"


class NotifierError(Exception):
    """Raised when Telegram cannot be reached or rejects a request."""


class TelegramNotifier:
    def __init__(
        self,
        token: str,
        chat_id: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        api_base: str = API_BASE,
    ) -> None:
        self._token = token
        self.chat_id = chat_id
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")
        self.session = session or get_http_session()

    def _endpoint(self, method: str) -> str:
        return f"{self.api_base}/bot{self._token}/{method}"

    def _call(self, method: str, payload: Optional[dict] = None) -> dict:
        try:
            resp = self.session.post(self._endpoint(method), json=payload or {}, timeout=self.timeout)
        except requests.RequestException as e:
            raise NotifierError(f"Telegram {method} failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.status_code != 200 or not body.get("ok"):
            description = body.get("description") or resp.text[:200]
            raise NotifierError(f"Telegram {method} error {resp.status_code}: {description}")
        return body

    def deliver(self, text: str) -> None:
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "disable_web_page_preview": False,
        }
        self._call("sendMessage", payload)
        logger.debug("Message posted to %s", self.chat_id)

    def reconnect(self) -> None:
        """Drop the HTTP session and check the bot credentials on a fresh one."""
        self.session.close()
        self.session = get_http_session()
        body = self._call("getMe")
        logger.info("Connected to Telegram as @%s", (body.get("result") or {}).get("username", "?"))

    def close(self) -> None:
        self.session.close()


class ConsoleNotifier:
    """Prints messages instead of posting them (``--test`` mode)."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream or sys.stdout

    def deliver(self, text: str) -> None:
        self.stream.write(f"Post:\n{text}\n\n")
        self.stream.flush()

    def reconnect(self) -> None:
        return None

    def close(self) -> None:
        return None


__all__ = ["NotifierError", "TelegramNotifier", "ConsoleNotifier"]
