"""
Notify module for the Exam Watcher bot.

This module delivers one Telegram channel message per new item using the
Telegram Bot HTTP API. A failed send is reported as DeliveryError and is
not retried; the caller decides what to do with it.
"""

import re
from typing import Any, Dict, Optional

import requests

from exam_watcher.items import FeedKind, Item
from exam_watcher.utils import get_logger


# Module logger
logger = get_logger("notify")

# Telegram API configuration
TELEGRAM_API_BASE = "https://api.telegram.org"
DEFAULT_TIMEOUT = 30  # seconds
CONNECTION_CHECK_TIMEOUT = 10  # seconds

MARKDOWN_SPECIAL = re.compile(r"([_*`\[])")

MESSAGE_TITLES = {
    FeedKind.NOTIFICATIONS: "🔔 *NEW EXAM NOTIFICATION* 🔔",
    FeedKind.RESULTS: "📊 *NEW EXAM RESULT* 📊",
}


class DeliveryError(Exception):
    """Raised when a message could not be delivered to the channel."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class StartupConnectivityError(Exception):
    """Raised when the Telegram bot cannot be reached at startup."""


def escape_markdown(text: str) -> str:
    """Escape characters that Telegram's legacy Markdown treats as entity markers."""
    return MARKDOWN_SPECIAL.sub(r"\\\1", text)


def format_message(item: Item) -> str:
    """
    Format the channel message for an item.

    Args:
        item: Item to announce.

    Returns:
        Markdown message text.
    """
    title = MESSAGE_TITLES.get(item.feed_kind, MESSAGE_TITLES[FeedKind.NOTIFICATIONS])

    lines = [
        title,
        "",
        f"📅 *Published on:* {escape_markdown(item.publish_date)}",
        "",
        escape_markdown(item.content),
    ]

    if item.attachment_link:
        lines.extend(["", f"📎 [Download PDF]({item.attachment_link})"])

    return "\n".join(lines)


def _describe_failure(response: requests.Response) -> Dict[str, Any]:
    """Pull the error description and retry hint out of a Telegram reply."""
    try:
        data = response.json()
    except ValueError:
        return {"description": f"HTTP {response.status_code}"}

    if not isinstance(data, dict):
        return {"description": f"HTTP {response.status_code}"}

    parameters = data.get("parameters") or {}
    return {
        "description": data.get("description") or f"HTTP {response.status_code}",
        "retry_after": parameters.get("retry_after"),
    }


class TelegramNotifier:
    """Sends formatted item messages to a single Telegram channel."""

    def __init__(
        self,
        bot_token: str,
        channel_id: str,
        session: Optional[requests.Session] = None,
        timeout: int = DEFAULT_TIMEOUT
    ):
        self.channel_id = channel_id
        self.timeout = timeout
        self._api_url = f"{TELEGRAM_API_BASE}/bot{bot_token}"
        self._session = session or requests.Session()

    def __repr__(self) -> str:
        return f"TelegramNotifier(channel_id={self.channel_id})"

    def check_connection(self) -> str:
        """
        Verify the bot token by calling getMe.

        Returns:
            The bot's username.

        Raises:
            StartupConnectivityError: If the API cannot be reached or
                                      rejects the token.
        """
        try:
            response = self._session.get(
                f"{self._api_url}/getMe", timeout=CONNECTION_CHECK_TIMEOUT
            )
        except requests.exceptions.RequestException as e:
            raise StartupConnectivityError(f"Failed to connect to Telegram: {e}")

        if response.status_code != 200:
            failure = _describe_failure(response)
            raise StartupConnectivityError(
                f"Telegram rejected getMe: {failure['description']}"
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise StartupConnectivityError("Telegram returned an invalid getMe response")

        result = data.get("result") or {}
        if not isinstance(result, dict):
            raise StartupConnectivityError("Telegram returned an invalid getMe response")

        username = result.get("username", "")
        logger.info(f"Connected to Telegram as @{username}")
        return username

    def send_message(self, text: str) -> Dict[str, Any]:
        """
        Send a Markdown message to the channel.

        Args:
            text: Message text.

        Returns:
            The sent message object from the Telegram API.

        Raises:
            DeliveryError: If the message was not accepted.
        """
        payload = {
            "chat_id": self.channel_id,
            "text": text,
            "parse_mode": "Markdown",
            "disable_web_page_preview": False,
        }

        try:
            response = self._session.post(
                f"{self._api_url}/sendMessage", json=payload, timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            raise DeliveryError("Telegram API request timeout")
        except requests.exceptions.RequestException as e:
            raise DeliveryError(f"Telegram API request failed: {e}")

        if response.status_code == 200:
            try:
                data = response.json()
            except ValueError:
                data = None
            if not isinstance(data, dict):
                raise DeliveryError("Telegram returned an invalid response", status_code=200)
            if data.get("ok"):
                return data.get("result") or {}
            raise DeliveryError(
                f"Telegram error: {data.get('description', 'unknown error')}",
                status_code=200
            )

        failure = _describe_failure(response)

        if response.status_code == 429:
            raise DeliveryError(
                f"Telegram rate limit hit, retry after {failure.get('retry_after')}s",
                status_code=429,
                retry_after=failure.get("retry_after")
            )

        raise DeliveryError(
            f"Telegram API error: {failure['description']}",
            status_code=response.status_code
        )

    def deliver(self, item: Item) -> None:
        """
        Deliver one item to the channel.

        Args:
            item: Item to announce.

        Raises:
            DeliveryError: If the message was not accepted.
        """
        self.send_message(format_message(item))
        logger.info(f"Sent {item.feed_kind.value} item to {self.channel_id}: {item.short_label()}")

    def close(self) -> None:
        self._session.close()
