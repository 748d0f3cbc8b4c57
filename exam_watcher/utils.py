"""
Utility functions for the Exam Watcher bot.

This module provides:
- Central logging configuration
- Watcher configuration loading from the environment
- Shared helper utilities used across modules
"""

import logging
import os
import re
import sys
from typing import Dict, Optional
from urllib.parse import urljoin, urlparse


# Default feed sources
DEFAULT_NOTIFICATIONS_URL = (
    "https://exams.keralauniversity.ac.in/Login/check1/==QOBRkVRpEbRdVOrJVYatmV"
)
DEFAULT_RESULTS_URL = (
    "https://exams.keralauniversity.ac.in/Login/check8/==QOBRkVRpEbRdVOrJVYatmV"
)

# Every five minutes
DEFAULT_CHECK_INTERVAL = "*/5 * * * *"
DEFAULT_PORT = 3000


class WatcherConfig:
    """Runtime configuration for the watcher process."""

    def __init__(
        self,
        bot_token: str,
        channel_id: str,
        notifications_url: str = DEFAULT_NOTIFICATIONS_URL,
        results_url: str = DEFAULT_RESULTS_URL,
        check_interval: str = DEFAULT_CHECK_INTERVAL,
        port: int = DEFAULT_PORT
    ):
        self.bot_token = bot_token
        self.channel_id = channel_id
        self.notifications_url = notifications_url
        self.results_url = results_url
        self.check_interval = check_interval
        self.port = port

    def __repr__(self) -> str:
        # bot_token omitted
        return (
            f"WatcherConfig(channel_id={self.channel_id}, "
            f"check_interval={self.check_interval!r}, port={self.port})"
        )

    def feed_urls(self) -> Dict[str, str]:
        """Map feed kind values to their page URLs, in polling order."""
        return {
            "notifications": self.notifications_url,
            "results": self.results_url,
        }


def load_config() -> WatcherConfig:
    """
    Load the watcher configuration from environment variables.

    Required:
        TELEGRAM_BOT_TOKEN, TELEGRAM_CHANNEL_ID

    Optional:
        NOTIFICATIONS_URL, RESULTS_URL, CHECK_INTERVAL, PORT

    Returns:
        Populated WatcherConfig.

    Raises:
        ValueError: If a required variable is missing or a value is invalid.
    """
    logger = get_logger("utils")

    bot_token = get_env_var("TELEGRAM_BOT_TOKEN", required=True)
    channel_id = get_env_var("TELEGRAM_CHANNEL_ID", required=True)
    assert bot_token is not None
    assert channel_id is not None

    notifications_url = get_env_var(
        "NOTIFICATIONS_URL", required=False, default=DEFAULT_NOTIFICATIONS_URL
    )
    results_url = get_env_var(
        "RESULTS_URL", required=False, default=DEFAULT_RESULTS_URL
    )
    for name, url in (("NOTIFICATIONS_URL", notifications_url), ("RESULTS_URL", results_url)):
        if not is_http_url(url or ""):
            raise ValueError(f"{name} is not a valid http(s) URL: {url}")

    check_interval = get_env_var(
        "CHECK_INTERVAL", required=False, default=DEFAULT_CHECK_INTERVAL
    )
    if len((check_interval or "").split()) != 5:
        raise ValueError(
            f"CHECK_INTERVAL must be a 5-field crontab expression, got {check_interval!r}"
        )

    port_value = get_env_var("PORT", required=False, default=str(DEFAULT_PORT))
    try:
        port = int(port_value or DEFAULT_PORT)
    except ValueError:
        raise ValueError(f"PORT must be an integer, got {port_value!r}")

    config = WatcherConfig(
        bot_token=bot_token,
        channel_id=channel_id,
        notifications_url=notifications_url or DEFAULT_NOTIFICATIONS_URL,
        results_url=results_url or DEFAULT_RESULTS_URL,
        check_interval=check_interval or DEFAULT_CHECK_INTERVAL,
        port=port
    )
    logger.debug(f"Loaded configuration: {config}")
    return config


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure and return the root logger for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to INFO.

    Returns:
        Configured logger instance.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    logger = logging.getLogger("exam_watcher")
    logger.setLevel(log_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Name for the logger, typically the module name.

    Returns:
        Logger instance configured as a child of the main application logger.
    """
    return logging.getLogger(f"exam_watcher.{name}")


def get_env_var(name: str, required: bool = True, default: Optional[str] = None) -> Optional[str]:
    """
    Get an environment variable with optional requirement enforcement.

    Args:
        name: Name of the environment variable.
        required: If True, raises ValueError when variable is not set.
                  Defaults to True.
        default: Default value if variable is not set and not required.

    Returns:
        Value of the environment variable or default.

    Raises:
        ValueError: If required=True and the variable is not set.
    """
    value = os.environ.get(name)

    if value is None or value.strip() == "":
        if required:
            raise ValueError(f"Required environment variable '{name}' is not set")
        return default

    return value.strip()


def is_http_url(url: str) -> bool:
    """Return True if the URL is absolute and uses http or https."""
    try:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)
    except ValueError:
        return False


def normalize_url(url: str, base_url: Optional[str]) -> str:
    """
    Normalize a potentially relative URL to an absolute URL.

    Args:
        url: The URL to normalize (may be relative or absolute).
        base_url: The base URL to use for resolving relative URLs.
                  Relative URLs are returned unchanged when it is None.

    Returns:
        URL string, absolute whenever a base URL was available.
    """
    parsed = urlparse(url)
    if (parsed.scheme and parsed.netloc) or not base_url:
        return url

    return urljoin(base_url, url)


def sanitize_text(text: Optional[str]) -> str:
    """
    Clean and normalize text content.

    Collapses runs of whitespace (including newlines) into single spaces
    and trims both ends.

    Args:
        text: Raw text to sanitize.

    Returns:
        Cleaned text string.
    """
    if not text:
        return ""

    cleaned = re.sub(r"\s+", " ", text)
    return cleaned.strip()
