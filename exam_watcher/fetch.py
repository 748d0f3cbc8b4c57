"""
Fetch module for the Exam Watcher bot.

This module retrieves the raw HTML of a feed page. Transient transport
failures (5xx, 429) are retried by the session adapter; anything that still
fails surfaces as FetchError so the caller can skip the feed for this cycle.
"""

from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from exam_watcher.items import FeedKind
from exam_watcher.utils import get_logger, is_http_url


# Module logger
logger = get_logger("fetch")

# Default configuration
DEFAULT_TIMEOUT = 30  # seconds
DEFAULT_MAX_RETRIES = 2
DEFAULT_BACKOFF_FACTOR = 1.0
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class FetchError(Exception):
    """Raised when a feed page cannot be retrieved."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def create_session(
    max_retries: int = DEFAULT_MAX_RETRIES,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR
) -> requests.Session:
    """
    Create a requests session with retry configuration.

    Args:
        max_retries: Maximum number of transport-level retry attempts.
        backoff_factor: Multiplier for exponential backoff between retries.

    Returns:
        Configured requests.Session instance.
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET", "HEAD"],
        raise_on_status=False
    )

    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "User-Agent": DEFAULT_USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    })

    return session


def fetch_feed(
    feed_kind: FeedKind,
    url: str,
    session: requests.Session,
    timeout: int = DEFAULT_TIMEOUT
) -> str:
    """
    Fetch the raw HTML of one feed page.

    Args:
        feed_kind: Feed being fetched (used for logging).
        url: Page URL.
        session: Configured requests session.
        timeout: Request timeout in seconds.

    Returns:
        Response body text.

    Raises:
        FetchError: On invalid URL, non-2xx status, timeout or network error.
    """
    logger.info(f"Checking for new {feed_kind.value}...")
    logger.debug(f"Fetching URL: {url}")

    if not is_http_url(url):
        raise FetchError(f"Invalid URL format: {url}")

    try:
        response = session.get(url, timeout=timeout)
    except requests.exceptions.Timeout:
        raise FetchError(f"Timeout fetching {url}")
    except requests.exceptions.ConnectionError as e:
        raise FetchError(f"Connection error for {url}: {e}")
    except requests.exceptions.RequestException as e:
        raise FetchError(f"Request failed for {url}: {e}")

    if not 200 <= response.status_code < 300:
        raise FetchError(
            f"HTTP {response.status_code} for {url}",
            status_code=response.status_code
        )

    logger.debug(f"Fetched {url} ({len(response.text)} bytes)")
    return response.text
