"""
Cycle orchestration for the Exam Watcher bot.

One cycle runs, for each feed in turn:
fetch → extract → reconcile → deliver each new item → commit snapshot

A fetch or parse failure abandons only that feed's pass and leaves its
snapshot untouched, so the next cycle starts over. A failed delivery is
logged and counted as attempted; the snapshot is still committed at the
end of the pass and the item is not announced again.
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional

import requests

from exam_watcher.compare import SnapshotStore, find_removed_items
from exam_watcher.fetch import FetchError, create_session, fetch_feed
from exam_watcher.items import FeedKind, Item
from exam_watcher.notify import DeliveryError
from exam_watcher.parse import ParseError, extract_items
from exam_watcher.utils import get_logger


# Module logger
logger = get_logger("watcher")

# Seconds between consecutive sends in one pass
DEFAULT_DELIVERY_DELAY = 3.0


@dataclass
class FeedReport:
    """Counters for one feed's pass within a cycle."""
    feed_kind: FeedKind
    candidates: int = 0
    new: int = 0
    delivered: int = 0
    failed: int = 0
    suppressed: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class CycleReport:
    """Result of one full cycle over all feeds."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    feeds: List[FeedReport] = field(default_factory=list)

    @property
    def total_delivered(self) -> int:
        return sum(report.delivered for report in self.feeds)


class FeedWatcher:
    """
    Runs polling cycles over the configured feeds.

    Args:
        feeds: Feed URLs keyed by feed kind, polled in insertion order.
        notifier: Object with a ``deliver(item)`` method raising DeliveryError.
        store: Snapshot owner; a fresh one is created when omitted.
        session: HTTP session for page fetches; created lazily when omitted.
        fetcher: ``(feed_kind, url, session) -> html``.
        extractor: ``(html, feed_kind, base_url) -> items``.
        delivery_delay: Seconds to wait between consecutive sends.
        sleep: Sleep function, replaceable in tests.
    """

    def __init__(
        self,
        feeds: Dict[FeedKind, str],
        notifier,
        store: Optional[SnapshotStore] = None,
        session: Optional[requests.Session] = None,
        fetcher: Callable = fetch_feed,
        extractor: Callable = extract_items,
        delivery_delay: float = DEFAULT_DELIVERY_DELAY,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.feeds = dict(feeds)
        self.notifier = notifier
        self.store = store if store is not None else SnapshotStore()
        self.delivery_delay = delivery_delay
        self.last_checked: Optional[datetime] = None
        self._session = session
        self._fetcher = fetcher
        self._extractor = extractor
        self._sleep = sleep
        self._cycle_lock = threading.Lock()

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = create_session()
        return self._session

    def run_cycle(self) -> Optional[CycleReport]:
        """
        Run one pass over every feed.

        A call made while another cycle is still running is dropped.

        Returns:
            CycleReport, or None if the call was dropped.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Previous cycle still running, skipping this trigger")
            return None

        try:
            report = CycleReport(started_at=datetime.now())
            for feed_kind in self.feeds:
                report.feeds.append(self.run_feed(feed_kind))
            report.finished_at = datetime.now()
            self.last_checked = report.finished_at

            summary = ", ".join(
                f"{r.feed_kind.value}: {r.new} new/{r.delivered} sent"
                if r.ok else f"{r.feed_kind.value}: skipped"
                for r in report.feeds
            )
            logger.info(f"Cycle complete ({summary})")
            return report
        finally:
            self._cycle_lock.release()

    def run_feed(self, feed_kind: FeedKind) -> FeedReport:
        """
        Run fetch → extract → reconcile → deliver → commit for one feed.

        Args:
            feed_kind: Feed to process.

        Returns:
            FeedReport for the pass. ``error`` is set when the pass was
            abandoned and the snapshot left unchanged.
        """
        report = FeedReport(feed_kind=feed_kind)
        url = self.feeds[feed_kind]

        try:
            html = self._fetcher(feed_kind, url, self.session)
            candidates = self._extractor(html, feed_kind, url)
        except (FetchError, ParseError) as e:
            logger.error(f"Error scraping {feed_kind.value}: {e}")
            report.error = str(e)
            return report
        except Exception as e:
            logger.exception(f"Unexpected error scraping {feed_kind.value}: {e}")
            report.error = str(e)
            return report

        try:
            self._process(feed_kind, candidates, report)
        except Exception as e:
            logger.exception(f"Unexpected error processing {feed_kind.value}: {e}")
            report.error = str(e)

        return report

    def _process(self, feed_kind: FeedKind, candidates: List[Item], report: FeedReport) -> None:
        report.candidates = len(candidates)
        cold = self.store.is_cold(feed_kind)
        result = self.store.reconcile(feed_kind, candidates)
        report.new = len(result.new_items)

        for item in find_removed_items(candidates, self.store.get(feed_kind)):
            logger.debug(f"No longer listed on {feed_kind.value}: {item.short_label()}")

        to_deliver = result.new_items
        if cold and len(to_deliver) > 1:
            # First look at this feed: announce only the most recent entry
            logger.info(
                f"First check of {feed_kind.value}: announcing latest of "
                f"{len(to_deliver)} item(s)"
            )
            to_deliver = to_deliver[:1]
            report.suppressed = report.new - 1

        if not to_deliver:
            logger.info(f"No new {feed_kind.value}")

        for index, item in enumerate(to_deliver):
            if index > 0 and self.delivery_delay > 0:
                self._sleep(self.delivery_delay)
            logger.info(f"New {feed_kind.value} item detected: {item.short_label()}")
            try:
                self.notifier.deliver(item)
                report.delivered += 1
            except DeliveryError as e:
                report.failed += 1
                logger.error(f"Error sending {feed_kind.value} item to Telegram: {e}")
            except Exception as e:
                report.failed += 1
                logger.exception(f"Unexpected error sending {feed_kind.value} item: {e}")

        self.store.commit(feed_kind, result.updated_snapshot)

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
