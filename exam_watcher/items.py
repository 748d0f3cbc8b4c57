"""
Item model for the Exam Watcher bot.

An Item is one published entry on a feed. Two items are the same logical
entry when their content and publish date match; the attachment link and
the feed label take no part in equality or hashing.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class FeedKind(Enum):
    """The monitored listings, in polling order."""

    NOTIFICATIONS = "notifications"
    RESULTS = "results"


@dataclass(frozen=True)
class Item:
    """
    Represents one entry scraped from a feed page.

    Attributes:
        content: Whitespace-normalized text of the entry.
        publish_date: Publication date label exactly as the page renders it.
        attachment_link: Absolute URL of the attached document, if any.
        feed_kind: Feed that produced the entry.
    """
    content: str
    publish_date: str
    attachment_link: Optional[str] = field(default=None, compare=False)
    feed_kind: FeedKind = field(default=FeedKind.NOTIFICATIONS, compare=False)

    def identity(self) -> Tuple[str, str]:
        """Return the (content, publish_date) pair that identifies the item."""
        return self.content, self.publish_date

    def short_label(self, width: int = 60) -> str:
        """Truncated content for log lines."""
        if len(self.content) <= width:
            return self.content
        return self.content[:width - 3] + "..."
