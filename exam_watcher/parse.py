"""
Parse module for the Exam Watcher bot.

The exam portal renders each listing as a table. A row with class
``tableHeading`` opens a publish-date group ("Published on 19/10/2026") and
the ``displayList`` rows that follow it are the entries of that date:

    <tr class="tableHeading"><td>Published on 19/10/2026</td></tr>
    <tr class="displayList"><td>1</td><td>Entry text</td><td><a href="x.pdf">..</a></td></tr>

Only the first (most recent) group is extracted.
"""

from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from exam_watcher.items import FeedKind, Item
from exam_watcher.utils import get_logger, normalize_url, sanitize_text


# Module logger
logger = get_logger("parse")

HEADING_ROW_CLASS = "tableHeading"
CONTENT_ROW_CLASS = "displayList"
DATE_PREFIX = "Published on"

# Column positions inside a content row
CONTENT_COLUMN = 1
LINK_COLUMN = 2


class ParseError(Exception):
    """Raised when a feed page does not have the expected listing structure."""


def _has_class(row: Tag, class_name: str) -> bool:
    return class_name in (row.get("class") or [])


def extract_publish_date(row: Tag) -> str:
    """
    Extract the publish-date label from a heading row.

    Args:
        row: ``tr.tableHeading`` element.

    Returns:
        Date label with the "Published on" prefix removed.
    """
    cell = row.find("td")
    text = sanitize_text(cell.get_text() if cell else row.get_text())
    if text.lower().startswith(DATE_PREFIX.lower()):
        text = text[len(DATE_PREFIX):]
    return text.strip(" :")


def extract_row_item(
    row: Tag,
    publish_date: str,
    feed_kind: FeedKind,
    base_url: Optional[str] = None
) -> Optional[Item]:
    """
    Build an Item from a content row.

    Args:
        row: ``tr.displayList`` element.
        publish_date: Label of the group the row belongs to.
        feed_kind: Feed the page belongs to.
        base_url: Page URL, for resolving relative attachment links.

    Returns:
        Item, or None when the row carries no text.
    """
    cells = row.find_all("td")
    if len(cells) <= CONTENT_COLUMN:
        return None

    content = sanitize_text(cells[CONTENT_COLUMN].get_text())
    if not content:
        return None

    attachment_link = None
    if len(cells) > LINK_COLUMN:
        anchor = cells[LINK_COLUMN].find("a", href=True)
        if anchor:
            href = str(anchor["href"]).strip()
            if href and not href.startswith("#") and not href.startswith("javascript:"):
                attachment_link = normalize_url(href, base_url)

    return Item(
        content=content,
        publish_date=publish_date,
        attachment_link=attachment_link,
        feed_kind=feed_kind
    )


def extract_items(
    html: str,
    feed_kind: FeedKind,
    base_url: Optional[str] = None
) -> List[Item]:
    """
    Extract the entries of the most recent publish date from a feed page.

    Args:
        html: Raw HTML content string.
        feed_kind: Feed the page belongs to.
        base_url: Page URL, for resolving relative attachment links.

    Returns:
        Items of the first publish-date group, in page order. May be empty.

    Raises:
        ParseError: If the page is empty, has no publish-date heading, or
                    lists entries before any heading.
    """
    if not html or not html.strip():
        raise ParseError(f"Empty page for {feed_kind.value}")

    soup = BeautifulSoup(html, "html.parser")

    publish_date: Optional[str] = None
    items: List[Item] = []

    for row in soup.find_all("tr"):
        if _has_class(row, HEADING_ROW_CLASS):
            if publish_date is not None:
                # Next (older) date group starts here
                break
            publish_date = extract_publish_date(row)
        elif _has_class(row, CONTENT_ROW_CLASS):
            if publish_date is None:
                raise ParseError(
                    f"Content row before any publish-date heading on {feed_kind.value} page"
                )
            item = extract_row_item(row, publish_date, feed_kind, base_url)
            if item is not None:
                items.append(item)

    if publish_date is None:
        raise ParseError(f"No publish-date heading found on {feed_kind.value} page")

    logger.info(
        f"Extracted {len(items)} {feed_kind.value} item(s) published on {publish_date}"
    )

    return items
