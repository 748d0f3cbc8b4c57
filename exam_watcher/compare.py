"""
Compare module for the Exam Watcher bot.

This module decides which scraped items are new relative to what was seen
on the previous cycle, and owns the per-feed snapshots of seen items.

Snapshots are replaced, never merged: after a cycle the snapshot for a feed
is exactly the set of items the page showed on that cycle. They live only
for the lifetime of the process.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Set, Tuple

from exam_watcher.items import FeedKind, Item
from exam_watcher.utils import get_logger


# Module logger
logger = get_logger("compare")

EMPTY_SNAPSHOT: FrozenSet[Item] = frozenset()


@dataclass(frozen=True)
class ReconcileResult:
    """
    Outcome of reconciling one feed's candidates against its snapshot.

    Attributes:
        new_items: Items absent from the snapshot, in candidate order.
        updated_snapshot: Full candidate set, to be committed after delivery.
    """
    new_items: List[Item]
    updated_snapshot: FrozenSet[Item]


def build_identity_set(items: Iterable[Item]) -> Set[Tuple[str, str]]:
    """
    Build a set of identities from a collection of items.

    Args:
        items: Items to index.

    Returns:
        Set of (content, publish_date) pairs.
    """
    return {item.identity() for item in items}


def unique_items(items: Iterable[Item]) -> List[Item]:
    """
    Drop repeated items, keeping the first occurrence and the input order.

    Args:
        items: Items, possibly with repeats.

    Returns:
        List of distinct items.
    """
    seen: Set[Tuple[str, str]] = set()
    unique = []
    for item in items:
        key = item.identity()
        if key not in seen:
            seen.add(key)
            unique.append(item)
    return unique


def find_new_items(current: Iterable[Item], previous: Iterable[Item]) -> List[Item]:
    """
    Find items that are in current but not in previous.

    Args:
        current: Items on the page now, in page order.
        previous: Items seen on the last committed cycle.

    Returns:
        New items in the order of ``current``, without repeats.
    """
    previous_ids = build_identity_set(previous)
    return [
        item for item in unique_items(current)
        if item.identity() not in previous_ids
    ]


def find_removed_items(current: Iterable[Item], previous: Iterable[Item]) -> List[Item]:
    """
    Find items that were in previous but are no longer on the page.

    Args:
        current: Items on the page now.
        previous: Items seen on the last committed cycle.

    Returns:
        Removed items, without repeats.
    """
    current_ids = build_identity_set(current)
    return [
        item for item in unique_items(previous)
        if item.identity() not in current_ids
    ]


def reconcile(
    feed_kind: FeedKind,
    candidates: Iterable[Item],
    snapshot: FrozenSet[Item] = EMPTY_SNAPSHOT
) -> ReconcileResult:
    """
    Partition the candidates of one feed into new and already seen items.

    This is a pure function: the snapshot passed in is not modified and
    nothing is recorded anywhere.

    Args:
        feed_kind: Feed the candidates come from (used for logging).
        candidates: Items extracted from the page, in page order.
        snapshot: Items seen as of the last committed cycle.

    Returns:
        ReconcileResult with the new items and the replacement snapshot.
    """
    candidate_list = list(candidates)
    new_items = find_new_items(candidate_list, snapshot)
    updated_snapshot = frozenset(candidate_list)

    logger.debug(
        f"Reconciled {feed_kind.value}: {len(candidate_list)} candidate(s), "
        f"{len(snapshot)} previously seen, {len(new_items)} new"
    )

    return ReconcileResult(new_items=new_items, updated_snapshot=updated_snapshot)


def get_comparison_summary(
    current: Iterable[Item],
    previous: Iterable[Item]
) -> Dict[str, int]:
    """
    Get a summary of the comparison between current and previous items.

    Args:
        current: Items on the page now.
        previous: Items seen on the last committed cycle.

    Returns:
        Dictionary with comparison statistics.
    """
    current_list = unique_items(current)
    previous_list = unique_items(previous)

    current_ids = build_identity_set(current_list)
    previous_ids = build_identity_set(previous_list)

    return {
        "current_count": len(current_list),
        "previous_count": len(previous_list),
        "new_count": len(current_ids - previous_ids),
        "removed_count": len(previous_ids - current_ids),
        "unchanged_count": len(current_ids & previous_ids)
    }


class SnapshotStore:
    """
    In-memory owner of the seen-item snapshot of every feed.

    Each feed's snapshot is independent: reconciling or committing one feed
    never touches another.
    """

    def __init__(self) -> None:
        self._snapshots: Dict[FeedKind, FrozenSet[Item]] = {}

    def get(self, feed_kind: FeedKind) -> FrozenSet[Item]:
        """Return the committed snapshot for a feed (empty if never committed)."""
        return self._snapshots.get(feed_kind, EMPTY_SNAPSHOT)

    def is_cold(self, feed_kind: FeedKind) -> bool:
        """True until the first snapshot for the feed has been committed."""
        return feed_kind not in self._snapshots

    def reconcile(self, feed_kind: FeedKind, candidates: Iterable[Item]) -> ReconcileResult:
        """Reconcile candidates against this feed's committed snapshot."""
        return reconcile(feed_kind, candidates, self.get(feed_kind))

    def commit(self, feed_kind: FeedKind, snapshot: Iterable[Item]) -> None:
        """
        Replace the feed's snapshot.

        Args:
            feed_kind: Feed to update.
            snapshot: Items to remember; previous contents are discarded.
        """
        previous = self.get(feed_kind)
        updated = frozenset(snapshot)
        self._snapshots[feed_kind] = updated

        summary = get_comparison_summary(updated, previous)
        logger.debug(
            f"Committed {feed_kind.value} snapshot: "
            f"{summary['current_count']} item(s), "
            f"{summary['removed_count']} forgotten"
        )
