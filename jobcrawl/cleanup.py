"""
Cleanup module for closing stale job postings.

Stale postings are open ones not seen by any crawl for a number of days
(default: 7). They are closed rather than deleted so their history survives.
"""

from .logger import get_logger
from .storage import SnapshotStore

logger = get_logger()

STALE_AFTER_DAYS = 7


async def close_unseen_postings(store: SnapshotStore, days: int = STALE_AFTER_DAYS) -> int:
    """
    Close open postings whose last_seen_at is older than `days` days.

    Args:
        store: Snapshot store to sweep
        days: Days without a sighting before a posting counts as gone

    Returns:
        Number of postings closed
    """
    if days < 1:
        raise ValueError(f"days must be positive, got {days}")

    logger.debug("Starting stale posting sweep", days=days)
    closed = await store.close_unseen(days)
    logger.info(f"Cleanup complete: {closed} closed", days_threshold=days, closed=closed)
    return closed
