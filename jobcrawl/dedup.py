"""
Content-level deduplication.

Tiered, short-circuiting check run before any insert or update:

1. no company            -> cannot reason, not a duplicate
2. (company, job_id)     -> exact composite-key match, any age
3. (company, title, loc) -> fuzzy match, only within the rolling window
4. no title              -> not a duplicate

A repost of the same role after the window has passed is a new posting.
Only open postings are matched: a closed posting that reappears is stored
as a new record.
"""

from datetime import datetime, timedelta
from typing import NamedTuple, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .database import STATUS_OPEN, JobPosting, utcnow

DEDUP_WINDOW_DAYS = 45


class Candidate(NamedTuple):
    company: Optional[str]
    job_id: Optional[str] = None
    title: Optional[str] = None
    location: Optional[str] = None


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


async def is_duplicate(
    session: AsyncSession,
    candidate: Candidate,
    now: Optional[datetime] = None,
    window_days: int = DEDUP_WINDOW_DAYS,
    exclude_id: Optional[int] = None,
) -> bool:
    """True if an equivalent open posting is already stored.

    `exclude_id` ignores one row, used when re-visiting a known posting so
    it does not count as its own duplicate.
    """
    company = _norm(candidate.company)
    if not company:
        return False

    base = select(JobPosting.id).where(
        JobPosting.status == STATUS_OPEN,
        func.lower(JobPosting.company) == company,
    )
    if exclude_id is not None:
        base = base.where(JobPosting.id != exclude_id)

    if candidate.job_id:
        stmt = base.where(
            JobPosting.job_id.is_not(None),
            JobPosting.job_id == candidate.job_id,
        ).limit(1)
        if (await session.execute(stmt)).first() is not None:
            return True

    title = _norm(candidate.title)
    if not title:
        return False

    cutoff = (now or utcnow()) - timedelta(days=window_days)
    stmt = base.where(
        func.lower(JobPosting.job_title) == title,
        func.lower(func.coalesce(JobPosting.location, "")) == _norm(candidate.location),
        JobPosting.discovered_at >= cutoff,
    ).limit(1)
    return (await session.execute(stmt)).first() is not None


async def exists_by_url(session: AsyncSession, url: str, url_hash: str) -> bool:
    """Cheap pre-fetch check: any stored row with this exact URL or URL hash."""
    stmt = select(JobPosting.id).where(
        or_(JobPosting.url_hash == url_hash, JobPosting.url == url)
    ).limit(1)
    return (await session.execute(stmt)).first() is not None
