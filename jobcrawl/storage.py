"""
Snapshot store: current-state postings plus their append-only history.

Every public operation runs in its own transaction. The dedup check and the
following write are separate operations; the partial unique index on open
url_hash rows catches the rare concurrent double insert.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from .database import STATUS_CLOSED, STATUS_OPEN, AtsHost, JobPosting, PostingVersion, utcnow
from .dedup import DEDUP_WINDOW_DAYS, Candidate, exists_by_url, is_duplicate
from .logger import get_logger
from .normalize import content_hash, normalize_host

logger = get_logger()


class DuplicatePostingError(Exception):
    """An insert collided with an open posting written concurrently."""
    pass


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class PostingRecord:
    url: str
    canonical_url: str
    url_hash: str
    job_id: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    location: Optional[str] = None
    posting_date: Optional[date] = None
    job_family: Optional[str] = None
    source_host_id: Optional[int] = None
    source_type: Optional[str] = None


# Fields refreshed from re-extraction on every visit when a value was found.
_METADATA_FIELDS = (
    "job_id", "company", "job_title", "location", "posting_date", "job_family", "source_type", "source_host_id",
)


def _version(posting_id: int, html_hash: Optional[str], title: Optional[str],
             location: Optional[str], at: datetime) -> PostingVersion:
    return PostingVersion(
        job_posting_id=posting_id,
        html_hash=html_hash,
        job_title=title,
        location=location,
        snapshot_at=at,
    )


class SnapshotStore:
    def __init__(self, sessionmaker: async_sessionmaker, clock: Callable[[], datetime] = utcnow):
        self._sessionmaker = sessionmaker
        self._clock = clock

    async def exists(self, url: str, url_hash: str) -> bool:
        async with self._sessionmaker() as session:
            return await exists_by_url(session, url, url_hash)

    async def is_duplicate(
        self,
        candidate: Candidate,
        window_days: int = DEDUP_WINDOW_DAYS,
        exclude_id: Optional[int] = None,
    ) -> bool:
        async with self._sessionmaker() as session:
            return await is_duplicate(
                session, candidate, now=self._clock(), window_days=window_days, exclude_id=exclude_id
            )

    async def _find_open(self, session, url: str, canonical_url: str, url_hash: str) -> Optional[JobPosting]:
        stmt = (
            select(JobPosting)
            .where(
                or_(
                    JobPosting.url == url,
                    JobPosting.canonical_url == canonical_url,
                    JobPosting.url_hash == url_hash,
                ),
                JobPosting.status == STATUS_OPEN,
            )
            .order_by(JobPosting.id)
            .limit(1)
        )
        return (await session.execute(stmt)).scalars().first()

    async def find_open(self, url: str, canonical_url: str, url_hash: str) -> Optional[JobPosting]:
        async with self._sessionmaker() as session:
            return await self._find_open(session, url, canonical_url, url_hash)

    async def upsert(self, record: PostingRecord, html: Optional[str], html_hash: Optional[str] = None) -> UpsertOutcome:
        """
        Persist one observation of a posting.

        Args:
            record: Canonical identity and extracted metadata
            html: Fetched body (hashed when html_hash is not given)
            html_hash: Precomputed digest of html

        Returns:
            UpsertOutcome.CREATED, UPDATED (content changed) or UNCHANGED

        Raises:
            DuplicatePostingError: the insert lost a race with a concurrent writer
        """
        if html_hash is None:
            html_hash = content_hash(html)
        try:
            async with self._sessionmaker() as session:
                async with session.begin():
                    existing = await self._find_open(session, record.url, record.canonical_url, record.url_hash)
                    now = self._clock()
                    if existing is None:
                        return await self._insert(session, record, html_hash, now)
                    return await self._update(session, existing, record, html_hash, now)
        except IntegrityError as e:
            logger.warning("Posting inserted concurrently", url=record.url, error=str(e.orig))
            raise DuplicatePostingError(record.url) from e

    async def _insert(self, session, record: PostingRecord, html_hash: str, now: datetime) -> UpsertOutcome:
        posting = JobPosting(
            source_host_id=record.source_host_id,
            source_type=record.source_type,
            url=record.url,
            canonical_url=record.canonical_url,
            url_hash=record.url_hash,
            html_hash=html_hash,
            job_id=record.job_id,
            company=record.company,
            job_title=record.job_title,
            location=record.location,
            posting_date=record.posting_date,
            job_family=record.job_family,
            status=STATUS_OPEN,
            discovered_at=now,
            last_seen_at=now,
            initial_snapshot_done=False,
        )
        session.add(posting)
        await session.flush()

        session.add(_version(posting.id, html_hash, record.job_title, record.location, now))
        posting.initial_snapshot_done = True
        logger.debug("Posting created", posting_id=posting.id, url=record.url)
        return UpsertOutcome.CREATED

    async def _update(self, session, existing: JobPosting, record: PostingRecord,
                      html_hash: str, now: datetime) -> UpsertOutcome:
        if not existing.initial_snapshot_done:
            # Capture the state the row had before it was versioned.
            session.add(_version(existing.id, existing.html_hash, existing.job_title, existing.location, now))
            existing.initial_snapshot_done = True

        outcome = UpsertOutcome.UNCHANGED
        if html_hash != existing.html_hash:
            session.add(_version(existing.id, html_hash, record.job_title, record.location, now))
            await session.flush()
            existing.html_hash = html_hash
            existing.url_hash = record.url_hash
            existing.canonical_url = record.canonical_url
            outcome = UpsertOutcome.UPDATED

        for name in _METADATA_FIELDS:
            value = getattr(record, name)
            if value is not None:
                setattr(existing, name, value)
        existing.last_seen_at = max(now, existing.discovered_at)
        existing.status = STATUS_OPEN
        logger.debug("Posting refreshed", posting_id=existing.id, outcome=outcome.value)
        return outcome

    async def mark_closed(self, url: str, url_hash: str) -> bool:
        """Close the posting at this URL if it exists and is still open."""
        stmt = (
            update(JobPosting)
            .where(
                or_(JobPosting.url == url, JobPosting.url_hash == url_hash),
                JobPosting.status != STATUS_CLOSED,
            )
            .values(status=STATUS_CLOSED, last_seen_at=self._clock())
        )
        async with self._sessionmaker() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def close_unseen(self, days: int) -> int:
        """Close open postings not seen for `days` days. Returns rows closed."""
        cutoff = self._clock() - timedelta(days=days)
        stmt = (
            update(JobPosting)
            .where(JobPosting.last_seen_at < cutoff, JobPosting.status == STATUS_OPEN)
            .values(status=STATUS_CLOSED)
        )
        async with self._sessionmaker() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return result.rowcount or 0

    async def versions_for(self, posting_id: int) -> List[PostingVersion]:
        stmt = (
            select(PostingVersion)
            .where(PostingVersion.job_posting_id == posting_id)
            .order_by(PostingVersion.id)
        )
        async with self._sessionmaker() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def list_postings(self, status: Optional[str] = None) -> List[JobPosting]:
        stmt = select(JobPosting).order_by(JobPosting.id)
        if status:
            stmt = stmt.where(JobPosting.status == status)
        async with self._sessionmaker() as session:
            return list((await session.execute(stmt)).scalars().all())

    async def add_host(self, domain: str, ats_type: Optional[str] = None) -> AtsHost:
        """Register a host for listing crawls; a known host is reactivated."""
        domain = normalize_host(domain)
        if not domain:
            raise ValueError("Host domain must not be empty")
        async with self._sessionmaker() as session:
            async with session.begin():
                stmt = select(AtsHost).where(AtsHost.domain == domain)
                host = (await session.execute(stmt)).scalars().first()
                if host is None:
                    host = AtsHost(domain=domain, ats_type=ats_type, is_active=True, added_at=self._clock())
                    session.add(host)
                else:
                    host.is_active = True
                    if ats_type:
                        host.ats_type = ats_type
                await session.flush()
        logger.info("Host registered", domain=domain, ats_type=host.ats_type, host_id=host.id)
        return host

    async def deactivate_host(self, domain: str) -> bool:
        stmt = (
            update(AtsHost)
            .where(AtsHost.domain == normalize_host(domain), AtsHost.is_active.is_(True))
            .values(is_active=False)
        )
        async with self._sessionmaker() as session:
            async with session.begin():
                result = await session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def active_hosts(self) -> List[AtsHost]:
        stmt = select(AtsHost).where(AtsHost.is_active.is_(True)).order_by(AtsHost.id)
        async with self._sessionmaker() as session:
            return list((await session.execute(stmt)).scalars().all())
