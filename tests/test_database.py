"""
Tests for database.py - schema and engine setup.
"""

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError

from jobcrawl.database import (
    STATUS_CLOSED,
    STATUS_OPEN,
    AtsHost,
    JobPosting,
    create_engine_for,
    init_database,
    utcnow,
)


def _posting(url_hash="h1", status=STATUS_OPEN, **kwargs):
    now = utcnow()
    return JobPosting(
        url=f"https://example.com/{url_hash}",
        canonical_url=f"https://example.com/{url_hash}",
        url_hash=url_hash,
        status=status,
        discovered_at=now,
        last_seen_at=now,
        **kwargs,
    )


class TestDatabaseInit:
    """Test database initialization."""

    @pytest.mark.asyncio
    async def test_init_creates_database_file(self, tmp_path):
        """Engine creation makes the parent directory; init creates the file."""
        db_path = tmp_path / "nested" / "dir" / "jobs.db"
        engine = create_engine_for(f"sqlite+aiosqlite:///{db_path}")
        try:
            assert db_path.parent.exists()
            await init_database(engine)
            assert db_path.exists()
        finally:
            await engine.dispose()

    @pytest.mark.asyncio
    async def test_init_creates_tables(self, engine):
        """Hosts, postings and versions tables exist after init."""
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda c: inspect(c).get_table_names())
        assert {"ats_hosts", "job_postings", "posting_versions"} <= set(tables)

    @pytest.mark.asyncio
    async def test_init_is_idempotent(self, engine):
        """Running init twice is harmless."""
        await init_database(engine)


class TestOpenUrlHashUniqueness:
    """Only one open row per url_hash."""

    @pytest.mark.asyncio
    async def test_duplicate_open_rows_rejected(self, sessionmaker):
        """A second open row with the same hash violates the index."""
        async with sessionmaker() as session:
            session.add(_posting("dup"))
            await session.commit()

        async with sessionmaker() as session:
            session.add(_posting("dup"))
            with pytest.raises(IntegrityError):
                await session.commit()

    @pytest.mark.asyncio
    async def test_closed_row_does_not_block_new_open_row(self, sessionmaker):
        """Closed rows are exempt from the index."""
        async with sessionmaker() as session:
            session.add(_posting("again", status=STATUS_CLOSED))
            session.add(_posting("again"))
            await session.commit()

        async with sessionmaker() as session:
            rows = (await session.execute(select(JobPosting).where(JobPosting.url_hash == "again"))).scalars().all()
        assert sorted(r.status for r in rows) == [STATUS_CLOSED, STATUS_OPEN]

    @pytest.mark.asyncio
    async def test_defaults(self, sessionmaker):
        """New rows start without a snapshot or identifier."""
        async with sessionmaker() as session:
            posting = _posting("defaults")
            session.add(posting)
            await session.commit()
        assert posting.initial_snapshot_done is False
        assert posting.job_id is None
        assert posting.source_host_id is None


class TestAtsHosts:
    """Crawled host registry."""

    @pytest.mark.asyncio
    async def test_domain_is_unique(self, sessionmaker):
        """A domain can be registered once."""
        async with sessionmaker() as session:
            session.add(AtsHost(domain="careers.acme.com", ats_type="Greenhouse"))
            await session.commit()

        async with sessionmaker() as session:
            session.add(AtsHost(domain="careers.acme.com"))
            with pytest.raises(IntegrityError):
                await session.commit()

    @pytest.mark.asyncio
    async def test_posting_references_host(self, sessionmaker):
        """Postings found on a host keep its id."""
        async with sessionmaker() as session:
            host = AtsHost(domain="careers.acme.com")
            session.add(host)
            await session.flush()
            posting = _posting("hosted", source_host_id=host.id)
            session.add(posting)
            await session.commit()
        assert host.is_active is True
        assert posting.source_host_id == host.id
