"""
Database schema and connection management.

SQLAlchemy models for crawled hosts, current-state postings and their append-only
version history, served through an async engine (aiosqlite by default).
"""

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()

STATUS_OPEN = "open"
STATUS_CLOSED = "closed"


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AtsHost(Base):
    """A careers host crawled through its listing pages."""

    __tablename__ = "ats_hosts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    domain = Column(String(255), nullable=False, unique=True)
    ats_type = Column(String, nullable=True)  # picks the source config; null = generic
    is_active = Column(Boolean, nullable=False, default=True)
    added_at = Column(DateTime, nullable=False, default=utcnow)


class JobPosting(Base):
    """Current state of one hiring posting."""

    __tablename__ = "job_postings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_host_id = Column(Integer, ForeignKey("ats_hosts.id"), nullable=True)  # null for search-discovered postings
    source_type = Column(String, nullable=True)  # Greenhouse, Lever, ...
    url = Column(String, nullable=False)
    canonical_url = Column(String, nullable=False, index=True)
    url_hash = Column(String(64), nullable=False, index=True)
    html_hash = Column(String(64), nullable=True)
    job_id = Column(String(64), nullable=True)
    company = Column(String(255), nullable=True)
    job_title = Column(String(140), nullable=True)
    location = Column(String(255), nullable=True)
    posting_date = Column(Date, nullable=True)
    job_family = Column(String, nullable=True)
    status = Column(String, nullable=False, default=STATUS_OPEN)
    discovered_at = Column(DateTime, nullable=False, default=utcnow)
    last_seen_at = Column(DateTime, nullable=False, default=utcnow)
    initial_snapshot_done = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        # Backstop against concurrent double inserts; closed rows are exempt
        # so a closed posting that reappears becomes a new record.
        Index(
            "uq_job_postings_open_url_hash",
            "url_hash",
            unique=True,
            sqlite_where=text("status = 'open'"),
            postgresql_where=text("status = 'open'"),
        ),
        Index("ix_job_postings_company_job_id", "company", "job_id"),
    )


class PostingVersion(Base):
    """Immutable snapshot of a posting's observable state."""

    __tablename__ = "posting_versions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_posting_id = Column(Integer, ForeignKey("job_postings.id"), nullable=False, index=True)
    html_hash = Column(String(64), nullable=True)
    job_title = Column(String(140), nullable=True)
    location = Column(String(255), nullable=True)
    snapshot_at = Column(DateTime, nullable=False, default=utcnow)


def create_engine_for(database_url: str) -> AsyncEngine:
    """
    Create an async engine, making sure a SQLite file's directory exists.

    Args:
        database_url: SQLAlchemy async URL, e.g. sqlite+aiosqlite:///data/jobs.db
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_async_engine(database_url)


async def init_database(engine: AsyncEngine) -> None:
    """Create tables and indexes if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
