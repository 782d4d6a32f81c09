"""
Pytest configuration and shared fixtures.
"""

import json
from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from jobcrawl.config import build_config
from jobcrawl.database import create_engine_for, get_sessionmaker, init_database
from jobcrawl.storage import SnapshotStore


class FakeClock:
    """Deterministic clock; tests move it explicitly."""

    def __init__(self, now: datetime = datetime(2024, 3, 1, 12, 0, 0)):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def engine(tmp_path):
    """SQLite file per test, so concurrent sessions get their own connections."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessionmaker(engine):
    return get_sessionmaker(engine)


@pytest.fixture
def store(sessionmaker, clock) -> SnapshotStore:
    return SnapshotStore(sessionmaker, clock=clock)


@pytest.fixture
def sources_data() -> dict:
    return {
        "Greenhouse": {
            "ats_type": "Greenhouse",
            "search_domain": "boards.example.io",
            "job_detail_url_regex": r"boards\.example\.io/([a-z0-9_-]+)/jobs/(\d+)",
            "location_selectors": [".location"],
            "id_params": ["gh_jid"],
        },
        "Lever": {
            "ats_type": "Lever",
            "search_domain": "jobs.lever.co",
            "job_detail_url_regex": r"jobs\.lever\.co/([a-z0-9_.-]+)/([0-9a-f-]{36})",
        },
    }


@pytest.fixture
def families_data() -> dict:
    return {
        "Engineering": {"aliases": ["Software Engineer", "Backend Engineer", "Developer"]},
        "Sales": {"aliases": ["Account Executive", "Sales Engineer"]},
    }


@pytest.fixture
def crawl_config(sources_data, families_data):
    return build_config(sources_data, families_data)


@pytest.fixture
def config_files(tmp_path, sources_data, families_data):
    """Write source and family config to disk, return their paths."""
    sources_path = tmp_path / "sources.json"
    families_path = tmp_path / "job_families.json"
    sources_path.write_text(json.dumps(sources_data))
    families_path.write_text(json.dumps(families_data))
    return sources_path, families_path


@pytest.fixture
def jsonld_posting_html() -> str:
    """Job page with an embedded schema.org JobPosting block."""
    return """
    <html>
    <head>
        <title>Job Application for Backend Engineer at Acme</title>
        <script type="application/ld+json">
        {
            "@context": "https://schema.org",
            "@type": "JobPosting",
            "title": "Backend Engineer",
            "datePosted": "2024-02-20T09:00:00Z",
            "hiringOrganization": {"@type": "Organization", "name": "Acme"},
            "jobLocation": {"@type": "Place", "address": {"@type": "PostalAddress", "addressLocality": "NYC"}}
        }
        </script>
    </head>
    <body>
        <h1>Backend Engineer</h1>
        <p>Build the services behind our product.</p>
    </body>
    </html>
    """


@pytest.fixture
def sample_greenhouse_html() -> str:
    """Greenhouse page without structured data."""
    return """
    <html>
    <head><title>Software Engineer at Acme Corp</title></head>
    <body>
        <div class="app-wrapper">
            <h1 class="app-title">Software Engineer</h1>
            <span class="company-name">Acme Corp</span>
            <div class="location">San Francisco, CA</div>
            <div class="content">
                <p>We are looking for a talented software engineer...</p>
            </div>
        </div>
    </body>
    </html>
    """


@pytest.fixture
def bare_html() -> str:
    """Page with nothing any extractor can use."""
    return """
    <html>
    <body>
        <div class="content"><p>we are hiring, apply today</p></div>
    </body>
    </html>
    """
