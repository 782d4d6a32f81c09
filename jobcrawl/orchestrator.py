"""
Crawl orchestrator.

Runs batches of discovered URLs through the per-URL pipeline:

    canonicalize -> pre-fetch check -> fetch -> extract -> dedup -> persist

URLs run concurrently under one global in-flight limit. Every per-URL
failure is contained and recorded in the batch result; a batch always runs
to completion.

URLs come either from search discovery per source and job family, or from
the listing pages of registered careers hosts.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .classifier import resolve_job_family
from .config import CrawlConfig, CrawlSettings, SourceConfig
from .dedup import Candidate as DedupCandidate
from .discovery import DiscoveryClient, DiscoveryQuery, filter_candidates
from .fetch import FetchError, FetchOutcome, classify_status
from .hosts import HostListingDiscovery, host_source
from .identity import extract_identity
from .logger import get_logger
from .metadata import extract_metadata
from .normalize import canonicalize_url, content_hash
from .search import DEFAULT_GEOGRAPHY
from .sources import build_strategy
from .sources.base import SourceStrategy
from .storage import DuplicatePostingError, PostingRecord, SnapshotStore

logger = get_logger()


class UrlOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    CLOSED = "closed"
    SKIPPED = "skipped"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass
class BatchResult:
    source: str
    host: Optional[str] = None  # set for batches harvested from a registered host
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    closed: int = 0
    skipped: int = 0
    rate_limited: int = 0
    failed: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)
    rate_limited_urls: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def record(self, url: str, outcome: UrlOutcome, reason: Optional[str] = None):
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)
        if outcome is UrlOutcome.FAILED:
            self.failures.append((url, reason or "unknown error"))
        elif outcome is UrlOutcome.RATE_LIMITED:
            self.rate_limited_urls.append(url)
        elif reason:
            self.warnings.append(f"{url}: {reason}")

    @property
    def total(self) -> int:
        return sum(getattr(self, o.value) for o in UrlOutcome)

    def counts(self) -> dict:
        return {o.value: getattr(self, o.value) for o in UrlOutcome}


@dataclass(frozen=True)
class CrawlQuery:
    sources: Optional[Tuple[str, ...]] = None  # None = every configured source
    families: Optional[Tuple[str, ...]] = None  # None = every configured family
    geography: Optional[str] = DEFAULT_GEOGRAPHY
    hours: Optional[int] = 24
    batch_size: Optional[int] = None
    refresh: bool = False


@dataclass
class CrawlReport:
    batches: List[BatchResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def totals(self) -> dict:
        totals = {o.value: 0 for o in UrlOutcome}
        for batch in self.batches:
            for key, value in batch.counts().items():
                totals[key] += value
        return totals


class CrawlOrchestrator:
    def __init__(
        self,
        config: CrawlConfig,
        store: SnapshotStore,
        fetcher,
        discovery: Optional[DiscoveryClient] = None,
        settings: Optional[CrawlSettings] = None,
    ):
        self.config = config
        self.store = store
        self.fetcher = fetcher
        self.discovery = discovery
        self.settings = settings or CrawlSettings()
        # Created on first use inside the running loop; a new loop gets a new limit.
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._semaphore_loop = None

    def _limiter(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(max(1, self.settings.concurrency))
            self._semaphore_loop = loop
        return self._semaphore

    async def run_batch(
        self,
        source_name: str,
        urls: Iterable[str],
        family_hint: Optional[str] = None,
        refresh: bool = False,
        source_host_id: Optional[int] = None,
    ) -> BatchResult:
        """
        Process a batch of job-detail URLs for one source.

        Args:
            source_name: Key into the crawl config's sources
            urls: Raw links as discovered
            family_hint: Family the URLs were discovered for, used when the
                title does not classify
            refresh: Re-fetch URLs that are already stored
            source_host_id: Registered host the URLs were harvested from

        Returns:
            BatchResult with per-outcome counts, failures and warnings
        """
        source = self.config.sources.get(source_name)
        if source is None:
            result = BatchResult(source=source_name)
            reason = self.config.invalid_sources.get(source_name)
            message = f"Source {source_name!r} skipped: " + ("; ".join(reason) if reason else "not configured")
            logger.warning("Source skipped", source=source_name, reason=message)
            result.warnings.append(message)
            return result
        return await self._run_source_batch(source, urls, family_hint, refresh, source_host_id)

    async def _run_source_batch(
        self,
        source: SourceConfig,
        urls: Iterable[str],
        family_hint: Optional[str],
        refresh: bool,
        source_host_id: Optional[int] = None,
        host: Optional[str] = None,
    ) -> BatchResult:
        result = BatchResult(source=source.name, host=host)
        strategy = build_strategy(source)
        urls = [u for u in urls if u and u.strip()]
        logger.info("Starting batch", source=source.name, host=host, urls=len(urls), refresh=refresh)

        outcomes = await asyncio.gather(
            *(self._process_url(source, strategy, url, family_hint, refresh, source_host_id) for url in urls)
        )
        for url, (outcome, reason) in zip(urls, outcomes):
            result.record(url, outcome, reason)
            logger.record_outcome(outcome.value)

        logger.info("Batch complete", source=source.name, host=host, **result.counts())
        return result

    async def _process_url(
        self,
        source: SourceConfig,
        strategy: SourceStrategy,
        url: str,
        family_hint: Optional[str],
        refresh: bool,
        source_host_id: Optional[int] = None,
    ) -> Tuple[UrlOutcome, Optional[str]]:
        try:
            return await self._pipeline(source, strategy, url.strip(), family_hint, refresh, source_host_id)
        except Exception as e:
            logger.error("URL processing failed", source=source.name, url=url, error=f"{type(e).__name__}: {e}")
            return UrlOutcome.FAILED, f"{type(e).__name__}: {e}"

    async def _pipeline(
        self,
        source: SourceConfig,
        strategy: SourceStrategy,
        url: str,
        family_hint: Optional[str],
        refresh: bool,
        source_host_id: Optional[int] = None,
    ) -> Tuple[UrlOutcome, Optional[str]]:
        canon = canonicalize_url(strategy.normalize_url(url), strategy.id_params)

        existing = None
        if refresh:
            existing = await self.store.find_open(url, canon.canonical_url, canon.url_hash)
        elif await self.store.exists(url, canon.url_hash):
            logger.debug("Already stored, skipping fetch", url=url)
            return UrlOutcome.SKIPPED, None

        async with self._limiter():
            logger.record_fetch_attempt(source.name)
            try:
                response = await self.fetcher.fetch(url)
            except FetchError as e:
                logger.record_fetch_failure(source.name, "FetchError")
                logger.warning("Fetch failed", source=source.name, url=url, error=str(e))
                return UrlOutcome.FAILED, str(e)

        status = classify_status(response.status_code)
        if status is FetchOutcome.GONE:
            if await self.store.mark_closed(url, canon.url_hash):
                logger.info("Posting gone, closed", url=url, status_code=response.status_code)
                return UrlOutcome.CLOSED, None
            logger.debug("Posting gone, nothing open to close", url=url, status_code=response.status_code)
            return UrlOutcome.SKIPPED, None
        if status is FetchOutcome.RATE_LIMITED:
            logger.record_fetch_failure(source.name, "RateLimited")
            logger.warning("Rate limited", source=source.name, url=url, status_code=response.status_code)
            return UrlOutcome.RATE_LIMITED, None
        if status is FetchOutcome.FAILED:
            logger.record_fetch_failure(source.name, f"HTTP {response.status_code}")
            return UrlOutcome.FAILED, f"HTTP {response.status_code}"
        logger.record_fetch_success(source.name)

        html = response.body
        identity = extract_identity(canon.canonical_url, html, strategy.identity_rules, source.url_pattern())
        metadata = extract_metadata(
            html,
            strategy,
            known_title=existing.job_title if existing is not None else None,
            known_location=existing.location if existing is not None else None,
        )
        company = metadata.company or identity.company_guess
        job_family = resolve_job_family(metadata.title, family_hint, self.config.job_families)

        duplicate = await self.store.is_duplicate(
            DedupCandidate(company, identity.job_id, metadata.title, metadata.location),
            window_days=self.settings.dedup_window_days,
            exclude_id=existing.id if existing is not None else None,
        )
        if duplicate:
            logger.debug("Duplicate posting, not persisted", url=url, company=company, job_id=identity.job_id)
            return UrlOutcome.SKIPPED, None

        record = PostingRecord(
            url=url,
            canonical_url=canon.canonical_url,
            url_hash=canon.url_hash,
            job_id=identity.job_id,
            company=company,
            job_title=metadata.title,
            location=metadata.location,
            posting_date=metadata.posting_date,
            job_family=job_family,
            source_type=source.ats_type,
            source_host_id=source_host_id,
        )
        try:
            outcome = await self.store.upsert(record, html, content_hash(html))
        except DuplicatePostingError:
            return UrlOutcome.SKIPPED, "duplicate detected late"
        return UrlOutcome(outcome.value), None

    async def crawl(self, query: CrawlQuery = CrawlQuery()) -> CrawlReport:
        """Discover and process postings for each targeted source and family."""
        report = CrawlReport()
        if self.discovery is None:
            report.warnings.append("No discovery client configured")
            logger.warning("Crawl requested without a discovery client")
            return report

        batch_size = query.batch_size or self.settings.batch_size
        source_names = query.sources or tuple(self.config.sources) + tuple(self.config.invalid_sources)
        families = query.families or self.config.family_names()

        for name in source_names:
            source = self.config.sources.get(name)
            if source is None:
                errors = self.config.invalid_sources.get(name)
                message = f"Source {name!r} skipped: " + ("; ".join(errors) if errors else "not configured")
                logger.warning("Source skipped", source=name, reason=message)
                report.warnings.append(message)
                continue
            strategy = build_strategy(source)

            for family in families:
                aliases = self.config.aliases_for(family)
                if not aliases:
                    report.warnings.append(f"Unknown job family {family!r}")
                    continue
                dq = DiscoveryQuery(aliases=aliases, geography=query.geography, hours=query.hours, max_results=batch_size)
                try:
                    found = await asyncio.to_thread(self.discovery.discover, source, dq)
                except Exception as e:
                    logger.warning("Discovery failed", source=name, family=family, error=str(e))
                    found = []

                candidates = filter_candidates(found, source, strategy)[:batch_size]
                logger.info(
                    "Discovery complete",
                    source=name,
                    family=family,
                    found=len(found),
                    kept=len(candidates),
                )
                if not candidates:
                    continue
                batch = await self.run_batch(name, [c.link for c in candidates], family_hint=family, refresh=query.refresh)
                report.batches.append(batch)

        logger.info("Crawl complete", **report.totals())
        return report

    async def crawl_hosts(self, hosts: Iterable, refresh: bool = False) -> CrawlReport:
        """Harvest each registered host's listing pages and process the job links found.

        A host that keeps rate-limiting its listing pages is skipped for
        this run and reported as a warning; its links found so far are
        still processed.
        """
        report = CrawlReport()
        listings = HostListingDiscovery(self.fetcher)
        batch_size = self.settings.batch_size

        for host in hosts:
            source = host_source(host, self.config)
            strategy = build_strategy(source)
            listing = await listings.discover_host(host.domain, source, strategy)
            if listing.abandoned:
                report.warnings.append(
                    f"Host {host.domain!r} skipped after {listings.max_error_streak} consecutive rate-limited listing pages"
                )
            elif not listing.pages_hit:
                report.warnings.append(f"Host {host.domain!r}: no listing page found")

            candidates = listing.candidates[:batch_size] if batch_size else listing.candidates
            if not candidates:
                continue
            batch = await self._run_source_batch(
                source,
                [c.link for c in candidates],
                family_hint=None,
                refresh=refresh,
                source_host_id=host.id,
                host=host.domain,
            )
            report.batches.append(batch)

        logger.info("Host crawl complete", **report.totals())
        return report
