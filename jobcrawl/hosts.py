"""
Careers-host crawling.

Registered hosts are crawled without a search API: a fixed list of common
listing paths is fetched on each host and the job links found there become
the candidates for a normal batch. A host that keeps answering listing
requests with 429/403 is dropped for the rest of the run.
"""

import re
from dataclasses import dataclass, field
from typing import List, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from .config import CrawlConfig, SourceConfig
from .discovery import Candidate, filter_candidates
from .fetch import FetchError, FetchOutcome, classify_status
from .logger import get_logger
from .sources.base import SourceStrategy

logger = get_logger()

COMMON_PATHS = (
    "/careers",
    "/careers/",
    "/jobs",
    "/jobs/",
    "/job-search",
    "/jobsearch",
    "/search/jobs",
    "/joblisting",
)
MINIMUM_JOB_LINKS_PER_PAGE = 3
MAX_CONSECUTIVE_LISTING_ERRORS = 3
DEFAULT_LISTING_SELECTORS = ("a[href]",)

JOB_LINK_RE = re.compile(r"/jobs?/|/positions?/|jobid=", re.I)
# Detail-URL regex for hosts whose ATS has no configured source
FALLBACK_JOB_DETAIL_REGEX = r"\w/(?:jobs?|careers?|positions?)/([^/?#]+)"

_SKIPPED_HREF_PREFIXES = ("#", "mailto:", "javascript:", "tel:")


def looks_like_job_link(href: str) -> bool:
    return bool(JOB_LINK_RE.search(href or ""))


def harvest_job_links(
    html: str,
    page_url: str,
    source: SourceConfig,
    strategy: SourceStrategy,
) -> List[Candidate]:
    """Absolute job links on a listing page, deduplicated in page order.

    A link is kept when it looks like a job link or matches the source's
    detail-URL regex.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    pattern = source.url_pattern()
    found: List[Candidate] = []
    for selector in strategy.listing_selectors or DEFAULT_LISTING_SELECTORS:
        try:
            elements = soup.select(selector)
        except (ValueError, SelectorSyntaxError):
            logger.warning("Invalid listing selector", selector=selector, source=source.name)
            continue
        for el in elements:
            href = (el.get("href") or "").strip()
            if not href or href.lower().startswith(_SKIPPED_HREF_PREFIXES):
                continue
            link = urljoin(page_url, href)
            if link.rstrip("/") == page_url.rstrip("/"):
                continue
            found.append(Candidate(link=link, title=el.get_text(" ", strip=True) or None))

    return filter_candidates(
        found,
        source,
        strategy,
        accept=lambda url: looks_like_job_link(url) or pattern.search(url),
    )


@dataclass
class HostListing:
    host: str
    candidates: List[Candidate] = field(default_factory=list)
    pages_hit: int = 0
    errors: int = 0
    abandoned: bool = False


class HostListingDiscovery:
    """Walks the common listing paths of one host."""

    def __init__(
        self,
        fetcher,
        paths: Sequence[str] = COMMON_PATHS,
        min_links: int = MINIMUM_JOB_LINKS_PER_PAGE,
        max_error_streak: int = MAX_CONSECUTIVE_LISTING_ERRORS,
    ):
        self.fetcher = fetcher
        self.paths = tuple(paths)
        self.min_links = min_links
        self.max_error_streak = max_error_streak

    async def discover_host(self, domain: str, source: SourceConfig, strategy: SourceStrategy) -> HostListing:
        listing = HostListing(host=domain)
        seen = set()
        streak = 0

        for path in self.paths:
            page_url = f"https://{domain}{path}"
            try:
                response = await self.fetcher.fetch(page_url)
            except FetchError as e:
                listing.errors += 1
                logger.warning("Listing fetch failed", host=domain, url=page_url, error=str(e))
                continue

            status = classify_status(response.status_code)
            if status is FetchOutcome.RATE_LIMITED:
                streak += 1
                listing.errors += 1
                logger.warning(
                    "Listing rate limited",
                    host=domain,
                    url=page_url,
                    status_code=response.status_code,
                    streak=streak,
                )
                if streak >= self.max_error_streak:
                    listing.abandoned = True
                    logger.error("Host skipped for this run after consecutive errors", host=domain, streak=streak)
                    break
                continue
            if status is not FetchOutcome.OK:
                listing.errors += 1
                logger.debug("Listing page unavailable", host=domain, url=page_url, status_code=response.status_code)
                continue

            streak = 0
            listing.pages_hit += 1
            links = harvest_job_links(response.body, page_url, source, strategy)
            if len(links) < self.min_links:
                logger.info("Too few job links on listing page", url=page_url, found=len(links), minimum=self.min_links)
                continue
            for candidate in links:
                key = strategy.normalize_url(candidate.link)
                if key in seen:
                    continue
                seen.add(key)
                listing.candidates.append(candidate)

        logger.info(
            "Host listing complete",
            host=domain,
            pages_hit=listing.pages_hit,
            errors=listing.errors,
            candidates=len(listing.candidates),
            abandoned=listing.abandoned,
        )
        return listing


def host_source(host, config: CrawlConfig) -> SourceConfig:
    """Configured source for a host's ATS type, or an ad hoc one scoped to the host."""
    ats_type = (host.ats_type or "").strip()
    if ats_type:
        for source in config.sources.values():
            if ats_type.lower() in (source.name.lower(), source.ats_type.lower()):
                return source
    return SourceConfig(
        name=ats_type or "Generic",
        ats_type=ats_type or "Generic",
        search_domain=host.domain,
        job_detail_url_regex=FALLBACK_JOB_DETAIL_REGEX,
    )
