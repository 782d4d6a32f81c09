"""
Discovery of candidate job-detail URLs.

Discovery is best effort: missing credentials or a failing search API
yield an empty candidate list for that source, never an exception.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Protocol, Sequence, Tuple

import requests

from .config import SourceConfig
from .logger import get_logger
from .retry import RetryError, exponential_backoff, should_retry_http_status
from .search import DEFAULT_GEOGRAPHY, build_search_query, date_restrict
from .sources.base import SourceStrategy

logger = get_logger()

GOOGLE_CUSTOM_SEARCH_ENDPOINT = "https://www.googleapis.com/customsearch/v1"
PAGE_SIZE = 10  # Custom Search API maximum per request
DEFAULT_MAX_RESULTS = 40


class Candidate(NamedTuple):
    link: str
    title: Optional[str] = None


@dataclass(frozen=True)
class DiscoveryQuery:
    aliases: Tuple[str, ...]
    geography: Optional[str] = DEFAULT_GEOGRAPHY
    hours: Optional[int] = 24
    max_results: int = DEFAULT_MAX_RESULTS


class DiscoveryClient(Protocol):
    def discover(self, source: SourceConfig, query: DiscoveryQuery) -> List[Candidate]:
        ...


class TransientSearchError(Exception):
    """Search API answered with a retryable status."""
    pass


class GoogleSearchDiscovery:
    """Google Custom Search JSON API client."""

    def __init__(
        self,
        api_key: Optional[str],
        cse_id: Optional[str],
        timeout: float = 20.0,
        max_retries: int = 3,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.cse_id = cse_id
        self.timeout = timeout
        self.session = session or requests.Session()
        self._get_page = exponential_backoff(
            max_retries=max_retries,
            base_delay=1.0,
            exceptions=(TransientSearchError, requests.ConnectionError, requests.Timeout),
            on_retry=self._on_retry,
        )(self._request_page)

    @staticmethod
    def _on_retry(attempt, error, delay):
        logger.warning("Retrying search request", attempt=attempt, delay=delay, error=str(error))

    def _request_page(self, params: dict) -> dict:
        logger.record_discovery_call()
        r = self.session.get(GOOGLE_CUSTOM_SEARCH_ENDPOINT, params=params, timeout=self.timeout)
        if should_retry_http_status(r.status_code):
            raise TransientSearchError(f"HTTP {r.status_code}")
        r.raise_for_status()
        return r.json()

    def discover(self, source: SourceConfig, query: DiscoveryQuery) -> List[Candidate]:
        if not self.api_key or not self.cse_id:
            logger.warning("CSE_KEY or CSE_CX not set, skipping search", source=source.name)
            return []

        q = build_search_query(source.search_domain, query.aliases, query.geography)
        params = {"key": self.api_key, "cx": self.cse_id, "q": q, "num": PAGE_SIZE}
        restrict = date_restrict(query.hours)
        if restrict:
            params["dateRestrict"] = restrict

        results: List[Candidate] = []
        start = 1
        while len(results) < query.max_results:
            params["start"] = start
            try:
                data = self._get_page(dict(params))
            except (RetryError, requests.RequestException, ValueError) as e:
                logger.warning("Search request failed", source=source.name, query=q, error=str(e))
                break

            items = data.get("items") or []
            for item in items:
                link = item.get("link")
                if link:
                    results.append(Candidate(link=link, title=item.get("title")))
            if len(items) < PAGE_SIZE:
                break
            start += PAGE_SIZE

        logger.debug("Search returned candidates", source=source.name, query=q, count=len(results))
        return results[: query.max_results]


class StaticDiscovery:
    """Returns fixed candidates per source name; no network."""

    def __init__(self, fixtures: Dict[str, Sequence[Candidate]]):
        self.fixtures = fixtures
        self.calls: List[Tuple[str, DiscoveryQuery]] = []

    def discover(self, source: SourceConfig, query: DiscoveryQuery) -> List[Candidate]:
        self.calls.append((source.name, query))
        return list(self.fixtures.get(source.name, ()))


def filter_candidates(
    candidates: Iterable[Candidate],
    source: SourceConfig,
    strategy: SourceStrategy,
    accept: Optional[Callable[[str], object]] = None,
) -> List[Candidate]:
    """Keep job-detail links for this source, deduplicated in order.

    Links are matched and compared in their normalized form, returned as
    discovered. `accept` replaces the source's detail-URL regex test.
    """
    if accept is None:
        accept = source.url_pattern().search
    seen = set()
    kept = []
    for candidate in candidates:
        link = candidate.link.strip()
        normalized = strategy.normalize_url(link)
        if not accept(normalized) or normalized in seen:
            continue
        seen.add(normalized)
        kept.append(candidate._replace(link=link))
    return kept
