"""
HTTP fetching of job detail pages.

One GET per URL with a bounded timeout and redirect limit. No retries:
transient failures are reported to the caller, which records them and
moves on.
"""

from enum import Enum
from typing import NamedTuple, Optional

import httpx

from .logger import get_logger

logger = get_logger()

MAX_REDIRECTS = 5
DEFAULT_TIMEOUT = 8.0
DEFAULT_USER_AGENT = "jobcrawl/0.1 (+https://github.com/jobcrawl/jobcrawl)"

GONE_STATUSES = frozenset({404, 410})
RATE_LIMIT_STATUSES = frozenset({403, 429})


class FetchError(Exception):
    """Transport-level failure: timeout, DNS, connection reset, too many redirects."""
    pass


class FetchOutcome(str, Enum):
    OK = "ok"
    GONE = "gone"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


class FetchResult(NamedTuple):
    body: str
    status_code: int


def classify_status(status_code: int) -> FetchOutcome:
    if status_code in GONE_STATUSES:
        return FetchOutcome.GONE
    if status_code in RATE_LIMIT_STATUSES:
        return FetchOutcome.RATE_LIMITED
    if 200 <= status_code < 300:
        return FetchOutcome.OK
    return FetchOutcome.FAILED


class HttpFetcher:
    """Thin wrapper over a shared httpx.AsyncClient."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            headers={"User-Agent": user_agent, "Accept": "text/html,application/xhtml+xml"},
        )

    async def fetch(self, url: str) -> FetchResult:
        """
        GET a page. Non-2xx responses are returned, not raised.

        Raises:
            FetchError: the request never produced a response
        """
        try:
            response = await self._client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("Fetch failed", url=url, error_type=type(e).__name__, error=str(e))
            raise FetchError(f"{type(e).__name__}: {e}") from e
        return FetchResult(body=response.text, status_code=response.status_code)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()
