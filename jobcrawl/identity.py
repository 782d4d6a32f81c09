"""
Identity extraction: the source-specific job identifier and a guess at the
hiring company, derived from the canonical URL and (optionally) the HTML.

Identifier rules are tagged variants evaluated in the order a source lists
them; the first rule yielding a non-empty, length-bounded value wins.
Adding a source means listing its rules, not editing this module.
"""

import re
from dataclasses import dataclass
from functools import cached_property
from typing import NamedTuple, Optional, Pattern, Sequence, Tuple
from urllib.parse import parse_qsl, urlsplit

from bs4 import BeautifulSoup

from .logger import get_logger
from .normalize import looks_like_id

logger = get_logger()

JOB_ID_MAX_LEN = 64

RESERVED_PATH_WORDS = frozenset({
    "job", "jobs", "apply", "j", "view", "careers", "career",
    "details", "en-us", "position", "positions", "opening",
    "unknown-company",
})

GENERIC_HOST_LABELS = frozenset({
    "www", "jobs", "careers", "career", "boards", "apply",
    "job-boards", "hire", "recruiting", "talent",
})


class Identity(NamedTuple):
    job_id: Optional[str]
    company_guess: Optional[str]


class IdentityContext:
    """Inputs shared by every rule; the HTML is parsed at most once."""

    def __init__(self, canonical_url: str, html: Optional[str], url_regex: Optional[Pattern] = None):
        self.canonical_url = canonical_url
        self.html = html
        self.url_regex = url_regex

    @cached_property
    def parts(self):
        return urlsplit(self.canonical_url)

    @cached_property
    def path_segments(self) -> list:
        return [s for s in self.parts.path.split("/") if s]

    @cached_property
    def soup(self) -> Optional[BeautifulSoup]:
        if not self.html:
            return None
        return BeautifulSoup(self.html, "html.parser")

    @cached_property
    def regex_match(self):
        if self.url_regex is None:
            return None
        return self.url_regex.search(self.canonical_url)


@dataclass(frozen=True)
class QueryParamRule:
    names: Tuple[str, ...]
    kind = "query-param"

    def extract(self, ctx: IdentityContext) -> Optional[str]:
        wanted = [n.lower() for n in self.names]
        params = {k.lower(): v for k, v in parse_qsl(ctx.parts.query)}
        for name in wanted:
            if params.get(name):
                return params[name]
        return None


@dataclass(frozen=True)
class PathSegmentRule:
    """Match a single path segment; `after` pins it behind a literal segment."""
    pattern: str
    after: Optional[str] = None
    kind = "path-segment"

    def extract(self, ctx: IdentityContext) -> Optional[str]:
        segments = ctx.path_segments
        for i, segment in enumerate(segments):
            if self.after is not None and (i == 0 or segments[i - 1] != self.after):
                continue
            m = re.fullmatch(self.pattern, segment, re.I)
            if m:
                return m.group(1) if m.groups() else m.group(0)
        return None


@dataclass(frozen=True)
class RegexGroupRule:
    """Apply the source's job-detail regex to the canonical URL."""
    kind = "regex-group"

    def extract(self, ctx: IdentityContext) -> Optional[str]:
        m = ctx.regex_match
        if m is None:
            return None
        named = m.groupdict().get("job_id")
        if named:
            return named
        return pick_id_group(m.groups())


@dataclass(frozen=True)
class HtmlAttributeRule:
    """Read an identifier embedded in the page (meta tag, data attribute)."""
    selector: str
    attribute: Optional[str] = None
    kind = "html-attribute"

    def extract(self, ctx: IdentityContext) -> Optional[str]:
        if ctx.soup is None:
            return None
        el = ctx.soup.select_one(self.selector)
        if el is None:
            return None
        if self.attribute:
            value = el.get(self.attribute)
        else:
            value = el.get_text(strip=True)
        return value if isinstance(value, str) else None


def pick_id_group(groups: Sequence[Optional[str]]) -> Optional[str]:
    """Choose the capture group most likely to be an identifier.

    Digit-bearing groups beat purely alphabetic ones, then longer beats
    shorter. Reserved path words are never identifiers.
    """
    candidates = [g for g in groups if g and g.lower() not in RESERVED_PATH_WORDS]
    with_digits = [g for g in candidates if any(c.isdigit() for c in g)]
    pool = with_digits or candidates
    if not pool:
        return None
    return max(pool, key=len)


def _bounded(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value or len(value) > JOB_ID_MAX_LEN:
        return None
    return value


def _is_company_like(value: Optional[str]) -> bool:
    if not value:
        return False
    v = value.strip()
    if v.lower() in RESERVED_PATH_WORDS:
        return False
    if looks_like_id(v) or not any(c.isalpha() for c in v):
        return False
    return True


def company_from_regex(ctx: IdentityContext, job_id: Optional[str] = None) -> Optional[str]:
    m = ctx.regex_match
    if m is None:
        return None
    named = m.groupdict().get("company")
    if _is_company_like(named):
        return named
    for group in m.groups():
        if group and group != job_id and _is_company_like(group):
            return group
    return None


def company_from_host(canonical_url: str) -> Optional[str]:
    """First meaningful subdomain label, e.g. acme.wd5.myworkdayjobs.com -> acme."""
    try:
        host = urlsplit(canonical_url).hostname or ""
    except ValueError:
        return None
    labels = host.split(".")[:-2]
    for label in labels:
        if label in GENERIC_HOST_LABELS or not _is_company_like(label):
            continue
        return label
    return None


def extract_identity(
    canonical_url: str,
    html: Optional[str],
    rules: Sequence,
    url_regex: Optional[Pattern] = None,
) -> Identity:
    """Derive (job_id, company_guess) for a posting. Either may be None."""
    ctx = IdentityContext(canonical_url, html, url_regex)

    job_id = None
    for rule in rules:
        job_id = _bounded(rule.extract(ctx))
        if job_id:
            logger.debug("Job id extracted", url=canonical_url, rule=rule.kind, job_id=job_id)
            break

    company = company_from_regex(ctx, job_id) or company_from_host(canonical_url)
    return Identity(job_id, company)
