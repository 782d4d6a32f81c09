"""Workable postings: apply.workable.com/<company>/j/<shortcode>."""

from urllib.parse import urlsplit

from ..identity import PathSegmentRule
from .base import COMMON_TAIL_RULES, SourceStrategy

# jobs.workable.com/view/<id> pages do not carry the company slug.
UNKNOWN_COMPANY_SLUG = "unknown-company"


def normalize_url(url: str) -> str:
    """Rewrite jobs.workable.com/view/<id> into the apply.workable.com/.../j/<id> form."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    segments = [s for s in parts.path.split("/") if s]
    if parts.hostname == "jobs.workable.com" and len(segments) >= 2 and segments[0] == "view":
        return f"https://apply.workable.com/{UNKNOWN_COMPANY_SLUG}/j/{segments[-1]}"
    return url


STRATEGY = SourceStrategy(
    name="Workable",
    normalize_url=normalize_url,
    identity_rules=(PathSegmentRule(r"[a-z0-9]{6,12}", after="j"),) + COMMON_TAIL_RULES,
    id_params=(),
    title_selectors=('[data-ui="job-title"]',),
    location_selectors=('[data-ui="job-location"]', ".job-location"),
)
