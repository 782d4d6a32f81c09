"""Ashby postings: jobs.ashbyhq.com/<company>/<uuid>."""

from ..identity import PathSegmentRule
from .base import COMMON_TAIL_RULES, SourceStrategy
from .lever import UUID_SEGMENT

STRATEGY = SourceStrategy(
    name="Ashby",
    identity_rules=(PathSegmentRule(UUID_SEGMENT),) + COMMON_TAIL_RULES,
    id_params=(),
    title_selectors=('[data-testid="job-title"]', ".ashby-job-posting-heading"),
    location_selectors=('[data-testid="job-location"]', ".job-location", '[class*="location"]'),
)
