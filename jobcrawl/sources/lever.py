"""Lever postings: jobs.lever.co/<company>/<uuid>."""

from ..identity import PathSegmentRule
from .base import COMMON_TAIL_RULES, SourceStrategy

UUID_SEGMENT = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"

STRATEGY = SourceStrategy(
    name="Lever",
    identity_rules=(PathSegmentRule(UUID_SEGMENT),) + COMMON_TAIL_RULES,
    id_params=(),
    title_selectors=(".posting-headline h2", ".posting-header h2"),
    location_selectors=(".posting-categories .location", ".location"),
    listing_selectors=("a.posting-title",),
)
