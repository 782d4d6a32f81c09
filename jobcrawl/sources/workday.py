"""Workday postings: <company>.wdN.myworkdayjobs.com/.../job/<location>/<title>_<req id>."""

from ..identity import PathSegmentRule
from .base import COMMON_TAIL_RULES, SourceStrategy

STRATEGY = SourceStrategy(
    name="Workday",
    identity_rules=(PathSegmentRule(r".+_((?:jr|r|req)-?\d+(?:-\d+)?)"),) + COMMON_TAIL_RULES,
    id_params=(),
    title_selectors=('[data-automation-id="jobPostingHeader"]',),
    location_selectors=('[data-automation-id="locations"] dd', '[data-automation-id="locations"]'),
    date_selectors=('[data-automation-id="postedOn"] dd',),
)
