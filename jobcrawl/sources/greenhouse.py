"""Greenhouse boards: boards.greenhouse.io/<company>/jobs/<id> or ?gh_jid=<id> on a company site."""

from ..identity import PathSegmentRule, QueryParamRule
from .base import COMMON_TAIL_RULES, SourceStrategy

STRATEGY = SourceStrategy(
    name="Greenhouse",
    identity_rules=(
        QueryParamRule(("gh_jid",)),
        PathSegmentRule(r"\d+", after="jobs"),
    ) + COMMON_TAIL_RULES,
    id_params=("gh_jid",),
    title_selectors=(".app-title", "h1.section-header"),
    company_selectors=(".company-name",),
    location_selectors=(".location", ".opening-location", '[data-qa="opening-location"]'),
    listing_selectors=(".opening a[href]",),
)
