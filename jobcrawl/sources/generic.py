from ..identity import QueryParamRule
from .base import COMMON_TAIL_RULES, SourceStrategy

STRATEGY = SourceStrategy(
    name="Generic",
    identity_rules=(QueryParamRule(("jobid", "job_id", "id", "job", "p")),) + COMMON_TAIL_RULES,
    title_selectors=('meta[property="og:title"]', ".job-title", ".posting-title"),
    company_selectors=('meta[property="og:site_name"]',),
    location_selectors=(".location", ".job-location", '[class*="location"]'),
)
