"""iCIMS postings: careers-<company>.icims.com/jobs/<id>/<slug>/job."""

from ..identity import PathSegmentRule, QueryParamRule
from .base import COMMON_TAIL_RULES, SourceStrategy

STRATEGY = SourceStrategy(
    name="iCIMS",
    identity_rules=(
        PathSegmentRule(r"\d+", after="jobs"),
        QueryParamRule(("jobid",)),
    ) + COMMON_TAIL_RULES,
    id_params=("jobid",),
    title_selectors=(".iCIMS_Header", "h1.iCIMS_Header"),
    location_selectors=(
        'meta[itemprop="addressLocality"]',
        ".iCIMS_JobHeaderData .header-location",
        ".iCIMS_JobHeaderField",
    ),
)
