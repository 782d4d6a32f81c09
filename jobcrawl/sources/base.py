"""Per-source strategy record shared by every ATS module."""

from dataclasses import dataclass
from typing import Callable, Tuple

from ..identity import HtmlAttributeRule, RegexGroupRule
from ..normalize import DEFAULT_ID_PARAMS


def keep_url(url: str) -> str:
    return url


@dataclass(frozen=True)
class SourceStrategy:
    name: str
    normalize_url: Callable[[str], str] = keep_url
    identity_rules: Tuple = ()
    id_params: Tuple[str, ...] = DEFAULT_ID_PARAMS
    title_selectors: Tuple[str, ...] = ()
    company_selectors: Tuple[str, ...] = ()
    location_selectors: Tuple[str, ...] = ()
    date_selectors: Tuple[str, ...] = ()
    # links to job pages on a careers listing page
    listing_selectors: Tuple[str, ...] = ()


# Tail rules every source falls back to after its own specific ones.
COMMON_TAIL_RULES = (
    RegexGroupRule(),
    HtmlAttributeRule('meta[name="job-id"]', "content"),
    HtmlAttributeRule("[data-job-id]", "data-job-id"),
)
