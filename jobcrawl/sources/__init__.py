from dataclasses import replace
from typing import Dict

from . import ashby, generic, greenhouse, icims, lever, workable, workday
from .base import SourceStrategy

STRATEGIES: Dict[str, SourceStrategy] = {
    m.STRATEGY.name.lower(): m.STRATEGY
    for m in (greenhouse, lever, ashby, workable, workday, icims, generic)
}


def get_strategy(ats_type: str) -> SourceStrategy:
    """Built-in strategy for an ATS type; unknown types use the generic one."""
    return STRATEGIES.get((ats_type or "").lower(), generic.STRATEGY)


def build_strategy(source) -> SourceStrategy:
    """Layer a SourceConfig over its built-in strategy.

    Configured selectors are tried before the built-in ones; a configured
    id allow-list replaces the built-in one.
    """
    base = get_strategy(source.ats_type)
    return replace(
        base,
        id_params=tuple(source.id_params) or base.id_params,
        title_selectors=tuple(source.title_selectors) + base.title_selectors,
        company_selectors=tuple(source.company_selectors) + base.company_selectors,
        location_selectors=tuple(source.location_selectors) + base.location_selectors,
        listing_selectors=tuple(source.listing_selectors) + base.listing_selectors,
    )


__all__ = ["SourceStrategy", "STRATEGIES", "get_strategy", "build_strategy"]
