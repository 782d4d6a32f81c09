import math
from typing import Iterable, Optional

DEFAULT_GEOGRAPHY = "United States"


def _quote(term: str) -> str:
    return '"' + term.replace('"', "").strip() + '"'


def build_search_query(domain: Optional[str], aliases: Iterable[str], geography: Optional[str] = DEFAULT_GEOGRAPHY) -> str:
    """
    Build one search query for a source domain and a set of role aliases.

    e.g. site:boards.greenhouse.io "apply" ("Software Engineer" OR "Developer") "United States"
    """
    alias_part = " OR ".join(_quote(a) for a in aliases if a and a.strip())
    parts = []
    if domain:
        parts.append(f"site:{domain}")
    parts.append('"apply"')
    if alias_part:
        parts.append(f"({alias_part})")
    if geography:
        parts.append(_quote(geography))
    return " ".join(parts)


def date_restrict(hours: Optional[int]) -> Optional[str]:
    """
    Convert an hours-back window into the Custom Search dateRestrict parameter.
    Supported formats: d[number], w[number], m[number], y[number]
    """
    if hours is None or hours <= 0:
        return None
    days = math.ceil(hours / 24)
    if days <= 7:
        return f"d{days}"
    if days <= 30:
        return f"w{math.ceil(days / 7)}"
    if days <= 365:
        return f"m{math.ceil(days / 30)}"
    return "y1"
