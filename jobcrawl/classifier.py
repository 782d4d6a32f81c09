from typing import Optional, Sequence, Tuple

UNKNOWN_FAMILY = "unknown"
# Stored on rows whose family has not been computed yet.
UNCLASSIFIED = "unclassified"

FamilyTable = Sequence[Tuple[str, Sequence[str]]]


def classify_job_family(title: Optional[str], families: FamilyTable) -> str:
    """Map a job title to the first family with an alias contained in it.

    Order of `families` (and of aliases within a family) is significant:
    the first match wins, there is no scoring.
    """
    if not title or not title.strip():
        return UNKNOWN_FAMILY
    lowered = title.lower()
    for family, aliases in families:
        for alias in aliases:
            if alias and alias.lower() in lowered:
                return family
    return UNKNOWN_FAMILY


def resolve_job_family(title: Optional[str], hint: Optional[str], families: FamilyTable) -> str:
    """Family to persist: the title's classification, else a usable discovery hint."""
    family = classify_job_family(title, families)
    if family != UNKNOWN_FAMILY:
        return family
    if hint and hint not in (UNKNOWN_FAMILY, UNCLASSIFIED):
        return hint
    return UNKNOWN_FAMILY
