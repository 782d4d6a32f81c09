import re
from typing import Any, Dict, List

REQUIRED_STR_FIELDS = ["ats_type", "search_domain", "job_detail_url_regex"]
OPTIONAL_LIST_FIELDS = [
    "location_selectors",
    "title_selectors",
    "company_selectors",
    "id_params",
    "listing_selectors",
]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_source_config(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages for one source record.
    Empty list means the source can be crawled.
    """
    errors: List[str] = []
    if not isinstance(data, dict):
        return ["Source config must be an object"]

    for f in REQUIRED_STR_FIELDS:
        if f not in data:
            errors.append(f"Missing required field: {f}")
        elif not _is_non_empty_str(data[f]):
            errors.append(f"Field '{f}' must be a non-empty string")

    for f in OPTIONAL_LIST_FIELDS:
        if f in data:
            v = data[f]
            if not isinstance(v, list) or not all(_is_non_empty_str(x) for x in v):
                errors.append(f"Field '{f}' must be a list of non-empty strings")

    pattern = data.get("job_detail_url_regex")
    if _is_non_empty_str(pattern):
        try:
            re.compile(pattern)
        except re.error as e:
            errors.append(f"Field 'job_detail_url_regex' is not a valid regex: {e}")

    return errors


def validate_job_families(data: Any) -> List[str]:
    """Validate the family -> {"aliases": [...]} taxonomy mapping."""
    if not isinstance(data, dict) or not data:
        return ["Job families must be a non-empty object"]
    errors: List[str] = []
    for family, details in data.items():
        aliases = details.get("aliases") if isinstance(details, dict) else None
        if not isinstance(aliases, list) or not all(_is_non_empty_str(a) for a in aliases):
            errors.append(f"Family '{family}' must define a list of non-empty aliases")
    return errors
