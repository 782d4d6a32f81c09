"""
Metadata extraction from a fetched job page.

Fields are resolved in priority order, first hit wins per field:
embedded schema.org JobPosting JSON-LD, the source's CSS selectors,
a "City, ST" regex for location, and finally the page headings for title.
"""

import json
import re
from datetime import date
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from bs4 import BeautifulSoup
from dateutil import parser as date_parser
from soupsieve import SelectorSyntaxError

from .logger import get_logger
from .normalize import COMPANY_MAX_LEN, LOCATION_MAX_LEN, TITLE_MAX_LEN, clean_field

logger = get_logger()

US_STATES = (
    "AL|AK|AZ|AR|CA|CO|CT|DE|DC|FL|GA|HI|ID|IL|IN|IA|KS|KY|LA|ME|MD|MA|MI|MN|MS|MO|MT|NE|NV|"
    "NH|NJ|NM|NY|NC|ND|OH|OK|OR|PA|RI|SC|SD|TN|TX|UT|VT|VA|WA|WV|WI|WY"
)
CITY_STATE_RE = re.compile(rf"\b[A-Z][a-zA-Z]+(?: [A-Z][a-zA-Z]+)*,\s?(?:{US_STATES})\b")


class Metadata(NamedTuple):
    title: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    posting_date: Optional[date] = None


def _iter_jsonld_items(data: Any) -> List[Dict]:
    if isinstance(data, list):
        items = []
        for entry in data:
            items.extend(_iter_jsonld_items(entry))
        return items
    if isinstance(data, dict):
        if isinstance(data.get("@graph"), list):
            return _iter_jsonld_items(data["@graph"])
        return [data]
    return []


def _is_job_posting(item: Dict) -> bool:
    item_type = item.get("@type", "")
    if isinstance(item_type, list):
        return any("JobPosting" in str(t) for t in item_type)
    return "JobPosting" in str(item_type)


def find_job_posting_jsonld(soup: BeautifulSoup) -> Optional[Dict]:
    """Return the first schema.org JobPosting object embedded in the page."""
    for script in soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.debug("Skipping malformed JSON-LD block", error=str(e))
            continue
        for item in _iter_jsonld_items(data):
            if _is_job_posting(item):
                return item
    return None


def flatten_location(job_location: Any) -> Optional[str]:
    """Flatten jobLocation into "locality, region, country"."""
    if isinstance(job_location, list):
        job_location = job_location[0] if job_location else None
    if isinstance(job_location, str):
        return job_location
    if not isinstance(job_location, dict):
        return None
    address = job_location.get("address", job_location)
    if isinstance(address, str):
        return address
    if not isinstance(address, dict):
        return None
    country = address.get("addressCountry")
    if isinstance(country, dict):
        country = country.get("name")
    parts = [address.get("addressLocality"), address.get("addressRegion"), country]
    parts = [str(p).strip() for p in parts if p and str(p).strip()]
    return ", ".join(parts) or None


def parse_posting_date(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return date_parser.parse(str(value)).date()
    except (ValueError, OverflowError, TypeError):
        return None


def _present(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None


def _from_jsonld(item: Dict) -> Dict[str, Any]:
    org = item.get("hiringOrganization")
    if isinstance(org, dict):
        company = org.get("name") or org.get("legalName")
    else:
        company = org if isinstance(org, str) else None

    location = flatten_location(item.get("jobLocation"))
    if not location:
        req = item.get("applicantLocationRequirements")
        if isinstance(req, list):
            req = req[0] if req else None
        if isinstance(req, dict):
            location = req.get("name")
        elif isinstance(req, str):
            location = req

    return {
        "title": item.get("title"),
        "company": company,
        "location": location,
        "posting_date": parse_posting_date(item.get("datePosted")),
    }


def select_text(soup: BeautifulSoup, selectors: Sequence[str]) -> Optional[str]:
    """First non-empty match across selectors; <meta> tags yield their content."""
    for selector in selectors:
        try:
            el = soup.select_one(selector)
        except (ValueError, SelectorSyntaxError):
            logger.warning("Invalid CSS selector", selector=selector)
            continue
        if el is None:
            continue
        if el.name == "meta":
            text = el.get("content") or ""
        else:
            text = el.get_text(" ", strip=True)
        if text and text.strip():
            return text.strip()
    return None


def _heading_title(soup: BeautifulSoup) -> Optional[str]:
    h1 = soup.find("h1")
    if h1 and h1.get_text(strip=True):
        return h1.get_text(" ", strip=True)
    t = soup.find("title")
    if t and t.get_text(strip=True):
        title = t.get_text(strip=True)
        # Page titles usually carry a site suffix
        for sep in (" - ", " | "):
            if sep in title:
                title = title.split(sep)[0].strip()
        return title
    return None


def extract_metadata(
    html: Optional[str],
    strategy,
    known_title: Optional[str] = None,
    known_location: Optional[str] = None,
) -> Metadata:
    if not html:
        return Metadata(
            title=clean_field(known_title, TITLE_MAX_LEN),
            location=clean_field(known_location, LOCATION_MAX_LEN),
        )

    soup = BeautifulSoup(html, "html.parser")
    fields: Dict[str, Any] = {"title": None, "company": None, "location": None, "posting_date": None}

    item = find_job_posting_jsonld(soup)
    if item is not None:
        fields.update({k: v for k, v in _from_jsonld(item).items() if _present(v)})

    if not fields["title"]:
        fields["title"] = select_text(soup, strategy.title_selectors)
    if not fields["company"]:
        fields["company"] = select_text(soup, strategy.company_selectors)
    if not fields["location"]:
        fields["location"] = select_text(soup, strategy.location_selectors)
    if not fields["posting_date"] and strategy.date_selectors:
        fields["posting_date"] = parse_posting_date(select_text(soup, strategy.date_selectors))

    if not fields["location"]:
        m = CITY_STATE_RE.search(soup.get_text(" "))
        if m:
            fields["location"] = m.group(0)

    if not fields["title"]:
        fields["title"] = _heading_title(soup)

    return Metadata(
        title=clean_field(fields["title"] or known_title, TITLE_MAX_LEN),
        company=clean_field(fields["company"], COMPANY_MAX_LEN),
        location=clean_field(fields["location"] or known_location, LOCATION_MAX_LEN),
        posting_date=fields["posting_date"],
    )
