import hashlib
import re
from typing import Iterable, NamedTuple, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

# Query parameters that carry a posting identifier; everything else
# (utm_*, gh_src, source, ref...) is tracking noise.
DEFAULT_ID_PARAMS = ("gh_jid", "jobid", "job_id", "id", "p", "job")

TITLE_MAX_LEN = 140
LOCATION_MAX_LEN = 255
COMPANY_MAX_LEN = 255


class CanonicalUrl(NamedTuple):
    canonical_url: str
    url_hash: str


def sha256(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def content_hash(html: str) -> str:
    """Digest of a fetched HTML body, used for change detection."""
    return sha256(html or "")


def normalize_text(s: str) -> str:
    return " ".join(s.strip().lower().split())


def clean_field(value, limit: int) -> Optional[str]:
    """Collapse whitespace, trim and cap a scraped value. Blank becomes None."""
    if value is None:
        return None
    text = " ".join(str(value).split())
    if not text:
        return None
    return text[:limit].strip() or None


# host[:port] at the start of a URL written without a scheme
_BARE_HOST_RE = re.compile(r"^[a-z0-9-]+(\.[a-z0-9-]+)+(:\d+)?([/?#]|$)", re.I)


def _split(url: str):
    parsed = urlsplit(url)
    if parsed.netloc and not parsed.scheme:
        return urlsplit("https:" + url)
    if not parsed.netloc and _BARE_HOST_RE.match(url):
        return urlsplit("https://" + url)
    return parsed


def canonical_url(url: str, id_params: Iterable[str] = DEFAULT_ID_PARAMS) -> str:
    allowed = {p.lower() for p in id_params}
    try:
        parsed = _split(url.strip())
        if not parsed.scheme or not parsed.netloc:
            return url.strip().lower()
        kept = sorted(
            (k.lower(), v)
            for k, v in parse_qsl(parsed.query, keep_blank_values=False)
            if k.lower() in allowed
        )
        path = parsed.path.lower().rstrip("/")
        return urlunsplit((
            parsed.scheme.lower(),
            parsed.netloc.lower(),
            path,
            urlencode(kept),
            "",
        ))
    except (ValueError, AttributeError):
        return str(url).strip().lower()


def canonicalize_url(url: str, id_params: Iterable[str] = DEFAULT_ID_PARAMS) -> CanonicalUrl:
    """Return the comparison key for a raw URL and its hash. Never raises."""
    canonical = canonical_url(url, id_params)
    return CanonicalUrl(canonical, sha256(canonical))


def normalize_host(value: str) -> str:
    """Bare lowercase host[:port] from a domain or a URL on that domain."""
    raw = (value or "").strip()
    try:
        netloc = _split(raw).netloc
    except ValueError:
        netloc = ""
    return (netloc or raw).lower().rstrip("/")


_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I)


def looks_like_id(value: str) -> bool:
    """True for numeric strings, UUIDs and digit-bearing opaque tokens."""
    v = value.strip()
    if not v:
        return False
    if v.isdigit() or _UUID_RE.match(v):
        return True
    return bool(re.fullmatch(r"[A-Za-z0-9_-]+", v)) and any(c.isdigit() for c in v) and len(v) >= 6
