"""
Tests for URL canonicalization and hashing.
"""

import pytest

from jobcrawl.normalize import (
    canonical_url,
    canonicalize_url,
    clean_field,
    content_hash,
    normalize_host,
    looks_like_id,
)


class TestCanonicalUrl:
    """Test canonical URL construction."""

    def test_strips_tracking_params_and_keeps_id(self):
        """Tracking params are dropped, ID params survive."""
        url = "https://Boards.Example.io/acme/jobs/42?gh_jid=42&utm=foo&utm_source=google"
        assert canonical_url(url) == "https://boards.example.io/acme/jobs/42?gh_jid=42"

    def test_drops_fragment_and_trailing_slash(self):
        """Fragment and trailing slash are not part of the key."""
        assert canonical_url("https://jobs.lever.co/acme/abc/#apply") == "https://jobs.lever.co/acme/abc"

    def test_sorts_kept_params(self):
        """Kept params are sorted by key."""
        url = "https://careers.example.com/job?p=2&jobid=9&ref=x"
        assert canonical_url(url) == "https://careers.example.com/job?jobid=9&p=2"

    def test_custom_id_allow_list(self):
        """A source allow-list replaces the default one."""
        url = "https://example.com/careers?gh_jid=1&id=2"
        assert canonical_url(url, id_params=("id",)) == "https://example.com/careers?id=2"

    def test_empty_allow_list_drops_query(self):
        """No allow-listed params means no query string."""
        url = "https://jobs.lever.co/acme/abc?lever-source=linkedin"
        assert canonical_url(url, id_params=()) == "https://jobs.lever.co/acme/abc"

    def test_unparseable_input_falls_back_to_lowercase(self):
        """Input that is not a URL is trimmed and lowercased."""
        assert canonical_url("  Not A URL  ") == "not a url"

    def test_url_without_scheme_is_filtered(self):
        """A bare host/path URL still loses its tracking params."""
        canonical = canonical_url("boards.example.io/acme/jobs/42?gh_jid=42&utm_source=x")
        assert "utm" not in canonical
        assert canonical == "https://boards.example.io/acme/jobs/42?gh_jid=42"

    def test_url_without_scheme_matches_full_url(self):
        """Scheme-less and protocol-relative variants share the full URL's hash."""
        full = canonicalize_url("https://boards.example.io/acme/jobs/42?gh_jid=42")
        assert canonicalize_url("Boards.Example.io/acme/jobs/42/?gh_jid=42&ref=x") == full
        assert canonicalize_url("//boards.example.io/acme/jobs/42?gh_jid=42") == full

    def test_bare_host_with_port(self):
        """A host:port prefix is read as a host, not a scheme."""
        assert canonical_url("careers.example.com:8443/jobs/1?utm=x") == "https://careers.example.com:8443/jobs/1"

    @pytest.mark.parametrize("url", [
        "https://Boards.Example.io/acme/jobs/42?gh_jid=42&utm=foo",
        "HTTP://www.Example.com/Careers/?JobID=7&x=1#top",
        "https://apply.workable.com/acme/j/ABC123/",
        "boards.example.io/acme/jobs/42?gh_jid=42&utm_source=x",
        "not a url",
        "",
    ])
    def test_idempotent(self, url):
        """Canonicalizing twice changes nothing."""
        once = canonical_url(url)
        assert canonical_url(once) == once


class TestHashes:
    """Test hash determinism."""

    def test_same_canonical_url_same_hash(self):
        """Variants of one posting URL hash identically."""
        a = canonicalize_url("https://boards.example.io/acme/jobs/42?gh_jid=42&utm=foo")
        b = canonicalize_url("https://BOARDS.example.io/acme/jobs/42/?utm=bar&gh_jid=42")
        assert a.canonical_url == b.canonical_url
        assert a.url_hash == b.url_hash
        assert len(a.url_hash) == 64

    def test_different_urls_different_hash(self):
        """Different postings hash differently."""
        a = canonicalize_url("https://boards.example.io/acme/jobs/42")
        b = canonicalize_url("https://boards.example.io/acme/jobs/43")
        assert a.url_hash != b.url_hash

    def test_content_hash_deterministic(self):
        """Same body, same digest."""
        assert content_hash("<html>a</html>") == content_hash("<html>a</html>")
        assert content_hash("<html>a</html>") != content_hash("<html>b</html>")


class TestCleanField:
    """Test trimming and length caps."""

    def test_collapses_whitespace(self):
        """Runs of whitespace become single spaces."""
        assert clean_field("  Senior \n  Engineer  ", 140) == "Senior Engineer"

    def test_blank_is_none(self):
        """Blank and missing values become None."""
        assert clean_field("   ", 140) is None
        assert clean_field(None, 140) is None

    def test_caps_length(self):
        """Values are cut to the field limit."""
        assert len(clean_field("x" * 500, 140)) == 140


class TestLooksLikeId:
    """Test identifier detection."""

    def test_ids(self):
        """Numbers, UUIDs and requisition codes look like IDs."""
        assert looks_like_id("12345")
        assert looks_like_id("3f2a9c1e-8b7d-4c6a-9e5f-1a2b3c4d5e6f")
        assert looks_like_id("R-10023")

    def test_words(self):
        """Company slugs do not."""
        assert not looks_like_id("acme")
        assert not looks_like_id("acme-corp")
        assert not looks_like_id("")


class TestNormalizeHost:
    """Test host registration keys."""

    @pytest.mark.parametrize("value", [
        "careers.acme.com",
        "Careers.Acme.com/",
        "https://careers.acme.com/jobs?x=1",
        "  //careers.acme.com  ",
    ])
    def test_variants_reduce_to_host(self, value):
        """Domains and URLs on the domain give the same host."""
        assert normalize_host(value) == "careers.acme.com"

    def test_blank(self):
        """Blank input stays blank."""
        assert normalize_host("  ") == ""
