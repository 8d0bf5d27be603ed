"""
Tests for URL utilities.
"""

import pytest


class TestCanonicalizeUrl:
    """Test canonical URL forms."""

    @pytest.mark.parametrize("raw,expected", [
        ("HTTPS://Example.com:443/a/?utm_source=x#top", "https://example.com/a"),
        ("http://example.com:80/", "http://example.com"),
        ("https://example.com:8443/path", "https://example.com:8443/path"),
        ("https://example.com/p?id=3&fbclid=zzz", "https://example.com/p?id=3"),
        ("https://example.com/p?b=2&a=1", "https://example.com/p?b=2&a=1"),
        ("  https://example.com/docs/  ", "https://example.com/docs"),
    ])
    def test_canonical_forms(self, raw, expected):
        """Test scheme/host case, ports, tracking params and trailing slash."""
        from autobrowse.utils.urls import canonicalize_url
        assert canonicalize_url(raw) == expected

    def test_keep_hash(self):
        """Test the fragment survives when strip_hash is off."""
        from autobrowse.utils.urls import canonicalize_url
        assert canonicalize_url("https://example.com/a#b", strip_hash=False) == "https://example.com/a#b"

    def test_relative_input_returned_stripped(self):
        """Test non-absolute input is passed through."""
        from autobrowse.utils.urls import canonicalize_url
        assert canonicalize_url(" /pricing ") == "/pricing"

    @pytest.mark.parametrize("raw", [
        "HTTPS://WWW.Example.com/A/?utm_medium=x&q=1",
        "https://example.com//",
        "https://example.com/a//",
        "https://example.com/a?b=//",
        "https://example.com/?q=x/",
        "https://example.com:8080///docs///",
    ])
    def test_idempotent(self, raw):
        """Test canonicalizing twice changes nothing."""
        from autobrowse.utils.urls import canonicalize_url
        once = canonicalize_url(raw)
        assert canonicalize_url(once) == once

    @pytest.mark.parametrize("raw,expected", [
        ("https://example.com//", "https://example.com"),
        ("https://example.com/a//", "https://example.com/a"),
        ("https://example.com/a?b=//", "https://example.com/a?b=//"),
    ])
    def test_trailing_slashes_only_from_path(self, raw, expected):
        """Test repeated path slashes are stripped and the query is left alone."""
        from autobrowse.utils.urls import canonicalize_url
        assert canonicalize_url(raw) == expected


class TestDedupe:
    """Test dedupe_canonical_urls."""

    def test_dedupes_in_order(self):
        """Test first-seen order and non-http filtering."""
        from autobrowse.utils.urls import dedupe_canonical_urls
        urls = [
            "https://b.com/",
            "mailto:hi@b.com",
            "https://a.com",
            "https://B.com",
            "https://a.com/#x",
        ]
        assert dedupe_canonical_urls(urls) == ["https://b.com", "https://a.com"]


class TestExtraction:
    """Test URL harvesting from text."""

    def test_explicit_urls(self):
        """Test explicit http(s) URLs are found."""
        from autobrowse.utils.urls import extract_explicit_urls
        text = "see https://acme.io/pricing and (http://foo.dev/x) twice https://acme.io/pricing/"
        assert extract_explicit_urls(text) == ["https://acme.io/pricing", "http://foo.dev/x"]

    def test_domain_hints(self):
        """Test bare domains are promoted to https."""
        from autobrowse.utils.urls import extract_domain_hint_urls
        assert extract_domain_hint_urls("pricing on acme.io please.") == ["https://acme.io"]

    def test_domain_hint_with_path(self):
        """Test a bare domain keeps its path."""
        from autobrowse.utils.urls import extract_domain_hint_urls
        assert extract_domain_hint_urls("check docs.acme.io/api, thanks") == ["https://docs.acme.io/api"]

    def test_relative_links(self):
        """Test (/path) references."""
        from autobrowse.utils.urls import extract_relative_links
        assert extract_relative_links("See [plans](/pricing) and (/contact-us).") == ["/pricing", "/contact-us"]


class TestSiteHelpers:
    """Test host and site helpers."""

    def test_site_root(self):
        """Test site root of a deep URL."""
        from autobrowse.utils.urls import site_root
        assert site_root("https://Acme.io/pricing?x=1") == "https://acme.io"
        assert site_root("ftp://acme.io/file") is None
        assert site_root("not a url") is None

    def test_is_within_site(self):
        """Test subdomains count as within the site."""
        from autobrowse.utils.urls import is_within_site
        assert is_within_site("https://docs.acme.io/a", "https://acme.io") is True
        assert is_within_site("https://acme.io.evil.com", "https://acme.io") is False

    @pytest.mark.parametrize("url,blocked", [
        ("https://duckduckgo.com/?q=x", True),
        ("https://www.bing.com/search?q=x", True),
        ("javascript:alert(1)", True),
        ("https://example.com/article", False),
    ])
    def test_blocked_source(self, url, blocked):
        """Test search-engine and non-http URLs are blocked as sources."""
        from autobrowse.utils.urls import is_blocked_source_url
        assert is_blocked_source_url(url) is blocked

    def test_sanitize_id(self):
        """Test filesystem-safe ids."""
        from autobrowse.utils.urls import sanitize_id
        assert sanitize_id("Work Profile/1") == "work-profile-1"
        assert sanitize_id("   ") == "default"
        assert len(sanitize_id("x" * 200)) == 80
