"""
tests/unit/test_guardrails.py — Unit tests for agent/guardrails.py

Covers: is_restricted_location(), is_safe_url(), location_matches().
"""

import pytest

from agent.guardrails import is_restricted_location, is_safe_url, location_matches, same_page


# ── is_restricted_location ────────────────────────────────────────────────────

class TestIsRestrictedLocation:
    @pytest.mark.parametrize("location", [
        "chrome://settings",
        "edge://extensions",
        "about:blank",
        "chrome-extension://abcdef/popup.html",
        "moz-extension://1234/options.html",
        "view-source:https://example.com",
    ])
    def test_browser_internal_pages(self, location):
        assert is_restricted_location(location) is True

    @pytest.mark.parametrize("location", [
        "https://chromewebstore.google.com/detail/xyz",
        "https://addons.mozilla.org/en-US/firefox/addon/x/",
        "https://microsoftedge.microsoft.com/addons/detail/x",
        "https://chrome.google.com/webstore/detail/x",
    ])
    def test_extension_galleries(self, location):
        assert is_restricted_location(location) is True

    def test_other_chrome_google_paths_allowed(self):
        assert is_restricted_location("https://chrome.google.com/intl/en/") is False

    @pytest.mark.parametrize("location", ["file:///tmp/a.html", "data:text/html,hi", "ftp://x.org"])
    def test_non_http_schemes(self, location):
        assert is_restricted_location(location) is True

    def test_empty_and_none(self):
        assert is_restricted_location("") is True
        assert is_restricted_location(None) is True

    def test_case_insensitive(self):
        assert is_restricted_location("CHROME://settings") is True

    def test_ordinary_article_allowed(self):
        assert is_restricted_location("https://en.wikipedia.org/wiki/Battery") is False


# ── is_safe_url ───────────────────────────────────────────────────────────────

class TestIsSafeUrl:
    # Valid URLs
    def test_https_url_safe(self):
        assert is_safe_url("https://www.example.com/article") is True

    def test_http_url_safe(self):
        assert is_safe_url("http://news.example.org/story") is True

    def test_url_with_path_safe(self):
        assert is_safe_url("https://en.wikipedia.org/wiki/CRISPR") is True

    def test_url_with_port_safe(self):
        assert is_safe_url("https://example.com:8080/api") is True

    def test_url_with_query_string_safe(self):
        assert is_safe_url("https://example.com/search?q=crispr&lang=en") is True

    # Blocked schemes
    def test_file_scheme_blocked(self):
        assert is_safe_url("file:///etc/passwd") is False

    def test_ftp_scheme_blocked(self):
        assert is_safe_url("ftp://example.com/file.txt") is False

    def test_data_uri_blocked(self):
        assert is_safe_url("data:text/html,<script>alert(1)</script>") is False

    def test_javascript_blocked(self):
        assert is_safe_url("javascript:alert(1)") is False

    # Blocked hosts
    def test_localhost_blocked(self):
        assert is_safe_url("http://localhost/admin") is False

    def test_127_0_0_1_blocked(self):
        assert is_safe_url("http://127.0.0.1/") is False

    def test_127_x_x_x_blocked(self):
        assert is_safe_url("http://127.0.0.2/secret") is False

    def test_0_0_0_0_blocked(self):
        assert is_safe_url("http://0.0.0.0/") is False

    def test_private_10_range_blocked(self):
        assert is_safe_url("http://10.0.0.1/internal") is False

    def test_private_172_16_range_blocked(self):
        assert is_safe_url("http://172.16.0.1/") is False

    def test_private_172_31_range_blocked(self):
        assert is_safe_url("http://172.31.255.255/") is False

    def test_private_192_168_range_blocked(self):
        assert is_safe_url("http://192.168.1.1/router") is False

    def test_ipv6_loopback_blocked(self):
        assert is_safe_url("http://::1/") is False
        assert is_safe_url("http://[::1]/") is False

    # Edge cases
    def test_empty_string_blocked(self):
        assert is_safe_url("") is False

    def test_none_blocked(self):
        assert is_safe_url(None) is False

    def test_non_string_blocked(self):
        assert is_safe_url(12345) is False

    def test_just_scheme_blocked(self):
        assert is_safe_url("https://") is False

    def test_172_15_not_blocked(self):
        # 172.15.x.x is NOT in the private range (only 172.16-172.31)
        assert is_safe_url("http://172.15.0.1/public") is True

    def test_172_32_not_blocked(self):
        # 172.32.x.x is also public
        assert is_safe_url("http://172.32.0.1/public") is True




# ── location_matches ──────────────────────────────────────────────────────────

class TestLocationMatches:
    def test_exact(self):
        assert location_matches("https://a.com/x", "https://a.com/x") is True

    def test_prefix_with_fragment(self):
        assert location_matches("https://a.com/x#section", "https://a.com/x") is True

    def test_previous_page_does_not_match(self):
        assert location_matches("https://a.com/old", "https://a.com/new") is False

    def test_no_expectation_matches_anything(self):
        assert location_matches("https://a.com/x", "") is True
        assert location_matches("https://a.com/x", None) is True

    def test_empty_actual_never_matches(self):
        assert location_matches("", "https://a.com/x") is False


# ── same_page ─────────────────────────────────────────────────────────────────

class TestSamePage:
    def test_identical(self):
        assert same_page("https://a.com/x", "https://a.com/x") is True

    def test_fragment_ignored(self):
        assert same_page("https://a.com/x#part-2", "https://a.com/x") is True

    def test_longer_path_is_another_page(self):
        assert same_page("https://a.com/x-recycling", "https://a.com/x") is False

    def test_query_string_is_another_page(self):
        assert same_page("https://a.com/x?page=2", "https://a.com/x") is False

    @pytest.mark.parametrize("a, b", [("", "https://a.com/x"), ("https://a.com/x", "")])
    def test_empty_never_same(self, a, b):
        assert same_page(a, b) is False
