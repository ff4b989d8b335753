"""Tests for site pattern matching."""

import pytest

from sitequota.rules.site_matcher import (
    domain_matches,
    extract_domain,
    extract_path,
    matches_site_pattern,
)


class TestExtractDomain:
    def test_simple_url(self) -> None:
        assert extract_domain("https://discord.com/channels/123") == "discord.com"

    def test_strips_port(self) -> None:
        assert extract_domain("http://localhost:8080/app") == "localhost"

    def test_lowercases_host(self) -> None:
        assert extract_domain("https://Chat.Discord.COM/") == "chat.discord.com"

    def test_missing_scheme(self) -> None:
        assert extract_domain("discord.com") == ""

    def test_garbage(self) -> None:
        assert extract_domain("not a url") == ""

    def test_empty(self) -> None:
        assert extract_domain("") == ""

    def test_bad_ipv6(self) -> None:
        assert extract_domain("https://[::1/") == ""


class TestExtractPath:
    def test_path(self) -> None:
        assert extract_path("https://discord.com/channels/123") == "/channels/123"

    def test_root_url_defaults_to_slash(self) -> None:
        assert extract_path("https://discord.com") == "/"

    def test_query_not_included(self) -> None:
        assert extract_path("https://example.com/a/b?x=1#frag") == "/a/b"

    def test_parse_failure(self) -> None:
        assert extract_path("nonsense") == ""


class TestDomainMatching:
    def test_exact(self) -> None:
        assert matches_site_pattern("https://discord.com", "discord.com")

    def test_subdomain(self) -> None:
        assert matches_site_pattern("https://app.discord.com", "discord.com")
        assert matches_site_pattern("https://chat.discord.com/x", "discord.com")

    def test_lookalikes_excluded(self) -> None:
        """Suffix containment without a dot boundary must not match."""
        for url in [
            "https://mydiscord.com",
            "https://discordapp.com",
            "https://mydiscordx.com",
        ]:
            assert not matches_site_pattern(url, "discord.com"), url

    def test_parent_domain_does_not_match_subdomain_pattern(self) -> None:
        assert not matches_site_pattern("https://discord.com", "chat.discord.com")

    def test_case_insensitive_pattern(self) -> None:
        assert matches_site_pattern("https://discord.com", "Discord.com")

    def test_domain_matches_ignores_pattern_path(self) -> None:
        assert domain_matches("discord.com", "discord.com/channels")
        assert domain_matches("www.discord.com", "discord.com/channels")
        assert not domain_matches("notdiscord.com", "discord.com/channels")


class TestPathMatching:
    def test_path_prefix_on_segment(self) -> None:
        assert matches_site_pattern("https://discord.com/channels/123", "discord.com/channels")

    def test_exact_path(self) -> None:
        assert matches_site_pattern("https://discord.com/channels", "discord.com/channels")

    def test_partial_segment_excluded(self) -> None:
        assert not matches_site_pattern(
            "https://discord.com/channelsettings", "discord.com/channels"
        )

    def test_root_url_does_not_match_path_pattern(self) -> None:
        assert not matches_site_pattern("https://discord.com", "discord.com/channels")

    def test_multi_segment_pattern(self) -> None:
        pattern = "reddit.com/r/python"
        assert matches_site_pattern("https://www.reddit.com/r/python/comments/1", pattern)
        assert not matches_site_pattern("https://www.reddit.com/r/pythonic", pattern)

    def test_trailing_slash_on_pattern(self) -> None:
        assert matches_site_pattern("https://discord.com/channels/1", "discord.com/channels/")

    def test_domain_pattern_matches_any_path(self) -> None:
        assert matches_site_pattern("https://discord.com/anything/here", "discord.com")


class TestMalformedInput:
    @pytest.mark.parametrize(
        "url,pattern",
        [
            ("", "discord.com"),
            ("https://discord.com", ""),
            ("discord.com", "discord.com"),
            ("::::", "discord.com"),
        ],
    )
    def test_returns_false(self, url: str, pattern: str) -> None:
        assert matches_site_pattern(url, pattern) is False
