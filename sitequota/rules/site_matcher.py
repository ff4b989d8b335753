"""Site pattern matching.

A site pattern is either a bare domain ("discord.com") or a domain with a
path prefix ("discord.com/channels"). Domains match exactly or as a
subdomain ("chat.discord.com"), never as a substring ("mydiscord.com").
Path prefixes match whole segments: "channels" matches "/channels/123" but
not "/channelsettings".
"""

import logging
from typing import Optional
from urllib.parse import ParseResult, urlparse

logger = logging.getLogger(__name__)


def _parse_url(url: str) -> Optional[ParseResult]:
    """Parse an absolute URL, returning None if it has no scheme or host."""
    if not url:
        return None
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError as e:
        logger.debug(f"Invalid URL {url!r}: {e}")
        return None

    if not parsed.scheme or not hostname:
        logger.debug(f"Invalid URL {url!r}: missing scheme or host")
        return None
    return parsed


def extract_domain(url: str) -> str:
    """Extract the host from a URL (no scheme, no port, lowercase).

    Returns:
        Domain such as "discord.com", or "" if the URL cannot be parsed
    """
    parsed = _parse_url(url)
    if parsed is None:
        return ""
    return parsed.hostname or ""


def extract_path(url: str) -> str:
    """Extract the path from a URL.

    Returns:
        Path such as "/channels/123", "/" for a root URL, or "" if the URL
        cannot be parsed
    """
    parsed = _parse_url(url)
    if parsed is None:
        return ""
    return parsed.path or "/"


def split_pattern(pattern: str) -> tuple[str, str]:
    """Split a site pattern into (domain, path) on the first slash."""
    pattern_domain, _, pattern_path = pattern.partition("/")
    return pattern_domain.lower(), pattern_path.rstrip("/")


def domain_matches(domain: str, pattern: str) -> bool:
    """Check a bare domain against the domain portion of a pattern.

    Any path portion of the pattern is ignored.
    """
    if not domain or not pattern:
        return False

    domain_lower = domain.lower()
    pattern_domain, _ = split_pattern(pattern)
    if not pattern_domain:
        return False

    # Exact match or subdomain of the pattern domain
    return domain_lower == pattern_domain or domain_lower.endswith("." + pattern_domain)


def matches_site_pattern(url: str, pattern: str) -> bool:
    """Check if a URL belongs to a configured site pattern.

    Args:
        url: Full URL that was navigated to
        pattern: Pattern like "discord.com" or "discord.com/channels"

    Returns:
        True if the URL's domain matches and, when the pattern carries a
        path, the URL's path starts with that path on a segment boundary
    """
    domain = extract_domain(url)
    if not domain or not pattern:
        return False

    if not domain_matches(domain, pattern):
        return False

    _, pattern_path = split_pattern(pattern)
    if not pattern_path:
        return True

    path = extract_path(url)
    normalized = path[1:] if path.startswith("/") else path
    return normalized == pattern_path or normalized.startswith(pattern_path + "/")
