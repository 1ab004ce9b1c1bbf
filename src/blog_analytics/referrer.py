"""
Referrer classification for traffic source analysis.

This module turns a raw Referer header into a traffic source:
- Direct: No referrer (typed URL, bookmarks) or an unparsable one
- Organic: Search engine traffic (Google, Bing, DuckDuckGo, etc.)
- Social: Social media platforms (Facebook, Twitter/X, LinkedIn, etc.)
- Code: Code hosts and developer communities (GitHub, GitLab, etc.)
- Email: Webmail clients
- Referral: Any other website, reported by its bare host name
- Internal: Same-site navigation
"""

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlparse

DIRECT_SOURCE = "Direct"

_HOST_RE = re.compile(r"^[a-z0-9.-]+$")


class ReferrerType(str, Enum):
    """Traffic source classification."""

    DIRECT = "direct"
    ORGANIC = "organic"
    SOCIAL = "social"
    CODE = "code"
    EMAIL = "email"
    REFERRAL = "referral"
    INTERNAL = "internal"


@dataclass(frozen=True)
class ReferrerInfo:
    """
    Classified referrer information.

    Attributes:
        type: The traffic source type
        domain: The referrer host (normalized, without www)
        source_name: Platform name for known hosts (e.g., "Google", "GitHub")
    """
    type: ReferrerType
    domain: str | None = None
    source_name: str | None = None

    @property
    def source(self) -> str:
        """Name used for referrer breakdowns: platform, bare host, or Direct."""
        return self.source_name or self.domain or DIRECT_SOURCE


# =============================================================================
# REFERRER DOMAIN DATABASE
# =============================================================================
# Keys ending in "." match any TLD (google.com, google.co.uk, ...).

EMAIL_PROVIDERS = {
    "mail.google.com": "Gmail",
    "mail.yahoo.com": "Yahoo Mail",
    "outlook.live.com": "Outlook",
    "outlook.office.com": "Outlook",
    "mail.proton.me": "Proton Mail",
    "fastmail.com": "Fastmail",
}

SEARCH_ENGINES = {
    "google.": "Google",
    "bing.com": "Bing",
    "yahoo.": "Yahoo",
    "duckduckgo.com": "DuckDuckGo",
    "baidu.com": "Baidu",
    "yandex.": "Yandex",
    "ecosia.org": "Ecosia",
    "qwant.com": "Qwant",
    "startpage.com": "Startpage",
    "search.brave.com": "Brave Search",
    "kagi.com": "Kagi",
    "naver.com": "Naver",
    "perplexity.ai": "Perplexity",
}

SOCIAL_PLATFORMS = {
    "facebook.com": "Facebook",
    "fb.com": "Facebook",
    "fb.me": "Facebook",
    "instagram.com": "Instagram",
    "threads.net": "Threads",
    "twitter.com": "Twitter/X",
    "x.com": "Twitter/X",
    "t.co": "Twitter/X",
    "linkedin.com": "LinkedIn",
    "lnkd.in": "LinkedIn",
    "reddit.com": "Reddit",
    "youtube.com": "YouTube",
    "youtu.be": "YouTube",
    "news.ycombinator.com": "Hacker News",
    "medium.com": "Medium",
    "mastodon.social": "Mastodon",
    "bsky.app": "Bluesky",
    "pinterest.com": "Pinterest",
    "tiktok.com": "TikTok",
    "t.me": "Telegram",
    "discord.com": "Discord",
}

CODE_HOSTS = {
    "github.com": "GitHub",
    "gist.github.com": "GitHub",
    "gitlab.com": "GitLab",
    "bitbucket.org": "Bitbucket",
    "codeberg.org": "Codeberg",
    "stackoverflow.com": "Stack Overflow",
    "dev.to": "DEV",
}

# Evaluated in this order; webmail before search (mail.google.com is not organic)
_CLASSIFICATION_TABLES = [
    (ReferrerType.EMAIL, EMAIL_PROVIDERS),
    (ReferrerType.ORGANIC, SEARCH_ENGINES),
    (ReferrerType.SOCIAL, SOCIAL_PLATFORMS),
    (ReferrerType.CODE, CODE_HOSTS),
]


def _normalize_domain(domain: str) -> str:
    """Remove www. prefix, port and lowercase."""
    domain = domain.lower().strip().split(":")[0]
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


def _extract_domain(referrer: str) -> str | None:
    """
    Extract and normalize the host from a referrer URL.

    Returns None if referrer is empty or unparseable.
    """
    if not referrer or not referrer.strip():
        return None

    referrer = referrer.strip()
    try:
        # Handle URLs without scheme
        if "://" not in referrer:
            referrer = "https://" + referrer
        parsed = urlparse(referrer)
        domain = parsed.hostname
    except ValueError:
        return None

    if not domain or not _HOST_RE.match(domain):
        return None
    return _normalize_domain(domain)


def _host_matches(host: str, pattern: str) -> bool:
    """Match a host against a table key on label boundaries."""
    if pattern.endswith("."):
        return ("." + host).find("." + pattern) != -1
    return host == pattern or host.endswith("." + pattern)


def classify_referrer(
    referrer: str | None,
    current_domain: str | None = None
) -> ReferrerInfo:
    """
    Classify a referrer URL into a traffic source.

    Args:
        referrer: The Referer header value (can be empty or None)
        current_domain: Optional site domain to detect internal traffic

    Returns:
        ReferrerInfo with type, domain and source_name

    Examples:
        >>> classify_referrer("https://www.google.com/search?q=test").source
        'Google'

        >>> classify_referrer("https://random-blog.com/post").source
        'random-blog.com'

        >>> classify_referrer("").source
        'Direct'
    """
    domain = _extract_domain(referrer or "")
    if not domain:
        return ReferrerInfo(type=ReferrerType.DIRECT)

    if current_domain:
        current_normalized = _normalize_domain(current_domain)
        if domain == current_normalized or domain.endswith("." + current_normalized):
            return ReferrerInfo(type=ReferrerType.INTERNAL, domain=domain)

    for referrer_type, table in _CLASSIFICATION_TABLES:
        for pattern, name in table.items():
            if _host_matches(domain, pattern):
                return ReferrerInfo(type=referrer_type, domain=domain, source_name=name)

    # Default to referral (other websites)
    return ReferrerInfo(type=ReferrerType.REFERRAL, domain=domain)
