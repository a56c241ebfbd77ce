"""
Platform classification and per-platform browser profiles.

classify_platform() is pure: same input, same answer, no I/O.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from .errors import UnsupportedPlatformError
from .models import Platform

# Matched with fullmatch() so a trailing newline is rejected
TIKTOK_URL_RE = re.compile(r"https?://(www\.)?(tiktok\.com|vm\.tiktok\.com)/\S*")
INSTAGRAM_URL_RE = re.compile(r"https?://(www\.)?(instagram\.com|instagr\.am)/\S*")

_PATTERNS: List[Tuple[Platform, "re.Pattern[str]"]] = [
    (Platform.TIKTOK, TIKTOK_URL_RE),
    (Platform.INSTAGRAM, INSTAGRAM_URL_RE),
]


def classify_platform(url: Any) -> Platform:
    """Return the platform for a page URL or raise UnsupportedPlatformError."""
    if not isinstance(url, str):
        raise UnsupportedPlatformError(url)
    for platform, pattern in _PATTERNS:
        if pattern.fullmatch(url):
            return platform
    raise UnsupportedPlatformError(url)


def is_supported_url(url: Any) -> bool:
    try:
        classify_platform(url)
    except UnsupportedPlatformError:
        return False
    return True


@dataclass(frozen=True)
class PlatformProfile:
    """Browser context options and page selectors for one platform."""
    platform: Platform
    user_agent: str
    viewport: Dict[str, int]
    locale: str
    timezone_id: str
    extra_headers: Dict[str, str] = field(default_factory=dict)
    # Tried in order by the DOM probe
    video_selectors: Tuple[str, ...] = ("video",)
    title_selectors: Tuple[str, ...] = ("h1",)
    author_selectors: Tuple[str, ...] = ()
    # Substrings that mark a <source> as the real stream
    cdn_hints: Tuple[str, ...] = (".mp4",)
    # Elements the network observer clicks to provoke lazy media loads
    playable_selector: str = "video"
    referer: str = ""
    stealth: bool = True

    def context_options(self) -> Dict[str, Any]:
        """Keyword arguments for Browser.new_context()."""
        return {
            "user_agent": self.user_agent,
            "viewport": dict(self.viewport),
            "locale": self.locale,
            "timezone_id": self.timezone_id,
            "extra_http_headers": dict(self.extra_headers),
        }

    @property
    def languages(self) -> List[str]:
        base = self.locale.split("-")[0]
        return [self.locale, base] if base != self.locale else [self.locale]


# TikTok serves the full web player to its mobile-app user agent with fewer checks
TIKTOK_PROFILE = PlatformProfile(
    platform=Platform.TIKTOK,
    user_agent=(
        "com.zhiliaoapp.musically/2021600040 (Linux; U; Android 5.0; en_US; SM-N900T; "
        "Build/LRX21V; Cronet/TTNetVersion:6c7b701a 2020-04-23 QuicVersion:0144d358 2020-03-24)"
    ),
    viewport={"width": 390, "height": 844},
    locale="en-US",
    timezone_id="America/New_York",
    extra_headers={
        "sec-fetch-mode": "navigate",
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
        "Upgrade-Insecure-Requests": "1",
    },
    # Most specific first; plain "video" last
    video_selectors=(
        '[data-e2e="video-player"] video',
        ".video-player video",
        "video[src]",
        "video",
    ),
    title_selectors=(
        '[data-e2e="browse-video-desc"]',
        '[data-e2e="video-desc"]',
        "h1",
        ".video-meta-title",
        '[data-testid="video-desc"]',
    ),
    author_selectors=(
        '[data-e2e="video-author-uniqueid"]',
        '[data-e2e="video-author-avatar"]',
        ".author-uniqueid",
        '[data-testid="video-author"]',
    ),
    cdn_hints=("v16-webapp", "v19-webapp", "tiktokcdn.com", ".mp4"),
    playable_selector='video, [data-e2e="video-player"]',
    referer="https://www.tiktok.com/",
)

INSTAGRAM_PROFILE = PlatformProfile(
    platform=Platform.INSTAGRAM,
    user_agent=(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    viewport={"width": 1280, "height": 720},
    locale="en-US",
    timezone_id="America/New_York",
    extra_headers={"Accept-Language": "en-US,en;q=0.9"},
    video_selectors=('[role="dialog"] video', "article video", "video"),
    title_selectors=("h1", '[role="dialog"] h2'),
    author_selectors=("header a[role='link']", "header a"),
    cdn_hints=("cdninstagram.com", "fbcdn.net", ".mp4"),
    playable_selector="video",
    referer="https://www.instagram.com/",
)

PROFILES: Dict[Platform, PlatformProfile] = {
    Platform.TIKTOK: TIKTOK_PROFILE,
    Platform.INSTAGRAM: INSTAGRAM_PROFILE,
}

EXAMPLE_URLS: Dict[Platform, str] = {
    Platform.TIKTOK: "https://www.tiktok.com/@scout2015/video/6718335390845095173",
    Platform.INSTAGRAM: "https://www.instagram.com/reel/C0abcdEFGhi/",
}

HOSTS: Dict[Platform, List[str]] = {
    Platform.TIKTOK: ["tiktok.com", "www.tiktok.com", "vm.tiktok.com"],
    Platform.INSTAGRAM: ["instagram.com", "www.instagram.com", "instagr.am"],
}


def profile_for(platform: Platform) -> PlatformProfile:
    return PROFILES[platform]
