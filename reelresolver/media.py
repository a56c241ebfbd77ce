"""
Media URL classification shared by every extraction strategy.

SENTINEL_PATTERNS lists placeholder/preview clips the players load before (or
instead of) the real video. A URL containing any of them is never a result.
"""

from typing import Optional
from urllib.parse import urlparse

CANONICAL_EXTENSION = ".mp4"

SENTINEL_PATTERNS = frozenset({
    "playback1.mp4",
    "preview.mp4",
    "placeholder.mp4",
    "loading.mp4",
    "thumbnail.mp4",
    "poster.mp4",
})

MEDIA_CONTENT_TYPES = ("video/", "application/octet-stream")

# Page documents, API calls, scripts and thumbnails also hit "/video/" and CDN hosts
NON_MEDIA_CONTENT_TYPES = ("text/", "application/json", "javascript", "image/")

MEDIA_URL_MARKERS = (".mp4", ".webm", "/video/", "tiktokcdn.com", "muscdn.com")


def is_sentinel(url: Optional[str]) -> bool:
    if not url:
        return False
    return any(pattern in url for pattern in SENTINEL_PATTERNS)


def is_usable_media_url(url: Optional[str]) -> bool:
    """Non-empty, not a blob: handle, not a sentinel."""
    if not url or not isinstance(url, str):
        return False
    if url.startswith("blob:") or url.startswith("data:"):
        return False
    return not is_sentinel(url)


def is_media_response(url: str, content_type: str = "") -> bool:
    """True when a network response looks like a video stream."""
    content_type = (content_type or "").lower()
    if any(ct in content_type for ct in NON_MEDIA_CONTENT_TYPES):
        return False
    if any(ct in content_type for ct in MEDIA_CONTENT_TYPES):
        return True
    if any(marker in url for marker in MEDIA_URL_MARKERS):
        return True
    return "tiktok" in url and "mp4" in url


def contains_canonical_extension(url: str) -> bool:
    return CANONICAL_EXTENSION in url


def path_has_canonical_extension(url: str) -> bool:
    return urlparse(url).path.lower().endswith(CANONICAL_EXTENSION)
