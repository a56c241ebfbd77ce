"""
DOM probing: find the playing <video> element and read its source address,
plus the title/author text the page shows next to it.
"""

import asyncio
import logging
import math
from typing import Any, Dict, Optional

from playwright.async_api import Error as PlaywrightError

from .media import is_usable_media_url
from .models import ExtractionCandidate, StrategyKind
from .platforms import PlatformProfile

logger = logging.getLogger(__name__)

# Prefer a <source> whose src matches a CDN hint, then any <source>, then the element itself
_VIDEO_SOURCE_JS = """
([selector, hints]) => {
    const video = document.querySelector(selector) || document.querySelector('video');
    if (!video) return null;
    const sources = Array.from(video.querySelectorAll('source'));
    let url = '';
    for (const source of sources) {
        if (source.src && hints.some(h => source.src.includes(h))) { url = source.src; break; }
    }
    if (!url && sources.length > 0) url = sources[0].src || '';
    if (!url) url = video.currentSrc || video.src || '';
    return { url: url, duration: video.duration };
}
"""

_FIRST_TEXT_JS = """
(selectors) => {
    for (const selector of selectors) {
        const el = document.querySelector(selector);
        const text = el && el.textContent ? el.textContent.trim() : '';
        if (text) return text;
    }
    return '';
}
"""


async def read_text(page: Any, selectors) -> Optional[str]:
    """First non-empty textContent among selectors, or None."""
    if not selectors:
        return None
    try:
        text = await page.evaluate(_FIRST_TEXT_JS, list(selectors))
    except PlaywrightError as e:
        logger.debug(f"[dom] text lookup failed: {e}")
        return None
    return text or None


async def read_page_metadata(page: Any, profile: PlatformProfile) -> Dict[str, Optional[str]]:
    return {
        "title": await read_text(page, profile.title_selectors),
        "author": await read_text(page, profile.author_selectors),
    }


async def probe_dom(
    page: Any,
    profile: PlatformProfile,
    deadline: float,
    selector_timeout: float = 5.0,
) -> Optional[ExtractionCandidate]:
    """
    Wait once (selector_timeout, never past the loop-time deadline) for any of
    the profile's video selectors, then take the first one in profile order
    that is present. Returns None when none matched; otherwise a candidate
    whose media_url may be "" if the element exposes no usable address
    (blob: streams, empty src).
    """
    loop = asyncio.get_running_loop()
    remaining = deadline - loop.time()
    if remaining <= 0 or not profile.video_selectors:
        return None

    any_video = ", ".join(profile.video_selectors)
    wait_ms = int(min(selector_timeout, remaining) * 1000)
    try:
        await page.wait_for_selector(any_video, timeout=wait_ms, state="attached")
    except PlaywrightError:
        logger.info(f"[dom] no video element within {wait_ms}ms")
        return None

    matched = None
    for selector in profile.video_selectors:
        try:
            if await page.query_selector(selector) is not None:
                matched = selector
                break
        except PlaywrightError as e:
            logger.debug(f"[dom] selector {selector!r} lookup failed: {e}")
    if matched is None:
        # Element went away between the wait and the lookup
        logger.info("[dom] video element detached before it could be read")
        return None

    try:
        found = await page.evaluate(_VIDEO_SOURCE_JS, [matched, list(profile.cdn_hints)])
    except PlaywrightError as e:
        logger.warning(f"⚠️ [dom] could not read video source: {e}")
        found = None
    found = found or {}

    url = found.get("url") or ""
    if not is_usable_media_url(url):
        url = ""

    duration = found.get("duration")
    if not isinstance(duration, (int, float)) or not math.isfinite(duration) or duration <= 0:
        duration = None

    meta = await read_page_metadata(page, profile)
    logger.info(f"[dom] matched {matched!r}, source={'yes' if url else 'none'}")
    return ExtractionCandidate(
        media_url=url,
        title=meta["title"],
        author=meta["author"],
        description=meta["title"],
        duration_seconds=duration,
        source_strategy=StrategyKind.DOM_PROBE,
    )
