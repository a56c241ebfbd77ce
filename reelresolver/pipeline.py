"""
Per-platform extraction pipeline.

Strategy order:
  1. embedded-state parse   JSON payload inlined in the page markup
  2. DOM probe              <video> element source
  3. network race           NetworkObserver, listening since before navigation

1 and 2 run sequentially after the navigation settle delay. The DOM probe
costs at most one selector wait. 3 is only awaited when neither produced a
usable address; the observer has been collecting the whole time, so an early
stream request is already waiting there. The race then gets the full
extraction deadline of its own, bounded by the engine's request timeout.
"""

import asyncio
import logging
from typing import Any, Optional

from .config import ResolverSettings
from .dom_probe import probe_dom, read_page_metadata
from .embedded_state import parse_embedded_state
from .errors import NetworkObservationTimeout, NoVideoFoundError
from .media import is_usable_media_url
from .models import ExtractionCandidate, StrategyKind
from .network_observer import NetworkObserver
from .platforms import PlatformProfile

logger = logging.getLogger(__name__)


class ExtractionPipeline:
    """Runs the strategy cascade for one page and returns the winning candidate."""

    def __init__(self, profile: PlatformProfile, settings: ResolverSettings) -> None:
        self.profile = profile
        self.settings = settings

    async def _embedded_state(self, page: Any) -> Optional[ExtractionCandidate]:
        try:
            html = await page.content()
        except Exception as e:
            logger.warning(f"⚠️ [pipeline] could not read page HTML: {e}")
            return None
        try:
            return parse_embedded_state(html, self.profile.platform)
        except Exception as e:
            # Upstream layouts drift; a broken parse is a miss, not a failure
            logger.warning(f"⚠️ [pipeline] embedded-state parse error: {e}")
            return None

    async def run(self, page: Any, observer: NetworkObserver) -> ExtractionCandidate:
        platform = self.profile.platform.value
        loop = asyncio.get_running_loop()
        probe_deadline = loop.time() + self.settings.extraction_deadline

        # ── Strategy 1: embedded state ──────────────────────────────────────
        candidate = await self._embedded_state(page)
        if candidate and is_usable_media_url(candidate.media_url):
            logger.info(f"✅ [pipeline] {platform}: resolved via embedded state")
            return candidate
        logger.info(f"[pipeline] {platform}: embedded state gave no address, probing DOM")

        # ── Strategy 2: DOM probe ───────────────────────────────────────────
        dom_candidate = await probe_dom(
            page, self.profile, probe_deadline, selector_timeout=self.settings.selector_timeout,
        )
        if dom_candidate and is_usable_media_url(dom_candidate.media_url):
            logger.info(f"✅ [pipeline] {platform}: resolved via DOM probe")
            return dom_candidate

        # ── Strategy 3: network race ────────────────────────────────────────
        race_budget = self.settings.extraction_deadline
        logger.info(
            f"[pipeline] {platform}: waiting up to {race_budget:.1f}s on network observer "
            f"({len(observer.candidates)} candidates so far)"
        )
        try:
            network_url = await observer.wait_for_candidate(race_budget)
        except NetworkObservationTimeout as e:
            logger.warning(f"⚠️ [pipeline] {platform}: network observation failed: {e}")
            raise NoVideoFoundError(
                "No video element or network video URL found on the page",
                details={"platform": platform, "network": str(e)},
            ) from e

        # Keep metadata from an earlier strategy that found the element but no address
        base = candidate or dom_candidate
        if base is not None:
            logger.info(f"✅ [pipeline] {platform}: network URL substituted into {base.source_strategy.value} metadata")
            return base.model_copy(
                update={"media_url": network_url, "source_strategy": StrategyKind.NETWORK}
            )

        meta = await read_page_metadata(page, self.profile)
        logger.info(f"✅ [pipeline] {platform}: resolved via network observation")
        return ExtractionCandidate(
            media_url=network_url,
            title=meta["title"],
            author=meta["author"],
            description=meta["title"],
            source_strategy=StrategyKind.NETWORK,
        )
