"""
Passive network observation for media responses.

The observer subscribes to the browsing context's "response" event BEFORE the
page is loaded, because players request their stream during initial load.
Every response is classified synchronously (no I/O in the handler); the
first conclusive candidate is written to a single-slot future and later
writers are ignored.

Resolution rules:
  - sentinel URLs (preview/placeholder clips) are dropped outright
  - the first media response whose URL contains ".mp4" wins immediately
  - otherwise, after a settle window the page is nudged (scroll + click on
    playable elements) and the tie-break runs over what was collected:
    path ending in ".mp4" first, else first in arrival order
  - once the tie-break has run, the next media response wins immediately
"""

import asyncio
import logging
from typing import Any, List, Optional

from .errors import NetworkObservationTimeout
from .media import (
    contains_canonical_extension,
    is_media_response,
    is_sentinel,
    path_has_canonical_extension,
)

logger = logging.getLogger(__name__)


def pick_best_candidate(candidates: List[str]) -> Optional[str]:
    """Tie-break: first URL whose path ends in .mp4, else the first one seen."""
    valid = [url for url in candidates if not is_sentinel(url)]
    if not valid:
        return None
    for url in valid:
        if path_has_canonical_extension(url):
            return url
    return valid[0]


class NetworkObserver:
    """
    Collects media-like responses for one browsing context.
    Instantiate fresh per resolution; never shared across requests.
    """

    def __init__(
        self,
        page: Any,
        playable_selector: str = "video",
        settle_window: float = 3.0,
        max_candidates: int = 50,
    ) -> None:
        self.page = page
        self.playable_selector = playable_selector
        self.settle_window = settle_window
        self.max_candidates = max_candidates
        self.candidates: List[str] = []
        self.discarded_sentinels = 0
        self._winner: "asyncio.Future[str]" = asyncio.get_running_loop().create_future()
        self._tie_break_done = False
        self._source: Any = None

    # ── Subscription ────────────────────────────────────────────────────────

    def attach(self, source: Any) -> None:
        """Start listening on a context (or page). Must precede navigation."""
        source.on("response", self._on_response)
        self._source = source

    def detach(self) -> None:
        if self._source is None:
            return
        try:
            self._source.remove_listener("response", self._on_response)
        except Exception as e:
            logger.debug(f"[network] detach failed: {e}")
        self._source = None

    @property
    def resolved_url(self) -> Optional[str]:
        if self._winner.done() and not self._winner.cancelled():
            return self._winner.result()
        return None

    def _settle(self, url: str) -> None:
        if not self._winner.done():
            self._winner.set_result(url)

    def _on_response(self, response: Any) -> None:
        """
        Synchronous handler, fires for EVERY response in the context.
        Only classifies and records, no awaits.
        """
        try:
            url = response.url
            content_type = (response.headers or {}).get("content-type", "")
            resource_type = response.request.resource_type
        except Exception as e:
            logger.debug(f"[network] unreadable response skipped: {e}")
            return
        self.observe(url, content_type, resource_type)

    def observe(self, url: str, content_type: str = "", resource_type: str = "") -> None:
        """Classify one response and record it if it is a media candidate."""
        if not url or self._winner.done():
            return
        # Page and frame documents; TikTok page URLs contain "/video/"
        if resource_type == "document":
            return
        if not is_media_response(url, content_type):
            return
        if is_sentinel(url):
            self.discarded_sentinels += 1
            logger.debug(f"[network] sentinel ignored: {url[:80]}")
            return
        if url in self.candidates:
            return
        if len(self.candidates) < self.max_candidates:
            self.candidates.append(url)
            logger.info(f"[network] media candidate #{len(self.candidates)}: {url[:80]}...")
        else:
            logger.debug(f"[network] candidate cap reached, not stored: {url[:80]}")

        if contains_canonical_extension(url) or self._tie_break_done:
            self._settle(url)

    # ── Race ────────────────────────────────────────────────────────────────

    async def _nudge(self) -> None:
        """Provoke lazy-loaded media: scroll, then click anything playable."""
        try:
            await self.page.evaluate("window.scrollTo(0, 500)")
            await asyncio.sleep(1.0)
            elements = await self.page.query_selector_all(self.playable_selector)
            for element in elements:
                try:
                    await element.click(timeout=2_000)
                    await asyncio.sleep(0.5)
                except Exception as e:
                    logger.debug(f"[network] click on playable element failed: {e}")
        except Exception as e:
            logger.debug(f"[network] page interaction failed: {e}")

    async def _settle_then_tie_break(self) -> None:
        await asyncio.sleep(self.settle_window)
        if self._winner.done():
            return
        await self._nudge()
        if self._winner.done():
            return
        best = pick_best_candidate(self.candidates)
        self._tie_break_done = True
        if best:
            logger.info(f"[network] tie-break picked {best[:80]}...")
            self._settle(best)

    async def wait_for_candidate(self, timeout: float) -> str:
        """
        Block until a conclusive media URL is known or timeout seconds pass.
        Raises NetworkObservationTimeout when nothing usable arrived in time.
        """
        if self._winner.done():
            return self._winner.result()
        if timeout <= 0:
            best = pick_best_candidate(self.candidates)
            if best:
                return best
            raise NetworkObservationTimeout("no time left for network observation")

        helper = asyncio.ensure_future(self._settle_then_tie_break())
        try:
            return await asyncio.wait_for(asyncio.shield(self._winner), timeout)
        except asyncio.TimeoutError:
            raise NetworkObservationTimeout(
                f"no media response within {timeout:.1f}s "
                f"({len(self.candidates)} candidates, {self.discarded_sentinels} sentinels)"
            ) from None
        finally:
            # Losing side of the race is abandoned, not awaited
            helper.cancel()
