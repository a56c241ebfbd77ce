"""
Video Resolution Engine: page URL in, ResolvedVideo out.

Flow per resolve():
  classify URL → acquire browser → open isolated context → stealth init
  script → attach network observer → navigate (3-step wait cascade + settle)
  → extraction pipeline (embedded state → DOM → network race) → in-session
  download → context closed (always)

The engine performs no retries of its own beyond the navigation cascade;
EngineUnavailableError and the time-out errors are transient and left to the
caller to retry with backoff.
"""

import asyncio
import logging
from typing import Optional

from .config import ResolverSettings
from .downloader import InSessionDownloader
from .errors import ResolutionTimeoutError
from .models import ResolutionRequest, ResolvedVideo
from .navigation import navigate
from .network_observer import NetworkObserver
from .pipeline import ExtractionPipeline
from .platforms import classify_platform, profile_for
from .session import BrowserSessionManager
from .stealth import apply_stealth

logger = logging.getLogger(__name__)


class VideoResolutionEngine:
    """Resolves TikTok / Instagram page URLs through a headless browser."""

    def __init__(
        self,
        settings: Optional[ResolverSettings] = None,
        sessions: Optional[BrowserSessionManager] = None,
    ) -> None:
        self.settings = settings or ResolverSettings()
        self.sessions = sessions or BrowserSessionManager(self.settings)
        self.downloader = InSessionDownloader(
            max_bytes=self.settings.max_media_bytes,
            timeout=self.settings.download_timeout,
        )

    async def resolve(self, source_url: str, timeout: Optional[float] = None) -> ResolvedVideo:
        """
        Resolve source_url into a ResolvedVideo.

        Raises UnsupportedPlatformError, EngineUnavailableError,
        NavigationTimeoutError, NoVideoFoundError or ResolutionTimeoutError.
        Download problems never raise: the result then has no media_buffer and
        download_error says why.
        """
        request = ResolutionRequest(source_url=source_url, platform=classify_platform(source_url))
        limit = timeout if timeout is not None else self.settings.request_timeout

        logger.info(f"🎬 Resolving {source_url} ({request.platform.value}, limit {limit:.0f}s)")
        try:
            return await asyncio.wait_for(self._resolve(request), timeout=limit)
        except asyncio.TimeoutError:
            logger.error(f"❌ Resolution timed out after {limit:.0f}s: {source_url}")
            raise ResolutionTimeoutError(
                f"Resolution did not finish within {limit:.0f}s",
                details={"url": source_url},
            ) from None

    async def _resolve(self, request: ResolutionRequest) -> ResolvedVideo:
        profile = profile_for(request.platform)

        async with self.sessions.browsing_context(profile) as ctx:
            await apply_stealth(ctx, profile)
            page = await ctx.new_page()

            # Attach BEFORE goto(): players request their stream during initial load
            observer = NetworkObserver(
                page,
                playable_selector=profile.playable_selector,
                settle_window=self.settings.observer_settle_window,
                max_candidates=self.settings.max_network_candidates,
            )
            observer.attach(ctx)
            try:
                await navigate(
                    page,
                    request.source_url,
                    self.settings.navigation_cascade,
                    settle_delay=self.settings.settle_delay,
                )
                candidate = await ExtractionPipeline(profile, self.settings).run(page, observer)
                download = await self.downloader.download(page, candidate.media_url)
            finally:
                observer.detach()

        result = ResolvedVideo(
            media_url=candidate.media_url,
            platform=request.platform,
            title=candidate.title,
            author=candidate.author,
            description=candidate.description,
            duration_seconds=candidate.duration_seconds,
            strategy=candidate.source_strategy,
            media_buffer=download.buffer,
            content_type=download.content_type,
            download_error=download.error,
        )
        size = f"{len(result.media_buffer) / 1024 / 1024:.2f} MB" if result.has_buffer else "no buffer"
        logger.info(f"✅ Resolved {request.source_url} via {result.strategy.value} ({size})")
        return result

    async def shutdown(self) -> None:
        await self.sessions.shutdown()


# Global singleton
engine = VideoResolutionEngine()
