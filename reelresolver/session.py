"""
Browser engine connection and per-request browsing contexts.

One connection (hosted browser over CDP, or a locally launched Chromium) is
shared by every resolution in the process; each resolution gets its own
context, which is closed exactly once on every exit path.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from playwright.async_api import async_playwright

from .config import ResolverSettings
from .errors import EngineUnavailableError
from .platforms import PlatformProfile

logger = logging.getLogger(__name__)


class BrowserSessionManager:
    """Owns the Playwright driver and the browser connection."""

    def __init__(self, settings: Optional[ResolverSettings] = None) -> None:
        self.settings = settings or ResolverSettings()
        self._playwright: Any = None
        self._browser: Any = None
        self._lock = asyncio.Lock()
        self.open_contexts = 0

    @property
    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def acquire_session(self) -> Any:
        """
        Return a connected Browser, connecting on first use (or after the
        previous connection dropped). Raises EngineUnavailableError.
        """
        async with self._lock:
            if self.is_connected:
                return self._browser
            await self._release_driver()

            mode = self.settings.browser_mode.strip().lower()
            if mode == "cdp" and not self.settings.cdp_url:
                raise EngineUnavailableError(
                    "BROWSERLESS_TOKEN environment variable is not set",
                    details={"mode": mode},
                )

            try:
                self._playwright = await async_playwright().start()
            except Exception as e:
                raise EngineUnavailableError(f"Could not start Playwright driver: {e}") from e

            timeout_ms = int(self.settings.connect_timeout * 1000)
            try:
                if mode == "cdp":
                    logger.info(f"🌐 [session] connecting over CDP to {self.settings.browserless_endpoint}")
                    self._browser = await self._playwright.chromium.connect_over_cdp(
                        self.settings.cdp_url, timeout=timeout_ms,
                    )
                elif mode == "launch":
                    logger.info("🌐 [session] launching local Chromium")
                    self._browser = await self._playwright.chromium.launch(
                        headless=self.settings.headless,
                        args=list(self.settings.launch_args),
                        timeout=timeout_ms,
                    )
                else:
                    raise EngineUnavailableError(f"Unknown BROWSER_MODE {mode!r} (use 'cdp' or 'launch')")
            except EngineUnavailableError:
                await self._release_driver()
                raise
            except Exception as e:
                await self._release_driver()
                raise EngineUnavailableError(
                    f"Browser engine unreachable: {e}", details={"mode": mode},
                ) from e

            logger.info(f"✅ [session] browser engine ready ({mode})")
            return self._browser

    async def open_context(self, profile: PlatformProfile) -> Any:
        browser = await self.acquire_session()
        try:
            ctx = await browser.new_context(**profile.context_options())
        except Exception as e:
            raise EngineUnavailableError(f"Could not open browsing context: {e}") from e
        self.open_contexts += 1
        logger.debug(f"[session] context opened ({profile.platform.value}), {self.open_contexts} open")
        return ctx

    async def close_context(self, ctx: Any) -> None:
        self.open_contexts -= 1
        try:
            await ctx.close()
        except Exception as e:
            # Browser already gone; the context went with it
            logger.warning(f"⚠️ [session] context close failed: {e}")
        logger.debug(f"[session] context closed, {self.open_contexts} open")

    @asynccontextmanager
    async def browsing_context(self, profile: PlatformProfile) -> AsyncIterator[Any]:
        """Open a context for one resolution and close it on every exit path."""
        ctx = await self.open_context(profile)
        try:
            yield ctx
        finally:
            await self.close_context(ctx)

    async def _release_driver(self) -> None:
        if self._browser is not None:
            try:
                await self._browser.close()
            except Exception as e:
                logger.debug(f"[session] browser close: {e}")
            self._browser = None
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.debug(f"[session] playwright stop: {e}")
            self._playwright = None

    async def shutdown(self) -> None:
        async with self._lock:
            await self._release_driver()
        logger.info("[session] browser engine shut down")
