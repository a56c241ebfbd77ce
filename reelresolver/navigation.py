"""
Page loading with an escalating wait-condition cascade.
"""

import asyncio
import logging
from typing import Any, List, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError

from .errors import NavigationTimeoutError

logger = logging.getLogger(__name__)


async def navigate(
    page: Any,
    url: str,
    cascade: Sequence[Tuple[str, int]],
    settle_delay: float = 2.5,
) -> str:
    """
    Load url, trying each (wait_until, timeout_ms) in order until one succeeds.
    Returns the wait condition that worked. Raises NavigationTimeoutError when
    every attempt fails.

    After the load a pointer move is issued and settle_delay is slept so the
    client-side app can render the player.
    """
    attempts: List[str] = []
    loaded_with = None

    for wait_until, timeout_ms in cascade:
        try:
            await page.goto(url, wait_until=wait_until, timeout=timeout_ms)
            loaded_with = wait_until
            break
        except PlaywrightError as e:
            attempts.append(f"{wait_until}/{timeout_ms}ms: {str(e)[:200]}")
            logger.warning(f"⚠️ [navigation] {wait_until} wait failed after {timeout_ms}ms: {str(e)[:120]}")

    if loaded_with is None:
        raise NavigationTimeoutError(url, attempts)

    logger.info(f"[navigation] loaded {url} ({loaded_with})")

    # Simulate a bit of human activity
    try:
        await page.mouse.move(100, 100)
    except PlaywrightError as e:
        logger.debug(f"[navigation] pointer move skipped: {e}")

    if settle_delay > 0:
        await asyncio.sleep(settle_delay)
    return loaded_with
