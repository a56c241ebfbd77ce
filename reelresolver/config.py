"""
Runtime configuration for the resolver, read from environment variables.

Environment variables:
  BROWSER_MODE                    "cdp" (connect to a hosted browser, default) or "launch"
                                  (start a local headless Chromium)
  BROWSERLESS_TOKEN               API token for the hosted browser endpoint (required in cdp mode)
  BROWSERLESS_ENDPOINT            CDP websocket endpoint, token is appended as ?token=
  BROWSER_HEADLESS                "false" to show the browser in launch mode
  MAX_MEDIA_BYTES                 in-session download cap (default 50 MiB)
  REQUEST_TIMEOUT_SECONDS         hard limit for one resolve() call
  EXTRACTION_DEADLINE_SECONDS     deadline for DOM probing + network race
  SELECTOR_TIMEOUT_SECONDS        wait per DOM selector
  SETTLE_DELAY_SECONDS            pause after page load before extraction
  OBSERVER_SETTLE_WINDOW_SECONDS  wait before the network observer nudges the page
  DOWNLOAD_TIMEOUT_SECONDS        in-session download time limit
  MAX_NETWORK_CANDIDATES          cap on accumulated network candidates
  CONNECT_TIMEOUT_SECONDS         browser connect/launch timeout
"""

import os
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

DEFAULT_ENDPOINT = "wss://production-sfo.browserless.io"

BROWSER_MODE = os.getenv("BROWSER_MODE", "cdp")
BROWSERLESS_TOKEN = os.getenv("BROWSERLESS_TOKEN")
BROWSERLESS_ENDPOINT = os.getenv("BROWSERLESS_ENDPOINT", DEFAULT_ENDPOINT)
BROWSER_HEADLESS = os.getenv("BROWSER_HEADLESS", "true").lower() != "false"

MAX_MEDIA_BYTES = int(os.getenv("MAX_MEDIA_BYTES", str(50 * 1024 * 1024)))  # 50 MiB
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "120"))
EXTRACTION_DEADLINE_SECONDS = float(os.getenv("EXTRACTION_DEADLINE_SECONDS", "15"))
SELECTOR_TIMEOUT_SECONDS = float(os.getenv("SELECTOR_TIMEOUT_SECONDS", "5"))
SETTLE_DELAY_SECONDS = float(os.getenv("SETTLE_DELAY_SECONDS", "2.5"))
OBSERVER_SETTLE_WINDOW_SECONDS = float(os.getenv("OBSERVER_SETTLE_WINDOW_SECONDS", "3"))
DOWNLOAD_TIMEOUT_SECONDS = float(os.getenv("DOWNLOAD_TIMEOUT_SECONDS", "60"))
MAX_NETWORK_CANDIDATES = int(os.getenv("MAX_NETWORK_CANDIDATES", "50"))
CONNECT_TIMEOUT_SECONDS = float(os.getenv("CONNECT_TIMEOUT_SECONDS", "30"))

# (wait_until, timeout_ms), each less strict than the one before
NAVIGATION_CASCADE: List[Tuple[str, int]] = [
    ("networkidle", 60_000),
    ("domcontentloaded", 45_000),
    ("load", 30_000),
]

# Chromium flags used when the engine launches its own browser
LAUNCH_ARGS: List[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--autoplay-policy=no-user-gesture-required",
    "--disable-blink-features=AutomationControlled",
]


class ResolverSettings(BaseModel):
    """Tunable limits and engine connection options for one engine instance."""
    browser_mode: str = Field(BROWSER_MODE, description="'cdp' or 'launch'")
    browserless_token: Optional[str] = BROWSERLESS_TOKEN
    browserless_endpoint: str = BROWSERLESS_ENDPOINT
    headless: bool = BROWSER_HEADLESS
    launch_args: List[str] = Field(default_factory=lambda: list(LAUNCH_ARGS))

    max_media_bytes: int = MAX_MEDIA_BYTES
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    extraction_deadline: float = EXTRACTION_DEADLINE_SECONDS
    selector_timeout: float = SELECTOR_TIMEOUT_SECONDS
    settle_delay: float = SETTLE_DELAY_SECONDS
    observer_settle_window: float = OBSERVER_SETTLE_WINDOW_SECONDS
    download_timeout: float = DOWNLOAD_TIMEOUT_SECONDS
    max_network_candidates: int = MAX_NETWORK_CANDIDATES
    connect_timeout: float = CONNECT_TIMEOUT_SECONDS
    navigation_cascade: List[Tuple[str, int]] = Field(
        default_factory=lambda: list(NAVIGATION_CASCADE)
    )

    @classmethod
    def from_env(cls) -> "ResolverSettings":
        """Re-read the environment (module constants are frozen at import time)."""
        return cls(
            browser_mode=os.getenv("BROWSER_MODE", "cdp"),
            browserless_token=os.getenv("BROWSERLESS_TOKEN"),
            browserless_endpoint=os.getenv("BROWSERLESS_ENDPOINT", DEFAULT_ENDPOINT),
            headless=os.getenv("BROWSER_HEADLESS", "true").lower() != "false",
            max_media_bytes=int(os.getenv("MAX_MEDIA_BYTES", str(MAX_MEDIA_BYTES))),
            request_timeout=float(os.getenv("REQUEST_TIMEOUT_SECONDS", str(REQUEST_TIMEOUT_SECONDS))),
            extraction_deadline=float(
                os.getenv("EXTRACTION_DEADLINE_SECONDS", str(EXTRACTION_DEADLINE_SECONDS))
            ),
            selector_timeout=float(os.getenv("SELECTOR_TIMEOUT_SECONDS", str(SELECTOR_TIMEOUT_SECONDS))),
            settle_delay=float(os.getenv("SETTLE_DELAY_SECONDS", str(SETTLE_DELAY_SECONDS))),
            observer_settle_window=float(
                os.getenv("OBSERVER_SETTLE_WINDOW_SECONDS", str(OBSERVER_SETTLE_WINDOW_SECONDS))
            ),
            download_timeout=float(os.getenv("DOWNLOAD_TIMEOUT_SECONDS", str(DOWNLOAD_TIMEOUT_SECONDS))),
            max_network_candidates=int(os.getenv("MAX_NETWORK_CANDIDATES", str(MAX_NETWORK_CANDIDATES))),
            connect_timeout=float(os.getenv("CONNECT_TIMEOUT_SECONDS", str(CONNECT_TIMEOUT_SECONDS))),
        )

    @property
    def cdp_url(self) -> Optional[str]:
        """Websocket URL for connect_over_cdp, or None when no token is configured."""
        if not self.browserless_token:
            return None
        sep = "&" if "?" in self.browserless_endpoint else "?"
        return f"{self.browserless_endpoint}{sep}token={self.browserless_token}"
