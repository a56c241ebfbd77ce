"""
DOM probing: one bounded wait for any video element, most specific match read.
"""

import asyncio
import time

import pytest

from conftest import CDN_URL
from fakes import FakeContext, FakePage
from reelresolver.dom_probe import probe_dom
from reelresolver.models import Platform, StrategyKind
from reelresolver.platforms import profile_for

TIKTOK = profile_for(Platform.TIKTOK)


def _page(**kwargs) -> FakePage:
    page = FakePage(**kwargs)
    FakeContext(page)
    return page


def _deadline(seconds: float) -> float:
    return asyncio.get_running_loop().time() + seconds


@pytest.mark.asyncio
async def test_missing_video_costs_one_selector_wait():
    page = _page(slow_selector_miss=True)

    started = time.monotonic()
    assert await probe_dom(page, TIKTOK, _deadline(10.0), selector_timeout=0.3) is None
    elapsed = time.monotonic() - started

    assert len(page.selector_waits) == 1
    assert elapsed < 0.8
    assert all(sel in page.selector_waits[0] for sel in TIKTOK.video_selectors)


@pytest.mark.asyncio
async def test_wait_never_runs_past_deadline():
    page = _page(slow_selector_miss=True)

    started = time.monotonic()
    assert await probe_dom(page, TIKTOK, _deadline(0.2), selector_timeout=5.0) is None
    assert time.monotonic() - started < 0.6


@pytest.mark.asyncio
async def test_expired_deadline_skips_selector_wait():
    page = _page(dom_selectors={"video"})
    assert await probe_dom(page, TIKTOK, _deadline(-1.0), selector_timeout=5.0) is None
    assert page.selector_waits == []


@pytest.mark.asyncio
async def test_most_specific_selector_is_read():
    page = _page(
        dom_selectors={'[data-e2e="video-player"] video', "video"},
        video_source={"url": CDN_URL, "duration": 7.0},
    )
    seen = []
    original = page.evaluate

    async def recording_evaluate(script, arg=None):
        if "currentSrc" in script:
            seen.append(arg[0])
        return await original(script, arg)

    page.evaluate = recording_evaluate

    candidate = await probe_dom(page, TIKTOK, _deadline(5.0), selector_timeout=0.5)

    assert seen == ['[data-e2e="video-player"] video']
    assert candidate.media_url == CDN_URL
    assert candidate.duration_seconds == 7.0
    assert candidate.source_strategy is StrategyKind.DOM_PROBE


@pytest.mark.asyncio
async def test_blob_source_gives_empty_address_with_metadata():
    page = _page(
        dom_selectors={"video"},
        video_source={"url": "blob:https://www.tiktok.com/5f1c", "duration": float("nan")},
        texts={"h1": "heading"},
    )
    candidate = await probe_dom(page, TIKTOK, _deadline(5.0), selector_timeout=0.5)
    assert candidate.media_url == ""
    assert candidate.title == "heading"
    assert candidate.duration_seconds is None
