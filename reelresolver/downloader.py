"""
Media download from inside the live browsing session.

CDN URLs handed out to the player are tied to the session (referrer, origin,
sometimes the outbound IP) and answer 403 to a fresh client. The fetch
therefore runs through page.evaluate(), from the page's own origin. It uses
the default credentials mode: same-origin requests carry the page's cookies,
and cross-origin CDNs answering "Access-Control-Allow-Origin: *" stay
readable (a credentialed request would be rejected by CORS there).

The page streams the body with a reader, enforcing the size cap on the
declared length and on the running total, and hands the bytes back base64
encoded (the only binary-safe way across evaluate()).

fetch_direct() is the caller-side fallback: a plain httpx stream with the
same cap, for when the in-session fetch fails.
"""

import asyncio
import base64
import binascii
import logging
from typing import Any, Optional

import httpx

from .errors import DownloadFailedError, PayloadTooLargeError
from .models import DownloadResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 50 * 1024 * 1024  # 50 MiB

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

_IN_PAGE_FETCH_JS = """
async ({ url, maxBytes }) => {
    let response;
    try {
        response = await fetch(url);
    } catch (e) {
        return { ok: false, reason: 'network', message: String(e) };
    }
    if (!response.ok) {
        return { ok: false, reason: 'status', status: response.status, message: response.statusText };
    }
    const declaredHeader = response.headers.get('content-length');
    const declared = declaredHeader ? parseInt(declaredHeader, 10) : NaN;
    if (!isNaN(declared) && declared > maxBytes) {
        return { ok: false, reason: 'too_large', size: declared };
    }
    if (!response.body) {
        return { ok: false, reason: 'stream', message: 'No response body reader available' };
    }
    const reader = response.body.getReader();
    const chunks = [];
    let total = 0;
    try {
        while (true) {
            const { done, value } = await reader.read();
            if (done) break;
            total += value.length;
            if (total > maxBytes) {
                try { await reader.cancel(); } catch (e) {}
                return { ok: false, reason: 'too_large', size: total };
            }
            chunks.push(value);
        }
    } catch (e) {
        return { ok: false, reason: 'stream', message: String(e) };
    }
    const full = new Uint8Array(total);
    let position = 0;
    for (const chunk of chunks) {
        full.set(chunk, position);
        position += chunk.length;
    }
    let binary = '';
    const step = 0x8000;
    for (let i = 0; i < full.length; i += step) {
        binary += String.fromCharCode.apply(null, full.subarray(i, i + step));
    }
    return {
        ok: true,
        data: btoa(binary),
        size: total,
        declared: isNaN(declared) ? null : declared,
        encoding: response.headers.get('content-encoding') || '',
        contentType: response.headers.get('content-type') || 'video/mp4',
    };
}
"""


def decode_fetch_result(result: Any, url: str, max_bytes: int) -> DownloadResult:
    """Turn the in-page fetch result into a DownloadResult or raise the matching error."""
    if not isinstance(result, dict):
        raise DownloadFailedError("unexpected result from in-page fetch")

    if not result.get("ok"):
        reason = result.get("reason")
        if reason == "too_large":
            raise PayloadTooLargeError(int(result.get("size") or 0), max_bytes)
        if reason == "status":
            status = result.get("status")
            raise DownloadFailedError(f"HTTP {status}: {result.get('message') or ''}".strip(), status=status)
        raise DownloadFailedError(result.get("message") or f"in-page fetch failed ({reason})")

    try:
        buffer = base64.b64decode(result.get("data") or "", validate=True)
    except (binascii.Error, ValueError) as e:
        raise DownloadFailedError(f"corrupt payload from in-page fetch: {e}")

    if len(buffer) > max_bytes:
        raise PayloadTooLargeError(len(buffer), max_bytes)

    declared = result.get("declared")
    encoding = (result.get("encoding") or "").lower()
    if declared is not None and encoding in ("", "identity") and len(buffer) != int(declared):
        raise DownloadFailedError(f"truncated stream ({len(buffer)} of {declared} bytes)")

    return DownloadResult(
        media_url=url,
        buffer=buffer,
        content_type=result.get("contentType") or "video/mp4",
    )


class InSessionDownloader:
    """Downloads a resolved media URL through a live page of the browsing context."""

    def __init__(self, max_bytes: int = DEFAULT_MAX_BYTES, timeout: float = 60.0) -> None:
        self.max_bytes = max_bytes
        self.timeout = timeout

    async def fetch(self, page: Any, url: str) -> DownloadResult:
        """Strict variant: raises PayloadTooLargeError / DownloadFailedError."""
        logger.info(f"⬇️ [download] in-session fetch: {url[:80]}...")
        try:
            result = await asyncio.wait_for(
                page.evaluate(_IN_PAGE_FETCH_JS, {"url": url, "maxBytes": self.max_bytes}),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise DownloadFailedError(f"timed out after {self.timeout:.0f}s") from None
        except Exception as e:
            raise DownloadFailedError(f"Browser download failed: {e}") from e

        download = decode_fetch_result(result, url, self.max_bytes)
        size_mb = len(download.buffer or b"") / 1024 / 1024
        logger.info(f"✅ [download] {size_mb:.2f} MB ({download.content_type})")
        return download

    async def download(self, page: Any, url: str) -> DownloadResult:
        """
        Soft variant used by the engine: a failed download is not a failed
        resolution, so errors come back as DownloadResult.error with no buffer.
        """
        try:
            return await self.fetch(page, url)
        except (PayloadTooLargeError, DownloadFailedError) as e:
            logger.warning(f"⚠️ [download] returning bare URL: {e.message}")
            return DownloadResult(media_url=url, error=e.to_detail())


async def fetch_direct(
    url: str,
    referer: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    timeout: float = 120.0,
    user_agent: str = DESKTOP_USER_AGENT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> DownloadResult:
    """
    Out-of-session fetch of a media URL with httpx, capped at max_bytes.
    Raises PayloadTooLargeError / DownloadFailedError.
    """
    headers = {"User-Agent": user_agent}
    if referer:
        headers["Referer"] = referer

    chunks = []
    total = 0
    try:
        async with httpx.AsyncClient(
            timeout=timeout, follow_redirects=True, transport=transport,
        ) as client:
            async with client.stream("GET", url, headers=headers) as resp:
                if resp.status_code not in (200, 206):
                    raise DownloadFailedError(f"HTTP {resp.status_code}", status=resp.status_code)
                declared = resp.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > max_bytes:
                    raise PayloadTooLargeError(int(declared), max_bytes)
                async for chunk in resp.aiter_bytes(65536):
                    total += len(chunk)
                    if total > max_bytes:
                        raise PayloadTooLargeError(total, max_bytes)
                    chunks.append(chunk)
                content_type = resp.headers.get("content-type", "video/mp4")
    except httpx.HTTPError as e:
        raise DownloadFailedError(f"direct fetch error: {e}") from e

    logger.info(f"✅ [download] direct fetch {total / 1024 / 1024:.2f} MB")
    return DownloadResult(media_url=url, buffer=b"".join(chunks), content_type=content_type)
