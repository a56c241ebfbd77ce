"""
FastAPI Reel Resolver Service
Resolves TikTok / Instagram page URLs into playable media URLs (and bytes)
"""

import os
import time
import base64
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from .models import (
    ResolveRequest,
    ResolveResponse,
    ErrorResponse,
    HealthResponse,
    HealthStats,
    PlatformInfo,
    Platform,
    ErrorCode,
    ErrorDetail,
)
from .downloader import fetch_direct
from .engine import engine
from .errors import (
    ResolverError,
    UnsupportedPlatformError,
    EngineUnavailableError,
    NavigationTimeoutError,
    NoVideoFoundError,
    ResolutionTimeoutError,
    PayloadTooLargeError,
    DownloadFailedError,
)
from .platforms import EXAMPLE_URLS, HOSTS, profile_for

# Logging configuration
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# App metadata
VERSION = "1.0.0"
start_time = time.time()

# Statistics tracking
stats = {
    "total_resolutions": 0,
    "active_resolutions": 0,
    "failed_resolutions": 0,
}

# HTTP status per engine error kind
STATUS_BY_ERROR = {
    UnsupportedPlatformError: 400,
    NoVideoFoundError: 404,
    EngineUnavailableError: 503,
    NavigationTimeoutError: 504,
    ResolutionTimeoutError: 504,
}


def _status_for(error: ResolverError) -> int:
    for kind, status in STATUS_BY_ERROR.items():
        if isinstance(error, kind):
            return status
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for startup/shutdown tasks"""
    # Startup
    logger.info("🚀 Starting reel resolver service...")
    logger.info(f"Version: {VERSION}")
    settings = engine.settings
    token_configured = bool(settings.browserless_token)
    logger.info(f"🌐 Browser mode: {settings.browser_mode}")
    if settings.browser_mode == "cdp":
        logger.info(f"🔑 Browserless token: {'configured' if token_configured else 'NOT configured (resolution will fail)'}")

    yield

    # Shutdown
    logger.info("Shutting down reel resolver service...")
    await engine.shutdown()


# Create FastAPI app
app = FastAPI(
    title="Reel Resolver Service",
    description="Resolves TikTok and Instagram video pages into playable media using a headless browser",
    version=VERSION,
    lifespan=lifespan,
)

# CORS configuration
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# API ENDPOINTS
# ============================================================================


@app.post("/api/v1/resolve", response_model=ResolveResponse)
async def resolve_video(request: ResolveRequest):
    """
    Resolve a TikTok / Instagram page URL into a media URL and metadata

    **Flow:**
    1. Drive a headless browser through embedded-state, DOM and network extraction
    2. Download the video from inside the browser session (50 MB cap)
    3. If include_media=True, return the bytes base64-encoded
       (falls back to a direct fetch when the in-session download failed)
    4. Otherwise return the media URL only
    """
    logger.info(f"📥 Resolve request: {request.source_url} (include_media={request.include_media})")

    stats["active_resolutions"] += 1
    try:
        result = await engine.resolve(request.source_url, timeout=request.timeout_seconds)
    except ResolverError as e:
        stats["failed_resolutions"] += 1
        logger.error(f"❌ Resolution failed: {e.message}")
        return JSONResponse(
            status_code=_status_for(e),
            content=ErrorResponse(error=e.to_detail()).model_dump(mode='json'),
        )
    except Exception as e:
        stats["failed_resolutions"] += 1
        logger.exception(f"💥 Unexpected error during resolution: {e}")
        error = ErrorDetail(
            code=ErrorCode.SERVER_ERROR,
            message=f"Internal server error: {str(e)}",
            is_transient=True,
            retry_after_seconds=120,
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error=error).model_dump(mode='json'),
        )
    finally:
        stats["active_resolutions"] -= 1

    stats["total_resolutions"] += 1

    buffer: Optional[bytes] = result.media_buffer
    content_type = result.content_type
    download_error = result.download_error

    if request.include_media and buffer is None and request.direct_fetch_fallback:
        logger.info("↪️ In-session download unavailable, trying direct fetch")
        try:
            direct = await fetch_direct(
                result.media_url,
                referer=request.source_url,
                max_bytes=engine.settings.max_media_bytes,
                timeout=engine.settings.download_timeout,
            )
            buffer, content_type, download_error = direct.buffer, direct.content_type, None
        except (PayloadTooLargeError, DownloadFailedError) as e:
            logger.warning(f"⚠️ Direct fetch failed: {e.message}")
            download_error = e.to_detail()

    response = ResolveResponse(
        platform=result.platform,
        media_url=result.media_url,
        strategy=result.strategy,
        method="url",
        content_type=content_type,
        file_size_bytes=len(buffer) if buffer is not None else None,
        title=result.title,
        author=result.author,
        description=result.description,
        duration_seconds=result.duration_seconds,
        download_error=download_error,
    )
    if request.include_media and buffer is not None:
        logger.info(f"✅ Encoding video as base64 ({len(buffer) / 1024 / 1024:.2f} MB)")
        response.method = "base64"
        response.file_data = base64.b64encode(buffer).decode("utf-8")

    return JSONResponse(content=response.model_dump(mode='json'))


@app.get("/api/v1/platforms")
async def list_platforms():
    """List supported platforms with an example URL each."""
    platforms = [
        PlatformInfo(platform=p, example=EXAMPLE_URLS[p], hosts=HOSTS[p])
        for p in Platform
    ]
    return {
        "total": len(platforms),
        "platforms": [
            {**info.model_dump(mode='json'), "user_agent": profile_for(info.platform).user_agent}
            for info in platforms
        ],
    }


@app.get("/api/v1/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint for monitoring

    **Metrics:**
    - Service status and uptime
    - Resolution statistics
    - Browser engine connection state
    """
    uptime = time.time() - start_time

    return HealthResponse(
        status="healthy",
        version=VERSION,
        uptime_seconds=uptime,
        engine_connected=engine.sessions.is_connected,
        browser_mode=engine.settings.browser_mode,
        stats=HealthStats(
            total_resolutions=stats["total_resolutions"],
            active_resolutions=stats["active_resolutions"],
            failed_resolutions=stats["failed_resolutions"],
        ),
    )


@app.get("/")
async def root():
    """Root endpoint with service info"""
    return {
        "service": "Reel Resolver Service",
        "version": VERSION,
        "status": "running",
        "endpoints": {
            "resolve": "/api/v1/resolve",
            "platforms": "/api/v1/platforms",
            "health": "/api/v1/health",
        },
        "docs": "/docs",
    }


# ============================================================================
# ERROR HANDLERS
# ============================================================================


@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Custom 404 handler"""
    return JSONResponse(
        status_code=404,
        content={"detail": "Endpoint not found. See /docs for API documentation."}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
