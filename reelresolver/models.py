"""
Pydantic models for resolver data and request/response schemas
"""

from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from enum import Enum


class Platform(str, Enum):
    """Supported source platforms"""
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"


class StrategyKind(str, Enum):
    """Extraction strategy that produced a candidate"""
    EMBEDDED_STATE = "embedded_state"
    DOM_PROBE = "dom_probe"
    NETWORK = "network"


class ErrorCode(str, Enum):
    """Error code classifications"""
    UNSUPPORTED_PLATFORM = "UNSUPPORTED_PLATFORM"
    ENGINE_UNAVAILABLE = "ENGINE_UNAVAILABLE"
    NAVIGATION_TIMEOUT = "NAVIGATION_TIMEOUT"
    NO_VIDEO_FOUND = "NO_VIDEO_FOUND"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    DOWNLOAD_FAILED = "DOWNLOAD_FAILED"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
    SERVER_ERROR = "SERVER_ERROR"


class ErrorDetail(BaseModel):
    """Error details"""
    code: ErrorCode
    message: str
    is_transient: bool = Field(..., description="True if retry might succeed, False if permanent")
    retry_after_seconds: Optional[int] = None
    details: Optional[Dict[str, Any]] = None


# ============================================================================
# ENGINE DATA
# ============================================================================


class ResolutionRequest(BaseModel):
    """One inbound resolution, built once per resolve() call"""
    source_url: str
    platform: Platform

    class Config:
        frozen = True


class ExtractionCandidate(BaseModel):
    """Media address plus metadata produced by a single extraction strategy"""
    media_url: str = ""
    title: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    duration_seconds: Optional[float] = None
    source_strategy: StrategyKind


class DownloadResult(BaseModel):
    """Outcome of the in-session download; buffer is None when the fetch failed"""
    media_url: str
    buffer: Optional[bytes] = None
    content_type: Optional[str] = None
    error: Optional[ErrorDetail] = None


class ResolvedVideo(BaseModel):
    """Terminal output of the engine"""
    media_url: str
    platform: Platform
    title: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    duration_seconds: Optional[float] = None
    strategy: StrategyKind
    media_buffer: Optional[bytes] = Field(None, repr=False)
    content_type: Optional[str] = None
    download_error: Optional[ErrorDetail] = None

    @property
    def has_buffer(self) -> bool:
        return self.media_buffer is not None


# ============================================================================
# API SCHEMAS
# ============================================================================


class ResolveRequest(BaseModel):
    """Request schema for /api/v1/resolve"""
    source_url: str = Field(..., description="TikTok or Instagram video page URL")
    include_media: Optional[bool] = Field(False, description="Return the video bytes base64-encoded")
    direct_fetch_fallback: Optional[bool] = Field(
        True, description="Fetch the media URL directly when the in-session download fails"
    )
    timeout_seconds: Optional[float] = Field(None, description="Override the per-request timeout")

    class Config:
        json_schema_extra = {
            "example": {
                "source_url": "https://www.tiktok.com/@scout2015/video/6718335390845095173",
                "include_media": False,
            }
        }


class ResolveResponse(BaseModel):
    """Success response for /api/v1/resolve"""
    success: bool = True
    platform: Platform
    media_url: str
    strategy: StrategyKind
    method: str = Field(..., description="'url' or 'base64'")
    file_data: Optional[str] = Field(None, description="Base64-encoded video (method=base64)")
    content_type: Optional[str] = None
    file_size_bytes: Optional[int] = None
    title: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    duration_seconds: Optional[float] = None
    download_error: Optional[ErrorDetail] = None


class ErrorResponse(BaseModel):
    """Error response for failed resolutions"""
    success: bool = False
    error: ErrorDetail


class PlatformInfo(BaseModel):
    """One supported platform"""
    platform: Platform
    example: str
    hosts: List[str]


class HealthStats(BaseModel):
    """Statistics for health check"""
    total_resolutions: int
    active_resolutions: int
    failed_resolutions: int


class HealthResponse(BaseModel):
    """Response schema for /api/v1/health"""
    status: str
    version: str
    uptime_seconds: float
    engine_connected: bool
    browser_mode: str
    stats: HealthStats
