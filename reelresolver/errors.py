"""
Error kinds raised by the resolution engine.

Every public error carries an ErrorCode and a transient flag so the HTTP layer
(and any other caller) can map it onto an ErrorDetail without string matching.
"""

from typing import Any, Dict, List, Optional

from .models import ErrorCode, ErrorDetail


class ResolverError(Exception):
    """Base class for all engine failures."""

    code: ErrorCode = ErrorCode.SERVER_ERROR
    is_transient: bool = True
    retry_after_seconds: Optional[int] = None

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_detail(self) -> ErrorDetail:
        return ErrorDetail(
            code=self.code,
            message=self.message,
            is_transient=self.is_transient,
            retry_after_seconds=self.retry_after_seconds,
            details=self.details,
        )


class UnsupportedPlatformError(ResolverError):
    """URL matches neither TikTok nor Instagram."""
    code = ErrorCode.UNSUPPORTED_PLATFORM
    is_transient = False

    def __init__(self, url: Any) -> None:
        super().__init__(
            "Unsupported platform. Only TikTok and Instagram URLs are supported.",
            details={"url": str(url)[:500]},
        )


class EngineUnavailableError(ResolverError):
    """Browser engine cannot be reached or launched."""
    code = ErrorCode.ENGINE_UNAVAILABLE
    retry_after_seconds = 30


class NavigationTimeoutError(ResolverError):
    """Every wait condition in the navigation cascade failed."""
    code = ErrorCode.NAVIGATION_TIMEOUT
    retry_after_seconds = 60

    def __init__(self, url: str, attempts: List[str]) -> None:
        super().__init__(
            f"Page did not load after {len(attempts)} attempts: {url}",
            details={"url": url, "attempts": attempts},
        )
        self.attempts = attempts


class NoVideoFoundError(ResolverError):
    """All extraction strategies exhausted without a usable media URL."""
    code = ErrorCode.NO_VIDEO_FOUND
    is_transient = False


class PayloadTooLargeError(ResolverError):
    """Download exceeded the configured size cap."""
    code = ErrorCode.PAYLOAD_TOO_LARGE
    is_transient = False

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"Video file too large ({size} bytes > {limit} byte limit)",
            details={"size": size, "limit": limit},
        )
        self.size = size
        self.limit = limit


class DownloadFailedError(ResolverError):
    """Non-2xx status, stream error or time-out during a media fetch."""
    code = ErrorCode.DOWNLOAD_FAILED

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(
            f"Failed to download video: {message}",
            details={"status": status} if status is not None else None,
        )
        self.status = status


class ResolutionTimeoutError(ResolverError):
    """The whole resolve() call exceeded its time limit."""
    code = ErrorCode.REQUEST_TIMEOUT
    retry_after_seconds = 60


class NetworkObservationTimeout(Exception):
    """No media response observed before the deadline (absorbed by the pipeline)."""
