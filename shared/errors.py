"""
Error types for calls to the moderation and generation services
"""

from typing import Optional


class ConfigurationError(Exception):
    """Required configuration is missing or invalid at startup"""
    pass


class UpstreamError(Exception):
    """Base class for every failed call to an external service"""

    def __init__(self, message: str, service: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code


class ModerationError(UpstreamError):
    """The content moderation service could not produce an analysis"""
    pass


class GenerationError(UpstreamError):
    """The text generation service could not produce a completion"""
    pass


class APIError(UpstreamError):
    """Non-success HTTP status returned by an upstream API"""
    pass


class NetworkError(UpstreamError):
    """Transport-level failure reaching an upstream API"""
    pass


class RateLimitError(UpstreamError):
    """Upstream API refused the call because of rate limiting"""
    pass


class ResponseParseError(UpstreamError):
    """Upstream response body does not match the expected schema"""
    pass


# Service-scoped variants so callers can catch either by kind or by service
class ModerationAPIError(ModerationError, APIError):
    pass


class ModerationNetworkError(ModerationError, NetworkError):
    pass


class ModerationRateLimitError(ModerationError, RateLimitError):
    pass


class ModerationParseError(ModerationError, ResponseParseError):
    pass


class GenerationAPIError(GenerationError, APIError):
    pass


class GenerationNetworkError(GenerationError, NetworkError):
    pass


class GenerationRateLimitError(GenerationError, RateLimitError):
    pass


class GenerationParseError(GenerationError, ResponseParseError):
    pass


_ERRORS_BY_SERVICE = {
    "moderation": {
        "api": ModerationAPIError,
        "network": ModerationNetworkError,
        "rate_limit": ModerationRateLimitError,
        "parse": ModerationParseError,
    },
    "generation": {
        "api": GenerationAPIError,
        "network": GenerationNetworkError,
        "rate_limit": GenerationRateLimitError,
        "parse": GenerationParseError,
    },
}


def error_class(service: str, kind: str) -> type:
    """Look up the error type for a service ("moderation"/"generation") and kind"""
    return _ERRORS_BY_SERVICE[service][kind]


def convert_http_error(response_status: int, error_message: str, service: str) -> UpstreamError:
    """Convert HTTP status codes to appropriate exception types"""
    if response_status == 429:
        cls = error_class(service, "rate_limit")
        return cls(f"Rate limit exceeded: {error_message}", service=service, status_code=response_status)
    elif response_status in [408, 502, 503, 504]:
        cls = error_class(service, "network")
        return cls(f"Network error ({response_status}): {error_message}", service=service, status_code=response_status)
    elif 500 <= response_status < 600:
        cls = error_class(service, "api")
        return cls(f"Server error ({response_status}): {error_message}", service=service, status_code=response_status)
    else:
        cls = error_class(service, "api")
        return cls(f"HTTP error ({response_status}): {error_message}", service=service, status_code=response_status)
