from typing import Optional


class PortfolioException(Exception):
    """Base exception for all portfolio aggregation errors."""
    pass

class ConfigurationError(PortfolioException):
    """Raised when a required setting is missing or malformed."""
    pass

class UpstreamError(PortfolioException):
    """Raised when an upstream host (GitHub, Vercel) cannot serve a request."""
    def __init__(self, message: str, source: str = "upstream", status: Optional[int] = None):
        self.source = source
        self.status = status
        super().__init__(f"[{source}] {message}")

class AuthError(UpstreamError):
    """Raised when the upstream rejects the credential. Never retried."""
    pass

class RateLimitError(UpstreamError):
    """Raised when the upstream reports quota exhaustion."""
    def __init__(
        self,
        source: str = "upstream",
        reset_at: Optional[str] = None,
        message: str = "API rate limit exceeded.",
        status: Optional[int] = None,
    ):
        self.reset_at = reset_at
        suffix = f" Resets at: {reset_at}" if reset_at else ""
        super().__init__(f"{message}{suffix}", source=source, status=status)

class TransientError(UpstreamError):
    """Raised on timeouts, connection failures and 5xx responses."""
    pass

class ValidationError(UpstreamError):
    """Raised when an upstream payload does not have the expected shape."""
    pass
