"""GitHub API client module."""

from .app_auth import GitHubAppAuth, GitHubAppCredentials
from .client import GitHubAPIError, GitHubClient, RateLimitError
from .rate_limiter import RateLimiter
from .security_alerts import (
    AlertFetcher,
    AlertFetchResult,
    CodeScanningAlert,
    DependabotAlert,
    SecretScanningAlert,
)

__all__ = [
    "AlertFetcher",
    "AlertFetchResult",
    "CodeScanningAlert",
    "DependabotAlert",
    "GitHubAPIError",
    "GitHubAppAuth",
    "GitHubAppCredentials",
    "GitHubClient",
    "RateLimiter",
    "RateLimitError",
    "SecretScanningAlert",
]
