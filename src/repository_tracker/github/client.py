"""
GitHub API client with rate limiting and retry support.

Provides async methods for the organization and repository endpoints
the sync job reads, plus the page-based pagination shared with the
security alert fetcher.
"""

import asyncio
from typing import Any, AsyncIterator, Optional
from urllib.parse import quote

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..core.config import GitHubSettings
from ..utils.secure_logging import get_secure_logger
from .rate_limiter import RateLimiter

logger = get_secure_logger(__name__)


class GitHubAPIError(Exception):
    """Exception raised for GitHub API errors."""

    def __init__(self, message: str, status_code: int = 0, response: Optional[dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response or {}

    @property
    def is_not_visible(self) -> bool:
        """403/404: feature not enabled, or not visible to this token."""
        return self.status_code in (403, 404)


class RateLimitError(GitHubAPIError):
    """Raised when a request is still rate limited after the allowed waits."""

    @property
    def is_not_visible(self) -> bool:
        return False


class GitHubClient:
    """
    Async GitHub API client with rate limiting and retry support.

    Handles authentication, pagination and rate limiting. The rate
    limiter is usually shared between all clients of a sync run.
    """

    PER_PAGE = 100
    MAX_PAGES = 100  # Safety limit
    MAX_RATE_LIMIT_WAITS = 5
    SECONDARY_RATE_LIMIT_WAIT = 60.0

    def __init__(
        self,
        settings: GitHubSettings,
        token: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize GitHub client.

        Args:
            settings: GitHub configuration settings
            token: Token for this client (defaults to settings.token)
            rate_limiter: Shared rate limiter (a private one is created if omitted)
            transport: Optional httpx transport, used by tests
        """
        self.settings = settings
        self.token = token if token is not None else settings.token
        self.rate_limiter = rate_limiter or RateLimiter()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def connect(self) -> None:
        """Initialize the HTTP client."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "repository-tracker-sync",
        }

        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        self._client = httpx.AsyncClient(
            base_url=self.settings.api_url,
            headers=headers,
            timeout=self.settings.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, raising if not connected."""
        if not self._client:
            raise RuntimeError("Client not connected. Use 'async with' or call connect()")
        return self._client

    @retry(
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=30),
        reraise=True,
    )
    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        """
        Make a rate-limited request to the GitHub API.

        A response signalling an exhausted quota blocks until the quota
        resets and then re-issues the same request.

        Args:
            method: HTTP method
            endpoint: API endpoint (without base URL)
            params: Query parameters
            json: JSON body

        Returns:
            Decoded JSON response data

        Raises:
            GitHubAPIError: If the API returns an error
        """
        rate_limit_waits = 0

        while True:
            await self.rate_limiter.acquire()

            response = await self.client.request(method, endpoint, params=params, json=json)
            self.rate_limiter.record_response(response.headers)

            if response.status_code == 204:
                return {}

            if response.status_code < 400:
                return response.json() if response.content else {}

            error_data = self._error_body(response)
            message = error_data.get("message", f"HTTP {response.status_code}")

            if response.status_code in (403, 429):
                wait_time = self._rate_limit_wait(response, message)
                if wait_time is not None:
                    if rate_limit_waits >= self.MAX_RATE_LIMIT_WAITS:
                        raise RateLimitError(message, response.status_code, error_data)
                    rate_limit_waits += 1
                    if wait_time > 0:
                        logger.warning("Rate limited on %s. Waiting %.0fs...", endpoint, wait_time)
                        await asyncio.sleep(wait_time)
                    continue

            raise GitHubAPIError(message, response.status_code, error_data)

    def _rate_limit_wait(self, response: httpx.Response, message: str) -> Optional[float]:
        """
        Seconds to sleep before re-issuing a rate limited request.

        Returns None when the error response is not a rate limit.
        A primary limit returns 0: the next acquire() blocks until reset.
        """
        retry_after = self.rate_limiter.get_retry_after(response.headers)
        if retry_after is not None:
            return retry_after

        if response.headers.get("x-ratelimit-remaining") == "0":
            return 0

        if "rate limit" in message.lower():
            return self.SECONDARY_RATE_LIMIT_WAIT

        return None

    @staticmethod
    def _error_body(response: httpx.Response) -> dict:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    async def paginate(
        self,
        endpoint: str,
        params: Optional[dict] = None,
        per_page: Optional[int] = None,
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """
        Paginate through GitHub API results page by page.

        Keeps requesting while the returned page is full.

        Args:
            endpoint: API endpoint
            params: Additional query parameters
            per_page: Results per page (max 100)

        Yields:
            One list of items per page
        """
        per_page = per_page or self.PER_PAGE
        params = dict(params or {})
        params["per_page"] = per_page
        page = 1

        while True:
            params["page"] = page
            response = await self._request("GET", endpoint, params=params)

            # Handle both list responses and dict responses with items key
            if isinstance(response, list):
                items = response
            else:
                items = response.get("items", response.get("repositories", []))

            if not items:
                break

            yield items

            if len(items) < per_page:
                break

            if page >= self.MAX_PAGES:
                logger.warning(
                    "Stopped paginating %s after %d pages; results are partial",
                    endpoint,
                    page,
                )
                break

            page += 1

    # Organization operations

    async def list_organization_repos(self, org: str, repo_type: str = "all") -> list[dict[str, Any]]:
        """
        List all repositories in an organization.

        Args:
            org: Organization name
            repo_type: Type of repos (all, public, private, forks, sources, member)

        Returns:
            Repository data dictionaries
        """
        repos: list[dict[str, Any]] = []
        async for page in self.paginate(f"/orgs/{org}/repos", {"type": repo_type}):
            repos.extend(page)
            logger.debug("Fetched %d repos for %s (total: %d)", len(page), org, len(repos))
        return repos

    # Repository operations

    async def get_repository(self, owner: str, repo: str) -> dict[str, Any]:
        """
        Get repository information.

        Args:
            owner: Repository owner
            repo: Repository name

        Returns:
            Repository data
        """
        return await self._request("GET", f"/repos/{owner}/{repo}")

    async def get_custom_properties(self, owner: str, repo: str) -> dict[str, str]:
        """
        Get the custom property values set on a repository.

        Args:
            owner: Repository owner
            repo: Repository name

        Returns:
            Mapping of property name to value (unset properties omitted)
        """
        response = await self._request("GET", f"/repos/{owner}/{repo}/properties/values")
        properties: dict[str, str] = {}
        if isinstance(response, list):
            for prop in response:
                name = prop.get("property_name")
                value = prop.get("value")
                if name and value:
                    properties[name] = value
        return properties

    async def file_exists(self, owner: str, repo: str, path: str) -> bool:
        """
        Check whether a file exists on the default branch.

        Args:
            owner: Repository owner
            repo: Repository name
            path: File path

        Returns:
            True if the contents endpoint returns the file, False on 404
        """
        try:
            await self._request("GET", f"/repos/{owner}/{repo}/contents/{quote(path)}")
            return True
        except GitHubAPIError as e:
            if e.status_code == 404:
                return False
            raise
