"""
GitHub App authentication module.

Provides JWT-based authentication for GitHub Apps and the exchange of the
app JWT for an organization's installation access token.
"""

import base64
import binascii
import time
from dataclasses import dataclass
from typing import Optional

import httpx
import jwt

from ..core.config import ConfigurationError, OrganizationConfig
from ..utils.secure_logging import get_secure_logger
from .client import GitHubAPIError

logger = get_secure_logger(__name__)


@dataclass
class GitHubAppCredentials:
    """Credentials for a GitHub App."""

    app_id: str
    private_key: str  # PEM-encoded private key content

    @classmethod
    def from_org_config(cls, org: OrganizationConfig) -> "GitHubAppCredentials":
        """
        Build credentials from an organization's configuration.

        A base64 encoded key takes precedence over a raw PEM key.

        Raises:
            ConfigurationError: If the app id or key is missing or the
                base64 key cannot be decoded
        """
        if not org.app_id:
            raise ConfigurationError(f"Missing GitHub App ID for org: {org.name}")

        if org.private_key_base64:
            try:
                private_key = base64.b64decode(org.private_key_base64, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                raise ConfigurationError(
                    f"Invalid base64 GitHub App private key for org: {org.name}"
                ) from e
        elif org.private_key:
            # Keys passed through env vars often carry literal "\n"
            private_key = org.private_key.replace("\\n", "\n")
        else:
            raise ConfigurationError(f"Missing GitHub App private key for org: {org.name}")

        return cls(app_id=str(org.app_id), private_key=private_key)


class GitHubAppAuth:
    """
    GitHub App authentication handler.

    Generates JWT tokens for app authentication and exchanges
    them for installation access tokens.
    """

    def __init__(
        self,
        credentials: GitHubAppCredentials,
        api_url: str = "https://api.github.com",
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize GitHub App authentication.

        Args:
            credentials: App credentials
            api_url: GitHub API URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport, used by tests
        """
        self.credentials = credentials
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def create_jwt(self, expiration_minutes: int = 10) -> str:
        """
        Create a JWT for authenticating as the GitHub App.

        Args:
            expiration_minutes: Token validity period (max 10 minutes)

        Returns:
            JWT token string

        Raises:
            ConfigurationError: If the private key cannot sign a JWT
        """
        now = int(time.time())

        payload = {
            # Issued at time (60 seconds in the past to account for clock drift)
            "iat": now - 60,
            "exp": now + (min(expiration_minutes, 10) * 60),
            "iss": self.credentials.app_id,
        }

        try:
            token = jwt.encode(payload, self.credentials.private_key, algorithm="RS256")
        except (jwt.PyJWTError, ValueError, TypeError) as e:
            raise ConfigurationError(
                f"Invalid private key for GitHub App {self.credentials.app_id}: {e}"
            ) from e

        logger.debug(f"Created JWT for GitHub App {self.credentials.app_id}")
        return token

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.create_jwt()}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _call(self, method: str, path: str) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.request(method, f"{self.api_url}{path}", headers=self._headers())

        if response.status_code >= 400:
            try:
                message = response.json().get("message", f"HTTP {response.status_code}")
            except (ValueError, AttributeError):
                message = f"HTTP {response.status_code}"
            raise GitHubAPIError(message, response.status_code)

        return response

    async def get_installations(self) -> list[dict]:
        """
        Get all installations of this GitHub App.

        Returns:
            List of installation data
        """
        response = await self._call("GET", "/app/installations")
        return response.json()

    async def get_installation_for_org(self, org: str) -> int:
        """
        Find the installation ID for an organization.

        An exact login match is preferred over a case-insensitive one.

        Raises:
            GitHubAPIError: If the app is not installed for the organization
        """
        installations = await self.get_installations()

        def login(install: dict) -> str:
            return (install.get("account") or {}).get("login", "")

        match = next((i for i in installations if login(i) == org), None)
        if match is None:
            match = next((i for i in installations if login(i).lower() == org.lower()), None)

        if match is None:
            available = ", ".join(login(i) for i in installations) or "none"
            raise GitHubAPIError(
                f"GitHub App not installed for organization: {org}. "
                f"Available installations: {available}",
                404,
            )

        return match["id"]

    async def get_installation_token(self, org: str) -> str:
        """
        Get an installation access token for an organization.

        Args:
            org: Organization name

        Returns:
            Installation access token

        Raises:
            GitHubAPIError: If the app is not installed or the exchange fails
        """
        installation_id = await self.get_installation_for_org(org)
        response = await self._call("POST", f"/app/installations/{installation_id}/access_tokens")

        logger.info(f"Obtained installation token for {org} (installation {installation_id})")
        return response.json()["token"]
