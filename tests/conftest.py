"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx
import pytest
import pytest_asyncio

from repository_tracker.core.config import GitHubSettings, Settings
from repository_tracker.core.models import (
    AlertKind,
    AlertSummary,
    RepositoryRecord,
    Severity,
    VulnerabilityBundle,
    empty_severity_counts,
)
from repository_tracker.github.client import GitHubClient
from repository_tracker.github.rate_limiter import RateLimiter

API_URL = "https://api.github.test"

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def days_ago(days: float, base: datetime = NOW) -> datetime:
    """Timestamp ``days`` before ``base``."""
    return base - timedelta(days=days)


def iso(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class FakeGitHub:
    """
    In-memory GitHub API served through an httpx.MockTransport.

    Routes are keyed by path and, optionally, the ``state`` query
    parameter. Unknown routes answer 404 like GitHub does for disabled
    features and missing files.
    """

    def __init__(self):
        self.routes: dict[tuple[str, Optional[str]], Any] = {}
        self.requests: list[httpx.Request] = []

    def route(
        self,
        path: str,
        json: Any = None,
        status: int = 200,
        state: Optional[str] = None,
        pages: Optional[list[list[dict]]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.routes[(path, state)] = {
            "json": json,
            "status": status,
            "pages": pages,
            "headers": headers or {},
        }

    def handler_for(self, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.routes[(path, None)] = handler

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        spec = self.routes.get((path, request.url.params.get("state")))
        if spec is None:
            spec = self.routes.get((path, None))

        if spec is None:
            return httpx.Response(404, json={"message": "Not Found"})
        if callable(spec):
            return spec(request)

        if spec["pages"] is not None:
            page = int(request.url.params.get("page", "1"))
            pages = spec["pages"]
            body = pages[page - 1] if page <= len(pages) else []
            return httpx.Response(200, json=body, headers=spec["headers"])

        return httpx.Response(spec["status"], json=spec["json"], headers=spec["headers"])

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


@pytest.fixture
def now() -> datetime:
    """Fixed reference time."""
    return NOW


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Create an empty fake GitHub API."""
    return FakeGitHub()


@pytest.fixture
def github_settings() -> GitHubSettings:
    """GitHub settings pointing at the fake API."""
    return GitHubSettings(token="ghp_testtoken", api_url=API_URL)


@pytest.fixture
def fast_rate_limiter() -> RateLimiter:
    """Rate limiter that does not slow tests down."""
    return RateLimiter(requests_per_second=10_000)


@pytest_asyncio.fixture
async def github_client(github_settings, fast_rate_limiter, fake_github):
    """Connected client talking to the fake API."""
    async with GitHubClient(
        github_settings,
        rate_limiter=fast_rate_limiter,
        transport=fake_github.transport,
    ) as client:
        yield client


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Create test settings writing into a temporary directory."""
    settings = Settings()
    settings.github.api_url = API_URL
    settings.github.token = ""
    settings.sync.requests_per_second = 10_000
    settings.output.data_file = str(tmp_path / "data" / "repositories.json")
    return settings


def make_summary(
    kind: AlertKind,
    average_age: int = 0,
    total: Optional[int] = None,
    enabled: bool = True,
    **counts: int,
) -> AlertSummary:
    """Build a summary with the given open severity counts."""
    by_severity = empty_severity_counts()
    by_severity.update(counts)
    if total is None:
        total = sum(by_severity.values())
    return AlertSummary(
        kind=kind,
        total=total,
        by_severity=by_severity if kind.has_severity else empty_severity_counts(),
        average_age=average_age,
        enabled=enabled,
    )


def make_bundle(
    code_scanning: Optional[AlertSummary] = None,
    dependabot: Optional[AlertSummary] = None,
    secret_scanning: Optional[AlertSummary] = None,
) -> VulnerabilityBundle:
    return VulnerabilityBundle(
        code_scanning=code_scanning or make_summary(AlertKind.CODE_SCANNING),
        dependabot=dependabot or make_summary(AlertKind.DEPENDABOT),
        secret_scanning=secret_scanning or make_summary(AlertKind.SECRET_SCANNING),
    )


@pytest.fixture
def sample_bundle() -> VulnerabilityBundle:
    """Bundle with a few open alerts of every kind."""
    return make_bundle(
        code_scanning=make_summary(AlertKind.CODE_SCANNING, average_age=12, critical=1, high=2),
        dependabot=make_summary(AlertKind.DEPENDABOT, average_age=40, critical=5, medium=1),
        secret_scanning=make_summary(AlertKind.SECRET_SCANNING, total=1),
    )


@pytest.fixture
def sample_record(sample_bundle) -> RepositoryRecord:
    """A curated, previously persisted record."""
    return RepositoryRecord(
        organization="acme",
        repository="payments-api",
        pod="Payments-Core",
        vertical="Payments",
        engineering_manager="Dana Smith",
        environment_type="Prod",
        description="Payments API",
        language="Python",
        last_activity="2024-05-01",
        github_url="https://github.com/acme/payments-api",
        codeowners=True,
        vulnerabilities=sample_bundle,
        metadata={"stars": 3},
    )


def code_scanning_payload(
    number: int,
    state: str = "open",
    created_at: datetime = NOW,
    severity: Optional[str] = "high",
    **extra: Any,
) -> dict[str, Any]:
    """Raw code scanning alert as returned by the API."""
    payload = {
        "number": number,
        "state": state,
        "created_at": iso(created_at),
        "updated_at": iso(created_at),
        "rule": {"id": f"rule-{number}", "security_severity_level": severity},
        "tool": {"name": "CodeQL"},
    }
    payload.update(extra)
    return payload


def dependabot_payload(
    number: int,
    state: str = "open",
    created_at: datetime = NOW,
    severity: Optional[str] = "critical",
    ecosystem: str = "pip",
    **extra: Any,
) -> dict[str, Any]:
    """Raw Dependabot alert as returned by the API."""
    payload = {
        "number": number,
        "state": state,
        "created_at": iso(created_at),
        "updated_at": iso(created_at),
        "dependency": {"package": {"ecosystem": ecosystem, "name": f"pkg-{number}"}},
        "security_advisory": {"severity": severity},
    }
    payload.update(extra)
    return payload


def secret_scanning_payload(
    number: int,
    state: str = "open",
    created_at: datetime = NOW,
    secret_type: str = "github_personal_access_token",
    **extra: Any,
) -> dict[str, Any]:
    """Raw secret scanning alert as returned by the API."""
    payload = {
        "number": number,
        "state": state,
        "created_at": iso(created_at),
        "updated_at": iso(created_at),
        "secret_type": secret_type,
    }
    payload.update(extra)
    return payload


def severity_counts(**counts: int) -> dict[str, int]:
    result = {s.value: 0 for s in Severity}
    result.update(counts)
    return result
