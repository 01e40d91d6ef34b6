"""
GitHub Security Alerts fetcher.

Fetches the alerts of one repository for one alert kind across every
lifecycle state of that kind:
- Code Scanning Alerts (static analysis findings)
- Dependabot Alerts (vulnerable dependencies)
- Secret Scanning Alerts (exposed secrets detected by GitHub)

Error Handling:
- 403/404: Feature not enabled for the repository, or not visible to the
  token. The state contributes no alerts.
- Rate limits that never clear (RateLimitError): propagated, never read
  as a disabled feature.
- Anything else: propagated to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

from ..classifiers.lifecycle import is_open, resolve_closed_at, states_for
from ..classifiers.severity import SeverityClassifier
from ..core.models import AlertKind, Severity
from ..utils.secure_logging import get_secure_logger
from .client import GitHubAPIError, GitHubClient

logger = get_secure_logger(__name__)


# =============================================================================
# Data Models
# =============================================================================

@dataclass
class BaseAlert:
    """Fields shared by every alert kind."""

    number: int
    state: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None  # resolved closing timestamp

    @property
    def is_open(self) -> bool:
        return is_open(self.state)


@dataclass
class CodeScanningAlert(BaseAlert):
    """
    A code scanning alert.

    Reference: https://docs.github.com/en/rest/code-scanning
    """

    severity: Severity = Severity.MEDIUM
    rule_id: str = ""
    tool_name: str = ""

    kind = AlertKind.CODE_SCANNING


@dataclass
class DependabotAlert(BaseAlert):
    """
    A Dependabot alert for a vulnerable dependency.

    Reference: https://docs.github.com/en/rest/dependabot/alerts
    """

    severity: Severity = Severity.MEDIUM
    package_name: str = ""
    ecosystem: str = ""

    kind = AlertKind.DEPENDABOT


@dataclass
class SecretScanningAlert(BaseAlert):
    """
    A secret scanning alert. Secrets carry no severity.

    Reference: https://docs.github.com/en/rest/secret-scanning
    """

    secret_type: str = "unknown"

    kind = AlertKind.SECRET_SCANNING

    @property
    def severity(self) -> None:
        return None


Alert = Union[CodeScanningAlert, DependabotAlert, SecretScanningAlert]


@dataclass
class AlertFetchResult:
    """Alerts of one kind for one repository."""

    alerts: list[Alert] = field(default_factory=list)
    enabled: bool = True


# =============================================================================
# Parsing
# =============================================================================

def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse a GitHub ISO 8601 timestamp into an aware UTC datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime the way GitHub reports timestamps."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_alert(
    kind: AlertKind,
    data: dict[str, Any],
    severity_classifier: Optional[SeverityClassifier] = None,
) -> Optional[Alert]:
    """
    Parse a raw alert payload.

    Args:
        kind: Alert kind of the payload
        data: Raw alert payload from the GitHub API
        severity_classifier: Resolver for the severity bucket

    Returns:
        Parsed alert, or None if ``created_at`` is missing or invalid
    """
    created_at = parse_datetime(data.get("created_at"))
    if created_at is None:
        logger.warning(
            "Dropping %s alert #%s with invalid created_at: %r",
            kind.value,
            data.get("number"),
            data.get("created_at"),
        )
        return None

    common = {
        "number": int(data.get("number") or 0),
        "state": str(data.get("state") or ""),
        "created_at": created_at,
        "updated_at": parse_datetime(data.get("updated_at")),
        "closed_at": parse_datetime(resolve_closed_at(kind, data)),
    }

    if kind is AlertKind.SECRET_SCANNING:
        return SecretScanningAlert(
            **common,
            secret_type=data.get("secret_type") or "unknown",
        )

    severity = (severity_classifier or SeverityClassifier()).classify(kind, data)

    if kind is AlertKind.CODE_SCANNING:
        rule = data.get("rule") or {}
        tool = data.get("tool") or {}
        return CodeScanningAlert(
            **common,
            severity=severity,
            rule_id=rule.get("id") or "",
            tool_name=tool.get("name") or "",
        )

    package = (data.get("dependency") or {}).get("package") or {}
    return DependabotAlert(
        **common,
        severity=severity,
        package_name=package.get("name") or "",
        ecosystem=package.get("ecosystem") or "",
    )


# =============================================================================
# Fetcher
# =============================================================================

class AlertFetcher:
    """
    Fetches security alerts for a repository.

    States are fetched one after another; pages within a state are
    requested while the previous page was full.
    """

    ENDPOINTS = {
        AlertKind.CODE_SCANNING: "code-scanning/alerts",
        AlertKind.DEPENDABOT: "dependabot/alerts",
        AlertKind.SECRET_SCANNING: "secret-scanning/alerts",
    }

    def __init__(
        self,
        client: GitHubClient,
        severity_classifier: Optional[SeverityClassifier] = None,
    ):
        """
        Initialize alert fetcher.

        Args:
            client: Connected GitHub client
            severity_classifier: Resolver for alert severities
        """
        self.client = client
        self.severity_classifier = severity_classifier or SeverityClassifier()

    async def fetch_alerts(
        self,
        repo: str,
        kind: AlertKind,
        states: Optional[list[str]] = None,
    ) -> AlertFetchResult:
        """
        Fetch all alerts of one kind across lifecycle states.

        Args:
            repo: Repository full name (owner/repo)
            kind: Alert kind to fetch
            states: States to query (default: every state of the kind)

        Returns:
            Parsed alerts and whether the feature is visible. ``enabled``
            is False only when every requested state answered 403/404.

        Raises:
            GitHubAPIError: For HTTP errors other than 403/404, including
                RateLimitError when the quota does not recover
        """
        requested = states_for(kind, states)
        endpoint = f"/repos/{repo}/{self.ENDPOINTS[kind]}"

        alerts: list[Alert] = []
        denied = 0

        for state in requested:
            try:
                async for page in self.client.paginate(endpoint, {"state": state}):
                    for data in page:
                        alert = parse_alert(kind, data, self.severity_classifier)
                        if alert is not None:
                            alerts.append(alert)
            except GitHubAPIError as e:
                if not e.is_not_visible:
                    raise
                denied += 1
                logger.debug(
                    "%s alerts (state=%s) not available for %s: HTTP %d",
                    kind.value,
                    state,
                    repo,
                    e.status_code,
                )

        enabled = not requested or denied < len(requested)
        return AlertFetchResult(alerts=alerts, enabled=enabled)
