"""
Data models for the repository tracker sync.

This module defines the enums and dataclasses shared by the fetcher,
summarizer, merge and dataset store, along with their conversion to and
from the persisted JSON document.
"""

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


NO_POD = "No Pod Selected"

AGE_BUCKETS = ("0-7", "8-30", "31-90", "91-180", "180+")


class Severity(str, Enum):
    """Severity buckets used for alert counts."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class AlertKind(str, Enum):
    """Kinds of GitHub security alerts."""

    CODE_SCANNING = "code_scanning"
    DEPENDABOT = "dependabot"
    SECRET_SCANNING = "secret_scanning"

    @property
    def dataset_key(self) -> str:
        """Key used for this kind inside the persisted vulnerabilities object."""
        return {
            AlertKind.CODE_SCANNING: "codeScanning",
            AlertKind.DEPENDABOT: "dependabot",
            AlertKind.SECRET_SCANNING: "secretScanning",
        }[self]

    @property
    def has_severity(self) -> bool:
        return self is not AlertKind.SECRET_SCANNING


class RepoStatus(str, Enum):
    """Lifecycle status of a repository."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    DEPRECATED = "deprecated"


def empty_severity_counts() -> dict[str, int]:
    """Zero-filled counts for every severity bucket."""
    return {s.value: 0 for s in Severity}


def empty_age_buckets() -> dict[str, int]:
    """Zero-filled counts for every age bucket."""
    return {bucket: 0 for bucket in AGE_BUCKETS}


@dataclass(frozen=True)
class AlertSummary:
    """
    Aggregated snapshot of one alert kind for one repository.

    Recomputed in full on every sync run. ``fetch_failed`` marks a
    fallback produced after a transient fetch failure and is never
    persisted.
    """

    kind: AlertKind
    total: int = 0
    by_severity: dict[str, int] = field(default_factory=empty_severity_counts)
    opened_last_30_days: int = 0
    closed_last_30_days: int = 0
    opened_by_severity: dict[str, int] = field(default_factory=empty_severity_counts)
    closed_by_severity: dict[str, int] = field(default_factory=empty_severity_counts)
    oldest_age: int = 0
    average_age: int = 0
    age_buckets: dict[str, int] = field(default_factory=empty_age_buckets)
    mttr: int = 0
    last_updated: Optional[str] = None
    enabled: bool = True
    ecosystems: tuple[str, ...] = ()
    secret_types: dict[str, int] = field(default_factory=dict)
    fetch_failed: bool = False

    def count(self, severity: Severity) -> int:
        return self.by_severity.get(severity.value, 0)

    def to_dict(self) -> dict[str, Any]:
        """Convert summary to the persisted camelCase shape."""
        data: dict[str, Any] = {"total": self.total}
        for severity in Severity:
            data[severity.value] = self.by_severity.get(severity.value, 0)
        if self.kind is AlertKind.DEPENDABOT:
            data["ecosystems"] = list(self.ecosystems)
        if self.kind is AlertKind.SECRET_SCANNING:
            data["secretTypes"] = dict(self.secret_types)
        data.update({
            "openedLast30Days": self.opened_last_30_days,
            "closedLast30Days": self.closed_last_30_days,
            "openedLast30DaysBySeverity": _fill_severity(self.opened_by_severity),
            "closedLast30DaysBySeverity": _fill_severity(self.closed_by_severity),
            "aging": {
                "oldestAge": self.oldest_age,
                "averageAge": self.average_age,
                "ageBuckets": {b: self.age_buckets.get(b, 0) for b in AGE_BUCKETS},
            },
            "mttr": self.mttr,
            "lastUpdated": self.last_updated,
            "enabled": self.enabled,
        })
        return data

    @classmethod
    def from_dict(cls, kind: AlertKind, data: dict[str, Any]) -> "AlertSummary":
        """Load a persisted summary, zero-filling anything missing."""
        aging = data.get("aging") or {}
        return cls(
            kind=kind,
            total=int(data.get("total") or 0),
            by_severity={s.value: int(data.get(s.value) or 0) for s in Severity},
            opened_last_30_days=int(data.get("openedLast30Days") or 0),
            closed_last_30_days=int(data.get("closedLast30Days") or 0),
            opened_by_severity=_fill_severity(data.get("openedLast30DaysBySeverity")),
            closed_by_severity=_fill_severity(data.get("closedLast30DaysBySeverity")),
            oldest_age=int(aging.get("oldestAge") or 0),
            average_age=int(aging.get("averageAge") or 0),
            age_buckets={
                b: int((aging.get("ageBuckets") or {}).get(b) or 0) for b in AGE_BUCKETS
            },
            mttr=int(data.get("mttr") or 0),
            last_updated=data.get("lastUpdated"),
            enabled=bool(data.get("enabled", False)),
            ecosystems=tuple(data.get("ecosystems") or ()),
            secret_types=dict(data.get("secretTypes") or {}),
        )


def _fill_severity(counts: Optional[dict[str, Any]]) -> dict[str, int]:
    counts = counts or {}
    return {s.value: int(counts.get(s.value) or 0) for s in Severity}


@dataclass(frozen=True)
class VulnerabilityBundle:
    """
    The three per-kind summaries for one repository.

    A bundle loaded from the dataset keeps its persisted form in
    ``source`` and is written back verbatim.
    """

    code_scanning: AlertSummary
    dependabot: AlertSummary
    secret_scanning: AlertSummary
    source: Optional[dict[str, Any]] = field(default=None, compare=False, repr=False)

    @property
    def summaries(self) -> tuple[AlertSummary, AlertSummary, AlertSummary]:
        return (self.code_scanning, self.dependabot, self.secret_scanning)

    @property
    def fetch_failed(self) -> bool:
        """True when no alert kind could be fetched for this repository."""
        return all(s.fetch_failed for s in self.summaries)

    def get(self, kind: AlertKind) -> AlertSummary:
        return {
            AlertKind.CODE_SCANNING: self.code_scanning,
            AlertKind.DEPENDABOT: self.dependabot,
            AlertKind.SECRET_SCANNING: self.secret_scanning,
        }[kind]

    def to_dict(self) -> dict[str, Any]:
        if self.source is not None:
            return copy.deepcopy(self.source)
        return {s.kind.dataset_key: s.to_dict() for s in self.summaries}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VulnerabilityBundle":
        return cls(
            code_scanning=AlertSummary.from_dict(
                AlertKind.CODE_SCANNING, data.get("codeScanning") or {}
            ),
            dependabot=AlertSummary.from_dict(
                AlertKind.DEPENDABOT, data.get("dependabot") or {}
            ),
            secret_scanning=AlertSummary.from_dict(
                AlertKind.SECRET_SCANNING, data.get("secretScanning") or {}
            ),
            source=copy.deepcopy(data),
        )


# Keys of a persisted record that map onto RepositoryRecord fields
_RECORD_KEYS = {
    "organization",
    "repository",
    "pod",
    "vertical",
    "engineeringManager",
    "environmentType",
    "description",
    "language",
    "status",
    "lastActivity",
    "githubUrl",
    "codeowners",
    "vulnerabilities",
    "_metadata",
}


@dataclass(frozen=True)
class RepositoryRecord:
    """
    One repository entry of the persisted dataset.

    Curated fields (pod, vertical, engineering_manager, environment_type)
    are owned by humans; observed fields are refreshed by the sync job.
    ``codeowners`` is ``None`` when the fetch could not determine it.
    ``extra`` carries persisted keys this model does not know about.
    """

    organization: str
    repository: str

    # Curated
    pod: str = ""
    vertical: str = ""
    engineering_manager: str = ""
    environment_type: str = ""

    # Observed
    description: str = ""
    language: str = ""
    status: Optional[RepoStatus] = None
    last_activity: Optional[str] = None
    github_url: str = ""
    codeowners: Optional[bool] = None
    vulnerabilities: Optional[VulnerabilityBundle] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    extra: dict[str, Any] = field(default_factory=dict)

    # Persisted form this record was loaded from; written back verbatim when untouched
    source: Optional[dict[str, Any]] = field(default=None, compare=False, repr=False)

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the record across the collection."""
        return (self.organization, self.repository)

    @property
    def full_name(self) -> str:
        return f"{self.organization}/{self.repository}"

    def with_changes(self, **changes: Any) -> "RepositoryRecord":
        return replace(self, **{"source": None, **changes})

    def to_dict(self) -> dict[str, Any]:
        """Convert record to the persisted dataset shape."""
        if self.source is not None:
            return dict(self.source)
        data: dict[str, Any] = dict(self.extra)
        data.update({
            "organization": self.organization,
            "repository": self.repository,
            "pod": self.pod,
            "vertical": self.vertical,
            "engineeringManager": self.engineering_manager,
            "environmentType": self.environment_type,
            "description": self.description,
            "language": self.language,
            "status": (self.status or RepoStatus.ACTIVE).value,
            "lastActivity": self.last_activity,
            "githubUrl": self.github_url,
            "codeowners": bool(self.codeowners),
        })
        if self.metadata:
            data["_metadata"] = dict(self.metadata)
        if self.vulnerabilities is not None:
            data["vulnerabilities"] = self.vulnerabilities.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RepositoryRecord":
        """
        Load a persisted record.

        Raises:
            ValueError: If the identity fields are missing
        """
        organization = data.get("organization")
        repository = data.get("repository")
        if not organization or not repository:
            raise ValueError("record is missing organization or repository")

        status = data.get("status")
        vulnerabilities = data.get("vulnerabilities")
        codeowners = data.get("codeowners")

        return cls(
            organization=str(organization),
            repository=str(repository),
            pod=data.get("pod") or "",
            vertical=data.get("vertical") or "",
            engineering_manager=data.get("engineeringManager") or "",
            environment_type=data.get("environmentType") or "",
            description=data.get("description") or "",
            language=data.get("language") or "",
            status=RepoStatus(status) if status in {s.value for s in RepoStatus} else None,
            last_activity=data.get("lastActivity"),
            github_url=data.get("githubUrl") or "",
            codeowners=codeowners if isinstance(codeowners, bool) else None,
            vulnerabilities=(
                VulnerabilityBundle.from_dict(vulnerabilities)
                if isinstance(vulnerabilities, dict)
                else None
            ),
            metadata=dict(data.get("_metadata") or {}),
            extra={k: v for k, v in data.items() if k not in _RECORD_KEYS},
            source=dict(data),
        )


@dataclass
class OrgSyncStats:
    """Per-organization counters for one sync run."""

    org: str
    updated: int = 0
    skipped: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "org": self.org,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
        }


@dataclass
class DatasetMetadata:
    """Metadata block of the persisted dataset."""

    last_updated: Optional[str] = None
    version: str = "2.0"
    source: str = "GitHub API sync"
    organizations: list[str] = field(default_factory=list)
    total_repos: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    org_stats: list[OrgSyncStats] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastUpdated": self.last_updated,
            "version": self.version,
            "source": self.source,
            "syncedAt": self.last_updated,
            "organizations": list(self.organizations),
            "totalRepos": self.total_repos,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": self.errors,
            "orgStats": [s.to_dict() for s in self.org_stats],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DatasetMetadata":
        return cls(
            last_updated=data.get("lastUpdated"),
            version=str(data.get("version") or "2.0"),
            source=str(data.get("source") or "GitHub API sync"),
            organizations=list(data.get("organizations") or []),
            total_repos=int(data.get("totalRepos") or 0),
            updated=int(data.get("updated") or 0),
            skipped=int(data.get("skipped") or 0),
            errors=int(data.get("errors") or 0),
            org_stats=[
                OrgSyncStats(
                    org=s.get("org", ""),
                    updated=int(s.get("updated") or 0),
                    skipped=int(s.get("skipped") or 0),
                    errors=int(s.get("errors") or 0),
                )
                for s in data.get("orgStats") or []
                if isinstance(s, dict)
            ],
        )


@dataclass
class Dataset:
    """The persisted dataset document."""

    metadata: DatasetMetadata = field(default_factory=DatasetMetadata)
    repositories: list[RepositoryRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata.to_dict(),
            "repositories": [r.to_dict() for r in self.repositories],
        }
