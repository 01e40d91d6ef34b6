"""
Repository sync orchestrator.

Lists the repositories of every configured organization, enriches them
in fixed-size batches (metadata, ownership properties, CODEOWNERS and
security alert summaries), merges the results into the persisted
dataset and writes it back once.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

import httpx
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from ..analyzers.summarizer import disabled_summary, failed_summary, summarize
from ..classifiers.ownership import (
    derive_vertical,
    extract_environment_type,
    extract_pod,
    resolve_status,
)
from ..github.app_auth import GitHubAppAuth, GitHubAppCredentials
from ..github.client import GitHubAPIError, GitHubClient
from ..github.rate_limiter import RateLimiter
from ..github.security_alerts import AlertFetcher
from ..storage.dataset import DatasetStore
from ..storage.merge import merge_collection
from ..utils.secure_logging import get_secure_logger
from .config import OrganizationConfig, Settings, resolve_organizations
from .models import (
    AlertKind,
    AlertSummary,
    Dataset,
    DatasetMetadata,
    OrgSyncStats,
    RepositoryRecord,
    VulnerabilityBundle,
)

console = Console()
logger = get_secure_logger(__name__)


@dataclass
class SyncReport:
    """Outcome of one sync run."""

    dataset: Dataset
    org_stats: list[OrgSyncStats] = field(default_factory=list)
    backup_path: Optional[Path] = None
    rate_limit_remaining: Optional[int] = None
    requests_made: int = 0
    duration_seconds: float = 0.0

    @property
    def updated(self) -> int:
        return sum(s.updated for s in self.org_stats)

    @property
    def skipped(self) -> int:
        return sum(s.skipped for s in self.org_stats)

    @property
    def errors(self) -> int:
        return sum(s.errors for s in self.org_stats)


class _Skipped:
    """Marker for a repository intentionally left out (archived)."""


SKIPPED = _Skipped()


class RepositorySync:
    """
    Main orchestrator for the dataset sync.

    Coordinates:
    - Organization and credential resolution
    - Repository listing and batched enrichment
    - Ownership-preserving merge and the atomic dataset write
    """

    def __init__(
        self,
        settings: Settings,
        environ: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        output: Optional[Console] = None,
    ):
        """
        Initialize repository sync.

        Args:
            settings: Sync configuration
            environ: Environment used for organization resolution (default: os.environ)
            transport: Optional httpx transport shared by all clients, used by tests
            output: Console for progress and the summary report
        """
        self.settings = settings
        self.environ = environ
        self.transport = transport
        self.console = output or console
        self.rate_limiter = RateLimiter(
            requests_per_second=settings.sync.requests_per_second,
            min_remaining=settings.sync.min_remaining,
        )
        self.store = DatasetStore(settings.output.data_file, settings.output.max_backups)
        self.now = datetime.now(timezone.utc)

    async def run(self, org: Optional[str] = None, show_progress: bool = True) -> SyncReport:
        """
        Run a full sync.

        Args:
            org: Sync only this organization (overrides configuration)
            show_progress: Render a progress bar per organization

        Returns:
            Sync report with the persisted dataset

        Raises:
            ConfigurationError: If organizations, credentials or the prior
                dataset are unusable; raised before any request is made
        """
        start = time.monotonic()
        self.now = datetime.now(timezone.utc)

        organizations = resolve_organizations(self.settings, org=org, environ=self.environ)
        app_auths = {
            o.name: self._app_auth(o) for o in organizations if not o.token and o.uses_app_auth
        }
        prior = self.store.load()

        self.console.print(
            f"\n[bold blue]🔄 Syncing {len(organizations)} organization(s): "
            f"{', '.join(o.name for o in organizations)}[/bold blue]\n"
        )

        fresh: list[RepositoryRecord] = []
        org_stats: list[OrgSyncStats] = []
        for org_config in organizations:
            records, stats = await self.sync_organization(
                org_config,
                app_auths.get(org_config.name),
                show_progress=show_progress,
            )
            fresh.extend(records)
            org_stats.append(stats)

        repositories = merge_collection(fresh, prior.repositories)
        metadata = DatasetMetadata(
            last_updated=self.now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            version=self.settings.output.dataset_version,
            organizations=[o.name for o in organizations],
            total_repos=len(repositories),
            updated=sum(s.updated for s in org_stats),
            skipped=sum(s.skipped for s in org_stats),
            errors=sum(s.errors for s in org_stats),
            org_stats=org_stats,
        )
        dataset = Dataset(metadata=metadata, repositories=repositories)
        backup_path = self.store.save(dataset, now=self.now)

        report = SyncReport(
            dataset=dataset,
            org_stats=org_stats,
            backup_path=backup_path,
            rate_limit_remaining=self.rate_limiter.rate_limit.remaining,
            requests_made=self.rate_limiter.request_count,
            duration_seconds=time.monotonic() - start,
        )
        self._print_summary(report)
        return report

    async def sync_organization(
        self,
        org_config: OrganizationConfig,
        app_auth: Optional[GitHubAppAuth] = None,
        show_progress: bool = True,
    ) -> tuple[list[RepositoryRecord], OrgSyncStats]:
        """
        Fetch and enrich every repository of one organization.

        Failures of the whole organization (token exchange, listing) are
        logged and counted as a single error.

        Returns:
            Fresh records and the organization's counters
        """
        org = org_config.name
        stats = OrgSyncStats(org=org)
        records: list[RepositoryRecord] = []

        self.console.print(f"[bold]📦 Organization: {org}[/bold]")

        try:
            token = await self._get_token(org_config, app_auth)
        except (GitHubAPIError, httpx.HTTPError, KeyError, ValueError) as e:
            logger.error("Failed to authenticate for %s: %s", org, e)
            stats.errors += 1
            return records, stats

        async with GitHubClient(
            self.settings.github,
            token=token,
            rate_limiter=self.rate_limiter,
            transport=self.transport,
        ) as client:
            try:
                repos = await client.list_organization_repos(org)
            except (GitHubAPIError, httpx.HTTPError) as e:
                logger.error("Failed to list repositories for %s: %s", org, e)
                stats.errors += 1
                return records, stats

            self.console.print(f"[blue]Found {len(repos)} repositories[/blue]")
            fetcher = AlertFetcher(client)
            batch_size = self.settings.sync.batch_size

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                console=self.console,
                disable=not show_progress,
            ) as progress:
                task = progress.add_task(f"Enriching {org}...", total=len(repos))

                for i in range(0, len(repos), batch_size):
                    batch = repos[i:i + batch_size]
                    results = await asyncio.gather(
                        *(self.enrich_repository(client, fetcher, repo) for repo in batch),
                        return_exceptions=True,
                    )

                    for repo, result in zip(batch, results):
                        # Cancellation and interrupts end the run
                        if isinstance(result, BaseException) and not isinstance(result, Exception):
                            raise result
                        if isinstance(result, Exception):
                            logger.warning(
                                "Failed to enrich %s: %s",
                                repo.get("full_name") or repo.get("name"),
                                result,
                            )
                            stats.errors += 1
                        elif result is SKIPPED:
                            stats.skipped += 1
                        else:
                            records.append(result)
                            stats.updated += 1

                    progress.advance(task, len(batch))

        self.console.print(
            f"[green]✓ {org}: {stats.updated} updated, {stats.skipped} skipped, "
            f"{stats.errors} errors[/green]\n"
        )
        return records, stats

    def _app_auth(self, org_config: OrganizationConfig) -> GitHubAppAuth:
        """Build the App auth handler for an org, validating its key up front."""
        auth = GitHubAppAuth(
            GitHubAppCredentials.from_org_config(org_config),
            api_url=self.settings.github.api_url,
            timeout=self.settings.github.timeout,
            transport=self.transport,
        )
        auth.create_jwt()
        return auth

    async def _get_token(
        self,
        org_config: OrganizationConfig,
        app_auth: Optional[GitHubAppAuth],
    ) -> str:
        if org_config.token or app_auth is None:
            return org_config.token or ""
        return await app_auth.get_installation_token(org_config.name)

    async def enrich_repository(
        self,
        client: GitHubClient,
        fetcher: AlertFetcher,
        repo: dict[str, Any],
    ) -> RepositoryRecord | _Skipped:
        """
        Build a fresh record for one repository.

        Args:
            client: Connected GitHub client for the organization
            fetcher: Alert fetcher bound to ``client``
            repo: Repository entry from the organization listing

        Returns:
            Fresh record, or SKIPPED for archived repositories

        Raises:
            GitHubAPIError: If the repository details cannot be fetched
        """
        include_archived = self.settings.sync.include_archived
        if repo.get("archived") and not include_archived:
            return SKIPPED

        owner = (repo.get("owner") or {}).get("login") or repo["full_name"].split("/")[0]
        name = repo["name"]
        full_name = f"{owner}/{name}"

        detailed = await client.get_repository(owner, name)
        if detailed.get("archived") and not include_archived:
            return SKIPPED

        try:
            custom_properties = await client.get_custom_properties(owner, name)
        except GitHubAPIError as e:
            logger.debug("Custom properties unavailable for %s: %s", full_name, e)
            custom_properties = None

        codeowners = await self._detect_codeowners(client, owner, name)
        vulnerabilities = await self._fetch_vulnerabilities(fetcher, full_name)

        pod = extract_pod(custom_properties, detailed)
        updated_at = detailed.get("updated_at")
        status = resolve_status(detailed)

        return RepositoryRecord(
            organization=owner,
            repository=name,
            pod=pod,
            vertical=derive_vertical(pod),
            environment_type=extract_environment_type(custom_properties, detailed),
            description=detailed.get("description") or "",
            language=detailed.get("language") or "",
            status=status,
            last_activity=updated_at.split("T")[0] if updated_at else None,
            github_url=detailed.get("html_url") or "",
            codeowners=codeowners,
            vulnerabilities=vulnerabilities,
            metadata={
                "stars": detailed.get("stargazers_count"),
                "forks": detailed.get("forks_count"),
                "openIssues": detailed.get("open_issues_count"),
                "createdAt": detailed.get("created_at"),
                "pushedAt": detailed.get("pushed_at"),
                "defaultBranch": detailed.get("default_branch"),
                "topics": list(detailed.get("topics") or []),
            },
        )

    async def _detect_codeowners(
        self,
        client: GitHubClient,
        owner: str,
        name: str,
    ) -> Optional[bool]:
        """True if found, False if absent everywhere, None if undetermined."""
        undetermined = False
        for path in self.settings.sync.codeowners_paths:
            try:
                if await client.file_exists(owner, name, path):
                    return True
            except GitHubAPIError as e:
                logger.debug("CODEOWNERS probe %s failed for %s/%s: %s", path, owner, name, e)
                undetermined = True
        return None if undetermined else False

    async def _fetch_vulnerabilities(
        self,
        fetcher: AlertFetcher,
        full_name: str,
    ) -> VulnerabilityBundle:
        code_scanning, dependabot, secret_scanning = await asyncio.gather(
            self._summarize_kind(fetcher, full_name, AlertKind.CODE_SCANNING),
            self._summarize_kind(fetcher, full_name, AlertKind.DEPENDABOT),
            self._summarize_kind(fetcher, full_name, AlertKind.SECRET_SCANNING),
        )
        return VulnerabilityBundle(
            code_scanning=code_scanning,
            dependabot=dependabot,
            secret_scanning=secret_scanning,
        )

    async def _summarize_kind(
        self,
        fetcher: AlertFetcher,
        full_name: str,
        kind: AlertKind,
    ) -> AlertSummary:
        try:
            result = await fetcher.fetch_alerts(full_name, kind)
        except (GitHubAPIError, httpx.HTTPError) as e:
            logger.warning("Failed to fetch %s alerts for %s: %s", kind.value, full_name, e)
            return failed_summary(kind)

        if not result.enabled:
            return disabled_summary(kind)
        return summarize(kind, result.alerts, self.now)

    def _print_summary(self, report: SyncReport) -> None:
        """Print sync summary to console."""
        table = Table(title="📊 Sync Summary")
        table.add_column("Organization", style="cyan")
        table.add_column("Updated", justify="right", style="green")
        table.add_column("Skipped", justify="right", style="yellow")
        table.add_column("Errors", justify="right", style="red")

        for stats in report.org_stats:
            table.add_row(stats.org, str(stats.updated), str(stats.skipped), str(stats.errors))
        table.add_section()
        table.add_row(
            "[bold]Total[/bold]",
            str(report.updated),
            str(report.skipped),
            str(report.errors),
        )

        self.console.print()
        self.console.print(table)
        self.console.print(
            f"[bold]Repositories in dataset:[/bold] {report.dataset.metadata.total_repos}"
        )
        self.console.print(f"[bold]Output:[/bold] {self.store.path}")
        if report.backup_path:
            self.console.print(f"[bold]Backup:[/bold] {report.backup_path}")
        self.console.print(
            f"[bold]API requests:[/bold] {report.requests_made} "
            f"(rate limit remaining: {report.rate_limit_remaining})"
        )
        self.console.print(f"[bold]Duration:[/bold] {report.duration_seconds:.1f}s\n")

