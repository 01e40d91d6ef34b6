"""
Command-line interface for the repository tracker sync.

Provides commands for syncing the repository dataset from GitHub,
printing a risk report from the persisted dataset, and creating a
default configuration file.
"""

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .analyzers.risk import risk_level, risk_score
from .core.config import ConfigurationError, Settings, create_default_config, get_settings
from .core.models import Severity
from .storage.dataset import DatasetStore
from .utils.pod_managers import apply_pod_managers, load_pod_managers
from .utils.secure_logging import setup_secure_logging

app = typer.Typer(
    name="repository-tracker",
    help="📋 Repository Tracker - Sync GitHub ownership and security alert data into a dashboard dataset",
    add_completion=True,
    no_args_is_help=True,
)

console = Console()

LEVEL_STYLES = {
    "critical": "red bold",
    "high": "red",
    "medium": "yellow",
    "low": "blue",
    "none": "dim",
}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"Repository Tracker Sync v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", "-v", callback=version_callback, help="Show version"),
    ] = None,
) -> None:
    """Repository Tracker Sync."""
    pass


def _load_settings(config: Optional[Path]) -> Settings:
    if config:
        return Settings.from_yaml(config)
    return get_settings().model_copy(deep=True)


@app.command()
def sync(
    org: Annotated[
        Optional[str],
        typer.Option("--org", "-o", help="Sync only this organization"),
    ] = None,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to config file"),
    ] = None,
    data_file: Annotated[
        Optional[Path],
        typer.Option("--data-file", "-d", help="Dataset file to update"),
    ] = None,
    batch_size: Annotated[
        Optional[int],
        typer.Option("--batch-size", "-b", min=1, max=20, help="Repositories enriched concurrently"),
    ] = None,
    include_archived: Annotated[
        bool,
        typer.Option("--include-archived", help="Include archived repositories"),
    ] = False,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", help="Log level (DEBUG, INFO, WARNING, ERROR)"),
    ] = None,
    no_progress: Annotated[
        bool,
        typer.Option("--no-progress", help="Disable progress bars"),
    ] = False,
) -> None:
    """
    Sync repositories and security alerts from GitHub into the dataset.

    Example:
        repository-tracker sync --org myorg
    """
    from .core.sync import RepositorySync

    try:
        settings = _load_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]✗ Configuration error: {e}[/red]")
        raise typer.Exit(1)

    # Apply CLI overrides
    if data_file:
        settings.output.data_file = str(data_file)
    if batch_size:
        settings.sync.batch_size = batch_size
    if include_archived:
        settings.sync.include_archived = True
    if log_level:
        settings.logging.level = log_level

    setup_secure_logging(settings.logging.level, settings.logging.file)

    console.print(Panel.fit(
        f"[bold]Organization:[/bold] {org or 'from configuration'}\n"
        f"[bold]Dataset:[/bold] {settings.output.data_file}\n"
        f"[bold]Batch Size:[/bold] {settings.sync.batch_size}\n"
        f"[bold]Include Archived:[/bold] {settings.sync.include_archived}",
        title="🔧 Sync Configuration",
    ))

    try:
        asyncio.run(RepositorySync(settings).run(org=org, show_progress=not no_progress))
    except ConfigurationError as e:
        console.print(f"[red]✗ Configuration error: {e}[/red]")
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Sync interrupted; dataset not written[/yellow]")
        raise typer.Exit(130)


@app.command("report")
def report(
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to config file"),
    ] = None,
    data_file: Annotated[
        Optional[Path],
        typer.Option("--data-file", "-d", help="Dataset file to read (default: output.data_file)"),
    ] = None,
    pod_managers: Annotated[
        Optional[Path],
        typer.Option(
            "--pod-managers",
            "-p",
            help="Pod to manager map, key: value lines (default: output.pod_managers_file)",
        ),
    ] = None,
    top: Annotated[
        int,
        typer.Option("--top", "-n", min=1, help="Number of repositories to show"),
    ] = 20,
) -> None:
    """
    Show the repositories with the highest risk scores.

    Example:
        repository-tracker report --top 10
    """
    try:
        settings = _load_settings(config)
    except ConfigurationError as e:
        console.print(f"[red]✗ Configuration error: {e}[/red]")
        raise typer.Exit(1)

    data_file = data_file or Path(settings.output.data_file)
    if not data_file.exists():
        console.print(f"[red]Error: Dataset not found: {data_file}[/red]")
        raise typer.Exit(1)

    try:
        dataset = DatasetStore(data_file).load()
    except ConfigurationError as e:
        console.print(f"[red]Error reading dataset: {e}[/red]")
        raise typer.Exit(1)

    managers_path = pod_managers or Path(settings.output.pod_managers_file)
    records = apply_pod_managers(dataset.repositories, load_pod_managers(managers_path))

    scored = sorted(
        ((risk_score(r.vulnerabilities), r) for r in records if r.vulnerabilities is not None),
        key=lambda item: item[0],
        reverse=True,
    )

    table = Table(title=f"🔥 Top {min(top, len(scored))} Repositories by Risk")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Repository", style="cyan")
    table.add_column("Pod")
    table.add_column("Manager")
    table.add_column("Critical", justify="right")
    table.add_column("High", justify="right")
    table.add_column("Secrets", justify="right")
    table.add_column("Avg Age", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Level")

    for rank, (score, record) in enumerate(scored[:top], start=1):
        bundle = record.vulnerabilities
        critical = bundle.code_scanning.count(Severity.CRITICAL) + bundle.dependabot.count(Severity.CRITICAL)
        high = bundle.code_scanning.count(Severity.HIGH) + bundle.dependabot.count(Severity.HIGH)
        level = risk_level(score)
        style = LEVEL_STYLES[level]
        table.add_row(
            str(rank),
            record.full_name,
            record.pod,
            record.engineering_manager or "-",
            str(critical),
            str(high),
            str(bundle.secret_scanning.total),
            f"{max(s.average_age for s in bundle.summaries)}d",
            str(score),
            f"[{style}]{level.upper()}[/{style}]",
        )

    console.print(table)

    metadata = dataset.metadata
    console.print(
        f"\n[bold]Repositories:[/bold] {len(records)}  "
        f"[bold]Last sync:[/bold] {metadata.last_updated or 'never'}  "
        f"[bold]Organizations:[/bold] {', '.join(metadata.organizations) or '-'}"
    )


@app.command("init-config")
def init_config(
    path: Annotated[Path, typer.Argument(help="Where to write the config file")] = Path("config.yaml"),
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite without asking")] = False,
) -> None:
    """
    Create a default configuration file.

    Example:
        repository-tracker init-config
    """
    if path.exists() and not force:
        if not typer.confirm(f"{path} already exists. Overwrite?"):
            raise typer.Exit(0)

    create_default_config(path)
    console.print(f"[green]✓ Created default config at {path}[/green]")


if __name__ == "__main__":
    app()
