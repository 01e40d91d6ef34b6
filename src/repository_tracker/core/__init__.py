"""Core module containing the sync orchestrator, configuration and data models."""

from .config import ConfigurationError, Settings, get_settings, resolve_organizations
from .models import (
    NO_POD,
    AlertKind,
    AlertSummary,
    Dataset,
    DatasetMetadata,
    RepositoryRecord,
    RepoStatus,
    Severity,
    VulnerabilityBundle,
)

# RepositorySync is imported lazily to avoid circular imports
# Use: from repository_tracker.core.sync import RepositorySync


def __getattr__(name: str):
    """Lazy import for RepositorySync to avoid circular imports."""
    if name == "RepositorySync":
        from .sync import RepositorySync
        return RepositorySync
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "NO_POD",
    "AlertKind",
    "AlertSummary",
    "ConfigurationError",
    "Dataset",
    "DatasetMetadata",
    "RepoStatus",
    "RepositoryRecord",
    "RepositorySync",
    "Settings",
    "Severity",
    "VulnerabilityBundle",
    "get_settings",
    "resolve_organizations",
]
