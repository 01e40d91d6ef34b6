"""
Ownership-preserving merge of freshly fetched records into the dataset.

Curated fields (pod, vertical, engineering manager, environment type) are
owned by humans and survive a sync that cannot see them. Observed fields
are refreshed whenever the fetch produced a value.
"""

from typing import Iterable, Optional

from ..analyzers.summarizer import disabled_bundle
from ..core.models import NO_POD, RepositoryRecord, VulnerabilityBundle
from ..utils.secure_logging import get_secure_logger

logger = get_secure_logger(__name__)


def _has_pod(pod: str) -> bool:
    return bool(pod) and pod != NO_POD


def _merge_bundle(
    fresh: Optional[VulnerabilityBundle],
    prior: Optional[VulnerabilityBundle],
) -> VulnerabilityBundle:
    # A bundle whose every kind failed carries no information; keep known risk
    if fresh is not None and not fresh.fetch_failed:
        return fresh
    if prior is not None:
        return prior
    return fresh or disabled_bundle()


def merge_record(
    fresh: RepositoryRecord,
    prior: Optional[RepositoryRecord] = None,
) -> RepositoryRecord:
    """
    Merge a freshly fetched record with its previously persisted version.

    Args:
        fresh: Record built from the current fetch
        prior: Persisted record with the same identity, if any

    Returns:
        The record to persist
    """
    if prior is None:
        return fresh.with_changes(
            pod=fresh.pod if _has_pod(fresh.pod) else NO_POD,
            vertical=fresh.vertical or "",
            engineering_manager="",
            environment_type=fresh.environment_type or "",
            vulnerabilities=_merge_bundle(fresh.vulnerabilities, None),
            codeowners=bool(fresh.codeowners),
        )

    if _has_pod(fresh.pod):
        pod = fresh.pod
    elif prior.pod:
        pod = prior.pod
    else:
        pod = NO_POD

    codeowners = fresh.codeowners if fresh.codeowners is not None else prior.codeowners

    return RepositoryRecord(
        organization=fresh.organization,
        repository=fresh.repository,
        pod=pod,
        vertical=fresh.vertical or prior.vertical,
        engineering_manager=prior.engineering_manager or "",
        environment_type=fresh.environment_type or prior.environment_type,
        description=fresh.description or prior.description,
        language=fresh.language or prior.language,
        status=fresh.status or prior.status,
        last_activity=fresh.last_activity or prior.last_activity,
        github_url=fresh.github_url or prior.github_url,
        codeowners=bool(codeowners),
        vulnerabilities=_merge_bundle(fresh.vulnerabilities, prior.vulnerabilities),
        metadata=fresh.metadata or prior.metadata,
        extra={**prior.extra, **fresh.extra},
    )


def merge_collection(
    fresh_records: Iterable[RepositoryRecord],
    prior_records: Iterable[RepositoryRecord],
) -> list[RepositoryRecord]:
    """
    Merge a run's fresh records into the persisted collection.

    Prior records keep their position and survive unchanged when they
    were not refreshed. Fresh records are merged against their prior
    version; new repositories are appended. When an identity appears
    more than once the last one seen wins.

    Args:
        fresh_records: Records fetched this run, in processing order
        prior_records: Records of the persisted dataset

    Returns:
        De-duplicated merged collection
    """
    merged: dict[tuple[str, str], RepositoryRecord] = {}
    duplicates = 0

    for record in prior_records:
        if record.key in merged:
            duplicates += 1
        merged[record.key] = record

    prior_by_key = dict(merged)
    refreshed: set[tuple[str, str]] = set()

    for record in fresh_records:
        if record.key in refreshed:
            duplicates += 1
        refreshed.add(record.key)
        merged[record.key] = merge_record(record, prior_by_key.get(record.key))

    if duplicates:
        logger.info("Dropped %d duplicate repository entries (last seen kept)", duplicates)

    return list(merged.values())
