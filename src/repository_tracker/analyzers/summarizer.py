"""
Alert summarizer.

Reduces the alerts of one kind for one repository to an AlertSummary:
open severity counts, 30-day opened/closed deltas, an aging histogram
over open alerts and mean time to remediate over closed alerts.
"""

import math
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from ..core.models import (
    AGE_BUCKETS,
    AlertKind,
    AlertSummary,
    Severity,
    VulnerabilityBundle,
    empty_severity_counts,
)
from ..github.security_alerts import Alert, format_datetime

DAY = timedelta(days=1)
RECENT_WINDOW = timedelta(days=30)

# Inclusive upper bound (days) of each age bucket; the last is open-ended
AGE_BUCKET_BOUNDS = ((7, "0-7"), (30, "8-30"), (90, "31-90"), (180, "91-180"))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def age_in_days(start: datetime, end: datetime) -> int:
    """Whole days elapsed from ``start`` to ``end`` (floored, may be negative)."""
    return math.floor((end - start) / DAY)


def age_bucket(age: int) -> str:
    for bound, name in AGE_BUCKET_BOUNDS:
        if age <= bound:
            return name
    return AGE_BUCKETS[-1]


def _severity_key(kind: AlertKind, alert: Alert) -> Optional[str]:
    if not kind.has_severity:
        return None
    severity = getattr(alert, "severity", None) or Severity.MEDIUM
    return Severity(severity).value


def summarize(
    kind: AlertKind,
    alerts: Sequence[Alert],
    now: Optional[datetime] = None,
) -> AlertSummary:
    """
    Summarize the alerts of one kind.

    Args:
        kind: Alert kind of every alert in ``alerts``
        alerts: Alerts across all lifecycle states, in fetch order
        now: Reference time (default: current UTC time)

    Returns:
        Summary with ``enabled=True``
    """
    now = now or datetime.now(timezone.utc)
    window_start = now - RECENT_WINDOW

    open_alerts = [a for a in alerts if a.is_open]
    closed_alerts = [a for a in alerts if not a.is_open]

    # Open severity counts
    by_severity = empty_severity_counts()
    for alert in open_alerts:
        key = _severity_key(kind, alert)
        if key:
            by_severity[key] += 1

    # 30-day deltas, over every alert regardless of state
    opened = closed = 0
    opened_by_severity = empty_severity_counts()
    closed_by_severity = empty_severity_counts()
    for alert in alerts:
        key = _severity_key(kind, alert)
        if alert.created_at >= window_start:
            opened += 1
            if key:
                opened_by_severity[key] += 1
        if alert.closed_at is not None and alert.closed_at >= window_start:
            closed += 1
            if key:
                closed_by_severity[key] += 1

    # Aging
    ages = [max(0, age_in_days(a.created_at, now)) for a in open_alerts]
    buckets = {bucket: 0 for bucket in AGE_BUCKETS}
    for age in ages:
        buckets[age_bucket(age)] += 1

    # Mean time to remediate; negative durations are clock skew and dropped
    durations = [
        age_in_days(a.created_at, a.closed_at)
        for a in closed_alerts
        if a.closed_at is not None
    ]
    durations = [d for d in durations if d >= 0]

    last_updated = None
    if alerts:
        first = alerts[0]
        last_updated = format_datetime(first.updated_at or first.created_at)

    ecosystems: tuple[str, ...] = ()
    secret_types: dict[str, int] = {}
    if kind is AlertKind.DEPENDABOT:
        ecosystems = tuple(sorted({a.ecosystem for a in open_alerts if a.ecosystem}))
    elif kind is AlertKind.SECRET_SCANNING:
        secret_types = dict(Counter(a.secret_type for a in open_alerts))

    return AlertSummary(
        kind=kind,
        total=len(open_alerts),
        by_severity=by_severity,
        opened_last_30_days=opened,
        closed_last_30_days=closed,
        opened_by_severity=opened_by_severity,
        closed_by_severity=closed_by_severity,
        oldest_age=max(ages, default=0),
        average_age=round_half_up(sum(ages) / len(ages)) if ages else 0,
        age_buckets=buckets,
        mttr=round_half_up(sum(durations) / len(durations)) if durations else 0,
        last_updated=last_updated,
        enabled=True,
        ecosystems=ecosystems,
        secret_types=secret_types,
    )


def disabled_summary(kind: AlertKind) -> AlertSummary:
    """Zero summary for a feature that is disabled or not visible."""
    return AlertSummary(kind=kind, enabled=False)


def failed_summary(kind: AlertKind) -> AlertSummary:
    """Zero summary standing in for a transient fetch failure."""
    return AlertSummary(kind=kind, enabled=False, fetch_failed=True)


def disabled_bundle() -> VulnerabilityBundle:
    return VulnerabilityBundle(
        code_scanning=disabled_summary(AlertKind.CODE_SCANNING),
        dependabot=disabled_summary(AlertKind.DEPENDABOT),
        secret_scanning=disabled_summary(AlertKind.SECRET_SCANNING),
    )
