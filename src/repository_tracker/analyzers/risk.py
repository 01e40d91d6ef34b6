"""
Composite risk score for a repository's vulnerability bundle.

Open alerts are weighted by severity, secrets weigh a flat amount each,
and the sum is amplified by how long the oldest-on-average alerts have
been left open.
"""

from ..core.models import Severity, VulnerabilityBundle
from .summarizer import round_half_up

SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 10,
    Severity.HIGH: 7,
    Severity.MEDIUM: 4,
    Severity.LOW: 2,
    Severity.INFO: 1,
}

SECRET_WEIGHT = 5
AGE_DIVISOR = 60
MAX_MULTIPLIER = 3.0

RISK_LEVELS = ((100, "critical"), (50, "high"), (20, "medium"))


def risk_score(bundle: VulnerabilityBundle) -> int:
    """
    Compute the risk score of a bundle.

    Args:
        bundle: Vulnerability summaries of one repository

    Returns:
        Non-negative integer score
    """
    base = 0
    for summary in (bundle.code_scanning, bundle.dependabot):
        base += sum(summary.count(severity) * weight for severity, weight in SEVERITY_WEIGHTS.items())
    base += bundle.secret_scanning.total * SECRET_WEIGHT

    max_average_age = max(s.average_age for s in bundle.summaries)
    multiplier = min(1 + max_average_age / AGE_DIVISOR, MAX_MULTIPLIER)

    return round_half_up(base * multiplier)


def risk_level(score: int) -> str:
    """Map a score onto a display level."""
    for threshold, level in RISK_LEVELS:
        if score >= threshold:
            return level
    return "low" if score > 0 else "none"
