"""
Severity resolver for GitHub security alerts.

Each alert kind reports severity in a different place of the API
payload. The resolver walks an ordered list of candidate fields per kind
and normalizes the first non-empty value onto the five severity buckets.
"""

from typing import Any, Optional

from ..core.models import AlertKind, Severity


# Candidate payload paths, most specific first
SEVERITY_PATHS: dict[AlertKind, tuple[tuple[str, ...], ...]] = {
    AlertKind.CODE_SCANNING: (
        ("rule", "security_severity_level"),
        ("rule", "severity"),
    ),
    AlertKind.DEPENDABOT: (
        ("security_advisory", "severity"),
        ("security_vulnerability", "severity"),
    ),
    AlertKind.SECRET_SCANNING: (),
}

DEFAULT_SEVERITY = Severity.MEDIUM


def _lookup(data: dict[str, Any], path: tuple[str, ...]) -> Any:
    value: Any = data
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


class SeverityClassifier:
    """
    Resolves the severity bucket of a raw alert payload.

    Missing or unrecognized severities fall back to ``medium``. Secret
    scanning alerts have no severity and resolve to ``None``.
    """

    def __init__(self, default: Severity = DEFAULT_SEVERITY):
        self.default = default

    def classify(self, kind: AlertKind, data: dict[str, Any]) -> Optional[Severity]:
        """
        Resolve the severity of one alert.

        Args:
            kind: Alert kind the payload belongs to
            data: Raw alert payload from the GitHub API

        Returns:
            Severity bucket, or None for kinds without severity
        """
        if not kind.has_severity:
            return None

        for path in SEVERITY_PATHS[kind]:
            value = _lookup(data, path)
            if value:
                return self.normalize(value)

        return self.default

    def normalize(self, value: Any) -> Severity:
        """Map a raw severity string onto a bucket."""
        try:
            return Severity(str(value).strip().lower())
        except ValueError:
            return self.default
