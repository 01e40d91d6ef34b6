"""
Lifecycle states of GitHub security alerts.

Defines the states queried for each alert kind and which timestamp marks
an alert as closed.
"""

from typing import Any, Optional

from ..core.models import AlertKind


OPEN_STATE = "open"

KIND_STATES: dict[AlertKind, tuple[str, ...]] = {
    AlertKind.CODE_SCANNING: ("open", "closed", "dismissed"),
    AlertKind.DEPENDABOT: ("open", "dismissed", "fixed", "auto_dismissed"),
    AlertKind.SECRET_SCANNING: ("open", "resolved"),
}

# First present field wins
CLOSING_TIMESTAMP_FIELDS: dict[AlertKind, tuple[str, ...]] = {
    AlertKind.CODE_SCANNING: ("fixed_at", "closed_at", "dismissed_at"),
    AlertKind.DEPENDABOT: ("fixed_at", "dismissed_at", "auto_dismissed_at"),
    AlertKind.SECRET_SCANNING: ("resolved_at",),
}


def is_open(state: Optional[str]) -> bool:
    return state == OPEN_STATE


def resolve_closed_at(kind: AlertKind, data: dict[str, Any]) -> Optional[str]:
    """
    Resolve the closing timestamp of a raw alert payload.

    Args:
        kind: Alert kind the payload belongs to
        data: Raw alert payload from the GitHub API

    Returns:
        The first non-empty closing timestamp, or None
    """
    for name in CLOSING_TIMESTAMP_FIELDS[kind]:
        value = data.get(name)
        if value:
            return value
    return None


def states_for(kind: AlertKind, states: Optional[list[str]] = None) -> tuple[str, ...]:
    """
    States to query for a kind.

    Raises:
        ValueError: If a requested state does not exist for the kind
    """
    if states is None:
        return KIND_STATES[kind]

    unknown = [s for s in states if s not in KIND_STATES[kind]]
    if unknown:
        raise ValueError(f"Unknown {kind.value} alert state(s): {', '.join(unknown)}")
    return tuple(states)
