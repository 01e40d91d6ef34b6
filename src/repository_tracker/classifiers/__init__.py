"""Classifiers for resolving alert and repository fields."""

from .lifecycle import KIND_STATES, is_open, resolve_closed_at, states_for
from .ownership import (
    derive_vertical,
    extract_environment_type,
    extract_pod,
    resolve_status,
)
from .severity import SeverityClassifier

__all__ = [
    "KIND_STATES",
    "SeverityClassifier",
    "derive_vertical",
    "extract_environment_type",
    "extract_pod",
    "is_open",
    "resolve_closed_at",
    "resolve_status",
    "states_for",
]
