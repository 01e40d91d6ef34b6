"""Utility modules for the repository tracker sync."""

from .pod_managers import apply_pod_managers, load_pod_managers, parse_pod_managers
from .secure_logging import get_secure_logger, setup_secure_logging

__all__ = [
    "apply_pod_managers",
    "get_secure_logger",
    "load_pod_managers",
    "parse_pod_managers",
    "setup_secure_logging",
]
