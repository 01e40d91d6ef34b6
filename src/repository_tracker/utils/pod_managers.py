"""
Pod to engineering manager lookup.

The map is a flat ``pod: manager`` file kept next to the dataset. It is
read line by line rather than as full YAML so that unquoted values such
as ``Vertical1-Pod1: Jane: Doe`` keep everything after the first colon.
"""

from pathlib import Path
from typing import Iterable

from ..core.models import RepositoryRecord


def _unquote(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        value = value[1:-1]
    if len(value) >= 2 and value.startswith("'") and value.endswith("'"):
        value = value[1:-1]
    return value


def parse_pod_managers(text: str) -> dict[str, str]:
    """
    Parse a ``key: value`` pod manager map.

    Blank lines and ``#`` comments are ignored, each line is split at its
    first colon and surrounding quotes are stripped from the value.
    """
    mapping: dict[str, str] = {}
    if not text:
        return mapping

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key = key.strip()
        if key:
            mapping[key] = _unquote(value.strip())
    return mapping


def load_pod_managers(path: str | Path) -> dict[str, str]:
    """Load the pod manager map; a missing file yields an empty map."""
    path = Path(path)
    if not path.exists():
        return {}
    return parse_pod_managers(path.read_text(encoding="utf-8"))


def apply_pod_managers(
    records: Iterable[RepositoryRecord],
    mapping: dict[str, str],
) -> list[RepositoryRecord]:
    """
    Backfill empty engineering managers from the pod map.

    A manager already set on a record is never overwritten.
    """
    result = []
    for record in records:
        manager = mapping.get(record.pod)
        if not record.engineering_manager and manager:
            record = record.with_changes(engineering_manager=manager)
        result.append(record)
    return result
