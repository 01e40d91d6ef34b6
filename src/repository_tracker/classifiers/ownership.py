"""
Ownership field extraction from repository metadata.

Pods and environment types are read from repository custom properties
first, then from topics. The vertical is derived from the pod name.
"""

from typing import Any, Iterable, Optional

from ..core.models import RepoStatus


POD_KEYS = ("Pod", "pod", "POD")
ENVIRONMENT_TYPE_KEYS = ("EnvironmentType", "environmentType", "ENVIRONMENTTYPE")

POD_TOPIC_PREFIX = "pod:"


def _first_value(properties: Optional[dict[str, Any]], keys: Iterable[str]) -> Optional[str]:
    if not properties:
        return None
    for key in keys:
        value = properties.get(key)
        if value:
            return str(value)
    return None


def _property_sources(
    custom_properties: Optional[dict[str, Any]],
    repo_data: dict[str, Any],
) -> list[Optional[dict[str, Any]]]:
    # Properties API values take precedence over the repository payload
    embedded = repo_data.get("custom_properties")
    return [custom_properties, embedded if isinstance(embedded, dict) else None]


def pod_from_topics(topics: Iterable[str]) -> Optional[str]:
    """
    Find a pod name among repository topics.

    Accepts a ``pod:<name>`` topic, or a topic that looks like
    ``vertical-pod`` (contains ``-`` and is longer than 5 characters).
    The first matching topic wins.
    """
    for topic in topics:
        if topic.lower().startswith(POD_TOPIC_PREFIX):
            name = topic[len(POD_TOPIC_PREFIX):].strip()
            if name:
                return name
        elif "-" in topic and len(topic) > 5:
            return topic
    return None


def extract_pod(
    custom_properties: Optional[dict[str, Any]],
    repo_data: dict[str, Any],
) -> str:
    """
    Resolve the pod of a repository.

    Args:
        custom_properties: Values from the custom properties API (may be None)
        repo_data: Repository payload from the GitHub API

    Returns:
        Pod name, or an empty string if none was found
    """
    for source in _property_sources(custom_properties, repo_data):
        pod = _first_value(source, POD_KEYS)
        if pod:
            return pod

    topics = repo_data.get("topics") or []
    return pod_from_topics(topics) or ""


def extract_environment_type(
    custom_properties: Optional[dict[str, Any]],
    repo_data: dict[str, Any],
) -> str:
    """Resolve the environment type from the same sources as the pod."""
    for source in _property_sources(custom_properties, repo_data):
        value = _first_value(source, ENVIRONMENT_TYPE_KEYS)
        if value:
            return value
    return ""


def derive_vertical(pod: str) -> str:
    """
    Derive the vertical from a pod name.

    ``Vertical3-Pod2`` -> ``Vertical3``; ``a-b-c`` -> ``a-b``. Pods
    without a ``-`` have no vertical.
    """
    if not pod or "-" not in pod:
        return ""
    return pod.rsplit("-", 1)[0]


def resolve_status(repo_data: dict[str, Any]) -> RepoStatus:
    if repo_data.get("archived"):
        return RepoStatus.ARCHIVED
    if repo_data.get("disabled"):
        return RepoStatus.DEPRECATED
    return RepoStatus.ACTIVE
