"""
Configuration management for the repository tracker sync.

Uses Pydantic Settings for validation and environment variable support.
Organization credentials are resolved separately, mirroring the
environment variable conventions of the scheduled sync workflow.
"""

import json
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when the run is misconfigured; aborts before any fetch."""


class OrganizationConfig(BaseModel):
    """An organization to sync and the credentials to use for it."""

    name: str
    token: Optional[str] = None
    app_id: Optional[str] = None
    private_key: Optional[str] = None
    private_key_base64: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("organization name must not be empty")
        return v

    @property
    def uses_app_auth(self) -> bool:
        return bool(self.app_id and (self.private_key or self.private_key_base64))

    @property
    def has_credentials(self) -> bool:
        return bool(self.token) or self.uses_app_auth


class GitHubSettings(BaseSettings):
    """GitHub API configuration."""

    token: str = Field(default="", description="GitHub token used when an org has none")
    api_url: str = Field(default="https://api.github.com", description="GitHub API URL")
    timeout: int = Field(default=30, description="API request timeout in seconds")
    app_id: Optional[str] = Field(default=None, description="GitHub App ID")
    private_key: Optional[str] = Field(default=None, description="GitHub App private key (PEM)")
    private_key_base64: Optional[str] = Field(
        default=None, description="GitHub App private key, base64 encoded"
    )


class SyncSettings(BaseSettings):
    """Sync run configuration."""

    organizations: list[OrganizationConfig] = Field(
        default_factory=list, description="Organizations to sync"
    )
    batch_size: int = Field(default=5, ge=1, le=20, description="Repositories enriched concurrently")
    include_archived: bool = Field(default=False, description="Keep archived repositories")
    codeowners_paths: list[str] = Field(
        default=[".github/CODEOWNERS", "CODEOWNERS", "docs/CODEOWNERS"],
        description="Locations probed for a CODEOWNERS file",
    )
    requests_per_second: float = Field(default=5.0, gt=0, description="Request rate ceiling")
    min_remaining: int = Field(
        default=0, ge=0, description="Block until reset when remaining quota drops to this"
    )


class OutputSettings(BaseSettings):
    """Dataset output configuration."""

    data_file: str = Field(default="data/repositories.json", description="Persisted dataset")
    pod_managers_file: str = Field(
        default="data/pod-managers.yaml", description="Pod to engineering manager map"
    )
    dataset_version: str = Field(default="2.0", description="Dataset format version")
    max_backups: int = Field(default=10, ge=0, description="Backups kept (0 = unlimited)")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    file: Optional[str] = Field(default=None, description="Log file path")


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration.

    Settings are loaded from:
    1. Environment variables (highest priority)
    2. .env file
    3. config.yaml file
    4. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """
        Load settings from a YAML file.

        Raises:
            ConfigurationError: If the file cannot be parsed or validated
        """
        path = Path(path)
        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

        data = cls._process_env_vars(data)

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

    @classmethod
    def _process_env_vars(cls, data: Any) -> Any:
        """Recursively process environment variable references in config."""
        if isinstance(data, dict):
            return {k: cls._process_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._process_env_vars(item) for item in data]
        elif isinstance(data, str):
            # Handle ${ENV_VAR} syntax
            if data.startswith("${") and data.endswith("}"):
                return os.environ.get(data[2:-1], "")
            return data
        return data


@lru_cache
def get_settings(config_path: Optional[str] = None) -> Settings:
    """
    Get cached settings instance.

    Args:
        config_path: Optional path to config.yaml file

    Returns:
        Settings instance
    """
    if config_path:
        return Settings.from_yaml(config_path)

    possible_configs = [
        Path.cwd() / "config.yaml",
        Path.cwd() / ".repository-tracker.yaml",
        Path.home() / ".config" / "repository-tracker" / "config.yaml",
    ]

    for config in possible_configs:
        if config.exists():
            return Settings.from_yaml(config)

    return Settings()


def _env_suffix(org: str) -> str:
    """Environment variable suffix for an org, e.g. ``my-org`` -> ``MY_ORG``."""
    return re.sub(r"[^A-Z0-9]", "_", org.upper())


def _with_global_credentials(
    org: OrganizationConfig,
    github: GitHubSettings,
    environ: Mapping[str, str],
) -> OrganizationConfig:
    if org.has_credentials:
        return org
    return org.model_copy(update={
        "token": github.token or environ.get("GITHUB_TOKEN") or None,
        "app_id": github.app_id or environ.get("APP_ID"),
        "private_key": github.private_key or environ.get("APP_PRIVATE_KEY"),
        "private_key_base64": (
            github.private_key_base64 or environ.get("APP_PRIVATE_KEY_BASE64")
        ),
    })


def _orgs_from_environ(environ: Mapping[str, str]) -> Optional[list[OrganizationConfig]]:
    """Read organizations from ORGS_CONFIG, ORGS_LIST or ORG_NAME."""
    if environ.get("ORGS_CONFIG"):
        try:
            raw = json.loads(environ["ORGS_CONFIG"])
        except json.JSONDecodeError as e:
            raise ConfigurationError("Invalid ORGS_CONFIG JSON format") from e
        if not isinstance(raw, list):
            raise ConfigurationError("ORGS_CONFIG must be a JSON array")
        try:
            return [
                OrganizationConfig(
                    name=item.get("name", ""),
                    token=item.get("token"),
                    app_id=item.get("appId") or item.get("app_id"),
                    private_key=item.get("privateKey") or item.get("private_key"),
                    private_key_base64=(
                        item.get("privateKeyBase64") or item.get("private_key_base64")
                    ),
                )
                for item in raw
            ]
        except (AttributeError, ValidationError) as e:
            raise ConfigurationError(f"Invalid ORGS_CONFIG entry: {e}") from e

    if environ.get("ORGS_LIST"):
        names = [n.strip() for n in environ["ORGS_LIST"].split(",") if n.strip()]
        orgs = []
        for name in names:
            suffix = _env_suffix(name)
            org = OrganizationConfig(
                name=name,
                token=environ.get(f"GITHUB_TOKEN_{suffix}"),
                app_id=environ.get(f"APP_ID_{suffix}"),
                private_key=environ.get(f"APP_PRIVATE_KEY_{suffix}"),
                private_key_base64=environ.get(f"APP_PRIVATE_KEY_{suffix}_BASE64"),
            )
            if not org.has_credentials:
                raise ConfigurationError(
                    f"Missing GITHUB_TOKEN_{suffix} or APP_ID_{suffix}/APP_PRIVATE_KEY_{suffix} "
                    f"for org: {name}"
                )
            orgs.append(org)
        return orgs

    if environ.get("ORG_NAME"):
        return [OrganizationConfig(name=environ["ORG_NAME"])]

    return None


def resolve_organizations(
    settings: Settings,
    org: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> list[OrganizationConfig]:
    """
    Resolve the organizations to sync and their credentials.

    Sources, first match wins: the ``org`` override, ``ORGS_CONFIG``,
    ``ORGS_LIST`` with per-org secrets, ``ORG_NAME``, then the
    organizations listed in the settings file. Orgs without their own
    credentials fall back to the global GitHub settings.

    Raises:
        ConfigurationError: If no organization is configured, names are
            duplicated, or an organization has no usable credentials
    """
    environ = os.environ if environ is None else environ

    if org:
        orgs = [OrganizationConfig(name=org)]
    else:
        orgs = _orgs_from_environ(environ) or list(settings.sync.organizations)

    if not orgs:
        raise ConfigurationError(
            "Organization configuration required. Options:\n"
            "  1. Set ORGS_CONFIG (JSON array)\n"
            "  2. Set ORGS_LIST and GITHUB_TOKEN_<ORG> or APP_ID_<ORG>/APP_PRIVATE_KEY_<ORG>\n"
            "  3. Set ORG_NAME with GITHUB_TOKEN or APP_ID/APP_PRIVATE_KEY\n"
            "  4. List organizations under sync.organizations in config.yaml\n"
            "  5. Use --org"
        )

    seen: set[str] = set()
    resolved = []
    for item in orgs:
        if item.name in seen:
            raise ConfigurationError(f"Organization configured twice: {item.name}")
        seen.add(item.name)

        item = _with_global_credentials(item, settings.github, environ)
        if not item.has_credentials:
            raise ConfigurationError(
                f"Missing credentials for org {item.name}: set a token or GitHub App credentials"
            )
        resolved.append(item)

    return resolved


def create_default_config(path: str | Path) -> None:
    """Create a default configuration file."""
    default_config = """# Repository Tracker Sync Configuration

github:
  # Token used for organizations without their own credentials
  token: ${GITHUB_TOKEN}

  # Or GitHub App authentication
  # app_id: null
  # private_key_base64: ${APP_PRIVATE_KEY_BASE64}

  api_url: https://api.github.com
  timeout: 30

sync:
  organizations: []
  #  - name: my-org
  #    token: ${GITHUB_TOKEN_MY_ORG}

  # Repositories enriched concurrently
  batch_size: 5
  include_archived: false

  codeowners_paths:
    - .github/CODEOWNERS
    - CODEOWNERS
    - docs/CODEOWNERS

  # Rate limiting
  requests_per_second: 5.0
  min_remaining: 0

output:
  data_file: data/repositories.json
  pod_managers_file: data/pod-managers.yaml
  dataset_version: "2.0"
  max_backups: 10

logging:
  level: INFO
  file: null
"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(default_config)
