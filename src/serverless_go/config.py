"""Configuration for serverless-go.

Two files are read from the monorepo root:

* ``project.yml`` (or ``project.yaml``): the serverless project description.
  Its ``environment.GOPRIVATE`` entry lists the private repository patterns.
* ``.serverless-go.yml`` (optional): settings for this tool.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigNotFound, ConfigParseError, NotMonorepoError

PROJECT_CONFIG_NAMES = ("project.yaml", "project.yml")
TOOL_CONFIG_NAME = ".serverless-go.yml"
PACKAGES_DIR = "packages"


def _check_private_dir(v: str) -> str:
    v = v.strip()
    if v in (".", "..") or "/" in v or "\\" in v:
        raise ValueError(f"private_dir must be a plain directory name: {v!r}")
    return v


def _check_jobs(v: int) -> int:
    if v < 1:
        raise ValueError("jobs must be at least 1")
    return v


def _check_url_template(v: str) -> str:
    if "{module}" not in v:
        raise ValueError("url_template must contain {module}")
    return v


class _Spec(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class Limits(_Spec):
    timeout: int | None = None  # seconds
    memory: int | None = None  # MB
    logs: int | None = None  # MB
    concurrency: int | None = None


class ScheduledSourceDetails(_Spec):
    cron: str | None = None
    interval: int | None = None
    once: str | None = None
    body: Any = None


class TriggerSpec(_Spec):
    name: str
    type: str = "scheduled"
    scheduled_details: ScheduledSourceDetails | None = Field(default=None, alias="scheduledDetails")
    enabled: bool = True


class ActionSpec(_Spec):
    name: str
    package: str | None = None
    runtime: str | None = None
    main: str | None = None
    web: Any = None
    environment: dict[str, str] = Field(default_factory=dict)
    parameters: dict[str, Any] = Field(default_factory=dict)
    limits: Limits = Field(default_factory=Limits)
    remote_build: bool = Field(default=False, alias="remoteBuild")
    local_build: bool = Field(default=False, alias="localBuild")
    triggers: list[TriggerSpec] = Field(default_factory=list)


class PackageSpec(_Spec):
    name: str
    actions: list[ActionSpec] = Field(default_factory=list)
    environment: dict[str, str] = Field(default_factory=dict)
    parameters: dict[str, Any] = Field(default_factory=dict)
    shared: bool = False


class ProjectSpec(_Spec):
    packages: list[PackageSpec] = Field(default_factory=list)
    target_namespace: str | None = Field(default=None, alias="targetNamespace")
    parameters: dict[str, Any] = Field(default_factory=dict)
    environment: dict[str, str] = Field(default_factory=dict)

    @field_validator("packages", mode="before")
    @classmethod
    def packages_none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("environment", "parameters", mode="before")
    @classmethod
    def mapping_none_as_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("environment", mode="before")
    @classmethod
    def environment_values_as_str(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(k): "" if val is None else str(val) for k, val in v.items()}
        return v

    def private_patterns(self, key: str = "GOPRIVATE") -> list[str]:
        """Comma separated patterns from the project environment, blanks dropped."""
        raw = self.environment.get(key, "")
        return [p.strip() for p in str(raw).split(",") if p.strip()]

    @classmethod
    def load(cls, monorepo: Path | str) -> ProjectSpec:
        monorepo = Path(monorepo)
        for name in PROJECT_CONFIG_NAMES:
            path = monorepo / name
            if path.is_file():
                break
        else:
            raise ConfigNotFound(f"could not find project config in {monorepo}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigParseError(f"error parsing {path}: {e}") from e

        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            raise ConfigParseError(f"error parsing {path}: {e}") from e


class CloneConfig(BaseModel):
    """How private modules are fetched."""

    url_template: str = "https://{module}"
    git_binary: str = "git"
    depth: int | None = None
    # Off by default: a failed clone leaves earlier clones for inspection.
    rollback_on_failure: bool = False

    @field_validator("url_template")
    @classmethod
    def validate_url_template(cls, v: str) -> str:
        return _check_url_template(v)


class TelemetryConfig(BaseModel):
    enabled: bool = True
    log_path: str = ".serverless-go/telemetry.jsonl"


class ToolConfig(BaseModel):
    """Complete serverless-go configuration."""

    private_dir: str = ""
    manifest_name: str = "go.mod"
    private_env_key: str = "GOPRIVATE"
    jobs: int = 1
    clone: CloneConfig = Field(default_factory=CloneConfig)
    telemetry: TelemetryConfig = Field(default_factory=TelemetryConfig)

    @field_validator("private_dir")
    @classmethod
    def validate_private_dir(cls, v: str) -> str:
        return _check_private_dir(v)

    @field_validator("jobs")
    @classmethod
    def validate_jobs(cls, v: int) -> int:
        return _check_jobs(v)

    @classmethod
    def load_from_file(cls, config_path: Path | str) -> ToolConfig:
        """Load configuration from YAML file."""
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigNotFound(f"Config file not found: {config_path}")

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigParseError(f"error parsing {config_path}: {e}") from e

        return cls(**(data or {}))

    @classmethod
    def load_from_repo(cls, repo_path: Path | str) -> ToolConfig:
        """Load configuration from the monorepo's .serverless-go.yml."""
        config_path = Path(repo_path) / TOOL_CONFIG_NAME

        if not config_path.exists():
            return cls()

        return cls.load_from_file(config_path)

    def apply_env_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        if v := os.getenv("SERVERLESS_GO_PRIVATE_DIR"):
            self.private_dir = _check_private_dir(v)
        if v := os.getenv("SERVERLESS_GO_JOBS"):
            self.jobs = _check_jobs(int(v))

        if v := os.getenv("SERVERLESS_GO_CLONE_URL_TEMPLATE"):
            self.clone.url_template = _check_url_template(v)
        if v := os.getenv("SERVERLESS_GO_CLONE_DEPTH"):
            self.clone.depth = int(v) or None
        if os.getenv("SERVERLESS_GO_ROLLBACK_ON_FAILURE") == "1":
            self.clone.rollback_on_failure = True

        if v := os.getenv("SERVERLESS_GO_TELEMETRY_PATH"):
            self.telemetry.log_path = v
        if os.getenv("SERVERLESS_GO_TELEMETRY_DISABLED") == "1":
            self.telemetry.enabled = False


def load_config(repo_path: Path | str) -> ToolConfig:
    config = ToolConfig.load_from_repo(repo_path)
    config.apply_env_overrides()
    return config


def load_monorepo(monorepo: Path | str) -> tuple[Path, ProjectSpec]:
    """Validate a monorepo layout and parse its project config.

    Returns the ``packages`` directory and the parsed project.
    """
    monorepo = Path(monorepo)
    if not monorepo.is_dir():
        raise NotMonorepoError(f"not a serverless monorepo: {monorepo} is not a directory")
    try:
        project = ProjectSpec.load(monorepo)
    except (ConfigNotFound, ConfigParseError) as e:
        raise NotMonorepoError(f"not a serverless monorepo: {e}") from e

    packages_dir = monorepo / PACKAGES_DIR
    if not packages_dir.is_dir():
        raise NotMonorepoError(f"not a serverless monorepo: {packages_dir} is not a directory")
    return packages_dir, project
