# src/goalcore/config/settings.py
"""
Configuration models for goalcore.

This module defines Pydantic models for every configuration section the
engine consumes.  The hierarchy:

    GoalCoreConfig (root)
    ├── SchedulerConfig     - Priority queue sizing and scoring knobs
    ├── ApprovalConfig      - Approval gate timeout and timeout policy
    ├── CoordinatorConfig   - Background cycle intervals, progress oracle
    ├── StorageConfig       - SQLite goal store location
    ├── AgentsConfig        - Worker/workflow catalogue and invocation
    ├── ProviderConfig      - Text-completion service (Ollama)
    ├── CacheConfig         - Response cache limits
    └── LoggingConfig       - Console/file logging

Usage:
    >>> from goalcore.config.settings import GoalCoreConfig
    >>> config = GoalCoreConfig()
    >>> config.scheduler.max_queue_size
    20

    >>> config = load_config(config_dict={"approval": {"timeout_policy": "reject"}})
    >>> config.approval.timeout_policy
    'reject'
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import ConfigError

ENV_PREFIX = "GOALCORE_"


def _expand(v: str) -> str:
    return os.path.expanduser(os.path.expandvars(v))


# =============================================================================
# SCHEDULER
# =============================================================================


class SchedulerConfig(BaseModel):
    """
    Configuration for the priority scheduler.

    ``fold_user_value`` controls whether ``user_value_factor`` and
    ``cerebrum_priority_boost`` contribute to ``priority_score``.  They are
    always computed and recorded on the queue entry; by default they are
    informational only.

    Examples:
        >>> SchedulerConfig().importance_boosts["cerebrum_autonomous"]
        0.3
    """

    max_queue_size: int = Field(default=20, ge=1, le=1000)
    importance_boosts: dict[str, float] = Field(
        default_factory=lambda: {
            "user_derived": 0.0,
            "internal_system": 0.0,
            "cerebrum_autonomous": 0.3,
        },
        description="Tier-specific additive boost applied to importance_factor",
    )
    short_term_urgency_bonus: float = Field(default=0.5, ge=0.0)
    urgency_per_hour: float = Field(default=0.1, ge=0.0)
    max_age_urgency: float = Field(default=2.0, ge=0.0)
    fold_user_value: bool = Field(
        default=False,
        description="Fold user_value_factor and cerebrum_priority_boost into the score",
    )


# =============================================================================
# APPROVAL
# =============================================================================


class ApprovalConfig(BaseModel):
    """
    Configuration for the approval gate on goals whose tier requires it.

    When no response arrives within ``timeout_seconds``, ``timeout_policy``
    decides the outcome: ``"approve"`` activates the goal (default-accept),
    ``"reject"`` cancels it.
    """

    timeout_seconds: float = Field(default=60.0, gt=0.0)
    timeout_policy: Literal["approve", "reject"] = "approve"


# =============================================================================
# COORDINATOR
# =============================================================================


class CoordinatorConfig(BaseModel):
    """Intervals (seconds) for the three background cycles."""

    enabled: bool = True
    base_interval: float = Field(
        default=5.0,
        gt=0.0,
        description="Tick interval of the heartbeat loop driving the cycles",
    )
    reflection_interval: float = Field(default=300.0, gt=0.0)
    processing_interval: float = Field(default=30.0, gt=0.0)
    tier_dispatch_interval: float = Field(default=30.0, gt=0.0)
    max_consecutive_errors: int = Field(default=5, ge=1)
    progress_oracle: Literal["deliverables", "random_walk", "manual", "worker_reported"] = (
        "deliverables"
    )
    deliverables_fallback: Literal["random_walk", "manual", "worker_reported", "none"] = Field(
        default="random_walk",
        description="Oracle consulted by the deliverables oracle for goals without deliverables",
    )
    random_walk_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    random_walk_max_step: float = Field(default=5.0, ge=0.0)


# =============================================================================
# STORAGE
# =============================================================================


class StorageConfig(BaseModel):
    """Location of the SQLite goal store."""

    db_path: str = Field(
        default="~/.local/share/goalcore/goals.db",
        description="Tilde and environment variable expansion is applied.",
    )

    @field_validator("db_path")
    @classmethod
    def expand_db_path(cls, v: str) -> str:
        return v if v == ":memory:" else _expand(v)


# =============================================================================
# AGENTS
# =============================================================================


class AgentsConfig(BaseModel):
    """
    Worker and workflow catalogue settings.

    ``config_dir`` holds ``workers.json`` and ``workflows.json``.  The
    synthesis step invokes ``synthesis_worker_id`` when that worker is
    registered, otherwise a built-in synthesis descriptor using
    ``synthesis_model`` and ``synthesis_temperature``.
    """

    config_dir: str = "~/.local/share/goalcore/agents"
    invocation_timeout: float = Field(default=120.0, gt=0.0)
    synthesis_worker_id: str = "synthesis_coordinator"
    synthesis_model: str = "gemma3:latest"
    synthesis_temperature: float = Field(default=0.4, ge=0.0, le=2.0)

    @field_validator("config_dir")
    @classmethod
    def expand_config_dir(cls, v: str) -> str:
        return _expand(v)


# =============================================================================
# PROVIDER / CACHE
# =============================================================================


class ProviderConfig(BaseModel):
    """Text-completion service settings."""

    host: str | None = Field(default=None, description="Ollama host; None uses the client default")
    default_model: str = "gemma3:latest"
    timeout: float | None = Field(default=None, gt=0.0)


class CacheConfig(BaseModel):
    """Response cache placed in front of the completion provider."""

    enabled: bool = True
    path: str | None = "~/.local/share/goalcore/response_cache.json"
    max_entries: int = Field(default=1000, ge=1)
    max_size_mb: float = Field(default=10.0, gt=0.0)
    unused_days: int = Field(default=7, ge=1)

    @field_validator("path")
    @classmethod
    def expand_path(cls, v: str | None) -> str | None:
        return _expand(v) if v else v


class LoggingConfig(BaseModel):
    """Settings forwarded to :func:`goalcore.logging_config.configure_logging`."""

    console_enabled: bool = False
    console_level: str = "WARNING"
    file_enabled: bool = False
    file_level: str = "DEBUG"
    file_directory: str = "~/.local/share/goalcore/logs"
    display_min_level: str = "INFO"
    components: dict[str, str] = Field(default_factory=dict)

    def to_logging_dict(self) -> dict[str, Any]:
        data = self.model_dump()
        if not data["components"]:
            data.pop("components")
        return data


# =============================================================================
# ROOT
# =============================================================================


class GoalCoreConfig(BaseModel):
    """
    Root configuration.

    Usage:
        >>> config = GoalCoreConfig(**toml_dict["goalcore"])
        >>> config.coordinator.processing_interval
        30.0
    """

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    approval: ApprovalConfig = Field(default_factory=ApprovalConfig)
    coordinator: CoordinatorConfig = Field(default_factory=CoordinatorConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# HELPER: LOAD FROM TOML / DICT / ENV
# =============================================================================


def _env_overrides(environ: dict[str, str]) -> dict[str, dict[str, str]]:
    """Collect ``GOALCORE_<SECTION>__<KEY>`` variables into nested dicts."""
    overrides: dict[str, dict[str, str]] = {}
    for name, value in environ.items():
        if not name.startswith(ENV_PREFIX) or "__" not in name:
            continue
        section, _, key = name[len(ENV_PREFIX):].lower().partition("__")
        if section and key:
            overrides.setdefault(section, {})[key] = value
    return overrides


def load_config(
    config_dict: dict[str, Any] | None = None,
    config_path: Path | str | None = None,
    environ: dict[str, str] | None = None,
) -> GoalCoreConfig:
    """
    Load goalcore configuration from a TOML file, a dict and the environment.

    Precedence (lowest to highest): defaults, ``config_path``,
    ``config_dict``, environment variables.  Both the file and the dict may
    either nest settings under a ``goalcore`` key or hold them at top level.

    Raises:
        FileNotFoundError: If config_path does not exist.
        ConfigError: If validation fails on any config value.
    """
    data: dict[str, Any] = {}

    if config_path is not None:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        data = _merge(data, raw.get("goalcore", raw))

    if config_dict is not None:
        data = _merge(data, config_dict.get("goalcore", config_dict))

    env = os.environ if environ is None else environ
    data = _merge(data, _env_overrides(dict(env)))

    try:
        return GoalCoreConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid goalcore configuration: {e}") from e


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged
