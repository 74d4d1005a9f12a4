# src/goalcore/config/__init__.py
"""Configuration models and loader for goalcore."""

from .settings import (
    AgentsConfig,
    ApprovalConfig,
    CacheConfig,
    CoordinatorConfig,
    GoalCoreConfig,
    LoggingConfig,
    ProviderConfig,
    SchedulerConfig,
    StorageConfig,
    load_config,
)

__all__ = [
    "AgentsConfig",
    "ApprovalConfig",
    "CacheConfig",
    "CoordinatorConfig",
    "GoalCoreConfig",
    "LoggingConfig",
    "ProviderConfig",
    "SchedulerConfig",
    "StorageConfig",
    "load_config",
]
