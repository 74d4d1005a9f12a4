# src/goalcore/__init__.py
"""
goalcore - goal-driven task scheduling with a multi-agent workflow executor.

Goals are scored into a bounded priority queue, moved through a tiered
lifecycle (user-derived, internal, self-initiated with approval) and worked
on by background cycles that can delegate to multi-step workflows of LLM
workers.
"""

from importlib.metadata import PackageNotFoundError, version

from .agents import (
    AgentResponse,
    WorkerConfig,
    WorkerRegistry,
    Workflow,
    WorkflowExecution,
    WorkflowExecutor,
)
from .autonomous import (
    BackgroundCoordinator,
    Goal,
    GoalStatus,
    GoalStore,
    GoalType,
    LifecycleController,
    PriorityScheduler,
    TierLevel,
)
from .config import GoalCoreConfig, load_config
from .engine import GoalEngine
from .exceptions import (
    ConfigError,
    GoalCoreError,
    GoalNotFoundError,
    InvalidTransitionError,
    LifecycleError,
    ProviderError,
    StorageError,
    StoreOperationFailed,
    UnknownWorkerError,
    UnknownWorkflowError,
    WorkerError,
    WorkflowError,
)
from .logging_config import configure_logging, log_display

try:
    __version__ = version("goalcore")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "AgentResponse",
    "BackgroundCoordinator",
    "ConfigError",
    "Goal",
    "GoalCoreConfig",
    "GoalCoreError",
    "GoalEngine",
    "GoalNotFoundError",
    "GoalStatus",
    "GoalStore",
    "GoalType",
    "InvalidTransitionError",
    "LifecycleController",
    "PriorityScheduler",
    "ProviderError",
    "StorageError",
    "StoreOperationFailed",
    "TierLevel",
    "UnknownWorkerError",
    "UnknownWorkflowError",
    "WorkerConfig",
    "WorkerError",
    "WorkerRegistry",
    "Workflow",
    "WorkflowError",
    "WorkflowExecution",
    "WorkflowExecutor",
    "__version__",
    "configure_logging",
    "load_config",
    "log_display",
]
