# src/goalcore/agents/__init__.py
"""
Multi-agent workers and workflows.

    registry = WorkerRegistry(provider, catalog=AgentCatalog(config_dir))
    registry.load()
    executor = WorkflowExecutor(registry)
    execution = await executor.execute("research_workflow", "Investigate vector databases")
"""

from .catalog import AgentCatalog, default_workers, default_workflows
from .models import (
    AgentResponse,
    ExecutionStatus,
    StepType,
    WorkerConfig,
    Workflow,
    WorkflowExecution,
    WorkflowStep,
)
from .registry import WorkerRegistry, build_worker_prompt, calculate_confidence
from .workflow import WorkflowExecutor, evaluate_condition

__all__ = [
    "AgentCatalog",
    "AgentResponse",
    "ExecutionStatus",
    "StepType",
    "WorkerConfig",
    "WorkerRegistry",
    "Workflow",
    "WorkflowExecution",
    "WorkflowExecutor",
    "WorkflowStep",
    "build_worker_prompt",
    "calculate_confidence",
    "default_workers",
    "default_workflows",
    "evaluate_condition",
]
