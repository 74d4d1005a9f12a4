# src/goalcore/exceptions.py
"""
Custom exceptions for the goalcore library.

This module defines a hierarchy of custom exception classes so callers can
tell caller errors (unknown or disabled workers and workflows, illegal state
transitions) apart from transient failures (worker invocation, store
operations) and handle each where it belongs.
"""

class GoalCoreError(Exception):
    """Base class for all goalcore specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in goalcore."):
        super().__init__(message)

class ConfigError(GoalCoreError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)

class ProviderError(GoalCoreError):
    """Raised for errors originating from a text-completion provider."""
    def __init__(self, provider_name: str = "Unknown", message: str = "Provider error."):
        self.provider_name = provider_name
        super().__init__(f"Error with provider '{provider_name}': {message}")

# ---------------------------------------------------------------------------
# Workers
# ---------------------------------------------------------------------------

class WorkerError(GoalCoreError):
    """Base class for worker registry errors."""
    def __init__(self, worker_id: str, message: str = "Worker error."):
        self.worker_id = worker_id
        super().__init__(f"{message} Worker ID: '{worker_id}'")

class UnknownWorkerError(WorkerError):
    """Raised when a worker id is not registered. Never retried."""
    def __init__(self, worker_id: str, message: str = "Worker not found."):
        super().__init__(worker_id, message)

class WorkerDisabledError(WorkerError):
    """Raised when a registered worker is disabled. Never retried."""
    def __init__(self, worker_id: str, message: str = "Worker is disabled."):
        super().__init__(worker_id, message)

class WorkerInvocationFailed(WorkerError):
    """
    Transient failure while invoking a worker (timeout, provider error).

    Caught at the single-worker boundary and converted into a degraded
    AgentResponse; it should never escape a workflow step.
    """
    def __init__(self, worker_id: str, message: str = "Worker invocation failed."):
        super().__init__(worker_id, message)

# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------

class WorkflowError(GoalCoreError):
    """Base class for workflow errors."""
    def __init__(self, workflow_id: str, message: str = "Workflow error."):
        self.workflow_id = workflow_id
        super().__init__(f"{message} Workflow ID: '{workflow_id}'")

class UnknownWorkflowError(WorkflowError):
    """Raised when a workflow id is not registered."""
    def __init__(self, workflow_id: str, message: str = "Workflow not found."):
        super().__init__(workflow_id, message)

class WorkflowDisabledError(WorkflowError):
    """Raised when a registered workflow is disabled."""
    def __init__(self, workflow_id: str, message: str = "Workflow is disabled."):
        super().__init__(workflow_id, message)

class ExecutionSealedError(WorkflowError):
    """Raised on any attempt to mutate a terminal WorkflowExecution."""
    def __init__(self, execution_id: str, message: str = "Execution is terminal and cannot be modified."):
        self.execution_id = execution_id
        super().__init__(execution_id, message)

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class StorageError(GoalCoreError):
    """Base class for errors related to goal storage operations."""
    def __init__(self, message: str = "Storage error."):
        super().__init__(message)

class StoreOperationFailed(StorageError):
    """Raised when a queued store operation failed twice (initial try plus one retry)."""
    def __init__(self, operation: str = "unknown", message: str = "Store operation failed after retry."):
        self.operation = operation
        super().__init__(f"{message} Operation: '{operation}'")

class GoalNotFoundError(StorageError):
    """
    Raised when a specified goal ID is not found in storage.
    Inherits from StorageError as it's a storage-related lookup failure.
    """
    def __init__(self, goal_id: str, message: str = "Goal not found."):
        self.goal_id = goal_id
        super().__init__(f"{message} Goal ID: '{goal_id}'")

# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class LifecycleError(GoalCoreError):
    """Base class for goal lifecycle errors."""
    def __init__(self, message: str = "Goal lifecycle error."):
        super().__init__(message)

class InvalidTransitionError(LifecycleError):
    """Raised when a goal status change is not allowed by the state machine."""
    def __init__(self, goal_id: str, current: str, target: str):
        self.goal_id = goal_id
        self.current = current
        self.target = target
        super().__init__(f"Illegal transition for goal '{goal_id}': {current} -> {target}")
