# src/goalcore/agents/models.py
"""
Worker and workflow data models.

Descriptors (``WorkerConfig``, ``WorkflowStep``, ``Workflow``) are frozen
Pydantic models: a running workflow always sees the descriptor it started
with, and management operations replace the stored object instead of
mutating it.

Run artefacts (``AgentResponse``, ``WorkflowExecution``) are dataclasses.
An ``AgentResponse`` is frozen; a ``WorkflowExecution`` is sealed once it
reaches a terminal status.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..exceptions import ExecutionSealedError


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# DESCRIPTORS
# =============================================================================


class WorkerConfig(BaseModel):
    """A capability-tagged worker that can be invoked against a prompt."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    role: str
    specialization: str
    traits: List[str] = Field(default_factory=list)
    capabilities: List[str] = Field(default_factory=list)
    model: str = "gemma3:latest"
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    enabled: bool = True


class StepType(str, Enum):
    """How the workers of a workflow step are invoked."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    CONDITIONAL = "conditional"


class WorkflowStep(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    id: str
    type: StepType
    agents: List[str]
    condition: Optional[str] = None


class Workflow(BaseModel):
    """A named ordered list of steps, matched to requests by trigger phrases."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    steps: List[WorkflowStep]
    triggers: List[str] = Field(default_factory=list)
    enabled: bool = True


# =============================================================================
# RUN ARTEFACTS
# =============================================================================


@dataclass(frozen=True)
class AgentResponse:
    """
    Result of invoking one worker.

    Attributes:
        agent_id: Worker that produced the response.
        response: Result text (an error description when degraded).
        confidence: Derived score in [0, 1]; 0 for degraded responses.
        processing_time: Latency in milliseconds.
        input_text: Exact input the worker received.
        metadata: Read-only copy of model, temperature and specialization;
            ``error`` and ``error_message`` on failure.  ``invoked`` is False
            when the worker was unknown or disabled and never called.
    """

    agent_id: str
    response: str
    confidence: float
    processing_time: float
    input_text: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def is_error(self) -> bool:
        return bool(self.metadata.get("error"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "response": self.response,
            "confidence": self.confidence,
            "processing_time": self.processing_time,
            "input_text": self.input_text,
            "metadata": dict(self.metadata),
        }


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


@dataclass
class WorkflowExecution:
    """
    One run of a workflow.

    Once ``status`` is terminal the object is sealed: any further attribute
    assignment raises ``ExecutionSealedError``.  The ``results`` and
    ``agents_involved`` lists are converted to tuples on sealing.
    """

    workflow_id: str
    id: str = field(default_factory=lambda: f"exec_{uuid.uuid4().hex[:12]}")
    status: ExecutionStatus = ExecutionStatus.PENDING
    started_at: datetime = field(default_factory=_now)
    ended_at: Optional[datetime] = None
    agents_involved: List[str] = field(default_factory=list)
    results: List[AgentResponse] = field(default_factory=list)
    final_output: str = ""

    def __setattr__(self, name: str, value: Any) -> None:
        if self.__dict__.get("_sealed", False):
            raise ExecutionSealedError(self.__dict__.get("id", "?"))
        super().__setattr__(name, value)

    @property
    def sealed(self) -> bool:
        return self.__dict__.get("_sealed", False)

    def add_results(self, responses: List[AgentResponse]) -> None:
        if self.sealed:
            raise ExecutionSealedError(self.id)
        self.results.extend(responses)
        for response in responses:
            if response.metadata.get("invoked", True):
                self.mark_involved(response.agent_id)

    def mark_involved(self, agent_id: str) -> None:
        """Record a worker whose provider call was attempted."""
        if self.sealed:
            raise ExecutionSealedError(self.id)
        if agent_id not in self.agents_involved:
            self.agents_involved.append(agent_id)

    def finish(self, status: ExecutionStatus, final_output: str) -> None:
        """Move to a terminal status and seal the execution."""
        if not status.is_terminal:
            raise ValueError(f"finish() requires a terminal status, got {status.value}")
        self.status = status
        self.final_output = final_output
        self.ended_at = _now()
        self.results = tuple(self.results)  # type: ignore[assignment]
        self.agents_involved = tuple(self.agents_involved)  # type: ignore[assignment]
        object.__setattr__(self, "_sealed", True)

    @property
    def duration_ms(self) -> Optional[float]:
        if self.ended_at is None:
            return None
        return (self.ended_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "agents_involved": list(self.agents_involved),
            "results": [r.to_dict() for r in self.results],
            "final_output": self.final_output,
        }
