# src/goalcore/agents/registry.py
"""
Worker Registry & Invoker.

Holds worker and workflow descriptors, invokes a single worker against a
prompt through the completion provider, and scores the result.

Invocation contract:
    - unknown worker  -> ``UnknownWorkerError`` (caller error, raised)
    - disabled worker -> ``WorkerDisabledError`` (caller error, raised)
    - timeout or provider failure -> degraded ``AgentResponse`` with
      confidence 0 and ``metadata["error"] = True`` (never raised)
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from ..exceptions import (
    UnknownWorkerError,
    UnknownWorkflowError,
    WorkerDisabledError,
    WorkerInvocationFailed,
)
from ..providers.base import BaseCompletionProvider
from .catalog import AgentCatalog
from .models import AgentResponse, WorkerConfig, Workflow

logger = logging.getLogger(__name__)

PromptBuilder = Callable[[WorkerConfig, str, str], str]


def build_worker_prompt(worker: WorkerConfig, input_text: str, context: str = "") -> str:
    """Default prompt: worker persona, context and the input to analyze."""
    return (
        f"You are {worker.name}, a specialized AI agent in a multi-agent system.\n\n"
        f"Your Role: {worker.role}\n"
        f"Your Specialization: {worker.specialization}\n"
        f"Your Traits: {', '.join(worker.traits)}\n"
        f"Your Capabilities: {', '.join(worker.capabilities)}\n\n"
        f"Context: {context}\n\n"
        f"Input to analyze: {input_text}\n\n"
        "Provide your specialized perspective based on your role and capabilities. "
        "Be specific and focus on your area of expertise. Your response will be combined "
        "with other agents' perspectives to create a comprehensive analysis.\n\n"
        "Response:"
    )


def calculate_confidence(response: str, worker: WorkerConfig) -> float:
    """
    Score a response against the worker that produced it.

    Base 0.7, +0.1 above 200 characters, +0.1 more above 500, plus up to 0.2
    for the share of the worker's capability tags found in the text.
    Clamped to [0.1, 1.0].
    """
    confidence = 0.7
    if len(response) > 200:
        confidence += 0.1
    if len(response) > 500:
        confidence += 0.1

    if worker.capabilities:
        text = response.lower()
        matches = sum(1 for cap in worker.capabilities if cap.lower() in text)
        confidence += (matches / len(worker.capabilities)) * 0.2

    return min(1.0, max(0.1, confidence))


class WorkerRegistry:
    """
    Registry of workers and workflows plus the single-worker invoker.

    Args:
        provider: Completion provider used for every invocation.
        catalog: Optional persistence; when given, every create/update/delete
            rewrites the corresponding JSON file.
        invocation_timeout: Seconds before an invocation degrades.
        prompt_builder: Replaceable prompt construction.
    """

    def __init__(
        self,
        provider: BaseCompletionProvider,
        catalog: Optional[AgentCatalog] = None,
        invocation_timeout: float = 120.0,
        prompt_builder: PromptBuilder = build_worker_prompt,
    ) -> None:
        self.provider = provider
        self.catalog = catalog
        self.invocation_timeout = invocation_timeout
        self.prompt_builder = prompt_builder
        self._workers: Dict[str, WorkerConfig] = {}
        self._workflows: Dict[str, Workflow] = {}

    def load(self) -> None:
        """Populate from the catalog (seeding defaults on first run)."""
        if self.catalog is None:
            return
        workers, workflows = self.catalog.load()
        self._workers = {w.id: w for w in workers}
        self._workflows = {w.id: w for w in workflows}

    # ---- invocation ----

    async def invoke(self, worker_id: str, input_text: str, context: str = "") -> AgentResponse:
        worker = self.get_worker(worker_id)
        if not worker.enabled:
            raise WorkerDisabledError(worker_id)
        return await self.invoke_descriptor(worker, input_text, context)

    async def invoke_descriptor(
        self,
        worker: WorkerConfig,
        input_text: str,
        context: str = "",
        prompt: Optional[str] = None,
    ) -> AgentResponse:
        """
        Invoke a descriptor directly, bypassing the enabled check.

        ``prompt`` replaces the persona prompt built by ``prompt_builder``;
        the synthesis step passes its own.
        """
        start = time.monotonic()
        if prompt is None:
            prompt = self.prompt_builder(worker, input_text, context)
        try:
            try:
                text = await asyncio.wait_for(
                    self.provider.complete(prompt, model=worker.model, temperature=worker.temperature),
                    timeout=self.invocation_timeout,
                )
            except asyncio.TimeoutError as e:
                raise WorkerInvocationFailed(
                    worker.id, f"Timed out after {self.invocation_timeout}s."
                ) from e
            except Exception as e:
                raise WorkerInvocationFailed(worker.id, f"{type(e).__name__}: {e}") from e
        except WorkerInvocationFailed as e:
            elapsed = (time.monotonic() - start) * 1000
            logger.warning("Worker %s invocation failed: %s", worker.id, e)
            return AgentResponse(
                agent_id=worker.id,
                response=f"Agent execution failed: {e}",
                confidence=0.0,
                processing_time=elapsed,
                input_text=input_text,
                metadata={"error": True, "error_message": str(e), "model": worker.model},
            )

        elapsed = (time.monotonic() - start) * 1000
        logger.debug("Worker %s completed in %.0fms", worker.name, elapsed)
        return AgentResponse(
            agent_id=worker.id,
            response=text,
            confidence=calculate_confidence(text, worker),
            processing_time=elapsed,
            input_text=input_text,
            metadata={
                "model": worker.model,
                "temperature": worker.temperature,
                "specialization": worker.specialization,
            },
        )

    # ---- workers ----

    def get_worker(self, worker_id: str) -> WorkerConfig:
        worker = self._workers.get(worker_id)
        if worker is None:
            raise UnknownWorkerError(worker_id)
        return worker

    def has_worker(self, worker_id: str) -> bool:
        return worker_id in self._workers

    def list_workers(self) -> List[WorkerConfig]:
        return list(self._workers.values())

    def create_worker(self, worker_id: Optional[str] = None, **fields: Any) -> WorkerConfig:
        worker = WorkerConfig(id=worker_id or f"agent_{uuid.uuid4().hex[:12]}", **fields)
        self._workers[worker.id] = worker
        self._save_workers()
        logger.info("Created worker: %s", worker.name)
        return worker

    def update_worker(self, worker_id: str, **updates: Any) -> WorkerConfig:
        current = self.get_worker(worker_id)
        updates.pop("id", None)
        worker = WorkerConfig(**{**current.model_dump(), **updates})
        self._workers[worker_id] = worker
        self._save_workers()
        logger.info("Updated worker: %s", worker_id)
        return worker

    def delete_worker(self, worker_id: str) -> None:
        self.get_worker(worker_id)
        del self._workers[worker_id]
        self._save_workers()
        logger.info("Deleted worker: %s", worker_id)

    # ---- workflows ----

    def get_workflow(self, workflow_id: str) -> Workflow:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise UnknownWorkflowError(workflow_id)
        return workflow

    def list_workflows(self) -> List[Workflow]:
        return list(self._workflows.values())

    def create_workflow(self, workflow_id: Optional[str] = None, **fields: Any) -> Workflow:
        workflow = Workflow(id=workflow_id or f"workflow_{uuid.uuid4().hex[:12]}", **fields)
        self._workflows[workflow.id] = workflow
        self._save_workflows()
        logger.info("Created workflow: %s", workflow.name)
        return workflow

    def update_workflow(self, workflow_id: str, **updates: Any) -> Workflow:
        current = self.get_workflow(workflow_id)
        updates.pop("id", None)
        workflow = Workflow(**{**current.model_dump(), **updates})
        self._workflows[workflow_id] = workflow
        self._save_workflows()
        logger.info("Updated workflow: %s", workflow_id)
        return workflow

    def delete_workflow(self, workflow_id: str) -> None:
        self.get_workflow(workflow_id)
        del self._workflows[workflow_id]
        self._save_workflows()
        logger.info("Deleted workflow: %s", workflow_id)

    def find_matching_workflows(self, text: str) -> List[Workflow]:
        """Enabled workflows with a non-blank trigger phrase contained in ``text``."""
        lowered = text.lower()
        return [
            wf
            for wf in self._workflows.values()
            if wf.enabled and any(t.strip() and t.strip().lower() in lowered for t in wf.triggers)
        ]

    def get_status(self) -> Dict[str, Any]:
        return {
            "workers": {
                "total": len(self._workers),
                "enabled": sum(1 for w in self._workers.values() if w.enabled),
            },
            "workflows": {
                "total": len(self._workflows),
                "enabled": sum(1 for w in self._workflows.values() if w.enabled),
            },
        }

    def _save_workers(self) -> None:
        if self.catalog is not None:
            self.catalog.save_workers(self.list_workers())

    def _save_workflows(self) -> None:
        if self.catalog is not None:
            self.catalog.save_workflows(self.list_workflows())
