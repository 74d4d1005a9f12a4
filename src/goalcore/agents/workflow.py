# src/goalcore/agents/workflow.py
"""
Workflow Executor.

Runs a workflow's steps in order over the worker registry and synthesizes
one final output.

Step semantics:
    sequential   workers run one at a time; each worker's output becomes the
                 next worker's input.
    parallel     every worker starts on the same input before any result is
                 awaited; one failure degrades that response only.
    conditional  ``true``, ``false`` or ``contains:<keyword>`` (case-insensitive
                 against the current input); workers run sequentially on the
                 same input only when the predicate holds.

Between steps, a single response becomes the next input verbatim; several
are joined as ``"<Name>: <response>"`` blocks separated by a blank line.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Mapping

from ..exceptions import UnknownWorkerError, WorkerDisabledError, WorkerError, WorkflowDisabledError
from .models import (
    AgentResponse,
    ExecutionStatus,
    StepType,
    WorkerConfig,
    Workflow,
    WorkflowExecution,
    WorkflowStep,
)
from .registry import WorkerRegistry

logger = logging.getLogger(__name__)

SYNTHESIS_PROMPT = """You are the synthesis coordinator for a multi-agent system. Your task is to combine insights from multiple specialized agents into a coherent, comprehensive response.

Original Input: {original_input}
Context: {context}

Agent Responses:
{transcript}

Synthesize these perspectives into a unified, well-structured response that leverages the strengths of each agent's analysis. Maintain the depth and expertise while creating a cohesive narrative.

Synthesized Response:"""


def evaluate_condition(condition: str | None, current_input: str) -> bool:
    """Evaluate a conditional step predicate against the current input."""
    expr = (condition if condition is not None else "true").strip()
    if expr.lower() == "true":
        return True
    if expr.lower() == "false":
        return False
    if expr.lower().startswith("contains:"):
        keyword = expr.split(":", 1)[1].strip().lower()
        return keyword in current_input.lower()
    logger.warning("Unsupported step condition %r; treating as false", expr)
    return False


class WorkflowExecutor:
    """
    Executes workflows registered in a ``WorkerRegistry``.

    Args:
        registry: Worker/workflow registry and invoker.
        synthesis_worker_id: Worker used for the final synthesis when registered.
        synthesis_model: Model of the built-in synthesis descriptor.
        synthesis_temperature: Temperature of the built-in synthesis descriptor.
    """

    def __init__(
        self,
        registry: WorkerRegistry,
        synthesis_worker_id: str = "synthesis_coordinator",
        synthesis_model: str = "gemma3:latest",
        synthesis_temperature: float = 0.4,
    ) -> None:
        self.registry = registry
        self.synthesis_worker_id = synthesis_worker_id
        self._builtin_synthesizer = WorkerConfig(
            id=synthesis_worker_id,
            name="SynthesisCoordinator",
            role="Synthesis Coordinator",
            specialization="synthesis",
            model=synthesis_model,
            temperature=synthesis_temperature,
        )
        self._active: Dict[str, WorkflowExecution] = {}

    def get_active_executions(self) -> List[WorkflowExecution]:
        return list(self._active.values())

    async def execute(self, workflow_id: str, input_text: str, context: str = "") -> WorkflowExecution:
        """
        Run ``workflow_id`` on ``input_text``.

        Worker descriptors are captured once when the run starts; registry
        updates made while it is in flight apply to later runs only.

        Raises:
            UnknownWorkflowError: Workflow is not registered.
            WorkflowDisabledError: Workflow is disabled.
        """
        workflow = self.registry.get_workflow(workflow_id)
        if not workflow.enabled:
            raise WorkflowDisabledError(workflow_id)
        workers = self._snapshot(workflow)
        synthesizer = workers.get(self.synthesis_worker_id, self._builtin_synthesizer)

        execution = WorkflowExecution(workflow_id=workflow_id)
        execution.status = ExecutionStatus.RUNNING
        self._active[execution.id] = execution
        logger.info("Starting workflow execution %s (%s)", execution.id, workflow_id)

        try:
            current_input = input_text
            for step in workflow.steps:
                step_results = await self._run_step(step, current_input, context, workers)
                execution.add_results(step_results)
                if step_results:
                    current_input = self._combine(step_results, workers)

            execution.mark_involved(synthesizer.id)
            final_output = await self._synthesize(
                synthesizer, list(execution.results), input_text, context, workers
            )
        except Exception as e:
            logger.error("Workflow execution %s failed: %s", execution.id, e, exc_info=True)
            execution.finish(ExecutionStatus.FAILED, f"Workflow execution failed: {e}")
        else:
            execution.finish(ExecutionStatus.COMPLETED, final_output)
            logger.info(
                "Workflow %s completed with %d responses in %.0fms",
                workflow_id,
                len(execution.results),
                execution.duration_ms or 0.0,
            )
        finally:
            self._active.pop(execution.id, None)

        return execution

    def _snapshot(self, workflow: Workflow) -> Dict[str, WorkerConfig]:
        """Registered descriptors of the workflow's workers and the synthesis worker."""
        ids = {worker_id for step in workflow.steps for worker_id in step.agents}
        ids.add(self.synthesis_worker_id)
        return {
            worker_id: self.registry.get_worker(worker_id)
            for worker_id in ids
            if self.registry.has_worker(worker_id)
        }

    # ---- steps ----

    async def _run_step(
        self, step: WorkflowStep, current_input: str, context: str, workers: Mapping[str, WorkerConfig]
    ) -> List[AgentResponse]:
        if step.type == StepType.SEQUENTIAL:
            results: List[AgentResponse] = []
            chained = current_input
            for worker_id in step.agents:
                response = await self._invoke(worker_id, chained, context, workers)
                results.append(response)
                chained = response.response
            return results

        if step.type == StepType.PARALLEL:
            return list(
                await asyncio.gather(
                    *(self._invoke(w, current_input, context, workers) for w in step.agents)
                )
            )

        if step.type == StepType.CONDITIONAL:
            if not evaluate_condition(step.condition, current_input):
                logger.debug("Condition %r false; skipping step %s", step.condition, step.id)
                return []
            results = []
            for worker_id in step.agents:
                results.append(await self._invoke(worker_id, current_input, context, workers))
            return results

        logger.warning("Unknown step type %r in step %s; skipping", step.type, step.id)
        return []

    async def _invoke(
        self, worker_id: str, input_text: str, context: str, workers: Mapping[str, WorkerConfig]
    ) -> AgentResponse:
        worker = workers.get(worker_id)
        if worker is None:
            error: WorkerError = UnknownWorkerError(worker_id)
        elif not worker.enabled:
            error = WorkerDisabledError(worker_id)
        else:
            return await self.registry.invoke_descriptor(worker, input_text, context)

        logger.warning("Step worker %s unavailable: %s", worker_id, error)
        return AgentResponse(
            agent_id=worker_id,
            response=f"Agent execution failed: {error}",
            confidence=0.0,
            processing_time=0.0,
            input_text=input_text,
            metadata={"error": True, "error_message": str(error), "invoked": False},
        )

    @staticmethod
    def _name_of(worker_id: str, workers: Mapping[str, WorkerConfig]) -> str:
        worker = workers.get(worker_id)
        return worker.name if worker is not None else worker_id

    @staticmethod
    def _role_of(worker_id: str, workers: Mapping[str, WorkerConfig]) -> str:
        worker = workers.get(worker_id)
        return worker.role if worker is not None else "unknown role"

    def _combine(self, results: List[AgentResponse], workers: Mapping[str, WorkerConfig]) -> str:
        if len(results) == 1:
            return results[0].response
        return "\n\n".join(f"{self._name_of(r.agent_id, workers)}: {r.response}" for r in results)

    # ---- synthesis ----

    def transcript(self, results: List[AgentResponse], workers: Mapping[str, WorkerConfig]) -> str:
        return "\n\n".join(
            f"{self._name_of(r.agent_id, workers)} ({self._role_of(r.agent_id, workers)}): {r.response}"
            for r in results
        )

    async def _synthesize(
        self,
        synthesizer: WorkerConfig,
        results: List[AgentResponse],
        original_input: str,
        context: str,
        workers: Mapping[str, WorkerConfig],
    ) -> str:
        transcript = self.transcript(results, workers)
        prompt = SYNTHESIS_PROMPT.format(
            original_input=original_input, context=context, transcript=transcript
        )

        response = await self.registry.invoke_descriptor(synthesizer, transcript, context, prompt=prompt)
        if response.is_error:
            logger.warning("Synthesis degraded: %s", response.metadata.get("error_message"))
            return (
                "Synthesis unavailable "
                f"({response.metadata.get('error_message', 'unknown error')}). "
                f"Individual agent responses:\n\n{transcript or '(no agent responses)'}"
            )
        return response.response
