# src/goalcore/autonomous/lifecycle.py
"""
Tiered Lifecycle Controller.

Owns every goal state change.  Transitions follow ``ALLOWED_TRANSITIONS``;
anything else raises ``InvalidTransitionError``.  At most one goal is
``active`` at any time: activating a goal pauses the current one.

Tier behaviour:

- ``user_derived``: proactive progress notifications at every 25% step and
  delegation to a workflow when one is configured or triggered by the title.
- ``internal_system``: executed autonomously without gating.
- ``cerebrum_autonomous``: needs approval (auto-accepted after the approval
  timeout by default), then decomposes once into ``micro_task`` children
  which inherit the parent's approval.  The parent waits on its children.

All store writes go through the shared ``OperationQueue``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import timedelta
from functools import partial
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from ..agents.models import ExecutionStatus
from ..exceptions import GoalNotFoundError, InvalidTransitionError, WorkflowError
from ..logging_config import log_display
from .approval import ApprovalGate, ApprovalRequest
from .decomposition import DecompositionTable, default_table
from .goals import (
    AgentInteraction,
    Goal,
    GoalAction,
    GoalDeliverable,
    GoalOrigin,
    GoalReflection,
    GoalStatus,
    GoalThought,
    GoalType,
    OriginSource,
    SuccessCriteria,
    TierLevel,
    utcnow,
)
from .op_queue import OperationQueue

if TYPE_CHECKING:
    from ..agents.registry import WorkerRegistry
    from ..agents.workflow import WorkflowExecutor
    from .analysis import GoalAnalyzer, GoalProposal
    from .scheduler import PriorityScheduler
    from .store import GoalStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[GoalStatus, frozenset[GoalStatus]] = {
    GoalStatus.ANALYSIS: frozenset(
        {GoalStatus.WAITING_APPROVAL, GoalStatus.ACTIVE, GoalStatus.CANCELLED, GoalStatus.FAILED}
    ),
    GoalStatus.WAITING_APPROVAL: frozenset({GoalStatus.ACTIVE, GoalStatus.CANCELLED, GoalStatus.FAILED}),
    GoalStatus.ACTIVE: frozenset(
        {GoalStatus.PAUSED, GoalStatus.COMPLETED, GoalStatus.CANCELLED, GoalStatus.FAILED}
    ),
    GoalStatus.PAUSED: frozenset({GoalStatus.ACTIVE, GoalStatus.CANCELLED, GoalStatus.FAILED}),
    GoalStatus.COMPLETED: frozenset(),
    GoalStatus.FAILED: frozenset(),
    GoalStatus.CANCELLED: frozenset(),
}

PROGRESS_UPDATE_STEP = 25.0

SUBGOAL_CONFIDENCE = 0.8

TARGET_HORIZONS = {
    GoalType.SHORT_TERM: timedelta(days=1),
    GoalType.LONG_TERM: timedelta(days=30),
}

# (kind, goal, message); kinds: approval_request, progress_update, completion_presentation
Notifier = Callable[[str, Goal, str], Optional[Awaitable[None]]]


# =============================================================================
# User-facing messages
# =============================================================================


def approval_message(goal: Goal) -> str:
    evidence = len(goal.origin.evidence)
    confidence = int(goal.origin.confidence * 100 + 0.5)
    return (
        f"I've been analyzing our conversations and noticed you've been interested in "
        f"{goal.title.lower()}. Based on {evidence} pieces of evidence with {confidence}% "
        f"confidence, I'd like to work on this autonomously and present the results when "
        f"complete. Would you like me to proceed?"
    )


def completion_message(goal: Goal) -> str:
    deliverables = goal.success_criteria.deliverables
    lines = [f'Completed "{goal.title}" with {len(deliverables)} deliverables.']
    for d in deliverables:
        lines.append(f"- {d.name} ({d.status})")
    return "\n".join(lines)


def progress_message(goal: Goal, threshold: float) -> str:
    return f'Progress update on "{goal.title}": {threshold:.0f}% complete.'


# =============================================================================
# Controller
# =============================================================================


class LifecycleController:
    """
    Goal state machine over the store, scheduler and approval gate.

    Args:
        store: Goal store (reads go direct, writes through ``write_queue``).
        scheduler: Priority scheduler; its empty-queue hook is wired to
            ``analyze_and_create_goals`` unless already set.
        write_queue: Serializes store writes.
        approval: Approval gate; its decision callback is wired to
            ``apply_approval`` unless already set.
        executor: Workflow executor for delegation.
        registry: Worker registry used to match workflow triggers.
        analyzer: Goal-creation analyzer.
        decomposition: Sub-goal rule table.
        notifier: Optional callback for user-facing notifications.
    """

    def __init__(
        self,
        store: GoalStore,
        scheduler: PriorityScheduler,
        write_queue: OperationQueue | None = None,
        approval: ApprovalGate | None = None,
        executor: WorkflowExecutor | None = None,
        registry: WorkerRegistry | None = None,
        analyzer: GoalAnalyzer | None = None,
        decomposition: DecompositionTable | None = None,
        notifier: Notifier | None = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.queue = write_queue or OperationQueue()
        self.approval = approval or ApprovalGate()
        self.executor = executor
        self.registry = registry
        self.analyzer = analyzer
        self.decomposition = decomposition or default_table()
        self.notifier = notifier

        if self.scheduler.on_empty is None:
            self.scheduler.on_empty = self.analyze_and_create_goals
        if self.approval.on_decision is None:
            self.approval.on_decision = self.apply_approval

        self._lock = asyncio.Lock()

    # ---- store access ----

    async def _get(self, goal_id: str) -> Goal:
        goal = await self.store.get_goal(goal_id)
        if goal is None:
            raise GoalNotFoundError(goal_id)
        return goal

    async def _update(self, goal_id: str, **fields: Any) -> Goal:
        return await self.queue.submit(partial(self.store.update_goal, goal_id, **fields), "update_goal")

    async def _mutate(self, goal_id: str, change: Callable[[Goal], dict[str, Any]], name: str) -> Goal:
        """Read a goal, derive fields from it and write them as one queued operation."""
        await self._get(goal_id)

        async def operation() -> Goal:
            return await self.store.update_goal(goal_id, **change(await self._get(goal_id)))

        return await self.queue.submit(operation, name)

    async def _update_context(self, goal_id: str, **items: Any) -> Goal:
        return await self._mutate(goal_id, lambda goal: {"context": {**goal.context, **items}}, "update_context")

    async def _transition(self, goal: Goal, target: GoalStatus, **fields: Any) -> Goal:
        if target not in ALLOWED_TRANSITIONS[goal.status]:
            raise InvalidTransitionError(goal.id, goal.status.value, target.value)
        if target == GoalStatus.WAITING_APPROVAL and not goal.characteristics.requires_user_approval:
            raise InvalidTransitionError(goal.id, goal.status.value, target.value)
        updated = await self._update(goal.id, status=target, **fields)
        logger.debug(f"Goal {goal.id}: {goal.status.value} -> {target.value}")
        return updated

    async def get_active_goal(self) -> Goal | None:
        active = await self.store.get_active_goals()
        return active[0] if active else None

    # ---- creation ----

    async def create_goal(
        self,
        title: str,
        description: str = "",
        tier: TierLevel | str = TierLevel.USER_DERIVED,
        *,
        deliverables: list[str] | None = None,
        auto_approved: bool = False,
        **kwargs: Any,
    ) -> Goal:
        """
        Persist a new goal in ``analysis`` and enqueue it.

        Goals whose tier requires approval move to ``waiting_approval`` and
        an approval request is opened, unless ``auto_approved`` (children
        inheriting a parent's approval).

        Args:
            title: Short goal title.
            description: Longer description; defaults to the title.
            tier: Tier level.
            deliverables: Names of deliverables to track.
            auto_approved: Skip the approval request.
            **kwargs: Further ``Goal`` attributes (type, priority, origin, ...).
        """
        if deliverables:
            criteria = kwargs.pop("success_criteria", None) or SuccessCriteria()
            criteria.deliverables.extend(GoalDeliverable(name=d) for d in deliverables)
            kwargs["success_criteria"] = criteria

        goal = Goal.create(title, description, tier, **kwargs)
        if goal.target_completion is None and goal.type in TARGET_HORIZONS:
            goal.target_completion = goal.created_at + TARGET_HORIZONS[goal.type]

        goal = await self.queue.submit(partial(self.store.create_goal, goal), "create_goal")
        log_display(logger, logging.INFO, f"New goal created: {goal.title} ({goal.tier.level.value})")
        await self.scheduler.enqueue(goal)

        if goal.characteristics.requires_user_approval and not auto_approved:
            goal = await self.submit_for_approval(goal.id)
        return goal

    async def create_from_proposal(self, proposal: GoalProposal) -> Goal:
        return await self.create_goal(
            proposal.title,
            proposal.description,
            proposal.tier,
            type=proposal.type,
            priority=proposal.priority,
            origin=proposal.origin,
            deliverables=proposal.deliverables,
            context=dict(proposal.context),
        )

    # ---- approval ----

    async def submit_for_approval(self, goal_id: str) -> Goal:
        goal = await self._get(goal_id)
        if goal.status != GoalStatus.WAITING_APPROVAL:
            goal = await self._transition(goal, GoalStatus.WAITING_APPROVAL)
        if self.approval.has_pending(goal.id):
            return goal

        message = approval_message(goal)
        await self.log_agent_interaction(
            goal.id, "lifecycle", message, interaction_type="approval_required", follow_up_required=True
        )
        await self._notify("approval_request", goal, message)
        await self.approval.open(goal.id, message)
        return goal

    async def approve(self, goal_id: str) -> Goal:
        """Explicit user approval; activates the goal."""
        if await self.approval.approve(goal_id) is None:
            goal = await self._get(goal_id)
            if goal.status != GoalStatus.WAITING_APPROVAL:
                raise InvalidTransitionError(goal_id, goal.status.value, GoalStatus.ACTIVE.value)
            await self.activate(goal_id)
        return await self._get(goal_id)

    async def reject(self, goal_id: str) -> Goal:
        """Explicit user rejection; cancels the goal."""
        if await self.approval.reject(goal_id) is None:
            goal = await self._get(goal_id)
            if goal.status != GoalStatus.WAITING_APPROVAL:
                raise InvalidTransitionError(goal_id, goal.status.value, GoalStatus.CANCELLED.value)
            await self.cancel(goal_id, reason="Rejected by user")
        return await self._get(goal_id)

    async def apply_approval(self, request: ApprovalRequest) -> None:
        """Decision callback of the approval gate."""
        goal = await self.store.get_goal(request.goal_id)
        if goal is None or goal.status != GoalStatus.WAITING_APPROVAL:
            logger.debug(f"Ignoring approval decision for goal {request.goal_id}: no longer waiting")
            return
        if request.approved:
            await self.log_thought(
                goal.id, f"Approved ({request.decided_by}); starting work on: {goal.title}", type="decision_making"
            )
            await self.activate(goal.id)
        else:
            await self.cancel(goal.id, reason=f"Rejected ({request.decided_by})")

    # ---- state changes ----

    async def activate(self, goal_id: str) -> Goal:
        async with self._lock:
            return await self._activate(goal_id)

    async def _activate(self, goal_id: str) -> Goal:
        goal = await self._get(goal_id)
        if goal.status == GoalStatus.ACTIVE:
            return goal
        if GoalStatus.ACTIVE not in ALLOWED_TRANSITIONS[goal.status]:
            raise InvalidTransitionError(goal.id, goal.status.value, GoalStatus.ACTIVE.value)

        for other in await self.store.get_active_goals():
            if other.id == goal_id:
                continue
            paused = await self._transition(other, GoalStatus.PAUSED)
            await self.log_thought(other.id, f"Paused in favour of: {goal.title}", type="strategy")
            await self.scheduler.enqueue(paused)

        goal = await self._transition(goal, GoalStatus.ACTIVE)
        await self.scheduler.remove(goal.id)
        await self.log_thought(goal.id, f"Activated goal: {goal.title}", type="planning")
        log_display(logger, logging.INFO, f"Now working on: {goal.title}")
        return goal

    async def pause(self, goal_id: str) -> Goal:
        async with self._lock:
            goal = await self._transition(await self._get(goal_id), GoalStatus.PAUSED)
            await self.scheduler.enqueue(goal)
            return goal

    async def resume(self, goal_id: str) -> Goal:
        async with self._lock:
            goal = await self._get(goal_id)
            if goal.status != GoalStatus.PAUSED:
                raise InvalidTransitionError(goal.id, goal.status.value, GoalStatus.ACTIVE.value)
            return await self._activate(goal_id)

    async def cancel(self, goal_id: str, reason: str = "Cancelled") -> Goal:
        async with self._lock:
            return await self._terminate(goal_id, GoalStatus.CANCELLED, reason)

    async def fail(self, goal_id: str, reason: str = "Failed") -> Goal:
        async with self._lock:
            return await self._terminate(goal_id, GoalStatus.FAILED, reason)

    async def _terminate(self, goal_id: str, target: GoalStatus, reason: str) -> Goal:
        goal = await self._transition(await self._get(goal_id), target)
        await self.scheduler.remove(goal_id)
        await self.log_reflection(goal_id, reason, type="obstacle_analysis")
        logger.info(f"Goal {goal_id} {target.value}: {reason}")
        return goal

    # ---- progress ----

    async def update_progress(self, goal_id: str, progress: float) -> Goal:
        """
        Raise progress (never lowers it, caps at 100).  Reaching 100
        completes the goal and activates the next one from the queue.
        """
        async with self._lock:
            goal = await self._get(goal_id)
            if goal.is_terminal:
                logger.debug(f"Ignoring progress for terminal goal {goal_id}")
                return goal
            new_progress = min(max(float(progress), goal.progress), 100.0)
            if new_progress < 100.0:
                if new_progress == goal.progress:
                    return goal
                return await self._update(goal_id, progress=new_progress)
            return await self._complete(goal)

    async def _complete(self, goal: Goal) -> Goal:
        goal = await self._transition(goal, GoalStatus.COMPLETED, progress=100.0, actual_completion=utcnow())
        await self.scheduler.remove(goal.id)
        await self.log_reflection(
            goal.id,
            f"Goal completed: {goal.title}",
            type="milestone_review",
            insights=[d.name for d in goal.success_criteria.deliverables if d.is_done],
        )
        if goal.characteristics.completion_presentation:
            message = completion_message(goal)
            await self.log_agent_interaction(
                goal.id, "lifecycle", message, interaction_type="completion_presentation"
            )
            await self._notify("completion_presentation", goal, message)
        else:
            logger.info(f"Goal completed: {goal.title}")

        if goal.parent_goal_id:
            await self._roll_up(goal.parent_goal_id)

        next_goal = await self.scheduler.dequeue_next()
        if next_goal is not None:
            await self._activate(next_goal.id)
        return await self._get(goal.id)

    async def _roll_up(self, parent_id: str) -> None:
        parent = await self.store.get_goal(parent_id)
        if parent is None or parent.is_terminal:
            return
        for child_id in parent.sub_goal_ids:
            child = await self.store.get_goal(child_id)
            if child is not None and child.status != GoalStatus.COMPLETED:
                return
        await self._record_result(
            parent_id, "Sub-goals", f"All {len(parent.sub_goal_ids)} sub-goals completed", "lifecycle"
        )
        await self.log_reflection(parent_id, "All sub-goals completed", type="milestone_review")

    async def complete_deliverable(
        self, goal_id: str, name: str, content: str | None = None, agent: str | None = None
    ) -> Goal:
        def change(goal: Goal) -> dict[str, Any]:
            criteria = goal.success_criteria
            for d in criteria.deliverables:
                if d.name == name:
                    d.status = "completed"
                    d.content = content if content is not None else d.content
                    d.created_by_agent = agent or d.created_by_agent
                    break
            else:
                criteria.deliverables.append(
                    GoalDeliverable(name=name, status="completed", content=content, created_by_agent=agent)
                )
            return {"success_criteria": criteria}

        return await self._mutate(goal_id, change, "complete_deliverable")

    async def _record_result(self, goal_id: str, name: str, content: str, agent: str) -> Goal:
        """Mark every outstanding deliverable done, or add one when there are none."""

        def change(goal: Goal) -> dict[str, Any]:
            criteria = goal.success_criteria
            if not criteria.deliverables:
                criteria.deliverables.append(
                    GoalDeliverable(name=name, status="completed", content=content, created_by_agent=agent)
                )
            for d in criteria.deliverables:
                if not d.is_done:
                    d.status = "completed"
                    d.content = d.content or content
                    d.created_by_agent = d.created_by_agent or agent
            return {"success_criteria": criteria}

        return await self._mutate(goal_id, change, "record_result")

    # ---- tier dispatch ----

    async def dispatch_tiers(self) -> dict[str, int]:
        """Run the tier handler for every active or waiting goal."""
        goals = await self.store.get_goals_by_status(GoalStatus.ACTIVE, GoalStatus.WAITING_APPROVAL)
        handlers = {
            TierLevel.USER_DERIVED: self._handle_user_goal,
            TierLevel.INTERNAL_SYSTEM: self._handle_internal_goal,
            TierLevel.CEREBRUM_AUTONOMOUS: self._handle_cerebrum_goal,
        }
        counts = {level.value: 0 for level in TierLevel}
        for level, handler in handlers.items():
            for goal in (g for g in goals if g.tier.level == level):
                counts[level.value] += 1
                try:
                    await handler(goal)
                except Exception as e:
                    logger.error(f"Tier handler failed for goal {goal.id}: {e}", exc_info=True)
        return counts

    async def _handle_user_goal(self, goal: Goal) -> None:
        if goal.status != GoalStatus.ACTIVE:
            return
        if goal.characteristics.proactive_updates:
            threshold = (goal.progress // PROGRESS_UPDATE_STEP) * PROGRESS_UPDATE_STEP
            if threshold > goal.last_progress_update:
                goal = await self._update(goal.id, last_progress_update=threshold)
                message = progress_message(goal, threshold)
                await self.log_agent_interaction(goal.id, "lifecycle", message, interaction_type="progress_update")
                await self._notify("progress_update", goal, message)
        if goal.characteristics.can_delegate_to_agents:
            await self._delegate_if_configured(goal)

    async def _handle_internal_goal(self, goal: Goal) -> None:
        if goal.status != GoalStatus.ACTIVE or not goal.characteristics.autonomous_execution:
            return
        await self._execute_autonomously(goal)

    async def _handle_cerebrum_goal(self, goal: Goal) -> None:
        if goal.status == GoalStatus.WAITING_APPROVAL:
            if goal.characteristics.requires_user_approval and not self.approval.has_pending(goal.id):
                await self.submit_for_approval(goal.id)
            return
        if goal.status != GoalStatus.ACTIVE:
            return
        if goal.characteristics.can_create_subgoals and not goal.context.get("decomposed"):
            if await self._decompose(goal):
                return
            goal = await self._get(goal.id)
        await self._execute_autonomously(goal)

    async def _execute_autonomously(self, goal: Goal) -> None:
        if goal.context.get("executed"):
            return
        if goal.characteristics.can_delegate_to_agents and await self._delegate_if_configured(goal):
            return
        await self.log_action(
            goal.id,
            f"Executed autonomous goal: {goal.title}",
            action_type="autonomous_execution",
            outcome="completed",
            effectiveness=1.0,
        )
        goal = await self._update_context(goal.id, executed=True)
        await self._record_result(goal.id, "Execution", f"Autonomous execution of {goal.title}", "lifecycle")

    # ---- delegation ----

    def _workflow_for(self, goal: Goal) -> str | None:
        workflow_id = goal.context.get("workflow_id")
        if workflow_id:
            return workflow_id
        if self.registry is None:
            return None
        matches = self.registry.find_matching_workflows(goal.title)
        return matches[0].id if matches else None

    async def _delegate_if_configured(self, goal: Goal) -> bool:
        """Run the goal's workflow once.  Returns True when a delegation happened."""
        if self.executor is None or goal.context.get("delegated_workflow_id"):
            return False
        workflow_id = self._workflow_for(goal)
        if workflow_id is None:
            return False

        goal = await self._update_context(goal.id, delegated_workflow_id=workflow_id)
        try:
            execution = await self.executor.execute(
                workflow_id, goal.description, context=f"Goal: {goal.title}"
            )
        except WorkflowError as e:
            logger.warning(f"Delegation of goal {goal.id} to {workflow_id} failed: {e}")
            await self.log_action(
                goal.id, f"Delegation to workflow {workflow_id} failed", action_type="agent_delegation",
                outcome=str(e), effectiveness=0.0,
            )
            return True

        confidences = [r.confidence for r in execution.results]
        await self.log_agent_interaction(
            goal.id,
            workflow_id,
            execution.final_output,
            interaction_type="workflow_result",
            metadata={
                "execution_id": execution.id,
                "status": execution.status.value,
                "agents_involved": list(execution.agents_involved),
                "duration_ms": execution.duration_ms,
            },
        )
        await self.log_action(
            goal.id,
            f"Delegated to workflow {workflow_id}",
            action_type="agent_delegation",
            outcome=execution.status.value,
            effectiveness=sum(confidences) / len(confidences) if confidences else 0.0,
        )
        goal = await self._update_context(goal.id, delegated_execution_id=execution.id)
        if execution.status == ExecutionStatus.COMPLETED:
            await self._record_result(goal.id, workflow_id, execution.final_output, workflow_id)
        return True

    # ---- decomposition ----

    async def _decompose(self, parent: Goal) -> bool:
        """Create children once; the parent is paused until they complete."""
        titles = self.decomposition.match(parent)
        parent = await self._update_context(parent.id, decomposed=True)
        if not titles:
            return False

        children = []
        for title in titles:
            child = await self.create_goal(
                title,
                f'Sub-goal of "{parent.title}": {title}',
                parent.tier.level,
                type=GoalType.MICRO_TASK,
                priority=max(1, parent.priority - 1),
                parent_goal_id=parent.id,
                origin=GoalOrigin(
                    source=OriginSource.CEREBRUM_ANALYSIS,
                    confidence=SUBGOAL_CONFIDENCE,
                    evidence=[f"Autonomous sub-goal creation for {parent.title}"],
                    creator_agent="lifecycle",
                ),
                success_criteria=SuccessCriteria(
                    description=f"Complete {title} as part of {parent.title}",
                    completion_conditions=["Task completed", "Quality validated"],
                ),
                context={"decomposed": True},
                auto_approved=True,
            )
            children.append(child.id)

        async with self._lock:
            parent = await self._get(parent.id)
            parent = await self._update(
                parent.id,
                sub_goal_ids=parent.sub_goal_ids + children,
                blocking_dependencies=parent.blocking_dependencies + children,
            )
            if parent.status == GoalStatus.ACTIVE:
                parent = await self._transition(parent, GoalStatus.PAUSED)
                await self.scheduler.enqueue(parent)
        await self.log_thought(
            parent.id,
            f"Decomposed into {len(children)} sub-goals: {', '.join(titles)}",
            type="planning",
        )
        logger.info(f"Goal {parent.id} decomposed into {len(children)} sub-goals")
        return True

    # ---- analysis ----

    async def analyze_and_create_goals(self) -> list[Goal]:
        """Ask the analyzer for proposals and create them.  Never raises."""
        if self.analyzer is None:
            return []
        try:
            existing = await self.store.get_goals_by_status(
                GoalStatus.ANALYSIS, GoalStatus.WAITING_APPROVAL, GoalStatus.ACTIVE, GoalStatus.PAUSED
            )
            context = {
                "active_goals": [g.title for g in existing if g.status == GoalStatus.ACTIVE],
                "open_goal_count": len(existing),
                "queue_length": len(self.scheduler),
            }
            proposals = await self.analyzer.analyze(context)
            seen = {g.title.lower() for g in existing}
            created = []
            for proposal in proposals:
                if proposal.title.lower() in seen:
                    logger.debug(f"Skipping duplicate proposal: {proposal.title}")
                    continue
                seen.add(proposal.title.lower())
                created.append(await self.create_from_proposal(proposal))
        except Exception as e:
            logger.error(f"Goal analysis failed: {e}", exc_info=True)
            return []
        if created:
            logger.info(f"Goal analysis created {len(created)} goals")
        return created

    # ---- logs ----

    async def log_reflection(self, goal_id: str, content: str, type: str = "progress_assessment", **kwargs: Any) -> GoalReflection:
        entry = GoalReflection(goal_id=goal_id, content=content, type=type, **kwargs)
        await self.queue.submit(partial(self.store.add_reflection, entry), "add_reflection")
        return entry

    async def log_thought(self, goal_id: str, content: str, type: str = "planning", **kwargs: Any) -> GoalThought:
        entry = GoalThought(goal_id=goal_id, content=content, type=type, **kwargs)
        await self.queue.submit(partial(self.store.add_thought, entry), "add_thought")
        return entry

    async def log_action(self, goal_id: str, description: str, **kwargs: Any) -> GoalAction:
        entry = GoalAction(goal_id=goal_id, description=description, **kwargs)
        await self.queue.submit(partial(self.store.add_action, entry), "add_action")
        return entry

    async def log_agent_interaction(self, goal_id: str, agent_name: str, content: str, **kwargs: Any) -> AgentInteraction:
        entry = AgentInteraction(goal_id=goal_id, agent_name=agent_name, content=content, **kwargs)
        await self.queue.submit(partial(self.store.add_agent_interaction, entry), "add_agent_interaction")
        return entry

    # ---- notifications ----

    async def _notify(self, kind: str, goal: Goal, message: str) -> None:
        log_display(logger, logging.INFO, f"[{kind}] {message}")
        if self.notifier is None:
            return
        try:
            result = self.notifier(kind, goal, message)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Notification handler error: {e}")

    def get_status(self) -> dict[str, Any]:
        return {
            "queue_length": len(self.scheduler),
            "approval": self.approval.get_status(),
            "write_queue": self.queue.get_status(),
            "decomposition_rules": [r.name for r in self.decomposition.rules],
        }
