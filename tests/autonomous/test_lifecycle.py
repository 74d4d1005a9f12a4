# tests/autonomous/test_lifecycle.py
"""
Test suite for the tiered lifecycle controller.

Tests cover:
    - creation per tier (queueing, target horizons, approval requests)
    - approval: explicit approve/reject and timeout auto-approval
    - the single-active-goal rule and re-activation
    - progress clamping, completion and activation of the next goal
    - illegal transitions
    - tier dispatch: 25% progress notifications, delegation to workflows,
      autonomous execution, one-time decomposition with parent roll-up
    - goal-creation analysis with duplicate suppression
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from goalcore.agents.workflow import WorkflowExecutor
from goalcore.autonomous.analysis import GoalProposal
from goalcore.autonomous.approval import ApprovalGate
from goalcore.autonomous.goals import Goal, GoalOrigin, GoalStatus, GoalType, TierLevel
from goalcore.autonomous.lifecycle import ALLOWED_TRANSITIONS, LifecycleController, approval_message
from goalcore.exceptions import GoalNotFoundError, InvalidTransitionError

CEREBRUM = TierLevel.CEREBRUM_AUTONOMOUS


async def _active(lifecycle, title="goal", **kwargs):
    goal = await lifecycle.create_goal(title, **kwargs)
    return await lifecycle.activate(goal.id)


# =============================================================================
# Creation
# =============================================================================


class TestCreateGoal:
    @pytest.mark.asyncio
    async def test_user_goal_queued_in_analysis(self, lifecycle, scheduler):
        goal = await lifecycle.create_goal("Summarize the report", deliverables=["Summary"])

        assert goal.status == GoalStatus.ANALYSIS
        assert goal.id in scheduler
        assert goal.target_completion - goal.created_at == timedelta(days=1)
        assert [d.name for d in goal.success_criteria.deliverables] == ["Summary"]

    @pytest.mark.asyncio
    async def test_long_term_horizon(self, lifecycle):
        goal = await lifecycle.create_goal("Learn Go", type=GoalType.LONG_TERM)
        assert goal.target_completion - goal.created_at == timedelta(days=30)

    @pytest.mark.asyncio
    async def test_cerebrum_goal_waits_for_approval(self, lifecycle, approval_gate, notifications, goal_store):
        goal = await lifecycle.create_goal(
            "Build a neural network library in JavaScript",
            tier=CEREBRUM,
            origin=GoalOrigin(confidence=0.85, evidence=["a", "b", "c"]),
        )

        assert goal.status == GoalStatus.WAITING_APPROVAL
        assert approval_gate.has_pending(goal.id)
        kind, goal_id, message = notifications[-1]
        assert (kind, goal_id) == ("approval_request", goal.id)
        assert "3 pieces of evidence with 85% confidence" in message
        stored = await goal_store.get_goal(goal.id)
        assert stored.agent_interactions[-1].interaction_type == "approval_required"

    @pytest.mark.asyncio
    async def test_auto_approved_skips_request(self, lifecycle, approval_gate):
        goal = await lifecycle.create_goal("child", tier=CEREBRUM, auto_approved=True)
        assert goal.status == GoalStatus.ANALYSIS
        assert not approval_gate.has_pending(goal.id)


# =============================================================================
# Approval
# =============================================================================


class TestApproval:
    @pytest.mark.asyncio
    async def test_approve_activates(self, lifecycle, scheduler):
        goal = await lifecycle.create_goal("Self goal", tier=CEREBRUM)

        approved = await lifecycle.approve(goal.id)

        assert approved.status == GoalStatus.ACTIVE
        assert goal.id not in scheduler
        assert any(t.type == "decision_making" for t in approved.thoughts)

    @pytest.mark.asyncio
    async def test_reject_cancels_and_never_activates(self, lifecycle, scheduler):
        goal = await lifecycle.create_goal("Self goal", tier=CEREBRUM)

        rejected = await lifecycle.reject(goal.id)

        assert rejected.status == GoalStatus.CANCELLED
        assert goal.id not in scheduler
        assert not any("Activated" in t.content for t in rejected.thoughts)
        assert await lifecycle.get_active_goal() is None

    @pytest.mark.asyncio
    async def test_timeout_auto_approves(self, goal_store, scheduler, write_queue):
        gate = ApprovalGate(timeout_seconds=0.05)
        lifecycle = LifecycleController(goal_store, scheduler, write_queue=write_queue, approval=gate)
        goal = await lifecycle.create_goal("Self goal", tier=CEREBRUM)

        await asyncio.sleep(0.3)

        assert (await goal_store.get_goal(goal.id)).status == GoalStatus.ACTIVE
        assert gate.get_request(goal.id).decided_by == "timeout"
        await gate.close()

    @pytest.mark.asyncio
    async def test_approve_non_waiting_goal_raises(self, lifecycle):
        goal = await lifecycle.create_goal("plain")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.approve(goal.id)

    @pytest.mark.asyncio
    async def test_late_decision_ignored(self, lifecycle, approval_gate):
        goal = await lifecycle.create_goal("Self goal", tier=CEREBRUM)
        await lifecycle.cancel(goal.id, reason="user changed mind")
        request = await approval_gate.approve(goal.id)

        assert request.approved
        assert (await lifecycle.store.get_goal(goal.id)).status == GoalStatus.CANCELLED

    def test_approval_message_rounds_confidence(self):
        goal = Goal.create("X", origin=GoalOrigin(confidence=0.846))
        assert "85% confidence" in approval_message(goal)


# =============================================================================
# Single active goal
# =============================================================================


class TestActivation:
    @pytest.mark.asyncio
    async def test_activating_pauses_current(self, lifecycle, scheduler, goal_store):
        first = await _active(lifecycle, "first")
        second = await _active(lifecycle, "second")

        assert second.status == GoalStatus.ACTIVE
        paused = await goal_store.get_goal(first.id)
        assert paused.status == GoalStatus.PAUSED
        assert first.id in scheduler
        assert [g.id for g in await goal_store.get_active_goals()] == [second.id]

    @pytest.mark.asyncio
    async def test_reactivating_active_goal_is_noop(self, lifecycle, goal_store):
        goal = await _active(lifecycle)
        again = await lifecycle.activate(goal.id)

        assert again.status == GoalStatus.ACTIVE
        thoughts = (await goal_store.get_goal(goal.id)).thoughts
        assert sum(1 for t in thoughts if t.content.startswith("Activated")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_activations_leave_one_active(self, lifecycle, goal_store):
        goals = [await lifecycle.create_goal(f"g{i}") for i in range(4)]
        await asyncio.gather(*(lifecycle.activate(g.id) for g in goals))
        assert len(await goal_store.get_active_goals()) == 1

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, lifecycle, scheduler):
        goal = await _active(lifecycle)
        paused = await lifecycle.pause(goal.id)
        assert paused.status == GoalStatus.PAUSED
        assert goal.id in scheduler

        resumed = await lifecycle.resume(goal.id)
        assert resumed.status == GoalStatus.ACTIVE
        assert goal.id not in scheduler

    @pytest.mark.asyncio
    async def test_unknown_goal(self, lifecycle):
        with pytest.raises(GoalNotFoundError):
            await lifecycle.activate("goal_missing")


# =============================================================================
# Transitions
# =============================================================================


class TestTransitions:
    def test_terminal_states_have_no_exits(self):
        for status in (GoalStatus.COMPLETED, GoalStatus.FAILED, GoalStatus.CANCELLED):
            assert ALLOWED_TRANSITIONS[status] == frozenset()

    @pytest.mark.asyncio
    async def test_resume_requires_paused(self, lifecycle):
        goal = await lifecycle.create_goal("t")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.resume(goal.id)

    @pytest.mark.asyncio
    async def test_completed_goal_cannot_be_reactivated(self, lifecycle):
        goal = await _active(lifecycle)
        await lifecycle.update_progress(goal.id, 100)
        with pytest.raises(InvalidTransitionError):
            await lifecycle.activate(goal.id)
        with pytest.raises(InvalidTransitionError):
            await lifecycle.pause(goal.id)

    @pytest.mark.asyncio
    async def test_completing_inactive_goal_raises(self, lifecycle):
        goal = await lifecycle.create_goal("t")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.update_progress(goal.id, 100)

    @pytest.mark.asyncio
    async def test_user_goal_cannot_wait_for_approval(self, lifecycle):
        goal = await lifecycle.create_goal("t")
        with pytest.raises(InvalidTransitionError):
            await lifecycle.submit_for_approval(goal.id)

    @pytest.mark.asyncio
    async def test_cancel_and_fail(self, lifecycle, scheduler):
        a = await lifecycle.create_goal("a")
        b = await _active(lifecycle, "b")

        cancelled = await lifecycle.cancel(a.id, reason="not needed")
        failed = await lifecycle.fail(b.id, reason="blocked")

        assert cancelled.status == GoalStatus.CANCELLED
        assert failed.status == GoalStatus.FAILED
        assert a.id not in scheduler
        assert (await lifecycle.store.get_goal(a.id)).reflections[-1].content == "not needed"


# =============================================================================
# Progress and completion
# =============================================================================


class TestProgress:
    @pytest.mark.asyncio
    async def test_progress_never_decreases(self, lifecycle):
        goal = await _active(lifecycle)
        await lifecycle.update_progress(goal.id, 40)
        goal = await lifecycle.update_progress(goal.id, 20)
        assert goal.progress == 40

    @pytest.mark.asyncio
    async def test_completion_activates_next_goal(self, lifecycle, notifications):
        current = await _active(lifecycle, "current", deliverables=["Report"])
        waiting = await lifecycle.create_goal("next")

        done = await lifecycle.update_progress(current.id, 120)

        assert done.status == GoalStatus.COMPLETED
        assert done.progress == 100.0
        assert done.actual_completion is not None
        assert (await lifecycle.get_active_goal()).id == waiting.id
        assert ("completion_presentation", current.id) in [(k, g) for k, g, _ in notifications]

    @pytest.mark.asyncio
    async def test_internal_goal_completion_not_presented(self, lifecycle, notifications):
        goal = await _active(lifecycle, "cleanup", tier=TierLevel.INTERNAL_SYSTEM)
        await lifecycle.update_progress(goal.id, 100)
        assert not any(k == "completion_presentation" for k, _, _ in notifications)

    @pytest.mark.asyncio
    async def test_terminal_goal_progress_ignored(self, lifecycle):
        goal = await lifecycle.create_goal("t")
        await lifecycle.cancel(goal.id)
        assert (await lifecycle.update_progress(goal.id, 50)).progress == 0.0

    @pytest.mark.asyncio
    async def test_complete_deliverable(self, lifecycle):
        goal = await lifecycle.create_goal("t", deliverables=["A", "B"])
        goal = await lifecycle.complete_deliverable(goal.id, "A", content="done", agent="w")
        goal = await lifecycle.complete_deliverable(goal.id, "C")

        by_name = {d.name: d for d in goal.success_criteria.deliverables}
        assert by_name["A"].status == "completed" and by_name["A"].content == "done"
        assert by_name["B"].status == "not_started"
        assert by_name["C"].status == "completed"

    @pytest.mark.asyncio
    async def test_concurrent_deliverable_completions_both_kept(self, lifecycle, goal_store):
        goal = await lifecycle.create_goal("t", deliverables=["a", "b"])

        await asyncio.gather(
            lifecycle.complete_deliverable(goal.id, "a"),
            lifecycle.complete_deliverable(goal.id, "b"),
        )

        stored = await goal_store.get_goal(goal.id)
        assert {d.name: d.status for d in stored.success_criteria.deliverables} == {
            "a": "completed",
            "b": "completed",
        }

    @pytest.mark.asyncio
    async def test_complete_deliverable_unknown_goal(self, lifecycle):
        with pytest.raises(GoalNotFoundError):
            await lifecycle.complete_deliverable("missing", "a")


# =============================================================================
# Tier dispatch
# =============================================================================


class TestUserTier:
    @pytest.mark.asyncio
    async def test_progress_notifications_every_quarter(self, lifecycle, notifications):
        goal = await _active(lifecycle, "report")
        await lifecycle.update_progress(goal.id, 30)

        await lifecycle.dispatch_tiers()
        await lifecycle.dispatch_tiers()
        await lifecycle.update_progress(goal.id, 55)
        await lifecycle.dispatch_tiers()

        updates = [m for k, _, m in notifications if k == "progress_update"]
        assert len(updates) == 2
        assert "25% complete" in updates[0]
        assert "50% complete" in updates[1]
        assert (await lifecycle.store.get_goal(goal.id)).last_progress_update == 50

    @pytest.mark.asyncio
    async def test_no_notification_below_first_step(self, lifecycle, notifications):
        goal = await _active(lifecycle, "report")
        await lifecycle.update_progress(goal.id, 10)
        await lifecycle.dispatch_tiers()
        assert not any(k == "progress_update" for k, _, _ in notifications)


class TestDelegation:
    @pytest.fixture
    def delegating(self, goal_store, scheduler, write_queue, approval_gate, registry):
        for key in ("a", "b"):
            registry.create_worker(key, name=key.upper(), role="r", specialization="s", model=f"model-{key}")
        registry.create_workflow(
            "wf_research",
            name="Research",
            steps=[{"id": "s1", "type": "parallel", "agents": ["a", "b"]}],
            triggers=["investigate"],
        )
        return LifecycleController(
            goal_store,
            scheduler,
            write_queue=write_queue,
            approval=approval_gate,
            executor=WorkflowExecutor(registry),
            registry=registry,
        )

    @pytest.mark.asyncio
    async def test_configured_workflow_runs_once(self, delegating, fake_provider):
        goal = await _active(delegating, "Compare databases", context={"workflow_id": "wf_research"})

        await delegating.dispatch_tiers()
        await delegating.dispatch_tiers()

        stored = await delegating.store.get_goal(goal.id)
        results = [i for i in stored.agent_interactions if i.interaction_type == "workflow_result"]
        assert len(results) == 1
        assert results[0].agent_name == "wf_research"
        assert results[0].metadata["status"] == "completed"
        assert sorted(results[0].metadata["agents_involved"]) == ["a", "b", "synthesis_coordinator"]
        assert stored.context["delegated_workflow_id"] == "wf_research"
        assert stored.deliverable_completion() == 1.0
        delegation = [a for a in stored.actions_taken if a.action_type == "agent_delegation"]
        assert len(delegation) == 1 and delegation[0].effectiveness > 0
        # two workers plus synthesis
        assert len(fake_provider.calls) == 3

    @pytest.mark.asyncio
    async def test_trigger_phrase_selects_workflow(self, delegating):
        goal = await _active(delegating, "Investigate vector stores")
        await delegating.dispatch_tiers()
        stored = await delegating.store.get_goal(goal.id)
        assert stored.context["delegated_workflow_id"] == "wf_research"

    @pytest.mark.asyncio
    async def test_unknown_workflow_logged_as_failed_action(self, delegating):
        goal = await _active(delegating, "Compare", context={"workflow_id": "wf_missing"})
        await delegating.dispatch_tiers()
        stored = await delegating.store.get_goal(goal.id)
        assert stored.actions_taken[-1].effectiveness == 0.0
        assert "failed" in stored.actions_taken[-1].description
        assert stored.status == GoalStatus.ACTIVE


class TestInternalTier:
    @pytest.mark.asyncio
    async def test_executed_autonomously_once(self, lifecycle, goal_store):
        goal = await _active(lifecycle, "Compact database", tier=TierLevel.INTERNAL_SYSTEM)

        await lifecycle.dispatch_tiers()
        await lifecycle.dispatch_tiers()

        stored = await goal_store.get_goal(goal.id)
        assert stored.context["executed"] is True
        assert len([a for a in stored.actions_taken if a.action_type == "autonomous_execution"]) == 1
        assert stored.deliverable_completion() == 1.0


class TestCerebrumTier:
    @pytest.mark.asyncio
    async def test_business_plan_decomposition(self, lifecycle, goal_store, scheduler):
        parent = await lifecycle.create_goal(
            "Write a business plan for a bakery", tier=CEREBRUM, priority=7, deliverables=["Plan"]
        )
        await lifecycle.approve(parent.id)

        counts = await lifecycle.dispatch_tiers()
        await lifecycle.dispatch_tiers()

        assert counts["cerebrum_autonomous"] == 1
        stored = await goal_store.get_goal(parent.id)
        children = [await goal_store.get_goal(cid) for cid in stored.sub_goal_ids]
        assert len(children) == 6
        assert [c.title for c in children][0] == "Market research and analysis"
        assert all(c.priority == 6 for c in children)
        assert all(c.type == GoalType.MICRO_TASK for c in children)
        assert all(c.parent_goal_id == parent.id for c in children)
        assert all(c.status == GoalStatus.ANALYSIS for c in children)
        assert all(c.origin.confidence == 0.8 for c in children)
        assert stored.status == GoalStatus.PAUSED
        assert stored.blocking_dependencies == stored.sub_goal_ids
        assert parent.id in scheduler

    @pytest.mark.asyncio
    async def test_parent_resumes_after_children_complete(self, lifecycle, goal_store):
        parent = await lifecycle.create_goal(
            "Write a business plan", tier=CEREBRUM, priority=7, deliverables=["Plan"]
        )
        await lifecycle.approve(parent.id)
        await lifecycle.dispatch_tiers()
        child_ids = (await goal_store.get_goal(parent.id)).sub_goal_ids

        for child_id in child_ids:
            await lifecycle.activate(child_id)
            await lifecycle.update_progress(child_id, 100)

        stored = await goal_store.get_goal(parent.id)
        assert stored.deliverable_completion() == 1.0
        assert stored.status == GoalStatus.ACTIVE
        assert any(r.content == "All sub-goals completed" for r in stored.reflections)

    @pytest.mark.asyncio
    async def test_goal_without_rule_executes(self, lifecycle, goal_store):
        goal = await lifecycle.create_goal("Tidy notes", tier=CEREBRUM)
        await lifecycle.approve(goal.id)

        await lifecycle.dispatch_tiers()

        stored = await goal_store.get_goal(goal.id)
        assert stored.sub_goal_ids == []
        assert stored.context["decomposed"] is True
        assert stored.context["executed"] is True


# =============================================================================
# Goal-creation analysis
# =============================================================================


class _StubAnalyzer:
    def __init__(self, proposals=None, error=None):
        self.proposals = proposals or []
        self.error = error
        self.contexts = []

    async def analyze(self, context):
        self.contexts.append(context)
        if self.error:
            raise self.error
        return list(self.proposals)


def _proposal(title):
    return GoalProposal(
        title=title,
        description=f"About {title}",
        tier=TierLevel.INTERNAL_SYSTEM,
        type=GoalType.SHORT_TERM,
        priority=4,
        origin=GoalOrigin(confidence=0.9),
        deliverables=["Notes"],
    )


class TestAnalysis:
    @pytest.mark.asyncio
    async def test_creates_proposals_skipping_duplicates(self, lifecycle):
        await lifecycle.create_goal("Learn Rust")
        lifecycle.analyzer = _StubAnalyzer([_proposal("learn rust"), _proposal("Clean cache"), _proposal("Clean Cache")])

        created = await lifecycle.analyze_and_create_goals()

        assert [g.title for g in created] == ["Clean cache"]
        assert created[0].tier.level == TierLevel.INTERNAL_SYSTEM
        assert lifecycle.analyzer.contexts[0]["open_goal_count"] == 1

    @pytest.mark.asyncio
    async def test_analyzer_failure_returns_empty(self, lifecycle):
        lifecycle.analyzer = _StubAnalyzer(error=RuntimeError("model offline"))
        assert await lifecycle.analyze_and_create_goals() == []

    @pytest.mark.asyncio
    async def test_empty_queue_hook_wired_to_analysis(self, lifecycle, scheduler):
        lifecycle.analyzer = _StubAnalyzer([_proposal("Rotate logs")])

        assert await scheduler.dequeue_next() is None
        assert len(scheduler) == 1

    @pytest.mark.asyncio
    async def test_async_notifier_awaited(self, goal_store, scheduler, write_queue, approval_gate):
        notifier = AsyncMock()
        lifecycle = LifecycleController(
            goal_store, scheduler, write_queue=write_queue, approval=approval_gate, notifier=notifier
        )
        goal = await lifecycle.create_goal("Self goal", tier=CEREBRUM)
        notifier.assert_awaited_once()
        assert notifier.await_args.args[0] == "approval_request"
        assert notifier.await_args.args[1].id == goal.id

    @pytest.mark.asyncio
    async def test_notifier_errors_do_not_break_lifecycle(self, goal_store, scheduler, write_queue, approval_gate):
        def broken(kind, goal, message):
            raise RuntimeError("UI gone")

        lifecycle = LifecycleController(
            goal_store, scheduler, write_queue=write_queue, approval=approval_gate, notifier=broken
        )
        goal = await lifecycle.create_goal("Self goal", tier=CEREBRUM)
        assert goal.status == GoalStatus.WAITING_APPROVAL
