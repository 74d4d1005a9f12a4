# tests/test_engine.py
"""
Tests for GoalEngine wiring.

Tests cover:
    - construction from a config dict with an injected provider
    - catalogue seeding and worker/workflow invocation through the engine
    - the goal API (create, approve, reject, progress, listing, metrics)
    - background cycles started and stopped by the engine
    - persistence of goals and queue across engine restarts
    - provider selection when none is injected
"""

import asyncio

import pytest
import pytest_asyncio

from goalcore import GoalEngine
from goalcore.autonomous import GoalStatus
from goalcore.providers import CachedCompletionProvider


@pytest.fixture
def engine_config(tmp_path):
    return {
        "storage": {"db_path": str(tmp_path / "goals.db")},
        "agents": {"config_dir": str(tmp_path / "agents"), "invocation_timeout": 1.0},
        "cache": {"enabled": False},
        "approval": {"timeout_seconds": 30},
        "coordinator": {
            "base_interval": 0.02,
            "reflection_interval": 0.05,
            "processing_interval": 0.05,
            "tier_dispatch_interval": 0.05,
        },
    }


@pytest_asyncio.fixture
async def engine(engine_config, fake_provider):
    engine = await GoalEngine.create(config_dict=engine_config, provider=fake_provider)
    yield engine
    await engine.close()


class TestConstruction:
    @pytest.mark.asyncio
    async def test_create_initializes(self, engine):
        status = engine.get_status()
        assert status["initialized"] is True
        assert status["provider"] == "fake"
        assert status["agents"]["workers"]["total"] == 4
        assert status["agents"]["workflows"]["total"] == 3
        assert status["queue"] == []

    @pytest.mark.asyncio
    async def test_close_releases_provider(self, engine_config, fake_provider):
        engine = await GoalEngine.create(config_dict=engine_config, provider=fake_provider)
        await engine.close()
        assert fake_provider.closed
        assert engine.get_status()["initialized"] is False

    @pytest.mark.asyncio
    async def test_async_context_manager(self, engine_config, fake_provider):
        from goalcore.config import load_config

        async with GoalEngine.from_config(load_config(config_dict=engine_config), provider=fake_provider) as engine:
            assert engine.get_status()["initialized"] is True
        assert fake_provider.closed

    def test_default_provider_is_cached_ollama(self, engine_config, tmp_path):
        from goalcore.config import load_config

        engine_config["cache"] = {"enabled": True, "path": str(tmp_path / "cache.json")}
        engine = GoalEngine.from_config(load_config(config_dict=engine_config))
        assert isinstance(engine.provider, CachedCompletionProvider)
        assert engine.provider.get_name() == "cached:ollama"

    def test_uncached_ollama_provider(self, engine_config):
        from goalcore.config import load_config

        engine = GoalEngine.from_config(load_config(config_dict=engine_config))
        assert engine.provider.get_name() == "ollama"
        assert not isinstance(engine.provider, CachedCompletionProvider)


class TestAgents:
    @pytest.mark.asyncio
    async def test_invoke_seeded_worker(self, engine, fake_provider):
        response = await engine.invoke_worker("logical_analyst", "Is this sound?")
        assert response.agent_id == "logical_analyst"
        assert response.response.endswith("says ok")
        assert len(fake_provider.calls) == 1

    @pytest.mark.asyncio
    async def test_execute_seeded_workflow(self, engine):
        execution = await engine.execute_workflow("code_review_workflow", "def f(): pass")
        assert execution.status.value == "completed"
        assert set(execution.agents_involved) == {
            "code_reviewer",
            "logical_analyst",
            "creative_thinker",
            "practical_implementer",
            "synthesis_coordinator",
        }
        assert engine.get_status()["active_executions"] == []


class TestGoals:
    @pytest.mark.asyncio
    async def test_user_goal_flow(self, engine):
        goal = await engine.create_goal("Summarize meeting notes", deliverables=["Summary"])
        assert [e["goal_id"] for e in engine.get_status()["queue"]] == [goal.id]

        await engine.lifecycle.activate(goal.id)
        await engine.update_progress(goal.id, 100)

        done = await engine.get_goal(goal.id)
        assert done.status == GoalStatus.COMPLETED
        metrics = await engine.get_goal_metrics()
        assert metrics["completed_goals"] == 1

    @pytest.mark.asyncio
    async def test_approve_and_reject(self, engine):
        kept = await engine.create_goal("Study chess openings", tier="cerebrum_autonomous")
        dropped = await engine.create_goal("Reorganize files", tier="cerebrum_autonomous")
        assert kept.status == GoalStatus.WAITING_APPROVAL

        await engine.approve(kept.id)
        await engine.reject(dropped.id)

        assert (await engine.get_active_goal()).id == kept.id
        cancelled = await engine.list_goals(GoalStatus.CANCELLED)
        assert [g.id for g in cancelled] == [dropped.id]
        assert len(await engine.list_goals()) == 2

    @pytest.mark.asyncio
    async def test_notifier_receives_approval_request(self, engine_config, fake_provider):
        received = []
        engine = await GoalEngine.create(
            config_dict=engine_config,
            provider=fake_provider,
            notifier=lambda kind, goal, message: received.append(kind),
        )
        try:
            await engine.create_goal("Learn knitting", tier="cerebrum_autonomous")
        finally:
            await engine.close()
        assert received == ["approval_request"]


class TestBackground:
    @pytest.mark.asyncio
    async def test_cycles_activate_and_dispatch(self, engine):
        goal = await engine.create_goal("Vacuum database", tier="internal_system")

        await engine.start()
        await asyncio.sleep(0.3)
        await engine.stop()

        stored = await engine.get_goal(goal.id)
        assert stored.status == GoalStatus.COMPLETED
        assert stored.context["executed"] is True
        assert engine.get_status()["coordinator"]["last_reflection"] is not None

    @pytest.mark.asyncio
    async def test_coordinator_disabled(self, engine_config, fake_provider):
        engine_config["coordinator"]["enabled"] = False
        engine = await GoalEngine.create(config_dict=engine_config, provider=fake_provider)
        try:
            await engine.start()
            assert not engine.coordinator.is_running
        finally:
            await engine.close()


@pytest.mark.asyncio
async def test_goals_and_queue_survive_restart(engine_config, fake_provider):
    engine = await GoalEngine.create(config_dict=engine_config, provider=fake_provider)
    low = await engine.create_goal("low", priority=2)
    high = await engine.create_goal("high", priority=9)
    await engine.close()

    restarted = await GoalEngine.create(config_dict=engine_config, provider=fake_provider)
    try:
        assert {g.id for g in await restarted.list_goals()} == {low.id, high.id}
        assert [e.goal_id for e in restarted.scheduler.snapshot()] == [high.id, low.id]
    finally:
        await restarted.close()
