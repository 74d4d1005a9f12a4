# tests/autonomous/test_heartbeat.py
"""
Test suite for the heartbeat driving the background cycles.

Tests cover:
    - CycleTask: scheduling, circuit breaker, serialization
    - HeartbeatManager: registration, manual ticks, error isolation and
      callbacks, circuit breaking and re-enabling, start/stop, pause/resume,
      status reporting
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from goalcore.autonomous.goals import utcnow
from goalcore.autonomous.heartbeat import CycleTask, HeartbeatManager

# =============================================================================
# CycleTask
# =============================================================================


class TestCycleTask:
    """Scheduling state of a single cycle."""

    def _make_task(self, **kwargs) -> CycleTask:
        defaults = {"name": "cycle", "callback": AsyncMock(), "interval": timedelta(seconds=60)}
        defaults.update(kwargs)
        return CycleTask(**defaults)

    def test_defaults(self):
        task = self._make_task()
        assert task.enabled is True
        assert task.max_consecutive_errors == 5
        assert task.run_count == 0
        assert task.next_run is None

    def test_new_task_is_due(self):
        assert self._make_task().is_due(utcnow())

    def test_disabled_task_not_due(self):
        assert not self._make_task(enabled=False).is_due(utcnow())

    def test_due_after_interval(self):
        task = self._make_task()
        now = utcnow()
        task.mark_ran(now)

        assert task.run_count == 1
        assert task.next_run == now + timedelta(seconds=60)
        assert not task.is_due(now + timedelta(seconds=59))
        assert task.is_due(now + timedelta(seconds=60))

    def test_circuit_breaker(self):
        task = self._make_task(max_consecutive_errors=2)
        task.consecutive_errors = 2
        assert task.is_circuit_broken
        assert not task.is_due(utcnow())

        task.reset_circuit_breaker()
        assert not task.is_circuit_broken
        assert task.last_error is None

    def test_to_dict(self):
        task = self._make_task(description="Reflect")
        task.mark_ran(utcnow())
        data = task.to_dict()
        assert data["interval_seconds"] == 60.0
        assert data["run_count"] == 1
        assert data["next_run"] is not None
        assert data["is_circuit_broken"] is False
        assert data["description"] == "Reflect"


# =============================================================================
# HeartbeatManager
# =============================================================================


class TestRegistration:
    def test_register_and_list(self, heartbeat_manager):
        heartbeat_manager.register(CycleTask("a", AsyncMock(), timedelta(seconds=1)))
        heartbeat_manager.register(CycleTask("b", AsyncMock(), timedelta(seconds=1)))
        assert heartbeat_manager.list_tasks() == ["a", "b"]
        assert heartbeat_manager.get_task("a").name == "a"

    def test_duplicate_name_rejected(self, heartbeat_manager):
        heartbeat_manager.register(CycleTask("a", AsyncMock(), timedelta(seconds=1)))
        with pytest.raises(ValueError):
            heartbeat_manager.register(CycleTask("a", AsyncMock(), timedelta(seconds=2)))

    def test_unregister(self, heartbeat_manager):
        heartbeat_manager.register(CycleTask("a", AsyncMock(), timedelta(seconds=1)))
        heartbeat_manager.unregister("a")
        heartbeat_manager.unregister("a")
        assert heartbeat_manager.get_task("a") is None

    def test_enable_unknown_task(self, heartbeat_manager):
        with pytest.raises(ValueError):
            heartbeat_manager.enable_task("missing")


class TestTick:
    @pytest.mark.asyncio
    async def test_runs_due_tasks_and_collects_results(self, heartbeat_manager):
        heartbeat_manager.register(CycleTask("a", AsyncMock(return_value=1), timedelta(seconds=10)))
        heartbeat_manager.register(CycleTask("b", AsyncMock(return_value=2), timedelta(seconds=60)))
        now = utcnow()

        assert await heartbeat_manager.tick(now) == {"a": 1, "b": 2}
        assert await heartbeat_manager.tick(now + timedelta(seconds=5)) == {}
        assert await heartbeat_manager.tick(now + timedelta(seconds=10)) == {"a": 1}
        assert heartbeat_manager.get_due_tasks(now + timedelta(seconds=60)) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_failure_isolated(self, heartbeat_manager):
        ok = AsyncMock(return_value="fine")
        heartbeat_manager.register(CycleTask("bad", AsyncMock(side_effect=RuntimeError("x")), timedelta(seconds=1)))
        heartbeat_manager.register(CycleTask("good", ok, timedelta(seconds=1)))

        results = await heartbeat_manager.tick()

        assert results == {"bad": None, "good": "fine"}
        bad = heartbeat_manager.get_task("bad")
        assert bad.error_count == 1
        assert bad.last_error == "RuntimeError: x"
        ok.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_error_callbacks(self, heartbeat_manager):
        seen = AsyncMock()
        broken = AsyncMock(side_effect=RuntimeError("callback down"))
        heartbeat_manager.on_error(broken)
        heartbeat_manager.on_error(seen)
        heartbeat_manager.register(CycleTask("bad", AsyncMock(side_effect=ValueError("v")), timedelta(seconds=1)))

        await heartbeat_manager.tick()

        name, error = seen.await_args.args
        assert name == "bad"
        assert isinstance(error, ValueError)

    @pytest.mark.asyncio
    async def test_circuit_breaker_opens_and_resets_on_enable(self, heartbeat_manager):
        callback = AsyncMock(side_effect=RuntimeError("down"))
        heartbeat_manager.register(CycleTask("flaky", callback, timedelta(seconds=1), max_consecutive_errors=3))
        now = utcnow()

        for i in range(5):
            await heartbeat_manager.tick(now + timedelta(seconds=i))

        task = heartbeat_manager.get_task("flaky")
        assert callback.await_count == 3
        assert task.is_circuit_broken

        callback.side_effect = None
        callback.return_value = "back"
        heartbeat_manager.enable_task("flaky")
        assert await heartbeat_manager.tick(now + timedelta(seconds=10)) == {"flaky": "back"}
        assert task.consecutive_errors == 0
        assert task.error_count == 3

    @pytest.mark.asyncio
    async def test_success_resets_consecutive_errors(self, heartbeat_manager):
        callback = AsyncMock(side_effect=[RuntimeError("once"), "ok"])
        heartbeat_manager.register(CycleTask("c", callback, timedelta(seconds=1)))
        now = utcnow()

        await heartbeat_manager.tick(now)
        await heartbeat_manager.tick(now + timedelta(seconds=1))

        task = heartbeat_manager.get_task("c")
        assert task.consecutive_errors == 0
        assert task.last_result == "ok"

    @pytest.mark.asyncio
    async def test_disabled_task_skipped(self, heartbeat_manager):
        callback = AsyncMock()
        heartbeat_manager.register(CycleTask("c", callback, timedelta(seconds=1)))
        heartbeat_manager.disable_task("c")
        await heartbeat_manager.tick()
        callback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_run_task_now_ignores_schedule(self, heartbeat_manager):
        callback = AsyncMock(return_value=7)
        heartbeat_manager.register(CycleTask("c", callback, timedelta(hours=1)))
        await heartbeat_manager.tick()

        assert await heartbeat_manager.run_task_now("c") == 7
        assert callback.await_count == 2


class TestLoop:
    @pytest.mark.asyncio
    async def test_start_runs_cycles_until_stopped(self, heartbeat_manager):
        callback = AsyncMock()
        heartbeat_manager.register(CycleTask("c", callback, timedelta(milliseconds=10)))

        await heartbeat_manager.start()
        await heartbeat_manager.start()
        assert heartbeat_manager.is_running
        await asyncio.sleep(0.2)
        await heartbeat_manager.stop()

        count = callback.await_count
        assert count >= 2
        await asyncio.sleep(0.1)
        assert callback.await_count == count
        assert not heartbeat_manager.is_running

    @pytest.mark.asyncio
    async def test_pause_and_resume(self, heartbeat_manager):
        callback = AsyncMock()
        heartbeat_manager.register(CycleTask("c", callback, timedelta(milliseconds=10)))
        heartbeat_manager.pause()

        await heartbeat_manager.start()
        await asyncio.sleep(0.15)
        assert heartbeat_manager.is_paused
        callback.assert_not_awaited()

        heartbeat_manager.resume()
        await asyncio.sleep(0.15)
        await heartbeat_manager.stop()
        assert callback.await_count >= 1

    @pytest.mark.asyncio
    async def test_stop_without_start(self, heartbeat_manager):
        await heartbeat_manager.stop()
        assert not heartbeat_manager.is_running


def test_status(heartbeat_manager):
    heartbeat_manager.register(CycleTask("c", AsyncMock(), timedelta(seconds=30)))
    status = heartbeat_manager.get_status()
    assert status["running"] is False
    assert status["base_interval_seconds"] == pytest.approx(0.05)
    assert status["tasks"]["c"]["interval_seconds"] == 30.0
