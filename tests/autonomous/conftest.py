# tests/autonomous/conftest.py
"""
Shared fixtures for autonomous module tests.

Provides an in-memory goal store, the shared write queue, and scheduler /
approval gate / lifecycle controller instances wired the way the engine
wires them.
"""

import sys
from datetime import timedelta
from pathlib import Path

import pytest
import pytest_asyncio

# Add source to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))


@pytest_asyncio.fixture
async def goal_store():
    """Initialized in-memory GoalStore."""
    from goalcore.autonomous.store import GoalStore

    store = GoalStore(":memory:")
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def write_queue():
    from goalcore.autonomous.op_queue import OperationQueue

    return OperationQueue()


@pytest.fixture
def scheduler(goal_store, write_queue):
    from goalcore.autonomous.scheduler import PriorityScheduler

    return PriorityScheduler(goal_store, write_queue=write_queue)


@pytest_asyncio.fixture
async def approval_gate():
    """Gate with a long timeout so tests decide explicitly."""
    from goalcore.autonomous.approval import ApprovalGate

    gate = ApprovalGate(timeout_seconds=30)
    yield gate
    await gate.close()


@pytest.fixture
def notifications():
    """List collecting (kind, goal_id, message) from the lifecycle notifier."""
    return []


@pytest.fixture
def lifecycle(goal_store, scheduler, write_queue, approval_gate, notifications):
    from goalcore.autonomous.lifecycle import LifecycleController

    def notifier(kind, goal, message):
        notifications.append((kind, goal.id, message))

    return LifecycleController(
        goal_store,
        scheduler,
        write_queue=write_queue,
        approval=approval_gate,
        notifier=notifier,
    )


@pytest.fixture
def heartbeat_manager():
    """Create a HeartbeatManager with short interval for testing."""
    from goalcore.autonomous.heartbeat import HeartbeatManager

    return HeartbeatManager(base_interval=timedelta(milliseconds=50))
