# src/goalcore/autonomous/__init__.py
"""
Goal scheduling and lifecycle.

- Goal model and store (``Goal``, ``GoalStore``, ``OperationQueue``)
- Priority scheduling (``PriorityScheduler``)
- Tiered lifecycle with approval and decomposition (``LifecycleController``)
- Background cycles on a heartbeat (``BackgroundCoordinator``)

Example:
    from goalcore.autonomous import GoalStore, OperationQueue, PriorityScheduler, LifecycleController

    store = GoalStore(":memory:")
    await store.initialize()
    queue = OperationQueue()
    scheduler = PriorityScheduler(store, write_queue=queue)
    lifecycle = LifecycleController(store, scheduler, write_queue=queue)
    goal = await lifecycle.create_goal("Write a business plan", tier="cerebrum_autonomous")
"""

from .analysis import (
    ConversationPattern,
    GoalAnalyzer,
    GoalProposal,
    PatternGoalAnalyzer,
    PredictiveGoal,
)
from .approval import ApprovalDecision, ApprovalGate, ApprovalRequest
from .coordinator import BackgroundCoordinator
from .decomposition import DecompositionRule, DecompositionTable, default_table, keyword_rule
from .goals import (
    AgentInteraction,
    Goal,
    GoalAction,
    GoalDeliverable,
    GoalOrigin,
    GoalReflection,
    GoalStatus,
    GoalThought,
    GoalTier,
    GoalType,
    MeasurableOutcome,
    OriginSource,
    SuccessCriteria,
    TierCharacteristics,
    TierLevel,
)
from .heartbeat import CycleTask, HeartbeatManager
from .lifecycle import ALLOWED_TRANSITIONS, LifecycleController
from .op_queue import OperationQueue
from .progress import (
    DeliverableProgressOracle,
    ManualProgressOracle,
    ProgressOracle,
    RandomWalkProgressOracle,
    WorkerReportedProgressOracle,
    build_oracle,
)
from .scheduler import PriorityQueueEntry, PriorityScheduler
from .store import GoalStore

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AgentInteraction",
    "ApprovalDecision",
    "ApprovalGate",
    "ApprovalRequest",
    "BackgroundCoordinator",
    "ConversationPattern",
    "CycleTask",
    "DecompositionRule",
    "DecompositionTable",
    "DeliverableProgressOracle",
    "Goal",
    "GoalAction",
    "GoalAnalyzer",
    "GoalDeliverable",
    "GoalOrigin",
    "GoalProposal",
    "GoalReflection",
    "GoalStatus",
    "GoalStore",
    "GoalThought",
    "GoalTier",
    "GoalType",
    "HeartbeatManager",
    "LifecycleController",
    "ManualProgressOracle",
    "MeasurableOutcome",
    "OperationQueue",
    "OriginSource",
    "PatternGoalAnalyzer",
    "PredictiveGoal",
    "PriorityQueueEntry",
    "PriorityScheduler",
    "ProgressOracle",
    "RandomWalkProgressOracle",
    "SuccessCriteria",
    "TierCharacteristics",
    "TierLevel",
    "WorkerReportedProgressOracle",
    "build_oracle",
    "default_table",
    "keyword_rule",
]
