# src/goalcore/autonomous/progress.py
"""
Progress oracles.

The processing cycle asks an oracle how far the active goal advanced since
the last tick and applies the answer through
``LifecycleController.update_progress``.  Oracles only report increments;
clamping to ``[current, 100]`` is the controller's job.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .goals import Goal

if TYPE_CHECKING:
    from ..config.settings import CoordinatorConfig


@runtime_checkable
class ProgressOracle(Protocol):
    """Source of progress increments for the active goal."""

    async def next_increment(self, goal: Goal) -> float: ...


class ManualProgressOracle:
    """Increments queued by callers with ``report``; each is consumed once."""

    def __init__(self) -> None:
        self._pending: dict[str, float] = {}

    def report(self, goal_id: str, delta: float) -> None:
        if delta < 0:
            raise ValueError(f"progress delta must be non-negative, got {delta}")
        self._pending[goal_id] = self._pending.get(goal_id, 0.0) + delta

    async def next_increment(self, goal: Goal) -> float:
        return self._pending.pop(goal.id, 0.0)


class DeliverableProgressOracle:
    """
    Moves progress toward the share of deliverables marked done.

    Goals without deliverables have nothing to measure; their increments
    come from ``fallback`` when one is set, otherwise they stay at 0.
    """

    def __init__(self, fallback: ProgressOracle | None = None) -> None:
        self.fallback = fallback

    async def next_increment(self, goal: Goal) -> float:
        completion = goal.deliverable_completion()
        if completion is None:
            if self.fallback is None:
                return 0.0
            return await self.fallback.next_increment(goal)
        return max(completion * 100.0 - goal.progress, 0.0)


class WorkerReportedProgressOracle:
    """Moves progress toward the latest completion fraction reported by a worker."""

    def __init__(self) -> None:
        self._reported: dict[str, float] = {}

    def report_completion(self, goal_id: str, fraction: float) -> None:
        if not 0.0 <= fraction <= 1.0:
            raise ValueError(f"completion fraction must be within [0, 1], got {fraction}")
        self._reported[goal_id] = max(fraction, self._reported.get(goal_id, 0.0))

    async def next_increment(self, goal: Goal) -> float:
        fraction = self._reported.get(goal.id)
        if fraction is None:
            return 0.0
        return max(fraction * 100.0 - goal.progress, 0.0)


class RandomWalkProgressOracle:
    """
    Baseline simulation: with probability ``1 - threshold`` the goal advances
    by up to ``max_step`` points.
    """

    def __init__(self, threshold: float = 0.7, max_step: float = 5.0, rng: random.Random | None = None):
        self.threshold = threshold
        self.max_step = max_step
        self.rng = rng or random.Random()

    async def next_increment(self, goal: Goal) -> float:
        if self.rng.random() > self.threshold:
            return self.rng.random() * self.max_step
        return 0.0


def build_oracle(name: str, config: CoordinatorConfig | None = None) -> ProgressOracle:
    """Instantiate the oracle named in ``coordinator.progress_oracle``."""
    if name == "deliverables":
        fallback = config.deliverables_fallback if config is not None else "random_walk"
        if fallback == "none":
            return DeliverableProgressOracle()
        return DeliverableProgressOracle(fallback=build_oracle(fallback, config))
    if name == "manual":
        return ManualProgressOracle()
    if name == "worker_reported":
        return WorkerReportedProgressOracle()
    if name == "random_walk":
        if config is None:
            return RandomWalkProgressOracle()
        return RandomWalkProgressOracle(
            threshold=config.random_walk_threshold,
            max_step=config.random_walk_max_step,
        )
    raise ValueError(f"Unknown progress oracle: {name!r}")
