# src/goalcore/autonomous/coordinator.py
"""
Background Loop Coordinator.

Drives the three periodic cycles on a ``HeartbeatManager``:

    reflection     (300s)  summarize active goals; with none active, run goal analysis
    processing     (30s)   activate the next queued goal when idle, then apply progress
    tier_dispatch  (30s)   run the tier handlers

Cycles never write to the store directly; everything goes through the
lifecycle controller and therefore through the shared write queue.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Callable, Deque, Dict, Optional

from .goals import utcnow
from .heartbeat import CycleTask, HeartbeatManager

if TYPE_CHECKING:
    from ..config.settings import CoordinatorConfig
    from .lifecycle import LifecycleController
    from .progress import ProgressOracle
    from .scheduler import PriorityScheduler

logger = logging.getLogger(__name__)

REFLECTION = "reflection"
PROCESSING = "processing"
TIER_DISPATCH = "tier_dispatch"

EmotionSource = Callable[[], Optional[Dict[str, Any]]]


def _describe_emotion(emotion: Dict[str, Any]) -> str:
    primary = emotion.get("primary", "neutral")
    intensity = emotion.get("intensity")
    return f"{primary} ({intensity})" if intensity is not None else str(primary)


class BackgroundCoordinator:
    """
    Owns the heartbeat and the three goal cycles.

    Args:
        lifecycle: Lifecycle controller all state changes go through.
        scheduler: Priority scheduler.
        oracle: Progress oracle consulted by the processing cycle.
        heartbeat: Heartbeat to register on; one is created if omitted.
        emotion_source: Optional callable returning ``{"primary", "intensity"}``
            for the reflection summary.
    """

    def __init__(
        self,
        lifecycle: LifecycleController,
        scheduler: PriorityScheduler,
        oracle: ProgressOracle,
        heartbeat: Optional[HeartbeatManager] = None,
        reflection_interval: float = 300,
        processing_interval: float = 30,
        tier_dispatch_interval: float = 30,
        max_consecutive_errors: int = 5,
        emotion_source: Optional[EmotionSource] = None,
        journal_size: int = 100,
    ):
        self.lifecycle = lifecycle
        self.scheduler = scheduler
        self.oracle = oracle
        self.heartbeat = heartbeat or HeartbeatManager()
        self.emotion_source = emotion_source
        self.journal: Deque[Dict[str, Any]] = deque(maxlen=journal_size)

        for name, callback, interval in (
            (REFLECTION, self.reflection_cycle, reflection_interval),
            (PROCESSING, self.processing_cycle, processing_interval),
            (TIER_DISPATCH, self.tier_dispatch_cycle, tier_dispatch_interval),
        ):
            self.heartbeat.register(
                CycleTask(
                    name=name,
                    callback=callback,
                    interval=timedelta(seconds=interval),
                    max_consecutive_errors=max_consecutive_errors,
                )
            )

    @classmethod
    def from_config(
        cls,
        config: CoordinatorConfig,
        lifecycle: LifecycleController,
        scheduler: PriorityScheduler,
        oracle: ProgressOracle,
        emotion_source: Optional[EmotionSource] = None,
    ) -> "BackgroundCoordinator":
        return cls(
            lifecycle,
            scheduler,
            oracle,
            heartbeat=HeartbeatManager(base_interval=timedelta(seconds=config.base_interval)),
            reflection_interval=config.reflection_interval,
            processing_interval=config.processing_interval,
            tier_dispatch_interval=config.tier_dispatch_interval,
            max_consecutive_errors=config.max_consecutive_errors,
            emotion_source=emotion_source,
        )

    # ---- control ----

    async def start(self) -> None:
        await self.heartbeat.start()

    async def stop(self) -> None:
        await self.heartbeat.stop()

    @property
    def is_running(self) -> bool:
        return self.heartbeat.is_running

    async def tick(self) -> Dict[str, Any]:
        """Run every due cycle once."""
        return await self.heartbeat.tick()

    async def run_cycle(self, name: str) -> Any:
        """Run one cycle now, regardless of its schedule."""
        return await self.heartbeat.run_task_now(name)

    # ---- cycles ----

    async def reflection_cycle(self) -> str:
        active = await self.lifecycle.store.get_active_goals()

        parts = ["Periodic reflection"]
        emotion = self.emotion_source() if self.emotion_source else None
        if emotion:
            parts.append(f"Current emotion: {_describe_emotion(emotion)}")
        if active:
            parts.append(f"Active goals: {len(active)}")
            parts.extend(f"{g.title}: {g.progress:.0f}% complete" for g in active)
        else:
            parts.append("No active goals - considering new objectives")
        parts.append(f"Queued goals: {len(self.scheduler)}")
        content = ". ".join(parts)

        self.journal.append({"timestamp": utcnow().isoformat(), "content": content})
        for goal in active:
            await self.lifecycle.log_reflection(goal.id, content, type="periodic_reflection")
        logger.info(content)

        if not active:
            await self.lifecycle.analyze_and_create_goals()
        return content

    async def processing_cycle(self) -> Dict[str, Any]:
        outcome: Dict[str, Any] = {"activated": None, "goal_id": None, "progress": None}

        goal = await self.lifecycle.get_active_goal()
        if goal is None:
            candidate = await self.scheduler.dequeue_next()
            if candidate is None:
                return outcome
            goal = await self.lifecycle.activate(candidate.id)
            outcome["activated"] = goal.id

        outcome["goal_id"] = goal.id
        increment = await self.oracle.next_increment(goal)
        if increment > 0:
            goal = await self.lifecycle.update_progress(goal.id, goal.progress + increment)
            logger.debug(f"Goal {goal.id} progress {goal.progress:.1f}% (+{increment:.1f})")
        outcome["progress"] = goal.progress
        return outcome

    async def tier_dispatch_cycle(self) -> Dict[str, int]:
        return await self.lifecycle.dispatch_tiers()

    def get_status(self) -> Dict[str, Any]:
        return {
            "heartbeat": self.heartbeat.get_status(),
            "last_reflection": self.journal[-1] if self.journal else None,
            "lifecycle": self.lifecycle.get_status(),
        }
