# src/goalcore/autonomous/scheduler.py
"""
Priority Scheduler.

Maintains a bounded, ordered queue of goals and selects the next one to
activate.

Scoring::

    urgency_factor    = 1 (+0.5 if short_term) + min(0.1 * hours_since_creation, 2)
    importance_factor = 1 + tier boost (cerebrum_autonomous +0.3 by default)
    priority_score    = round(priority * 10 * urgency_factor * importance_factor)

``user_value_factor`` and ``cerebrum_priority_boost`` are recorded on every
entry but only multiply into the score when ``fold_user_value`` is enabled.

The queue keeps the top ``max_size`` entries (20 by default).  Goals that
fall off are not lost: ``rebuild()`` recomputes the queue from the store.

Example::

    scheduler = PriorityScheduler(store, on_empty=lifecycle.analyze_and_create_goals)
    await scheduler.enqueue(goal)
    next_goal = await scheduler.dequeue_next()   # None when nothing is eligible
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable

from .goals import Goal, GoalStatus, GoalType, TierLevel, parse_datetime, utcnow

if TYPE_CHECKING:
    from ..config.settings import SchedulerConfig
    from .op_queue import OperationQueue
    from .store import GoalStore

logger = logging.getLogger(__name__)

ESTIMATED_MINUTES = {
    GoalType.SHORT_TERM: 60,
    GoalType.MICRO_TASK: 15,
    GoalType.LONG_TERM: 480,
}
DEFAULT_ESTIMATED_MINUTES = 240

DEFAULT_IMPORTANCE_BOOSTS = {
    TierLevel.USER_DERIVED.value: 0.0,
    TierLevel.INTERNAL_SYSTEM.value: 0.0,
    TierLevel.CEREBRUM_AUTONOMOUS.value: 0.3,
}

# Statuses a goal may be in while sitting in the queue.
_QUEUEABLE = (GoalStatus.ANALYSIS, GoalStatus.WAITING_APPROVAL, GoalStatus.PAUSED)


# ---------------------------------------------------------------------------
# Queue entry
# ---------------------------------------------------------------------------


@dataclass
class PriorityQueueEntry:
    """Derived scheduling view of a goal."""

    goal_id: str
    priority_score: int
    urgency_factor: float
    importance_factor: float
    user_value_factor: float = 0.0
    cerebrum_priority_boost: float = 0.0
    resource_requirements: list[str] = field(default_factory=list)
    estimated_time: int = DEFAULT_ESTIMATED_MINUTES
    dependencies_met: bool = True
    last_updated: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal_id": self.goal_id,
            "priority_score": self.priority_score,
            "urgency_factor": self.urgency_factor,
            "importance_factor": self.importance_factor,
            "user_value_factor": self.user_value_factor,
            "cerebrum_priority_boost": self.cerebrum_priority_boost,
            "resource_requirements": list(self.resource_requirements),
            "estimated_time": self.estimated_time,
            "dependencies_met": self.dependencies_met,
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PriorityQueueEntry:
        return cls(
            goal_id=data["goal_id"],
            priority_score=int(data["priority_score"]),
            urgency_factor=data.get("urgency_factor", 1.0),
            importance_factor=data.get("importance_factor", 1.0),
            user_value_factor=data.get("user_value_factor", 0.0),
            cerebrum_priority_boost=data.get("cerebrum_priority_boost", 0.0),
            resource_requirements=list(data.get("resource_requirements", [])),
            estimated_time=data.get("estimated_time", DEFAULT_ESTIMATED_MINUTES),
            dependencies_met=data.get("dependencies_met", True),
            last_updated=parse_datetime(data.get("last_updated")) or utcnow(),
        )


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class PriorityScheduler:
    """Bounded priority queue over the goal store.

    Args:
        store: Goal store used to resolve goals and persist the snapshot.
        on_empty: Goal-creation analysis hook, awaited once whenever
            ``dequeue_next`` finds nothing eligible.
        max_size: Queue bound.
        importance_boosts: Tier level -> additive importance boost.
        fold_user_value: Multiply user value and cerebrum boost into the score.
        write_queue: When given, snapshot writes go through it.
    """

    def __init__(
        self,
        store: GoalStore,
        on_empty: Callable[[], Awaitable[Any]] | None = None,
        max_size: int = 20,
        importance_boosts: dict[str, float] | None = None,
        fold_user_value: bool = False,
        short_term_urgency_bonus: float = 0.5,
        urgency_per_hour: float = 0.1,
        max_age_urgency: float = 2.0,
        write_queue: OperationQueue | None = None,
    ) -> None:
        self.store = store
        self.on_empty = on_empty
        self.max_size = max_size
        self.importance_boosts = dict(DEFAULT_IMPORTANCE_BOOSTS)
        if importance_boosts:
            self.importance_boosts.update(importance_boosts)
        self.fold_user_value = fold_user_value
        self.short_term_urgency_bonus = short_term_urgency_bonus
        self.urgency_per_hour = urgency_per_hour
        self.max_age_urgency = max_age_urgency
        self.write_queue = write_queue
        self._entries: list[PriorityQueueEntry] = []

    @classmethod
    def from_config(
        cls,
        config: SchedulerConfig,
        store: GoalStore,
        on_empty: Callable[[], Awaitable[Any]] | None = None,
        write_queue: OperationQueue | None = None,
    ) -> PriorityScheduler:
        return cls(
            store,
            on_empty=on_empty,
            max_size=config.max_queue_size,
            importance_boosts=config.importance_boosts,
            fold_user_value=config.fold_user_value,
            short_term_urgency_bonus=config.short_term_urgency_bonus,
            urgency_per_hour=config.urgency_per_hour,
            max_age_urgency=config.max_age_urgency,
            write_queue=write_queue,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, goal_id: object) -> bool:
        return any(e.goal_id == goal_id for e in self._entries)

    # ---- scoring ----

    def score(
        self,
        goal: Goal,
        now: datetime | None = None,
        completed_ids: Iterable[str] | None = None,
    ) -> PriorityQueueEntry:
        """Compute the queue entry for ``goal`` (pure apart from the clock)."""
        now = now or utcnow()
        hours = max((now - goal.created_at).total_seconds() / 3600, 0.0)

        urgency = 1.0
        if goal.type == GoalType.SHORT_TERM:
            urgency += self.short_term_urgency_bonus
        urgency += min(self.urgency_per_hour * hours, self.max_age_urgency)

        importance = 1.0 + self.importance_boosts.get(goal.tier.level.value, 0.0)

        level = goal.tier.level
        user_value = goal.origin.confidence if level == TierLevel.USER_DERIVED else 0.0
        cerebrum_boost = (
            goal.origin.confidence * 0.5 if level == TierLevel.CEREBRUM_AUTONOMOUS else 0.0
        )

        raw = goal.priority * 10 * urgency * importance
        if self.fold_user_value:
            raw *= (1 + user_value) * (1 + cerebrum_boost)

        requirements = ["cognitive_processing"]
        if level == TierLevel.USER_DERIVED:
            requirements.append("user_interaction")
        if goal.characteristics.can_delegate_to_agents:
            requirements.append("agent_delegation")

        completed = set(completed_ids or ())
        return PriorityQueueEntry(
            goal_id=goal.id,
            priority_score=round(raw),
            urgency_factor=urgency,
            importance_factor=importance,
            user_value_factor=user_value,
            cerebrum_priority_boost=cerebrum_boost,
            resource_requirements=requirements,
            estimated_time=ESTIMATED_MINUTES.get(goal.type, DEFAULT_ESTIMATED_MINUTES),
            dependencies_met=all(dep in completed for dep in goal.blocking_dependencies),
            last_updated=now,
        )

    async def _completed_dependencies(self, goal: Goal) -> set[str]:
        done = set()
        for dep_id in goal.blocking_dependencies:
            dep = await self.store.get_goal(dep_id)
            if dep is not None and dep.status == GoalStatus.COMPLETED:
                done.add(dep_id)
        return done

    # ---- queue operations ----

    async def enqueue(self, goal: Goal) -> PriorityQueueEntry:
        """Score, insert (replacing any entry for the same goal), sort, truncate, persist."""
        entry = self.score(goal, completed_ids=await self._completed_dependencies(goal))
        self._insert(entry)
        await self._persist()
        logger.debug(f"Enqueued goal {goal.id} with score {entry.priority_score}")
        return entry

    def _insert(self, entry: PriorityQueueEntry) -> None:
        self._entries = [e for e in self._entries if e.goal_id != entry.goal_id]
        self._entries.append(entry)
        self._entries.sort(key=lambda e: e.priority_score, reverse=True)
        dropped = self._entries[self.max_size:]
        del self._entries[self.max_size:]
        for e in dropped:
            logger.debug(f"Goal {e.goal_id} fell off the priority queue (score {e.priority_score})")

    async def remove(self, goal_id: str) -> bool:
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.goal_id != goal_id]
        if len(self._entries) == before:
            return False
        await self._persist()
        return True

    async def dequeue_next(self) -> Goal | None:
        """
        Pop the highest-scoring eligible goal.

        Stale entries (goal missing or terminal) are discarded.  Entries whose
        goal awaits approval or whose blocking dependencies are unfinished
        stay queued and are skipped.  When nothing is eligible, the analysis
        hook is awaited once and None is returned.
        """
        chosen: Goal | None = None
        kept: list[PriorityQueueEntry] = []
        remaining = list(self._entries)
        changed = False

        while remaining:
            entry = remaining.pop(0)
            goal = await self.store.get_goal(entry.goal_id)
            if goal is None or goal.status not in _QUEUEABLE:
                logger.debug(f"Discarding stale queue entry {entry.goal_id}")
                changed = True
                continue
            if goal.status == GoalStatus.WAITING_APPROVAL:
                kept.append(entry)
                continue
            completed = await self._completed_dependencies(goal)
            if not all(dep in completed for dep in goal.blocking_dependencies):
                kept.append(entry)
                continue
            chosen = goal
            changed = True
            kept.extend(remaining)
            break

        self._entries = kept
        if changed:
            await self._persist()

        if chosen is None:
            logger.info("No goal available in priority queue; triggering goal analysis")
            await self._trigger_analysis()
        return chosen

    async def _trigger_analysis(self) -> None:
        if self.on_empty is None:
            return
        try:
            await self.on_empty()
        except Exception as e:
            logger.error(f"Goal-creation analysis failed: {e}", exc_info=True)

    async def rebuild(self) -> int:
        """Recompute the queue from every queueable goal in the store."""
        goals = await self.store.get_goals_by_status(*_QUEUEABLE)
        self._entries = []
        now = utcnow()
        for goal in goals:
            self._insert(self.score(goal, now=now, completed_ids=await self._completed_dependencies(goal)))
        await self._persist()
        logger.info(f"Priority queue rebuilt with {len(self._entries)} of {len(goals)} goals")
        return len(self._entries)

    async def load(self) -> int:
        """Restore the persisted snapshot."""
        rows = await self.store.get_priority_queue()
        self._entries = [PriorityQueueEntry.from_dict(r) for r in rows]
        self._entries.sort(key=lambda e: e.priority_score, reverse=True)
        del self._entries[self.max_size:]
        return len(self._entries)

    def snapshot(self) -> list[PriorityQueueEntry]:
        return [PriorityQueueEntry.from_dict(e.to_dict()) for e in self._entries]

    async def _persist(self) -> None:
        entries = self.snapshot()
        if self.write_queue is not None:
            await self.write_queue.submit(
                lambda: self.store.update_priority_queue(entries), "update_priority_queue"
            )
        else:
            await self.store.update_priority_queue(entries)
