# src/goalcore/autonomous/heartbeat.py
"""
Heartbeat for the background cycles.

A ``HeartbeatManager`` wakes up every ``base_interval`` and runs every
registered ``CycleTask`` whose interval has elapsed.  Failures are isolated
per task; after ``max_consecutive_errors`` failures in a row the task's
circuit breaker opens and it stops running until re-enabled.

Example:
    heartbeat = HeartbeatManager(base_interval=timedelta(seconds=5))
    heartbeat.register(CycleTask("processing", coordinator.processing_cycle, timedelta(seconds=30)))
    await heartbeat.start()
    ...
    await heartbeat.stop()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .goals import utcnow

logger = logging.getLogger(__name__)


@dataclass
class CycleTask:
    """
    One periodic cycle.

    Attributes:
        name: Unique cycle name.
        callback: Coroutine function run on each due tick.
        interval: Minimum time between runs.
        max_consecutive_errors: Circuit breaker threshold.
    """

    name: str
    callback: Callable[[], Awaitable[Any]]
    interval: timedelta
    enabled: bool = True
    max_consecutive_errors: int = 5
    description: str = ""

    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    run_count: int = 0
    error_count: int = 0
    consecutive_errors: int = 0
    last_error: Optional[str] = None
    last_result: Any = field(default=None, repr=False)

    @property
    def is_circuit_broken(self) -> bool:
        return self.consecutive_errors >= self.max_consecutive_errors

    def is_due(self, now: datetime) -> bool:
        if not self.enabled or self.is_circuit_broken:
            return False
        return self.next_run is None or now >= self.next_run

    def mark_ran(self, now: datetime) -> None:
        self.last_run = now
        self.next_run = now + self.interval
        self.run_count += 1

    def reset_circuit_breaker(self) -> None:
        self.consecutive_errors = 0
        self.last_error = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "interval_seconds": self.interval.total_seconds(),
            "enabled": self.enabled,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "next_run": self.next_run.isoformat() if self.next_run else None,
            "run_count": self.run_count,
            "error_count": self.error_count,
            "consecutive_errors": self.consecutive_errors,
            "is_circuit_broken": self.is_circuit_broken,
            "last_error": self.last_error,
            "description": self.description,
        }


ErrorCallback = Callable[[str, Exception], Awaitable[None]]


class HeartbeatManager:
    """Runs due ``CycleTask``s on a fixed tick."""

    def __init__(self, base_interval: timedelta = timedelta(seconds=5)):
        self.base_interval = base_interval
        self._tasks: Dict[str, CycleTask] = {}
        self._on_error: List[ErrorCallback] = []
        self._running = False
        self._paused = False
        self._loop_task: Optional[asyncio.Task] = None

    # ---- registration ----

    def register(self, task: CycleTask) -> None:
        if task.name in self._tasks:
            raise ValueError(f"Cycle already registered: {task.name}")
        self._tasks[task.name] = task
        logger.info(f"Registered cycle {task.name} (every {task.interval.total_seconds()}s)")

    def unregister(self, name: str) -> None:
        self._tasks.pop(name, None)

    def get_task(self, name: str) -> Optional[CycleTask]:
        return self._tasks.get(name)

    def list_tasks(self) -> List[str]:
        return list(self._tasks)

    def enable_task(self, name: str) -> None:
        """Enable a task and close its circuit breaker."""
        task = self._require(name)
        task.enabled = True
        task.reset_circuit_breaker()

    def disable_task(self, name: str) -> None:
        self._require(name).enabled = False

    def on_error(self, callback: ErrorCallback) -> None:
        self._on_error.append(callback)

    def _require(self, name: str) -> CycleTask:
        task = self._tasks.get(name)
        if task is None:
            raise ValueError(f"Cycle not found: {name}")
        return task

    # ---- loop ----

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        self._paused = True
        logger.info("Heartbeat paused")

    def resume(self) -> None:
        self._paused = False
        logger.info("Heartbeat resumed")

    async def start(self) -> None:
        """Start the loop; calling it again while running does nothing."""
        if self._running:
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._loop(), name="goalcore-heartbeat")
        logger.info(f"Heartbeat started (tick {self.base_interval.total_seconds()}s)")

    async def stop(self) -> None:
        self._running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        logger.info("Heartbeat stopped")

    async def _loop(self) -> None:
        while self._running:
            if not self._paused:
                await self.tick()
            await asyncio.sleep(self.base_interval.total_seconds())

    async def tick(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Run every due task once, in registration order.  Returns their results."""
        now = now or utcnow()
        results: Dict[str, Any] = {}
        for task in list(self._tasks.values()):
            if task.is_due(now):
                results[task.name] = await self._run(task, now)
        return results

    async def run_task_now(self, name: str) -> Any:
        """Run one task immediately, ignoring its schedule.  Returns its result."""
        return await self._run(self._require(name), utcnow())

    async def _run(self, task: CycleTask, now: datetime) -> Any:
        task.mark_ran(now)
        try:
            result = await task.callback()
        except Exception as e:
            task.error_count += 1
            task.consecutive_errors += 1
            task.last_error = f"{type(e).__name__}: {e}"
            logger.error(f"Cycle {task.name} failed: {e}", exc_info=True)
            if task.is_circuit_broken:
                logger.warning(
                    f"Circuit breaker opened for cycle {task.name} "
                    f"after {task.consecutive_errors} consecutive errors"
                )
            for callback in self._on_error:
                try:
                    await callback(task.name, e)
                except Exception as cb_error:
                    logger.error(f"Heartbeat error callback failed: {cb_error}")
            return None
        task.reset_circuit_breaker()
        task.last_result = result
        return result

    def get_due_tasks(self, now: Optional[datetime] = None) -> List[str]:
        now = now or utcnow()
        return [name for name, task in self._tasks.items() if task.is_due(now)]

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "paused": self._paused,
            "base_interval_seconds": self.base_interval.total_seconds(),
            "tasks": {name: task.to_dict() for name, task in self._tasks.items()},
        }
