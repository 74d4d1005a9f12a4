# src/goalcore/autonomous/store.py
"""
SQLite Goal Store.

Persistent CRUD/query layer for goals, their append-only logs, and the
priority-queue snapshot.

Architecture:
    - aiosqlite for async database operations
    - WAL mode for better concurrency
    - one JSON ``data`` column per goal plus indexed scalar columns for the
      queries the scheduler needs (status, category, tier)
    - one table per log kind, rows ordered by insertion
    - ``updated_at`` is assigned by the store on every write

Usage:
    store = GoalStore("~/.local/share/goalcore/goals.db")
    await store.initialize()
    await store.create_goal(goal)
    goal = await store.update_goal(goal.id, progress=40.0, status=GoalStatus.ACTIVE)

Every write commits a single transaction and rolls back on failure, so a
multi-field ``update_goal`` is atomic.
"""

from __future__ import annotations

import json
import logging
import os
import pathlib
from collections import Counter
from typing import Any, Iterable

import aiosqlite

from ..exceptions import GoalNotFoundError, StorageError
from .goals import (
    AgentInteraction,
    Goal,
    GoalAction,
    GoalReflection,
    GoalStatus,
    GoalThought,
    parse_datetime,
    utcnow,
)

logger = logging.getLogger(__name__)

# Goal attribute -> (table, entry class)
_LOG_TABLES = {
    "reflections": ("goal_reflections", GoalReflection),
    "thoughts": ("goal_thoughts", GoalThought),
    "actions_taken": ("goal_actions", GoalAction),
    "agent_interactions": ("goal_agent_interactions", AgentInteraction),
}

_IMMUTABLE_FIELDS = {"id", "updated_at", *_LOG_TABLES}


class GoalStore:
    """
    SQLite-based storage for goals.

    Schema:
        goals: One row per goal (scalar columns + JSON document)
        goal_reflections / goal_thoughts / goal_actions /
        goal_agent_interactions: Append-only logs keyed by goal_id
        priority_queue: Last persisted scheduler snapshot
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS goals (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        status TEXT NOT NULL,
        category TEXT NOT NULL,
        tier TEXT NOT NULL,
        priority INTEGER NOT NULL,
        progress REAL NOT NULL DEFAULT 0,
        parent_goal_id TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        data TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_goals_status ON goals(status);
    CREATE INDEX IF NOT EXISTS idx_goals_category ON goals(category);
    CREATE INDEX IF NOT EXISTS idx_goals_created ON goals(created_at);

    CREATE TABLE IF NOT EXISTS goal_reflections (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        goal_id TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        data TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_reflections_goal ON goal_reflections(goal_id);

    CREATE TABLE IF NOT EXISTS goal_thoughts (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        goal_id TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        data TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_thoughts_goal ON goal_thoughts(goal_id);

    CREATE TABLE IF NOT EXISTS goal_actions (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        goal_id TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        data TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_actions_goal ON goal_actions(goal_id);

    CREATE TABLE IF NOT EXISTS goal_agent_interactions (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL,
        goal_id TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        data TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_interactions_goal ON goal_agent_interactions(goal_id);

    CREATE TABLE IF NOT EXISTS priority_queue (
        position INTEGER PRIMARY KEY,
        goal_id TEXT NOT NULL,
        data TEXT NOT NULL
    );
    """

    def __init__(self, db_path: str = "~/.local/share/goalcore/goals.db") -> None:
        self._db_path = db_path if db_path == ":memory:" else os.path.expanduser(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """
        Open the database and create the schema.

        Raises:
            StorageError: If database initialization fails
        """
        try:
            if self._db_path != ":memory:":
                pathlib.Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

            self._conn = await aiosqlite.connect(self._db_path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode=WAL;")
            await self._conn.executescript(self.SCHEMA)
            await self._conn.commit()

            logger.info(f"SQLite goal store initialized at: {self._db_path}")
        except Exception as e:
            raise StorageError(f"Failed to initialize SQLite goal store: {e}") from e

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require(self) -> aiosqlite.Connection:
        if not self._conn:
            raise StorageError("Goal store not initialized")
        return self._conn

    # =========================================================================
    # GOALS
    # =========================================================================

    async def create_goal(self, goal: Goal) -> Goal:
        """Insert a new goal (and any log entries it already carries)."""
        conn = self._require()
        goal.updated_at = utcnow()
        try:
            await conn.execute(
                """INSERT INTO goals
                   (id, title, status, category, tier, priority, progress,
                    parent_goal_id, created_at, updated_at, data)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                self._goal_params(goal),
            )
            for attr, (table, _) in _LOG_TABLES.items():
                for entry in getattr(goal, attr):
                    await self._insert_log(conn, table, entry)
            await conn.commit()
        except Exception as e:
            await conn.rollback()
            raise StorageError(f"Failed to create goal {goal.id}: {e}") from e
        logger.debug(f"Created goal {goal.id} ({goal.title})")
        return goal

    async def get_goal(self, goal_id: str) -> Goal | None:
        conn = self._require()
        cursor = await conn.execute("SELECT data FROM goals WHERE id = ?", (goal_id,))
        row = await cursor.fetchone()
        if not row:
            return None
        return await self._hydrate(conn, row["data"])

    async def update_goal(self, goal_id: str, **fields: Any) -> Goal:
        """
        Apply a partial update to one goal in a single transaction.

        Args:
            goal_id: Goal to update.
            **fields: Goal attributes with their new (Python) values. Log
                lists cannot be replaced here; use the ``add_*`` methods.

        Raises:
            GoalNotFoundError: No goal with that id.
            ValueError: Unknown or immutable field.
        """
        bad = [n for n in fields if n in _IMMUTABLE_FIELDS or n not in Goal.__dataclass_fields__]
        if bad:
            raise ValueError(f"Cannot update goal fields: {', '.join(sorted(bad))}")

        conn = self._require()
        try:
            cursor = await conn.execute("SELECT data FROM goals WHERE id = ?", (goal_id,))
            row = await cursor.fetchone()
            if not row:
                raise GoalNotFoundError(goal_id)

            goal = Goal.from_dict(json.loads(row["data"]))
            for name, value in fields.items():
                setattr(goal, name, value)
            # Validate through a round-trip so bad values never reach disk.
            goal = Goal.from_dict(goal.to_dict())
            goal.updated_at = utcnow()

            params = self._goal_params(goal)
            await conn.execute(
                """UPDATE goals SET title = ?, status = ?, category = ?, tier = ?,
                   priority = ?, progress = ?, parent_goal_id = ?, created_at = ?,
                   updated_at = ?, data = ? WHERE id = ?""",
                (*params[1:], goal_id),
            )
            await conn.commit()
        except GoalNotFoundError:
            raise
        except Exception as e:
            await conn.rollback()
            raise StorageError(f"Failed to update goal {goal_id}: {e}") from e

        return await self._attach_logs(conn, goal)

    async def get_active_goals(self) -> list[Goal]:
        return await self.get_goals_by_status(GoalStatus.ACTIVE)

    async def get_goals_by_status(self, *statuses: GoalStatus) -> list[Goal]:
        conn = self._require()
        placeholders = ", ".join("?" for _ in statuses)
        cursor = await conn.execute(
            f"SELECT data FROM goals WHERE status IN ({placeholders}) ORDER BY created_at",
            tuple(s.value for s in statuses),
        )
        return [await self._hydrate(conn, row["data"]) for row in await cursor.fetchall()]

    async def get_goals_by_category(self, category: str) -> list[Goal]:
        conn = self._require()
        cursor = await conn.execute(
            "SELECT data FROM goals WHERE category = ? ORDER BY created_at", (category,)
        )
        return [await self._hydrate(conn, row["data"]) for row in await cursor.fetchall()]

    async def get_all_goals(self) -> list[Goal]:
        conn = self._require()
        cursor = await conn.execute("SELECT data FROM goals ORDER BY created_at")
        return [await self._hydrate(conn, row["data"]) for row in await cursor.fetchall()]

    # =========================================================================
    # APPEND-ONLY LOGS
    # =========================================================================

    async def add_reflection(self, reflection: GoalReflection) -> None:
        await self._append("goal_reflections", reflection)

    async def add_thought(self, thought: GoalThought) -> None:
        await self._append("goal_thoughts", thought)

    async def add_action(self, action: GoalAction) -> None:
        await self._append("goal_actions", action)

    async def add_agent_interaction(self, interaction: AgentInteraction) -> None:
        await self._append("goal_agent_interactions", interaction)

    async def _append(self, table: str, entry: Any) -> None:
        conn = self._require()
        try:
            cursor = await conn.execute("SELECT 1 FROM goals WHERE id = ?", (entry.goal_id,))
            if not await cursor.fetchone():
                raise GoalNotFoundError(entry.goal_id)
            await self._insert_log(conn, table, entry)
            await conn.execute(
                "UPDATE goals SET updated_at = ? WHERE id = ?",
                (utcnow().isoformat(), entry.goal_id),
            )
            await conn.commit()
        except GoalNotFoundError:
            raise
        except Exception as e:
            await conn.rollback()
            raise StorageError(f"Failed to append to {table}: {e}") from e

    @staticmethod
    async def _insert_log(conn: aiosqlite.Connection, table: str, entry: Any) -> None:
        await conn.execute(
            f"INSERT INTO {table} (id, goal_id, timestamp, data) VALUES (?, ?, ?, ?)",
            (entry.id, entry.goal_id, entry.timestamp.isoformat(), json.dumps(entry.to_dict())),
        )

    # =========================================================================
    # PRIORITY QUEUE SNAPSHOT
    # =========================================================================

    async def get_priority_queue(self) -> list[dict[str, Any]]:
        """Return the persisted snapshot as dicts, in queue order."""
        conn = self._require()
        cursor = await conn.execute("SELECT data FROM priority_queue ORDER BY position")
        return [json.loads(row["data"]) for row in await cursor.fetchall()]

    async def update_priority_queue(self, entries: Iterable[Any]) -> None:
        """Replace the snapshot in one transaction. Entries are dicts or expose ``to_dict``."""
        conn = self._require()
        rows = []
        for position, entry in enumerate(entries):
            data = entry.to_dict() if hasattr(entry, "to_dict") else dict(entry)
            rows.append((position, data["goal_id"], json.dumps(data)))
        try:
            await conn.execute("DELETE FROM priority_queue")
            await conn.executemany(
                "INSERT INTO priority_queue (position, goal_id, data) VALUES (?, ?, ?)", rows
            )
            await conn.commit()
        except Exception as e:
            await conn.rollback()
            raise StorageError(f"Failed to update priority queue: {e}") from e

    # =========================================================================
    # METRICS
    # =========================================================================

    async def get_goal_metrics(self) -> dict[str, Any]:
        goals = await self.get_all_goals()
        completed = [g for g in goals if g.status == GoalStatus.COMPLETED]
        durations = [
            (g.actual_completion - g.created_at).total_seconds() / 3600
            for g in completed
            if g.actual_completion
        ]
        recent = sorted(
            (g for g in completed if g.actual_completion),
            key=lambda g: g.actual_completion,
            reverse=True,
        )[:5]
        now = utcnow()
        overdue = [
            g.id
            for g in goals
            if g.target_completion and g.target_completion < now and not g.is_terminal
        ]
        return {
            "total_goals": len(goals),
            "active_goals": sum(1 for g in goals if g.status == GoalStatus.ACTIVE),
            "completed_goals": len(completed),
            "completion_rate": len(completed) / len(goals) if goals else 0.0,
            "average_completion_time_hours": sum(durations) / len(durations) if durations else 0.0,
            "goals_by_category": dict(Counter(g.category for g in goals)),
            "goals_by_priority": dict(Counter(str(g.priority) for g in goals)),
            "goals_by_status": dict(Counter(g.status.value for g in goals)),
            "goals_by_tier": dict(Counter(g.tier.level.value for g in goals)),
            "recent_completions": [g.id for g in recent],
            "overdue_goals": overdue,
        }

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _goal_params(goal: Goal) -> tuple:
        data = goal.to_dict()
        for attr in _LOG_TABLES:
            data.pop(attr)
        return (
            goal.id,
            goal.title,
            goal.status.value,
            goal.category,
            goal.tier.level.value,
            goal.priority,
            goal.progress,
            goal.parent_goal_id,
            goal.created_at.isoformat(),
            goal.updated_at.isoformat(),
            json.dumps(data),
        )

    async def _hydrate(self, conn: aiosqlite.Connection, raw: str) -> Goal:
        goal = Goal.from_dict(json.loads(raw))
        return await self._attach_logs(conn, goal)

    async def _attach_logs(self, conn: aiosqlite.Connection, goal: Goal) -> Goal:
        for attr, (table, entry_cls) in _LOG_TABLES.items():
            cursor = await conn.execute(
                f"SELECT data FROM {table} WHERE goal_id = ? ORDER BY seq", (goal.id,)
            )
            rows = await cursor.fetchall()
            setattr(goal, attr, [entry_cls.from_dict(json.loads(r["data"])) for r in rows])
        # updated_at lives in its own column; log appends bump it without touching data.
        cursor = await conn.execute("SELECT updated_at FROM goals WHERE id = ?", (goal.id,))
        row = await cursor.fetchone()
        if row:
            goal.updated_at = parse_datetime(row["updated_at"])
        return goal
