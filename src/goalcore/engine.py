# src/goalcore/engine.py
"""
GoalEngine: the in-process entry point.

Builds and owns every service from one ``GoalCoreConfig``; there are no
module-level singletons.

Example:
    async with await GoalEngine.create(config_path="goalcore.toml") as engine:
        goal = await engine.create_goal("Draft a business plan", tier="cerebrum_autonomous")
        await engine.start()
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .agents import AgentCatalog, AgentResponse, WorkerRegistry, WorkflowExecution, WorkflowExecutor
from .autonomous import (
    ApprovalGate,
    BackgroundCoordinator,
    Goal,
    GoalStatus,
    GoalStore,
    LifecycleController,
    OperationQueue,
    PatternGoalAnalyzer,
    PriorityScheduler,
    build_oracle,
)
from .autonomous.coordinator import EmotionSource
from .autonomous.lifecycle import Notifier
from .config import GoalCoreConfig, load_config
from .logging_config import configure_logging
from .providers import BaseCompletionProvider, CachedCompletionProvider, ResponseCache

logger = logging.getLogger(__name__)


class GoalEngine:
    """
    Wires provider, agents, store, scheduler, lifecycle and coordinator.

    Use ``GoalEngine.create`` for a ready-to-use instance, or
    ``GoalEngine.from_config`` followed by ``await initialize()``.
    """

    def __init__(
        self,
        config: GoalCoreConfig,
        provider: BaseCompletionProvider,
        notifier: Optional[Notifier] = None,
        emotion_source: Optional[EmotionSource] = None,
    ):
        self.config = config
        self.provider = provider

        self.catalog = AgentCatalog(config.agents.config_dir)
        self.registry = WorkerRegistry(
            provider,
            catalog=self.catalog,
            invocation_timeout=config.agents.invocation_timeout,
        )
        self.executor = WorkflowExecutor(
            self.registry,
            synthesis_worker_id=config.agents.synthesis_worker_id,
            synthesis_model=config.agents.synthesis_model,
            synthesis_temperature=config.agents.synthesis_temperature,
        )

        self.store = GoalStore(config.storage.db_path)
        self.write_queue = OperationQueue()
        self.scheduler = PriorityScheduler.from_config(config.scheduler, self.store, write_queue=self.write_queue)
        self.approval = ApprovalGate.from_config(config.approval)
        self.analyzer = PatternGoalAnalyzer(provider, model=config.provider.default_model)
        self.lifecycle = LifecycleController(
            self.store,
            self.scheduler,
            write_queue=self.write_queue,
            approval=self.approval,
            executor=self.executor,
            registry=self.registry,
            analyzer=self.analyzer,
            notifier=notifier,
        )
        self.oracle = build_oracle(config.coordinator.progress_oracle, config.coordinator)
        self.coordinator = BackgroundCoordinator.from_config(
            config.coordinator, self.lifecycle, self.scheduler, self.oracle, emotion_source=emotion_source
        )
        self._initialized = False

    # ---- construction ----

    @classmethod
    def from_config(
        cls,
        config: GoalCoreConfig,
        provider: Optional[BaseCompletionProvider] = None,
        notifier: Optional[Notifier] = None,
        emotion_source: Optional[EmotionSource] = None,
    ) -> "GoalEngine":
        """Build an engine; the Ollama provider (optionally cached) is used when none is given."""
        if provider is None:
            from .providers.ollama_provider import OllamaProvider

            provider = OllamaProvider(config.provider.model_dump())
            if config.cache.enabled:
                cache = ResponseCache(
                    path=config.cache.path,
                    max_entries=config.cache.max_entries,
                    max_size_mb=config.cache.max_size_mb,
                    unused_days=config.cache.unused_days,
                )
                provider = CachedCompletionProvider(provider, cache, default_model=config.provider.default_model)
        return cls(config, provider, notifier=notifier, emotion_source=emotion_source)

    @classmethod
    async def create(
        cls,
        config_dict: Optional[Dict[str, Any]] = None,
        config_path: Optional[str | Path] = None,
        provider: Optional[BaseCompletionProvider] = None,
        notifier: Optional[Notifier] = None,
        emotion_source: Optional[EmotionSource] = None,
        setup_logging: bool = False,
    ) -> "GoalEngine":
        """Load configuration, build the engine and initialize it."""
        config = load_config(config_dict=config_dict, config_path=config_path)
        if setup_logging:
            configure_logging("goalcore", config.logging.to_logging_dict())
        engine = cls.from_config(config, provider=provider, notifier=notifier, emotion_source=emotion_source)
        await engine.initialize()
        return engine

    async def initialize(self) -> None:
        if self._initialized:
            return
        logger.info("Initializing goalcore engine...")
        await self.store.initialize()
        self.registry.load()
        if isinstance(self.provider, CachedCompletionProvider):
            loaded = self.provider.cache.load()
            swept = self.provider.cache.sweep_unused()
            logger.debug(f"Response cache: {loaded} entries loaded, {swept} unused swept")
        if await self.scheduler.load() == 0:
            await self.scheduler.rebuild()
        self._initialized = True
        logger.info("goalcore engine initialized")

    # ---- background operation ----

    async def start(self) -> None:
        await self.initialize()
        if not self.config.coordinator.enabled:
            logger.info("Background coordinator disabled by configuration")
            return
        await self.coordinator.start()

    async def stop(self) -> None:
        await self.coordinator.stop()

    async def close(self) -> None:
        """Stop cycles, cancel approval timers and release the store and provider."""
        logger.info("Closing goalcore engine...")
        await self.stop()
        await self.approval.close()
        results = await asyncio.gather(self.store.close(), self.provider.close(), return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(f"Error during engine shutdown: {result}")
        self._initialized = False

    async def __aenter__(self) -> "GoalEngine":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ---- goals ----

    async def create_goal(self, title: str, description: str = "", tier: str = "user_derived", **kwargs: Any) -> Goal:
        return await self.lifecycle.create_goal(title, description, tier, **kwargs)

    async def get_goal(self, goal_id: str) -> Optional[Goal]:
        return await self.store.get_goal(goal_id)

    async def get_active_goal(self) -> Optional[Goal]:
        return await self.lifecycle.get_active_goal()

    async def list_goals(self, *statuses: GoalStatus) -> List[Goal]:
        if statuses:
            return await self.store.get_goals_by_status(*statuses)
        return await self.store.get_all_goals()

    async def approve(self, goal_id: str) -> Goal:
        return await self.lifecycle.approve(goal_id)

    async def reject(self, goal_id: str) -> Goal:
        return await self.lifecycle.reject(goal_id)

    async def update_progress(self, goal_id: str, progress: float) -> Goal:
        return await self.lifecycle.update_progress(goal_id, progress)

    async def get_goal_metrics(self) -> Dict[str, Any]:
        return await self.store.get_goal_metrics()

    # ---- agents ----

    async def invoke_worker(self, worker_id: str, input_text: str, context: str = "") -> AgentResponse:
        return await self.registry.invoke(worker_id, input_text, context)

    async def execute_workflow(self, workflow_id: str, input_text: str, context: str = "") -> WorkflowExecution:
        return await self.executor.execute(workflow_id, input_text, context)

    def get_status(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "provider": self.provider.get_name(),
            "agents": self.registry.get_status(),
            "active_executions": [e.id for e in self.executor.get_active_executions()],
            "queue": [e.to_dict() for e in self.scheduler.snapshot()],
            "coordinator": self.coordinator.get_status(),
        }
