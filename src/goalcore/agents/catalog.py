# src/goalcore/agents/catalog.py
"""
JSON-file persistence for worker and workflow definitions.

``workers.json`` and ``workflows.json`` live in one directory.  A missing
file is seeded with the built-in defaults and written back.  Every save
rewrites the full list atomically (write-to-temp-then-rename).
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Tuple

from pydantic import ValidationError

from ..exceptions import ConfigError
from .models import WorkerConfig, Workflow, WorkflowStep

logger = logging.getLogger(__name__)


# =============================================================================
# Built-in defaults
# =============================================================================


def default_workers() -> List[WorkerConfig]:
    return [
        WorkerConfig(
            id="code_reviewer",
            name="CodeReviewer",
            role="Code Analysis Specialist",
            specialization="code_review",
            traits=["analytical", "detail-oriented", "systematic", "constructive"],
            capabilities=["code_analysis", "bug_detection", "performance_review", "security_audit"],
            model="gemma3:latest",
            temperature=0.3,
        ),
        WorkerConfig(
            id="creative_thinker",
            name="CreativeThinker",
            role="Creative Problem Solver",
            specialization="creative_solutions",
            traits=["innovative", "imaginative", "flexible", "inspiring"],
            capabilities=["brainstorming", "alternative_solutions", "creative_writing", "design_thinking"],
            model="llama3.2:latest",
            temperature=0.8,
        ),
        WorkerConfig(
            id="logical_analyst",
            name="LogicalAnalyst",
            role="Logical Reasoning Specialist",
            specialization="logical_analysis",
            traits=["logical", "methodical", "precise", "objective"],
            capabilities=["logical_reasoning", "data_analysis", "pattern_recognition", "problem_decomposition"],
            model="gemma3:latest",
            temperature=0.2,
        ),
        WorkerConfig(
            id="practical_implementer",
            name="PracticalImplementer",
            role="Implementation Specialist",
            specialization="practical_solutions",
            traits=["pragmatic", "efficient", "results-oriented", "realistic"],
            capabilities=[
                "implementation_planning",
                "resource_optimization",
                "feasibility_analysis",
                "execution_strategy",
            ],
            model="gemma3:latest",
            temperature=0.4,
        ),
    ]


def default_workflows() -> List[Workflow]:
    return [
        Workflow(
            id="code_review_workflow",
            name="Comprehensive Code Review",
            description="Multi-agent code review with security, performance, and quality analysis",
            steps=[
                WorkflowStep(id="initial_analysis", type="parallel", agents=["code_reviewer", "logical_analyst"]),
                WorkflowStep(id="creative_improvements", type="sequential", agents=["creative_thinker"]),
                WorkflowStep(id="implementation_review", type="sequential", agents=["practical_implementer"]),
            ],
            triggers=["code_review", "review_code", "analyze_code"],
        ),
        Workflow(
            id="problem_solving_workflow",
            name="Complex Problem Solving",
            description="Multi-perspective approach to complex problem solving",
            steps=[
                WorkflowStep(id="problem_analysis", type="sequential", agents=["logical_analyst"]),
                WorkflowStep(
                    id="solution_generation",
                    type="parallel",
                    agents=["creative_thinker", "practical_implementer"],
                ),
                WorkflowStep(id="solution_review", type="sequential", agents=["code_reviewer"]),
            ],
            triggers=["solve_problem", "complex_problem", "need_solution"],
        ),
        Workflow(
            id="research_workflow",
            name="Multi-Perspective Research",
            description="Comprehensive research with multiple analytical perspectives",
            steps=[
                WorkflowStep(id="research_planning", type="sequential", agents=["logical_analyst"]),
                WorkflowStep(
                    id="parallel_research",
                    type="parallel",
                    agents=["creative_thinker", "practical_implementer", "code_reviewer"],
                ),
            ],
            triggers=["research", "investigate", "analyze_topic"],
        ),
    ]


# =============================================================================
# Catalog
# =============================================================================


class AgentCatalog:
    """
    Loads and saves worker/workflow definitions.

    Args:
        config_dir: Directory holding ``workers.json`` and ``workflows.json``.

    Example:
        >>> catalog = AgentCatalog("~/.local/share/goalcore/agents")
        >>> workers, workflows = catalog.load()
    """

    WORKERS_FILE = "workers.json"
    WORKFLOWS_FILE = "workflows.json"

    def __init__(self, config_dir: str) -> None:
        self._dir = Path(os.path.expanduser(config_dir))

    @property
    def workers_path(self) -> Path:
        return self._dir / self.WORKERS_FILE

    @property
    def workflows_path(self) -> Path:
        return self._dir / self.WORKFLOWS_FILE

    def load(self) -> Tuple[List[WorkerConfig], List[Workflow]]:
        """Load both lists, seeding and writing defaults for missing files."""
        if self.workers_path.exists():
            workers = self._parse(WorkerConfig, self.workers_path)
            logger.info("Loaded %d workers from %s", len(workers), self.workers_path)
        else:
            workers = default_workers()
            self.save_workers(workers)
            logger.info("Seeded %d default workers", len(workers))

        if self.workflows_path.exists():
            workflows = self._parse(Workflow, self.workflows_path)
            logger.info("Loaded %d workflows from %s", len(workflows), self.workflows_path)
        else:
            workflows = default_workflows()
            self.save_workflows(workflows)
            logger.info("Seeded %d default workflows", len(workflows))

        return workers, workflows

    def save_workers(self, workers: List[WorkerConfig]) -> None:
        self._write_all(self.workers_path, [w.model_dump(mode="json") for w in workers])

    def save_workflows(self, workflows: List[Workflow]) -> None:
        self._write_all(self.workflows_path, [w.model_dump(mode="json") for w in workflows])

    def _parse(self, model, path: Path) -> list:
        try:
            return [model(**item) for item in self._read(path)]
        except (TypeError, ValidationError) as exc:
            raise ConfigError(f"Invalid entry in agent catalogue {path}: {exc}") from exc

    def _read(self, path: Path) -> list:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot read agent catalogue {path}: {exc}") from exc
        if not isinstance(data, list):
            raise ConfigError(f"Agent catalogue {path} must hold a JSON list")
        return data

    def _write_all(self, path: Path, items: list) -> None:
        """Atomically write the full list to disk."""
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(items, indent=2), encoding="utf-8")
        tmp_path.replace(path)
