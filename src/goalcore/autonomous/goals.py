# src/goalcore/autonomous/goals.py
"""
Goal data model for tiered autonomous operation.

A Goal belongs to one of three autonomy tiers.  Each tier is a fixed bundle
of permissions (``TierCharacteristics``) plus an authority level; the
bundles are constants obtained through ``GoalTier.for_level``:

    =====================  ======  ========  =======  ========  =========  ============  =========
    tier                   auto    approval  subgoal  delegate  proactive  presentation  authority
    =====================  ======  ========  =======  ========  =========  ============  =========
    user_derived           no      no        no       yes       yes        yes           5
    internal_system        yes     no        no       no        no         no            7
    cerebrum_autonomous    yes     yes       yes      yes       yes        yes           9
    =====================  ======  ========  =======  ========  =========  ============  =========

Goals carry append-only logs (reflections, thoughts, actions, agent
interactions).  Every model serializes with ``to_dict`` / ``from_dict``.

Example:
    goal = Goal.create(
        "Build a neural network library in JavaScript",
        "Pure-JS library with training and examples",
        tier=TierLevel.CEREBRUM_AUTONOMOUS,
        priority=7,
    )
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar

# =============================================================================
# Enums
# =============================================================================


class GoalStatus(Enum):
    """Goal lifecycle states."""

    ANALYSIS = "analysis"
    """Created; not yet routed through approval or activation."""

    WAITING_APPROVAL = "waiting_approval"
    """Tier requires approval and a decision is pending."""

    ACTIVE = "active"
    """The single goal currently being pursued."""

    PAUSED = "paused"
    """Suspended, usually because another goal was activated."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({GoalStatus.COMPLETED, GoalStatus.FAILED, GoalStatus.CANCELLED})


class GoalType(Enum):
    SHORT_TERM = "short_term"
    LONG_TERM = "long_term"
    MICRO_TASK = "micro_task"
    PROJECT_BASED = "project_based"
    LEARNING_OBJECTIVE = "learning_objective"
    SYSTEM_OPTIMIZATION = "system_optimization"
    USER_SUPPORT = "user_support"


class TierLevel(Enum):
    USER_DERIVED = "user_derived"
    INTERNAL_SYSTEM = "internal_system"
    CEREBRUM_AUTONOMOUS = "cerebrum_autonomous"


class OriginSource(Enum):
    USER_EXPLICIT = "user_explicit"
    USER_IMPLICIT = "user_implicit"
    CEREBRUM_ANALYSIS = "cerebrum_analysis"
    SYSTEM_GENERATED = "system_generated"
    AGENT_DERIVED = "agent_derived"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-format string or pass through a datetime; naive values are UTC."""
    if value is None:
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


# =============================================================================
# Tiers
# =============================================================================


@dataclass(frozen=True)
class TierCharacteristics:
    autonomous_execution: bool
    requires_user_approval: bool
    can_create_subgoals: bool
    can_delegate_to_agents: bool
    proactive_updates: bool
    completion_presentation: bool

    def to_dict(self) -> dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class GoalTier:
    """A fixed autonomy bundle; build with ``GoalTier.for_level``."""

    level: TierLevel
    description: str
    characteristics: TierCharacteristics
    authority_level: int

    _BUNDLES: ClassVar[dict[TierLevel, tuple[str, TierCharacteristics, int]]] = {
        TierLevel.USER_DERIVED: (
            "Goals derived from explicit or inferred user requests",
            TierCharacteristics(
                autonomous_execution=False,
                requires_user_approval=False,
                can_create_subgoals=False,
                can_delegate_to_agents=True,
                proactive_updates=True,
                completion_presentation=True,
            ),
            5,
        ),
        TierLevel.INTERNAL_SYSTEM: (
            "Internal maintenance and optimization goals",
            TierCharacteristics(
                autonomous_execution=True,
                requires_user_approval=False,
                can_create_subgoals=False,
                can_delegate_to_agents=False,
                proactive_updates=False,
                completion_presentation=False,
            ),
            7,
        ),
        TierLevel.CEREBRUM_AUTONOMOUS: (
            "Self-initiated goals proposed from pattern analysis",
            TierCharacteristics(
                autonomous_execution=True,
                requires_user_approval=True,
                can_create_subgoals=True,
                can_delegate_to_agents=True,
                proactive_updates=True,
                completion_presentation=True,
            ),
            9,
        ),
    }

    @classmethod
    def for_level(cls, level: TierLevel | str) -> GoalTier:
        level = TierLevel(level)
        description, characteristics, authority = cls._BUNDLES[level]
        return cls(
            level=level,
            description=description,
            characteristics=characteristics,
            authority_level=authority,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "description": self.description,
            "characteristics": self.characteristics.to_dict(),
            "authority_level": self.authority_level,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GoalTier:
        # Bundles are constants; only the level is authoritative.
        return cls.for_level(data["level"])


# =============================================================================
# Provenance and success criteria
# =============================================================================


@dataclass
class GoalOrigin:
    source: OriginSource = OriginSource.USER_EXPLICIT
    confidence: float = 1.0
    evidence: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)
    creator_agent: str | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"origin confidence must be within [0, 1], got {self.confidence}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value,
            "confidence": self.confidence,
            "evidence": list(self.evidence),
            "timestamp": _iso(self.timestamp),
            "creator_agent": self.creator_agent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GoalOrigin:
        return cls(
            source=OriginSource(data.get("source", "user_explicit")),
            confidence=data.get("confidence", 1.0),
            evidence=list(data.get("evidence", [])),
            timestamp=parse_datetime(data.get("timestamp")) or utcnow(),
            creator_agent=data.get("creator_agent"),
        )


@dataclass
class MeasurableOutcome:
    metric: str
    target_value: Any
    current_value: Any = None
    measurement_method: str = ""
    verification_criteria: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.metric,
            "target_value": self.target_value,
            "current_value": self.current_value,
            "measurement_method": self.measurement_method,
            "verification_criteria": list(self.verification_criteria),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MeasurableOutcome:
        return cls(
            metric=data["metric"],
            target_value=data.get("target_value"),
            current_value=data.get("current_value"),
            measurement_method=data.get("measurement_method", ""),
            verification_criteria=list(data.get("verification_criteria", [])),
        )


DELIVERABLE_STATUSES = ("not_started", "in_progress", "completed", "reviewed")


@dataclass
class GoalDeliverable:
    name: str
    type: str = "other"
    description: str = ""
    status: str = "not_started"
    content: str | None = None
    created_by_agent: str | None = None

    def __post_init__(self) -> None:
        if self.status not in DELIVERABLE_STATUSES:
            raise ValueError(f"Unknown deliverable status: {self.status}")

    @property
    def is_done(self) -> bool:
        return self.status in ("completed", "reviewed")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "status": self.status,
            "content": self.content,
            "created_by_agent": self.created_by_agent,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GoalDeliverable:
        return cls(
            name=data["name"],
            type=data.get("type", "other"),
            description=data.get("description", ""),
            status=data.get("status", "not_started"),
            content=data.get("content"),
            created_by_agent=data.get("created_by_agent"),
        )


@dataclass
class SuccessCriteria:
    description: str = ""
    measurable_outcomes: list[MeasurableOutcome] = field(default_factory=list)
    completion_conditions: list[str] = field(default_factory=list)
    deliverables: list[GoalDeliverable] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "measurable_outcomes": [m.to_dict() for m in self.measurable_outcomes],
            "completion_conditions": list(self.completion_conditions),
            "deliverables": [d.to_dict() for d in self.deliverables],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SuccessCriteria:
        return cls(
            description=data.get("description", ""),
            measurable_outcomes=[MeasurableOutcome.from_dict(m) for m in data.get("measurable_outcomes", [])],
            completion_conditions=list(data.get("completion_conditions", [])),
            deliverables=[GoalDeliverable.from_dict(d) for d in data.get("deliverables", [])],
        )


# =============================================================================
# Append-only log entries
# =============================================================================


class _LogEntry:
    """Shared (de)serialization for log entry dataclasses."""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if isinstance(value, datetime):
                value = value.isoformat()
            elif isinstance(value, (list, dict)):
                value = type(value)(value)
            data[f.name] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]):
        known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
        kwargs = {k: v for k, v in data.items() if k in known}
        if "timestamp" in kwargs:
            kwargs["timestamp"] = parse_datetime(kwargs["timestamp"])
        return cls(**kwargs)


@dataclass
class GoalReflection(_LogEntry):
    goal_id: str
    content: str
    type: str = "progress_assessment"
    insights: list[str] = field(default_factory=list)
    adjustments_made: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: _new_id("reflection"))
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class GoalThought(_LogEntry):
    goal_id: str
    content: str
    type: str = "planning"
    related_emotions: list[str] = field(default_factory=list)
    confidence_level: float = 0.8
    id: str = field(default_factory=lambda: _new_id("thought"))
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class GoalAction(_LogEntry):
    goal_id: str
    description: str
    action_type: str = "system_change"
    outcome: str = ""
    effectiveness: float = 0.0
    lessons_learned: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: _new_id("action"))
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class AgentInteraction(_LogEntry):
    goal_id: str
    agent_name: str
    content: str
    interaction_type: str = "task_assignment"
    metadata: dict[str, Any] = field(default_factory=dict)
    follow_up_required: bool = False
    id: str = field(default_factory=lambda: _new_id("interaction"))
    timestamp: datetime = field(default_factory=utcnow)


# =============================================================================
# Goal
# =============================================================================


@dataclass
class Goal:
    """
    A trackable unit of intent carrying priority, status and tier.

    Invariant: ``progress == 100`` implies ``status == COMPLETED`` with
    ``actual_completion`` set.  The lifecycle controller is responsible for
    keeping it; this class only stores values.

    ``last_progress_update`` records the last 25% threshold that was
    reported to the user, driving proactive progress notifications.
    """

    id: str
    title: str
    description: str
    tier: GoalTier
    type: GoalType = GoalType.SHORT_TERM
    category: str = ""
    origin: GoalOrigin = field(default_factory=GoalOrigin)
    priority: int = 5
    status: GoalStatus = GoalStatus.ANALYSIS
    progress: float = 0.0

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    target_completion: datetime | None = None
    actual_completion: datetime | None = None

    parent_goal_id: str | None = None
    sub_goal_ids: list[str] = field(default_factory=list)
    related_goal_ids: list[str] = field(default_factory=list)
    blocking_dependencies: list[str] = field(default_factory=list)

    success_criteria: SuccessCriteria = field(default_factory=SuccessCriteria)

    reflections: list[GoalReflection] = field(default_factory=list)
    thoughts: list[GoalThought] = field(default_factory=list)
    actions_taken: list[GoalAction] = field(default_factory=list)
    agent_interactions: list[AgentInteraction] = field(default_factory=list)

    last_progress_update: float = 0.0
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 1 <= self.priority <= 10:
            raise ValueError(f"priority must be within 1..10, got {self.priority}")
        if not 0.0 <= self.progress <= 100.0:
            raise ValueError(f"progress must be within 0..100, got {self.progress}")
        if not self.category:
            self.category = self.tier.level.value

    @classmethod
    def create(
        cls,
        title: str,
        description: str = "",
        tier: TierLevel | str = TierLevel.USER_DERIVED,
        **kwargs: Any,
    ) -> Goal:
        """
        Factory method to create a goal with auto-generated ID.

        Args:
            title: Short goal title.
            description: Longer description (defaults to the title).
            tier: Tier level; the capability bundle is looked up.
            **kwargs: Additional attributes.
        """
        return cls(
            id=_new_id("goal"),
            title=title,
            description=description or title,
            tier=GoalTier.for_level(tier),
            **kwargs,
        )

    @property
    def characteristics(self) -> TierCharacteristics:
        return self.tier.characteristics

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def deliverable_completion(self) -> float | None:
        """Fraction of deliverables done, or None when there are none."""
        deliverables = self.success_criteria.deliverables
        if not deliverables:
            return None
        return sum(1 for d in deliverables if d.is_done) / len(deliverables)

    def to_dict(self) -> dict[str, Any]:
        """Serialize goal to dictionary for storage."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "category": self.category,
            "tier": self.tier.to_dict(),
            "origin": self.origin.to_dict(),
            "priority": self.priority,
            "status": self.status.value,
            "progress": self.progress,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "target_completion": _iso(self.target_completion),
            "actual_completion": _iso(self.actual_completion),
            "parent_goal_id": self.parent_goal_id,
            "sub_goal_ids": list(self.sub_goal_ids),
            "related_goal_ids": list(self.related_goal_ids),
            "blocking_dependencies": list(self.blocking_dependencies),
            "success_criteria": self.success_criteria.to_dict(),
            "reflections": [r.to_dict() for r in self.reflections],
            "thoughts": [t.to_dict() for t in self.thoughts],
            "actions_taken": [a.to_dict() for a in self.actions_taken],
            "agent_interactions": [i.to_dict() for i in self.agent_interactions],
            "last_progress_update": self.last_progress_update,
            "context": dict(self.context),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Goal:
        """Deserialize goal from dictionary."""
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description", ""),
            tier=GoalTier.from_dict(data["tier"]),
            type=GoalType(data.get("type", "short_term")),
            category=data.get("category", ""),
            origin=GoalOrigin.from_dict(data.get("origin", {})),
            priority=data.get("priority", 5),
            status=GoalStatus(data.get("status", "analysis")),
            progress=data.get("progress", 0.0),
            created_at=parse_datetime(data.get("created_at")) or utcnow(),
            updated_at=parse_datetime(data.get("updated_at")) or utcnow(),
            target_completion=parse_datetime(data.get("target_completion")),
            actual_completion=parse_datetime(data.get("actual_completion")),
            parent_goal_id=data.get("parent_goal_id"),
            sub_goal_ids=list(data.get("sub_goal_ids", [])),
            related_goal_ids=list(data.get("related_goal_ids", [])),
            blocking_dependencies=list(data.get("blocking_dependencies", [])),
            success_criteria=SuccessCriteria.from_dict(data.get("success_criteria", {})),
            reflections=[GoalReflection.from_dict(r) for r in data.get("reflections", [])],
            thoughts=[GoalThought.from_dict(t) for t in data.get("thoughts", [])],
            actions_taken=[GoalAction.from_dict(a) for a in data.get("actions_taken", [])],
            agent_interactions=[AgentInteraction.from_dict(i) for i in data.get("agent_interactions", [])],
            last_progress_update=data.get("last_progress_update", 0.0),
            context=dict(data.get("context", {})),
        )
