# src/goalcore/autonomous/analysis.py
"""
Goal-creation analysis.

An analyzer looks at what has been observed (conversation patterns,
predicted needs) and proposes new goals.  The lifecycle controller turns
each ``GoalProposal`` into a stored goal and routes it through its tier's
rules, so analyzers never touch the store.

``PatternGoalAnalyzer`` proposes:

- one cerebrum_autonomous goal per suggested goal of every pattern whose
  confidence is above 0.7;
- one internal_system goal per predicted need whose probability is above 0.8.

Patterns and predictions that produced proposals are cleared.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from .goals import GoalOrigin, GoalType, OriginSource, TierLevel, _new_id

if TYPE_CHECKING:
    from ..providers.base import BaseCompletionProvider

logger = logging.getLogger(__name__)

PATTERN_CONFIDENCE_THRESHOLD = 0.7
PREDICTION_PROBABILITY_THRESHOLD = 0.8
RECURRING_TOPIC_MIN_COUNT = 3

TOPIC_PROMPT = """Extract the main topics or subjects discussed in this conversation:

{text}

Return a simple JSON array of topics (max 5):
["topic1", "topic2", "topic3"]"""


def _half_up(value: float) -> int:
    return int(value + 0.5)


# =============================================================================
# Observations and proposals
# =============================================================================


@dataclass
class ConversationPattern:
    pattern_type: str
    context: str
    confidence: float
    suggested_goals: list[str] = field(default_factory=list)
    evidence: list[str] = field(default_factory=list)
    frequency: int = 1
    id: str = field(default_factory=lambda: _new_id("pattern"))


@dataclass
class PredictiveGoal:
    predicted_need: str
    probability: float
    timing_suggestion: str = ""
    context_triggers: list[str] = field(default_factory=list)
    preemptive_actions: list[str] = field(default_factory=list)


@dataclass
class GoalProposal:
    """A goal an analyzer wants created; not yet persisted."""

    title: str
    description: str
    tier: TierLevel
    type: GoalType
    priority: int
    origin: GoalOrigin
    deliverables: list[str] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class GoalAnalyzer(Protocol):
    async def analyze(self, context: dict[str, Any]) -> list[GoalProposal]: ...


# =============================================================================
# Pattern analyzer
# =============================================================================


class PatternGoalAnalyzer:
    """
    Proposes goals from recorded conversation patterns and predictions.

    Args:
        provider: Optional completion provider used to extract topics from
            raw interactions when the caller does not supply them.
        model: Model for topic extraction.
    """

    def __init__(self, provider: BaseCompletionProvider | None = None, model: str | None = None):
        self.provider = provider
        self.model = model
        self._patterns: list[ConversationPattern] = []
        self._predictions: list[PredictiveGoal] = []
        self._topic_counts: dict[str, int] = {}
        self._topic_contexts: dict[str, list[str]] = {}

    @property
    def patterns(self) -> list[ConversationPattern]:
        return list(self._patterns)

    @property
    def predictions(self) -> list[PredictiveGoal]:
        return list(self._predictions)

    # ---- recording ----

    def record_pattern(self, pattern: ConversationPattern) -> None:
        self._patterns.append(pattern)

    def record_prediction(self, prediction: PredictiveGoal) -> None:
        self._predictions.append(prediction)

    async def record_interaction(self, text: str, topics: list[str] | None = None) -> list[str]:
        """
        Count the topics of one interaction; a topic seen three or more
        times becomes (or refreshes) a ``recurring_topic`` pattern.

        Returns the topics that were counted.
        """
        if topics is None:
            topics = await self._extract_topics(text)
        for topic in topics:
            topic = topic.strip().lower()
            if not topic:
                continue
            count = self._topic_counts.get(topic, 0) + 1
            self._topic_counts[topic] = count
            self._topic_contexts.setdefault(topic, []).append(text[:200])
            if count >= RECURRING_TOPIC_MIN_COUNT:
                self._upsert_recurring(topic, count)
        return topics

    def _upsert_recurring(self, topic: str, count: int) -> None:
        pattern = ConversationPattern(
            pattern_type="recurring_topic",
            context=f"Recurring interest in {topic}",
            confidence=min(0.9, count * 0.2),
            suggested_goals=[
                f"Learn more about {topic}",
                f"Become proficient in {topic}",
                f"Create something related to {topic}",
            ],
            evidence=self._topic_contexts[topic][:3],
            frequency=count,
        )
        self._patterns = [
            p for p in self._patterns
            if not (p.pattern_type == "recurring_topic" and p.context == pattern.context)
        ]
        self._patterns.append(pattern)

    async def _extract_topics(self, text: str) -> list[str]:
        if self.provider is None:
            return []
        try:
            response = await self.provider.complete(TOPIC_PROMPT.format(text=text), model=self.model, temperature=0.1)
        except Exception as e:
            logger.warning(f"Topic extraction failed: {e}")
            return []
        match = re.search(r"\[.*\]", response, re.DOTALL)
        if not match:
            return []
        try:
            topics = json.loads(match.group(0))
        except json.JSONDecodeError:
            logger.debug(f"Unparseable topic list: {match.group(0)[:100]}")
            return []
        return [str(t) for t in topics][:5] if isinstance(topics, list) else []

    # ---- analysis ----

    async def analyze(self, context: dict[str, Any] | None = None) -> list[GoalProposal]:
        proposals: list[GoalProposal] = []

        consumed = [p for p in self._patterns if p.confidence > PATTERN_CONFIDENCE_THRESHOLD]
        for pattern in consumed:
            for idea in pattern.suggested_goals:
                proposals.append(self._from_pattern(idea, pattern))

        predicted = [p for p in self._predictions if p.probability > PREDICTION_PROBABILITY_THRESHOLD]
        for prediction in predicted:
            proposals.append(self._from_prediction(prediction))

        self._patterns = [p for p in self._patterns if p not in consumed]
        self._predictions = [p for p in self._predictions if p not in predicted]

        logger.info(
            f"Goal analysis produced {len(proposals)} proposals "
            f"from {len(consumed)} patterns and {len(predicted)} predictions"
        )
        return proposals

    @staticmethod
    def _from_pattern(idea: str, pattern: ConversationPattern) -> GoalProposal:
        return GoalProposal(
            title=idea,
            description=f"Self-initiated goal based on {pattern.pattern_type} analysis: {pattern.context}",
            tier=TierLevel.CEREBRUM_AUTONOMOUS,
            type=GoalType.LONG_TERM,
            priority=max(1, _half_up(pattern.confidence * 5)),
            origin=GoalOrigin(
                source=OriginSource.CEREBRUM_ANALYSIS,
                confidence=pattern.confidence,
                evidence=list(pattern.evidence),
                creator_agent="PatternGoalAnalyzer",
            ),
            deliverables=[
                f"Complete analysis of {idea}",
                "Actionable recommendations",
                "Progress tracking system",
            ],
            context={"pattern_id": pattern.id, "pattern_type": pattern.pattern_type},
        )

    @staticmethod
    def _from_prediction(prediction: PredictiveGoal) -> GoalProposal:
        return GoalProposal(
            title=prediction.predicted_need,
            description=f"Predictive goal ({_half_up(prediction.probability * 100)}% confidence)",
            tier=TierLevel.INTERNAL_SYSTEM,
            type=GoalType.SHORT_TERM,
            priority=max(1, _half_up(prediction.probability * 5)),
            origin=GoalOrigin(
                source=OriginSource.SYSTEM_GENERATED,
                confidence=prediction.probability,
                evidence=list(prediction.context_triggers),
                creator_agent="PatternGoalAnalyzer",
            ),
            deliverables=list(prediction.preemptive_actions),
            context={"timing_suggestion": prediction.timing_suggestion},
        )
