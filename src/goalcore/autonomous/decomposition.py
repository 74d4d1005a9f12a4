# src/goalcore/autonomous/decomposition.py
"""
Sub-goal decomposition rules.

A ``DecompositionTable`` is an ordered list of rules.  Each rule pairs a
predicate over a goal with the child titles it produces.  Every matching
rule contributes its templates, in registration order, without duplicates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

from .goals import Goal


@dataclass(frozen=True)
class DecompositionRule:
    name: str
    predicate: Callable[[Goal], bool]
    templates: tuple[str, ...]

    def matches(self, goal: Goal) -> bool:
        return bool(self.predicate(goal))


def keyword_rule(name: str, keywords: Iterable[str], templates: Iterable[str]) -> DecompositionRule:
    """Rule that fires when every keyword occurs in the goal title (case-insensitive)."""
    needles = tuple(k.lower() for k in keywords)

    def predicate(goal: Goal) -> bool:
        title = goal.title.lower()
        return all(k in title for k in needles)

    return DecompositionRule(name=name, predicate=predicate, templates=tuple(templates))


@dataclass
class DecompositionTable:
    rules: list[DecompositionRule] = field(default_factory=list)

    def register(self, rule: DecompositionRule) -> None:
        if any(r.name == rule.name for r in self.rules):
            raise ValueError(f"Decomposition rule '{rule.name}' already registered")
        self.rules.append(rule)

    def unregister(self, name: str) -> bool:
        before = len(self.rules)
        self.rules = [r for r in self.rules if r.name != name]
        return len(self.rules) != before

    def match(self, goal: Goal) -> list[str]:
        titles: list[str] = []
        for rule in self.rules:
            if rule.matches(goal):
                titles.extend(t for t in rule.templates if t not in titles)
        return titles


def default_table() -> DecompositionTable:
    table = DecompositionTable()
    table.register(
        keyword_rule(
            "javascript_neural_network",
            ["neural network", "javascript"],
            [
                "Research existing JavaScript ML libraries",
                "Design neural network architecture",
                "Implement core neural network classes",
                "Create training algorithms",
                "Develop testing and validation suite",
                "Write comprehensive documentation",
                "Create example implementations",
            ],
        )
    )
    table.register(
        keyword_rule(
            "business_plan",
            ["business plan"],
            [
                "Market research and analysis",
                "Competitive analysis",
                "Financial projections",
                "Marketing strategy",
                "Operations plan",
                "Risk assessment",
            ],
        )
    )
    return table
