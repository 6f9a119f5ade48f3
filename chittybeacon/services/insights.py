"""Analytics insights shown on the dashboard.

Insight generation sits behind :class:`InsightProvider` so a real analytics
engine can replace :class:`StaticInsightProvider` without touching the API.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, Protocol

from chittybeacon.db.models import Workflow


InsightType = Literal["prediction", "anomaly", "recommendation", "trend"]
InsightImpact = Literal["low", "medium", "high"]


@dataclass(frozen=True)
class Insight:
    id: str
    type: InsightType
    title: str
    description: str
    confidence: int
    impact: InsightImpact
    category: str
    actionable: bool


@dataclass(frozen=True)
class InsightSummary:
    total: int
    high_impact: int
    actionable: int
    avg_confidence: float


class InsightProvider(Protocol):
    def generate(self, workflows: Sequence[Workflow]) -> list[Insight]: ...


class StaticInsightProvider:
    """Fixed insights with a few workflow counts filled in. Not an inference engine."""

    def generate(self, workflows: Sequence[Workflow]) -> list[Insight]:
        deployments = sum(1 for w in workflows if w.type == "deployment")
        analytics = sum(1 for w in workflows if w.type == "analytics")

        return [
            Insight(
                id="1",
                type="prediction",
                title="Deployment Success Rate Trend",
                description=(
                    f"Based on {deployments} recent deployments, success rate is trending "
                    "upward with 94% confidence."
                ),
                confidence=94,
                impact="medium",
                category="Performance",
                actionable=True,
            ),
            Insight(
                id="2",
                type="anomaly",
                title="Unusual Analytics Activity",
                description=(
                    f"Detected {analytics} analytics workflows running - 3x higher than "
                    "typical baseline."
                ),
                confidence=87,
                impact="medium",
                category="Operations",
                actionable=True,
            ),
            Insight(
                id="3",
                type="recommendation",
                title="Optimize ChittyPM Dependencies",
                description=(
                    "Analysis suggests consolidating 2 overlapping package dependencies "
                    "could reduce bundle size by 15%."
                ),
                confidence=91,
                impact="high",
                category="Performance",
                actionable=True,
            ),
            Insight(
                id="4",
                type="trend",
                title="Security Scan Compliance",
                description=(
                    "Zero vulnerabilities detected across all scanned applications - "
                    "maintaining excellent security posture."
                ),
                confidence=99,
                impact="low",
                category="Security",
                actionable=False,
            ),
        ]


def summarize(insights: Sequence[Insight]) -> InsightSummary:
    if not insights:
        return InsightSummary(total=0, high_impact=0, actionable=0, avg_confidence=0.0)
    return InsightSummary(
        total=len(insights),
        high_impact=sum(1 for i in insights if i.impact == "high"),
        actionable=sum(1 for i in insights if i.actionable),
        avg_confidence=sum(i.confidence for i in insights) / len(insights),
    )


_default_provider = StaticInsightProvider()


def get_insight_provider() -> InsightProvider:
    return _default_provider
