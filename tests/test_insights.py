# pyright: reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import cast

import pytest
from fastapi.testclient import TestClient

from chittybeacon.db.models import Workflow
from chittybeacon.main import app
from chittybeacon.services.insights import (
    Insight,
    StaticInsightProvider,
    get_insight_provider,
    summarize,
)


class _OneInsight:
    def generate(self, workflows: Sequence[Workflow]) -> list[Insight]:
        return [
            Insight(
                id="x",
                type="anomaly",
                title="Workflow count",
                description=f"{len(workflows)} workflows seen",
                confidence=50,
                impact="high",
                category="Operations",
                actionable=False,
            )
        ]


@pytest.fixture
def one_insight_provider() -> Iterator[None]:
    app.dependency_overrides[get_insight_provider] = _OneInsight
    try:
        yield
    finally:
        _ = app.dependency_overrides.pop(get_insight_provider, None)


def test_static_provider_fills_in_workflow_counts() -> None:
    workflows = [
        Workflow(name="d1", type="deployment", status="success"),
        Workflow(name="d2", type="deployment", status="failed"),
        Workflow(name="a1", type="analytics", status="running"),
    ]
    insights = StaticInsightProvider().generate(workflows)

    assert [i.type for i in insights] == ["prediction", "anomaly", "recommendation", "trend"]
    assert "2 recent deployments" in insights[0].description
    assert "1 analytics workflows" in insights[1].description


def test_summarize() -> None:
    insights = StaticInsightProvider().generate([])
    s = summarize(insights)
    assert s.total == 4
    assert s.high_impact == 1
    assert s.actionable == 3
    assert s.avg_confidence == pytest.approx((94 + 87 + 91 + 99) / 4)

    empty = summarize([])
    assert empty.total == 0
    assert empty.avg_confidence == 0.0


def test_insights_endpoint_default_provider() -> None:
    with TestClient(app) as client:
        resp = client.get("/api/insights")
        assert resp.status_code == 200
        body = cast(dict[str, object], resp.json())
        assert body["totalInsights"] == 4
        assert body["highImpact"] == 1
        assert body["actionable"] == 3
        insights = cast(list[dict[str, object]], body["insights"])
        assert insights[0]["id"] == "1"
        assert "0 recent deployments" in cast(str, insights[0]["description"])


@pytest.mark.usefixtures("one_insight_provider")
def test_insights_endpoint_uses_injected_provider() -> None:
    with TestClient(app) as client:
        resp = client.get("/api/insights")
        assert resp.status_code == 200
        body = cast(dict[str, object], resp.json())
        assert body["totalInsights"] == 1
        assert body["highImpact"] == 1
        assert body["actionable"] == 0
        assert body["avgConfidence"] == 50.0
        insights = cast(list[dict[str, object]], body["insights"])
        assert insights[0]["description"] == "0 workflows seen"
