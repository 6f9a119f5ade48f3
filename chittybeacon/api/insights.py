# pyright: reportMissingImports=false
# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chittybeacon.api.deps import server_error
from chittybeacon.api.schemas import CamelModel
from chittybeacon.db import storage
from chittybeacon.db.session import get_db
from chittybeacon.services.insights import (
    InsightImpact,
    InsightProvider,
    InsightType,
    get_insight_provider,
    summarize,
)


router = APIRouter(tags=["insights"])


class InsightOut(CamelModel):
    id: str
    type: InsightType
    title: str
    description: str
    confidence: int
    impact: InsightImpact
    category: str
    actionable: bool


class InsightsResponse(CamelModel):
    insights: list[InsightOut]
    total_insights: int
    high_impact: int
    actionable: int
    avg_confidence: float


@router.get(
    "/insights",
    response_model=InsightsResponse,
    operation_id="insights_list",
)
async def insights_list(
    db: Session = Depends(get_db),
    provider: InsightProvider = Depends(get_insight_provider),
) -> InsightsResponse:
    try:
        workflows = storage.list_workflows(db)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch insights")

    insights = provider.generate(workflows)
    summary = summarize(insights)
    return InsightsResponse(
        insights=[InsightOut(**asdict(i)) for i in insights],
        total_insights=summary.total,
        high_impact=summary.high_impact,
        actionable=summary.actionable,
        avg_confidence=summary.avg_confidence,
    )
