from __future__ import annotations

# pyright: reportUnknownMemberType=false
# pyright: reportUnusedFunction=false

import time
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from chittybeacon.db.session import engine


router = APIRouter(tags=["health"])


class DependencyStatus(BaseModel):
    status: Literal["ok", "error"]
    latency_ms: int | None = None
    detail: str | None = Field(default=None, description="Short diagnostic, never sensitive")


class HealthDependencies(BaseModel):
    db: DependencyStatus


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"] = Field(
        description="Overall status; ok only when every dependency is ok"
    )
    dependencies: HealthDependencies


def _safe_exc_detail(exc: Exception) -> str:
    return type(exc).__name__


def _check_db() -> DependencyStatus:
    start = time.perf_counter()
    try:
        with engine.connect() as conn:
            _ = conn.execute(text("SELECT 1")).scalar_one()
    except SQLAlchemyError as exc:
        latency_ms = int((time.perf_counter() - start) * 1000)
        return DependencyStatus(status="error", latency_ms=latency_ms, detail=_safe_exc_detail(exc))
    latency_ms = int((time.perf_counter() - start) * 1000)
    return DependencyStatus(status="ok", latency_ms=latency_ms)


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    dependencies = HealthDependencies(db=_check_db())
    overall_ok = dependencies.db.status == "ok"
    status: Literal["ok", "degraded"] = "ok" if overall_ok else "degraded"
    return HealthResponse(status=status, dependencies=dependencies)
