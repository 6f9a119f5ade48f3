# pyright: reportMissingImports=false
# pyright: reportUnknownArgumentType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false
# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chittybeacon.core.config import settings
from chittybeacon.core.timeutil import to_naive_utc
from chittybeacon.db import storage
from chittybeacon.db.models import LONG_STRING, SHORT_STRING
from chittybeacon.db.session import get_db
from chittybeacon.metrics.prometheus import record_beacon, record_beacon_rejected


logger = logging.getLogger(__name__)

router = APIRouter(tags=["track"])


class GitInfo(BaseModel):
    branch: str
    commit: str
    remote: str


class ReplitInfo(BaseModel):
    id: str
    slug: str
    owner: str
    url: str


class GithubInfo(BaseModel):
    repository: str
    workflow: str | None = None
    run_id: str | None = None
    actor: str | None = None


class VercelInfo(BaseModel):
    url: str
    env: str
    region: str


class TrackingPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", allow_inf_nan=False)

    id: str = Field(..., min_length=1, max_length=LONG_STRING)
    name: str = Field(..., min_length=1, max_length=LONG_STRING)
    version: str = Field(..., min_length=1, max_length=SHORT_STRING)
    platform: str = Field(..., min_length=1, max_length=SHORT_STRING)
    event: str = Field(..., min_length=1, max_length=SHORT_STRING)
    timestamp: datetime

    environment: str | None = Field(None, max_length=SHORT_STRING)
    hostname: str | None = Field(None, max_length=LONG_STRING)
    node_version: str | None = Field(None, max_length=SHORT_STRING)
    os: str | None = Field(None, max_length=LONG_STRING)
    has_claude_code: bool | None = None
    has_git: bool | None = None
    git: GitInfo | None = None
    replit: ReplitInfo | None = None
    github: GithubInfo | None = None
    vercel: VercelInfo | None = None
    uptime: float | None = None
    started_at: datetime | None = None
    pid: int | None = None

    @field_validator("timestamp", "started_at", mode="after")
    @classmethod
    def _naive_utc(cls, v: datetime | None) -> datetime | None:
        return to_naive_utc(v) if v is not None else None


class TrackResponse(BaseModel):
    status: str = "ok"


def derive_status(event: str) -> str:
    return "offline" if event == "shutdown" else "online"


def app_values_from_payload(payload: TrackingPayload) -> dict[str, object]:
    platform_info = {
        "replit": payload.replit.model_dump() if payload.replit else None,
        "github": payload.github.model_dump() if payload.github else None,
        "vercel": payload.vercel.model_dump() if payload.vercel else None,
    }
    return {
        "user_id": None,
        "name": payload.name,
        "version": payload.version,
        "platform": payload.platform,
        "environment": payload.environment or settings.default_environment,
        "hostname": payload.hostname,
        "node_version": payload.node_version,
        "os": payload.os,
        "has_claude_code": bool(payload.has_claude_code),
        "has_git": bool(payload.has_git),
        "git_info": payload.git.model_dump() if payload.git else None,
        "platform_info": platform_info,
        "status": derive_status(payload.event),
        "started_at": payload.started_at or payload.timestamp,
        "last_seen": payload.timestamp,
    }


def _invalid(reason: str) -> JSONResponse:
    record_beacon_rejected(reason)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid tracking data"},
    )


@router.post(
    "/track",
    response_model=TrackResponse,
    operation_id="track_beacon",
)
async def track(
    request: Request,
    db: Session = Depends(get_db),
) -> TrackResponse | JSONResponse:
    try:
        raw: object = await request.json()
    except ValueError:
        logger.warning("tracking payload is not valid JSON")
        return _invalid("malformed_json")

    try:
        payload = TrackingPayload.model_validate(raw)
    except ValidationError as exc:
        logger.warning("tracking payload rejected errors=%s", exc.errors(include_url=False))
        return _invalid("schema")

    try:
        _ = storage.upsert_app(db, payload.id, app_values_from_payload(payload))
        _ = storage.create_app_event(
            db,
            app_id=payload.id,
            event=payload.event,
            timestamp=payload.timestamp,
            data={"uptime": payload.uptime, "pid": payload.pid},
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to record beacon app_id=%s event=%s", payload.id, payload.event)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to record tracking data"},
        )

    record_beacon(payload.event)
    return TrackResponse()
