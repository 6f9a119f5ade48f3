# pyright: reportMissingImports=false
# pyright: reportUnknownArgumentType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false
# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chittybeacon.api.deps import get_app_or_404, server_error
from chittybeacon.api.schemas import AppEventOut, AppOut, CamelModel, PlatformShare, platform_shares
from chittybeacon.core.config import settings
from chittybeacon.db import storage
from chittybeacon.db.session import get_db


router = APIRouter(tags=["apps"])


class AppStatsResponse(CamelModel):
    total_apps: int
    active_apps: int
    claude_apps: int
    avg_uptime: float
    platform_distribution: list[PlatformShare]


@router.get(
    "/apps",
    response_model=list[AppOut],
    operation_id="apps_list",
)
async def apps_list(db: Session = Depends(get_db)) -> list[AppOut]:
    try:
        apps = storage.list_apps(db)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch apps")
    return [AppOut.model_validate(a) for a in apps]


@router.get(
    "/apps/{app_id}",
    response_model=AppOut,
    operation_id="apps_get",
)
async def apps_get(app_id: str, db: Session = Depends(get_db)) -> AppOut:
    try:
        app = get_app_or_404(db, app_id)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch app")
    return AppOut.model_validate(app)


@router.get(
    "/apps/{app_id}/events",
    response_model=list[AppEventOut],
    operation_id="apps_events",
)
async def apps_events(
    app_id: str,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> list[AppEventOut]:
    try:
        _ = get_app_or_404(db, app_id)
        events = storage.list_recent_events(db, limit, app_id=app_id)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch events")
    return [AppEventOut.model_validate(e) for e in events]


@router.get(
    "/events",
    response_model=list[AppEventOut],
    operation_id="events_recent",
)
async def events_recent(db: Session = Depends(get_db)) -> list[AppEventOut]:
    try:
        events = storage.list_recent_events(db, settings.recent_events_limit)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch events")
    return [AppEventOut.model_validate(e) for e in events]


@router.get(
    "/stats",
    response_model=AppStatsResponse,
    operation_id="stats_apps",
)
async def stats(db: Session = Depends(get_db)) -> AppStatsResponse:
    try:
        s = storage.app_stats(db)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch stats")
    return AppStatsResponse(
        total_apps=s.total_apps,
        active_apps=s.active_apps,
        claude_apps=s.claude_apps,
        avg_uptime=s.avg_uptime,
        platform_distribution=platform_shares(s.platform_distribution),
    )
