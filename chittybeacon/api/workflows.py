# pyright: reportMissingImports=false
# pyright: reportUnknownArgumentType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false
# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chittybeacon.api.deps import get_app_or_404, server_error
from chittybeacon.api.schemas import (
    CamelModel,
    StatusShare,
    TypeShare,
    WireDatetimeModel,
    WorkflowOut,
    WorkflowStatus,
    status_shares,
    type_shares,
)
from chittybeacon.core.config import settings
from chittybeacon.core.timeutil import utcnow_naive
from chittybeacon.db import storage
from chittybeacon.db.models import LONG_STRING, SHORT_STRING, Workflow
from chittybeacon.db.session import get_db
from chittybeacon.metrics.prometheus import record_batch


logger = logging.getLogger(__name__)

router = APIRouter(tags=["workflows"])


class WorkflowFields(WireDatetimeModel):
    name: str = Field(..., min_length=1, max_length=LONG_STRING)
    type: str = Field(..., min_length=1, max_length=SHORT_STRING)
    status: WorkflowStatus = "pending"
    trigger: str | None = Field(None, max_length=SHORT_STRING)
    branch: str | None = Field(None, max_length=LONG_STRING)
    commit: str | None = Field(None, max_length=SHORT_STRING)
    duration: int | None = Field(None, ge=0)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    metadata_json: dict[str, object] | None = Field(None, alias="metadata")


class WorkflowCreate(WorkflowFields):
    app_id: str = Field(..., min_length=1, max_length=LONG_STRING)


class WorkflowUpdate(WireDatetimeModel):
    name: str | None = Field(None, min_length=1, max_length=LONG_STRING)
    type: str | None = Field(None, min_length=1, max_length=SHORT_STRING)
    status: WorkflowStatus | None = None
    trigger: str | None = Field(None, max_length=SHORT_STRING)
    branch: str | None = Field(None, max_length=LONG_STRING)
    commit: str | None = Field(None, max_length=SHORT_STRING)
    duration: int | None = Field(None, ge=0)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    metadata_json: dict[str, object] | None = Field(None, alias="metadata")


class ChittyFlowSyncRequest(CamelModel):
    app_id: str = Field(..., min_length=1, max_length=LONG_STRING)
    workflows: list[WorkflowFields] = Field(..., max_length=settings.batch_max_items)


class WorkflowSyncResponse(CamelModel):
    status: str = "ok"
    synced: int


class WorkflowStatsResponse(CamelModel):
    total_workflows: int
    workflows_by_status: list[StatusShare]
    workflows_by_type: list[TypeShare]
    recent_workflows: list[WorkflowOut]


_NOT_NULL_WORKFLOW_FIELDS = frozenset({"name", "type", "status"})


def _get_workflow_or_404(db: Session, workflow_id: str) -> Workflow:
    wf = storage.get_workflow(db, workflow_id)
    if wf is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Workflow not found")
    return wf


def _workflow_values(fields: WorkflowFields) -> dict[str, object]:
    return fields.model_dump(exclude={"app_id"}, exclude_none=True)


@router.get(
    "/workflows",
    response_model=list[WorkflowOut],
    operation_id="workflows_list",
)
async def workflows_list(
    app_id: str | None = Query(None, alias="appId", min_length=1),
    db: Session = Depends(get_db),
) -> list[WorkflowOut]:
    try:
        wfs = storage.list_workflows(db, app_id=app_id)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch workflows")
    return [WorkflowOut.model_validate(w) for w in wfs]


@router.get(
    "/workflows/stats",
    response_model=WorkflowStatsResponse,
    operation_id="workflows_stats",
)
async def workflows_stats(db: Session = Depends(get_db)) -> WorkflowStatsResponse:
    try:
        s = storage.workflow_stats(db, recent_limit=settings.recent_items_limit)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch workflow stats")
    return WorkflowStatsResponse(
        total_workflows=s.total_workflows,
        workflows_by_status=status_shares(s.workflows_by_status),
        workflows_by_type=type_shares(s.workflows_by_type),
        recent_workflows=[WorkflowOut.model_validate(w) for w in s.recent_workflows],
    )


@router.post(
    "/workflows",
    response_model=WorkflowOut,
    status_code=status.HTTP_201_CREATED,
    operation_id="workflows_create",
)
async def workflows_create(
    payload: WorkflowCreate,
    db: Session = Depends(get_db),
) -> WorkflowOut:
    try:
        _ = get_app_or_404(db, payload.app_id)
        wf = storage.create_workflow(db, app_id=payload.app_id, values=_workflow_values(payload))
        _ = storage.create_app_event(
            db,
            app_id=wf.app_id,
            event="workflow_created",
            timestamp=wf.created_at,
            data={"workflowId": wf.id, "type": wf.type, "status": wf.status},
        )
    except SQLAlchemyError:
        server_error(db, "Failed to create workflow")
    return WorkflowOut.model_validate(wf)


@router.patch(
    "/workflows/{workflow_id}",
    response_model=WorkflowOut,
    operation_id="workflows_update",
)
async def workflows_update(
    workflow_id: str,
    payload: WorkflowUpdate,
    db: Session = Depends(get_db),
) -> WorkflowOut:
    changes = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k not in _NOT_NULL_WORKFLOW_FIELDS
    }
    try:
        wf = _get_workflow_or_404(db, workflow_id)
        previous_status = wf.status
        wf = storage.update_workflow(db, wf, changes)
        if wf.status != previous_status:
            _ = storage.create_app_event(
                db,
                app_id=wf.app_id,
                event="workflow_updated",
                timestamp=wf.updated_at,
                data={"workflowId": wf.id, "from": previous_status, "status": wf.status},
            )
    except SQLAlchemyError:
        server_error(db, "Failed to update workflow")
    return WorkflowOut.model_validate(wf)


@router.post(
    "/chittyflow/workflows",
    response_model=WorkflowSyncResponse,
    operation_id="chittyflow_sync",
)
async def chittyflow_sync(
    payload: ChittyFlowSyncRequest,
    db: Session = Depends(get_db),
) -> WorkflowSyncResponse | JSONResponse:
    try:
        _ = get_app_or_404(db, payload.app_id)
    except SQLAlchemyError:
        server_error(db, "Failed to sync workflows")

    synced = 0
    failed = False
    # One commit per item; a failure keeps what was already stored.
    for item in payload.workflows:
        try:
            _ = storage.create_workflow(db, app_id=payload.app_id, values=_workflow_values(item))
        except SQLAlchemyError:
            db.rollback()
            logger.exception(
                "chittyflow sync aborted app_id=%s synced=%d total=%d",
                payload.app_id,
                synced,
                len(payload.workflows),
            )
            failed = True
            break
        synced += 1

    record_batch("workflow", stored=synced, failed=failed)

    try:
        _ = storage.create_app_event(
            db,
            app_id=payload.app_id,
            event="workflow_sync",
            timestamp=utcnow_naive(),
            data={"count": synced},
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to record workflow_sync event app_id=%s", payload.app_id)
        failed = True

    if failed:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to sync workflows", "synced": synced},
        )
    return WorkflowSyncResponse(synced=synced)
