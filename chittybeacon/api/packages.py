# pyright: reportMissingImports=false
# pyright: reportUnknownArgumentType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false
# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from pydantic import Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chittybeacon.api.deps import get_app_or_404, server_error
from chittybeacon.api.schemas import CamelModel, ManagerShare, PackageOut, manager_shares
from chittybeacon.core.config import settings
from chittybeacon.core.timeutil import utcnow_naive
from chittybeacon.db import storage
from chittybeacon.db.models import LONG_STRING, SHORT_STRING, Package
from chittybeacon.db.session import get_db
from chittybeacon.metrics.prometheus import record_batch


logger = logging.getLogger(__name__)

router = APIRouter(tags=["packages"])


class PackageCreate(CamelModel):
    app_id: str = Field(..., min_length=1, max_length=LONG_STRING)
    name: str = Field(..., min_length=1, max_length=LONG_STRING)
    version: str = Field(..., min_length=1, max_length=SHORT_STRING)
    manager: str = Field(..., min_length=1, max_length=SHORT_STRING)
    description: str | None = None
    download_count: int = Field(0, ge=0)
    size: int = Field(0, ge=0)


class PackageUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=LONG_STRING)
    version: str | None = Field(None, min_length=1, max_length=SHORT_STRING)
    manager: str | None = Field(None, min_length=1, max_length=SHORT_STRING)
    description: str | None = None
    download_count: int | None = Field(None, ge=0)
    size: int | None = Field(None, ge=0)


class SyncPackageItem(CamelModel):
    name: str = Field(..., min_length=1, max_length=LONG_STRING)
    version: str = Field(..., min_length=1, max_length=SHORT_STRING)
    description: str | None = None
    download_count: int = Field(0, ge=0)
    size: int = Field(0, ge=0)


class ChittyPMSyncRequest(CamelModel):
    app_id: str = Field(..., min_length=1, max_length=LONG_STRING)
    packages: list[SyncPackageItem] = Field(..., max_length=settings.batch_max_items)


class SyncResponse(CamelModel):
    status: str = "ok"
    synced: int


class PackageStatsResponse(CamelModel):
    total_packages: int
    packages_by_manager: list[ManagerShare]
    recent_installs: list[PackageOut]


def _get_package_or_404(db: Session, package_id: str) -> Package:
    pkg = storage.get_package(db, package_id)
    if pkg is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Package not found")
    return pkg


@router.get(
    "/packages",
    response_model=list[PackageOut],
    operation_id="packages_list",
)
async def packages_list(db: Session = Depends(get_db)) -> list[PackageOut]:
    try:
        pkgs = storage.list_packages(db)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch packages")
    return [PackageOut.model_validate(p) for p in pkgs]


@router.get(
    "/packages/stats",
    response_model=PackageStatsResponse,
    operation_id="packages_stats",
)
async def packages_stats(db: Session = Depends(get_db)) -> PackageStatsResponse:
    try:
        s = storage.package_stats(db, recent_limit=settings.recent_items_limit)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch package stats")
    return PackageStatsResponse(
        total_packages=s.total_packages,
        packages_by_manager=manager_shares(s.packages_by_manager),
        recent_installs=[PackageOut.model_validate(p) for p in s.recent_installs],
    )


@router.get(
    "/apps/{app_id}/packages",
    response_model=list[PackageOut],
    operation_id="apps_packages",
)
async def apps_packages(app_id: str, db: Session = Depends(get_db)) -> list[PackageOut]:
    try:
        _ = get_app_or_404(db, app_id)
        pkgs = storage.list_app_packages(db, app_id)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch packages")
    return [PackageOut.model_validate(p) for p in pkgs]


@router.post(
    "/packages",
    response_model=PackageOut,
    status_code=status.HTTP_201_CREATED,
    operation_id="packages_install",
)
async def packages_install(
    payload: PackageCreate,
    db: Session = Depends(get_db),
) -> PackageOut:
    try:
        _ = get_app_or_404(db, payload.app_id)
        pkg = storage.install_package(
            db,
            app_id=payload.app_id,
            name=payload.name,
            version=payload.version,
            manager=payload.manager,
            description=payload.description,
            download_count=payload.download_count,
            size=payload.size,
        )
        _ = storage.create_app_event(
            db,
            app_id=pkg.app_id,
            event="package_install",
            timestamp=pkg.installed_at,
            data={
                "packageId": pkg.id,
                "name": pkg.name,
                "version": pkg.version,
                "manager": pkg.manager,
            },
        )
    except SQLAlchemyError:
        server_error(db, "Failed to install package")
    return PackageOut.model_validate(pkg)


@router.patch(
    "/packages/{package_id}",
    response_model=PackageOut,
    operation_id="packages_update",
)
async def packages_update(
    package_id: str,
    payload: PackageUpdate,
    db: Session = Depends(get_db),
) -> PackageOut:
    # Only description may be cleared; the other columns are NOT NULL.
    changes = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k == "description"
    }
    try:
        pkg = _get_package_or_404(db, package_id)
        pkg = storage.update_package(db, pkg, changes)
    except SQLAlchemyError:
        server_error(db, "Failed to update package")
    return PackageOut.model_validate(pkg)


@router.delete(
    "/packages/{package_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    operation_id="packages_uninstall",
)
async def packages_uninstall(package_id: str, db: Session = Depends(get_db)) -> Response:
    try:
        pkg = _get_package_or_404(db, package_id)
        app_id, name, version = pkg.app_id, pkg.name, pkg.version
        storage.uninstall_package(db, pkg)
        _ = storage.create_app_event(
            db,
            app_id=app_id,
            event="package_uninstall",
            timestamp=utcnow_naive(),
            data={"packageId": package_id, "name": name, "version": version},
        )
    except SQLAlchemyError:
        server_error(db, "Failed to uninstall package")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/chittypm/sync",
    response_model=SyncResponse,
    operation_id="chittypm_sync",
)
async def chittypm_sync(
    payload: ChittyPMSyncRequest,
    db: Session = Depends(get_db),
) -> SyncResponse | JSONResponse:
    try:
        _ = get_app_or_404(db, payload.app_id)
    except SQLAlchemyError:
        server_error(db, "Failed to sync packages")

    manager = settings.chittypm_manager
    synced = 0
    failed = False
    # One commit per item; a failure keeps what was already stored.
    for item in payload.packages:
        try:
            _ = storage.install_package(
                db,
                app_id=payload.app_id,
                name=item.name,
                version=item.version,
                manager=manager,
                description=item.description,
                download_count=item.download_count,
                size=item.size,
            )
        except SQLAlchemyError:
            db.rollback()
            logger.exception(
                "chittypm sync aborted app_id=%s synced=%d total=%d",
                payload.app_id,
                synced,
                len(payload.packages),
            )
            failed = True
            break
        synced += 1

    record_batch("package", stored=synced, failed=failed)

    try:
        _ = storage.create_app_event(
            db,
            app_id=payload.app_id,
            event="package_sync",
            timestamp=utcnow_naive(),
            data={"count": synced, "manager": manager},
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception("failed to record package_sync event app_id=%s", payload.app_id)
        failed = True

    if failed:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to sync packages", "synced": synced},
        )
    return SyncResponse(synced=synced)
