# pyright: reportMissingImports=false
# pyright: reportUnknownArgumentType=false
# pyright: reportUnknownVariableType=false
from __future__ import annotations

from fastapi import APIRouter

from chittybeacon.api.apps import router as apps_router
from chittybeacon.api.health import router as health_router
from chittybeacon.api.insights import router as insights_router
from chittybeacon.api.packages import router as packages_router
from chittybeacon.api.track import router as track_router
from chittybeacon.api.users import router as users_router
from chittybeacon.api.workflows import router as workflows_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(apps_router)
api_router.include_router(packages_router)
api_router.include_router(workflows_router)
api_router.include_router(insights_router)
api_router.include_router(users_router)

# Beacons post to /track outside the API prefix.
beacon_router = APIRouter()
beacon_router.include_router(track_router)
