from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from chittybeacon.db import storage
from chittybeacon.db.models import App


logger = logging.getLogger(__name__)


def server_error(db: Session, detail: str) -> NoReturn:
    """Roll back, log the active exception and answer 500 with ``detail``."""
    db.rollback()
    logger.exception(detail)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


def get_app_or_404(db: Session, app_id: str) -> App:
    app = storage.get_app(db, app_id)
    if app is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="App not found")
    return app
