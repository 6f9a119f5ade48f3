# pyright: reportMissingImports=false
# pyright: reportCallInDefaultInitializer=false

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from chittybeacon.api.deps import server_error
from chittybeacon.api.schemas import CamelModel, UserOut
from chittybeacon.db import storage
from chittybeacon.db.session import get_db


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


class UserCreate(CamelModel):
    username: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=320)
    name: str = Field(..., min_length=1, max_length=200)
    chitty_id: str | None = Field(None, min_length=1, max_length=255)
    avatar: str | None = None


@router.post(
    "",
    response_model=UserOut,
    status_code=status.HTTP_201_CREATED,
    operation_id="users_create",
)
async def users_create(payload: UserCreate, db: Session = Depends(get_db)) -> UserOut:
    username = payload.username.strip()
    try:
        if storage.get_user_by_username(db, username) is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")
        user = storage.create_user(
            db,
            username=username,
            email=payload.email.strip().lower(),
            name=payload.name,
            chitty_id=payload.chitty_id,
            avatar=payload.avatar,
        )
    except IntegrityError:
        db.rollback()
        logger.info("user create conflict username=%s", payload.username)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already exists")
    except SQLAlchemyError:
        server_error(db, "Failed to create user")
    return UserOut.model_validate(user)


@router.get(
    "/{user_id}",
    response_model=UserOut,
    operation_id="users_get",
)
async def users_get(user_id: str, db: Session = Depends(get_db)) -> UserOut:
    try:
        user = storage.get_user(db, user_id)
    except SQLAlchemyError:
        server_error(db, "Failed to fetch user")
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserOut.model_validate(user)
