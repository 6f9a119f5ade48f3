# pyright: reportMissingImports=false
# pyright: reportUnknownArgumentType=false
# pyright: reportUnknownVariableType=false
from __future__ import annotations

from datetime import datetime
from typing import Literal, get_args
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chittybeacon.core.timeutil import utcnow_naive
from chittybeacon.db.base import Base


def _uuid_str() -> str:
    return str(uuid4())


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests).
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


AppStatus = Literal["online", "offline", "error"]
WorkflowStatus = Literal["pending", "running", "success", "failed", "cancelled"]

APP_STATUSES: tuple[str, ...] = get_args(AppStatus)
WORKFLOW_STATUSES: tuple[str, ...] = get_args(WorkflowStatus)
WORKFLOW_TERMINAL_STATUSES = ("success", "failed", "cancelled")

# Input models reuse these so over-long values are rejected before the insert.
LONG_STRING = 255
SHORT_STRING = 100


def _in_list(column: str, values: tuple[str, ...]) -> str:
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


class User(Base):
    __tablename__: str = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    chitty_id: Mapped[str | None] = mapped_column(String(LONG_STRING), unique=True, nullable=True)
    username: Mapped[str] = mapped_column(String(SHORT_STRING), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    avatar: Mapped[str | None] = mapped_column(Text(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(), default=utcnow_naive, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(), default=utcnow_naive, onupdate=utcnow_naive, nullable=False
    )

    apps: Mapped[list["App"]] = relationship("App", back_populates="user")


class App(Base):
    __tablename__: str = "apps"
    __table_args__: tuple[object, ...] = (
        CheckConstraint(_in_list("status", APP_STATUSES), name="ck_apps_status"),
    )

    # Supplied by the client, never generated.
    id: Mapped[str] = mapped_column(String(LONG_STRING), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        index=True,
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String(LONG_STRING), nullable=False)
    version: Mapped[str] = mapped_column(String(SHORT_STRING), nullable=False)
    platform: Mapped[str] = mapped_column(String(SHORT_STRING), index=True, nullable=False)
    environment: Mapped[str | None] = mapped_column(String(SHORT_STRING), nullable=True)
    hostname: Mapped[str | None] = mapped_column(String(LONG_STRING), nullable=True)
    node_version: Mapped[str | None] = mapped_column(String(SHORT_STRING), nullable=True)
    os: Mapped[str | None] = mapped_column(String(LONG_STRING), nullable=True)
    has_claude_code: Mapped[bool] = mapped_column(Boolean(), default=False, nullable=False)
    has_git: Mapped[bool] = mapped_column(Boolean(), default=False, nullable=False)
    git_info: Mapped[object | None] = mapped_column(JSONDocument, nullable=True)
    platform_info: Mapped[object | None] = mapped_column(JSONDocument, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="offline", index=True, nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(), nullable=False)
    last_seen: Mapped[datetime] = mapped_column(DateTime(), index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(), default=utcnow_naive, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(), default=utcnow_naive, nullable=False
    )

    user: Mapped[User | None] = relationship("User", back_populates="apps")


class AppEvent(Base):
    __tablename__: str = "app_events"
    __table_args__: tuple[object, ...] = (
        Index("ix_app_events_app_id_timestamp", "app_id", "timestamp"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    app_id: Mapped[str] = mapped_column(
        String(LONG_STRING),
        ForeignKey("apps.id"),
        nullable=False,
    )
    event: Mapped[str] = mapped_column(String(SHORT_STRING), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(), index=True, nullable=False)
    data: Mapped[object | None] = mapped_column(JSONDocument, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(), default=utcnow_naive, nullable=False
    )


class Package(Base):
    __tablename__: str = "packages"
    __table_args__: tuple[object, ...] = (
        CheckConstraint("download_count >= 0", name="ck_packages_download_count_ge_0"),
        CheckConstraint("size >= 0", name="ck_packages_size_ge_0"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    app_id: Mapped[str] = mapped_column(
        String(LONG_STRING),
        ForeignKey("apps.id"),
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(LONG_STRING), nullable=False)
    version: Mapped[str] = mapped_column(String(SHORT_STRING), nullable=False)
    manager: Mapped[str] = mapped_column(String(SHORT_STRING), index=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text(), nullable=True)
    download_count: Mapped[int] = mapped_column(Integer(), default=0, nullable=False)
    size: Mapped[int] = mapped_column(Integer(), default=0, nullable=False)
    installed_at: Mapped[datetime] = mapped_column(
        DateTime(), default=utcnow_naive, index=True, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(), default=utcnow_naive, onupdate=utcnow_naive, nullable=False
    )


class Workflow(Base):
    __tablename__: str = "workflows"
    __table_args__: tuple[object, ...] = (
        CheckConstraint(_in_list("status", WORKFLOW_STATUSES), name="ck_workflows_status"),
        CheckConstraint("duration IS NULL OR duration >= 0", name="ck_workflows_duration_ge_0"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    app_id: Mapped[str] = mapped_column(
        String(LONG_STRING),
        ForeignKey("apps.id"),
        index=True,
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(LONG_STRING), nullable=False)
    type: Mapped[str] = mapped_column(String(SHORT_STRING), index=True, nullable=False)  # noqa: A003
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True, nullable=False)
    trigger: Mapped[str | None] = mapped_column(String(SHORT_STRING), nullable=True)
    branch: Mapped[str | None] = mapped_column(String(LONG_STRING), nullable=True)
    commit: Mapped[str | None] = mapped_column(String(SHORT_STRING), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer(), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    # "metadata" is reserved on declarative classes.
    metadata_json: Mapped[object | None] = mapped_column("metadata", JSONDocument, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(), default=utcnow_naive, index=True, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(), default=utcnow_naive, onupdate=utcnow_naive, nullable=False
    )
