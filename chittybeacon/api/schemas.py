# pyright: reportMissingImports=false
# pyright: reportUnknownVariableType=false
from __future__ import annotations

from datetime import datetime
from typing import Annotated, ClassVar

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from chittybeacon.core.timeutil import to_naive_utc
from chittybeacon.db.models import AppStatus, WorkflowStatus
from chittybeacon.db.storage import GroupCount


def _iso_utc(dt: datetime) -> str:
    return to_naive_utc(dt).isoformat() + "Z"


# Stored values are naive UTC; the trailing Z keeps browsers from reading them as local time.
UtcDatetime = Annotated[datetime, PlainSerializer(_iso_utc, return_type=str, when_used="json")]


class CamelModel(BaseModel):
    """camelCase on the wire; snake_case names are accepted on input too."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class AppOut(CamelModel):
    id: str
    user_id: str | None
    name: str
    version: str
    platform: str
    environment: str | None
    hostname: str | None
    node_version: str | None
    os: str | None
    has_claude_code: bool
    has_git: bool
    git_info: dict[str, object] | None
    platform_info: dict[str, object] | None
    status: AppStatus
    started_at: UtcDatetime
    last_seen: UtcDatetime
    created_at: UtcDatetime
    updated_at: UtcDatetime


class AppEventOut(CamelModel):
    id: str
    app_id: str
    event: str
    timestamp: UtcDatetime
    data: dict[str, object] | None
    created_at: UtcDatetime


class PackageOut(CamelModel):
    id: str
    app_id: str
    name: str
    version: str
    manager: str
    description: str | None
    download_count: int
    size: int
    installed_at: UtcDatetime
    updated_at: UtcDatetime


class WorkflowOut(CamelModel):
    id: str
    app_id: str
    name: str
    type: str
    status: WorkflowStatus
    trigger: str | None
    branch: str | None
    commit: str | None
    duration: int | None
    started_at: UtcDatetime | None
    completed_at: UtcDatetime | None
    metadata_json: dict[str, object] | None = Field(default=None, serialization_alias="metadata")
    created_at: UtcDatetime
    updated_at: UtcDatetime


class UserOut(CamelModel):
    id: str
    chitty_id: str | None
    username: str
    email: str
    name: str
    avatar: str | None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class PlatformShare(CamelModel):
    platform: str
    count: int
    percentage: float


class ManagerShare(CamelModel):
    manager: str
    count: int
    percentage: float


class StatusShare(CamelModel):
    status: str
    count: int
    percentage: float


class TypeShare(CamelModel):
    type: str
    count: int
    percentage: float


def platform_shares(groups: list[GroupCount]) -> list[PlatformShare]:
    return [PlatformShare(platform=g.key, count=g.count, percentage=g.percentage) for g in groups]


def manager_shares(groups: list[GroupCount]) -> list[ManagerShare]:
    return [ManagerShare(manager=g.key, count=g.count, percentage=g.percentage) for g in groups]


def status_shares(groups: list[GroupCount]) -> list[StatusShare]:
    return [StatusShare(status=g.key, count=g.count, percentage=g.percentage) for g in groups]


def type_shares(groups: list[GroupCount]) -> list[TypeShare]:
    return [TypeShare(type=g.key, count=g.count, percentage=g.percentage) for g in groups]


class WireDatetimeModel(CamelModel):
    """Input model whose datetime fields are stored as naive UTC."""

    @field_validator("*", mode="after")
    @classmethod
    def _naive_utc(cls, v: object) -> object:
        if isinstance(v, datetime):
            return to_naive_utc(v)
        return v
