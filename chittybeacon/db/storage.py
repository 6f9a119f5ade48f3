# pyright: reportUnknownArgumentType=false
# pyright: reportUnknownMemberType=false
# pyright: reportUnknownVariableType=false
"""Per-entity persistence operations.

Every write commits on its own; nothing here spans a transaction across
several calls. Aggregations run as ``GROUP BY`` queries in the database.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import InstrumentedAttribute, Session

from chittybeacon.core.timeutil import utcnow_naive
from chittybeacon.db.models import (
    WORKFLOW_TERMINAL_STATUSES,
    App,
    AppEvent,
    Package,
    User,
    Workflow,
)


logger = logging.getLogger(__name__)


_APP_FIELD_DEFAULTS: dict[str, object] = {
    "user_id": None,
    "name": None,
    "version": None,
    "platform": None,
    "environment": None,
    "hostname": None,
    "node_version": None,
    "os": None,
    "has_claude_code": False,
    "has_git": False,
    "git_info": None,
    "platform_info": None,
    "status": "offline",
    "started_at": None,
    "last_seen": None,
}

_PACKAGE_MUTABLE_FIELDS = frozenset(
    {"name", "version", "manager", "description", "download_count", "size"}
)

_WORKFLOW_MUTABLE_FIELDS = frozenset(
    {
        "name",
        "type",
        "status",
        "trigger",
        "branch",
        "commit",
        "duration",
        "started_at",
        "completed_at",
        "metadata_json",
    }
)

_WORKFLOW_RUN_FIELDS = ("started_at", "completed_at", "duration")


@dataclass(frozen=True)
class GroupCount:
    key: str
    count: int
    percentage: float


@dataclass(frozen=True)
class AppStats:
    total_apps: int
    active_apps: int
    claude_apps: int
    avg_uptime: float
    platform_distribution: list[GroupCount] = field(default_factory=list)


@dataclass(frozen=True)
class PackageStats:
    total_packages: int
    packages_by_manager: list[GroupCount]
    recent_installs: list[Package]


@dataclass(frozen=True)
class WorkflowStats:
    total_workflows: int
    workflows_by_status: list[GroupCount]
    workflows_by_type: list[GroupCount]
    recent_workflows: list[Workflow]


def percentage(count: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return count / total * 100


def _count(db: Session, model: type[object], *criteria: object) -> int:
    stmt = select(func.count()).select_from(model)
    if criteria:
        stmt = stmt.where(*criteria)
    return int(db.execute(stmt).scalar_one())


def distribution(
    db: Session, column: InstrumentedAttribute[str], *, total: int
) -> list[GroupCount]:
    stmt = (
        select(column, func.count().label("cnt"))
        .group_by(column)
        .order_by(func.count().desc(), column.asc())
    )
    rows = db.execute(stmt).tuples().all()
    return [
        GroupCount(key=str(key), count=int(cnt), percentage=percentage(int(cnt), total))
        for (key, cnt) in rows
    ]


# Users


def get_user(db: Session, user_id: str) -> User | None:
    return db.get(User, user_id)


def get_user_by_username(db: Session, username: str) -> User | None:
    return db.execute(select(User).where(User.username == username)).scalar_one_or_none()


def create_user(
    db: Session,
    *,
    username: str,
    email: str,
    name: str,
    chitty_id: str | None = None,
    avatar: str | None = None,
) -> User:
    user = User(username=username, email=email, name=name, chitty_id=chitty_id, avatar=avatar)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# Apps


def list_apps(db: Session) -> list[App]:
    stmt = select(App).order_by(App.last_seen.desc(), App.id.asc())
    return list(db.execute(stmt).scalars().all())


def get_app(db: Session, app_id: str) -> App | None:
    return db.get(App, app_id)


def _apply_app_fields(app: App, values: Mapping[str, object]) -> None:
    for name, default in _APP_FIELD_DEFAULTS.items():
        setattr(app, name, values.get(name, default))


def upsert_app(db: Session, app_id: str, values: Mapping[str, object]) -> App:
    """Insert the app, or overwrite every field of the existing row (last write wins)."""
    now = utcnow_naive()

    existing = db.get(App, app_id)
    if existing is None:
        app = App(id=app_id, created_at=now, updated_at=now)
        _apply_app_fields(app, values)
        db.add(app)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent beacon for the same id inserted first.
            db.rollback()
            existing = db.get(App, app_id)
            if existing is None:
                raise
            logger.info("app insert lost race, updating instead app_id=%s", app_id)
        else:
            db.refresh(app)
            return app

    _apply_app_fields(existing, values)
    existing.updated_at = now
    db.commit()
    db.refresh(existing)
    return existing


# Events


def create_app_event(
    db: Session,
    *,
    app_id: str,
    event: str,
    timestamp: datetime,
    data: object | None = None,
) -> AppEvent:
    ev = AppEvent(app_id=app_id, event=event, timestamp=timestamp, data=data)
    db.add(ev)
    db.commit()
    db.refresh(ev)
    return ev


def list_recent_events(db: Session, limit: int, *, app_id: str | None = None) -> list[AppEvent]:
    stmt = select(AppEvent)
    if app_id is not None:
        stmt = stmt.where(AppEvent.app_id == app_id)
    stmt = stmt.order_by(AppEvent.timestamp.desc(), AppEvent.created_at.desc()).limit(limit)
    return list(db.execute(stmt).scalars().all())


# Packages


def list_packages(db: Session) -> list[Package]:
    stmt = select(Package).order_by(Package.installed_at.desc())
    return list(db.execute(stmt).scalars().all())


def list_app_packages(db: Session, app_id: str) -> list[Package]:
    stmt = (
        select(Package)
        .where(Package.app_id == app_id)
        .order_by(Package.installed_at.desc())
    )
    return list(db.execute(stmt).scalars().all())


def get_package(db: Session, package_id: str) -> Package | None:
    return db.get(Package, package_id)


def install_package(
    db: Session,
    *,
    app_id: str,
    name: str,
    version: str,
    manager: str,
    description: str | None = None,
    download_count: int = 0,
    size: int = 0,
) -> Package:
    now = utcnow_naive()
    pkg = Package(
        app_id=app_id,
        name=name,
        version=version,
        manager=manager,
        description=description,
        download_count=download_count,
        size=size,
        installed_at=now,
        updated_at=now,
    )
    db.add(pkg)
    db.commit()
    db.refresh(pkg)
    return pkg


def update_package(db: Session, pkg: Package, changes: Mapping[str, object]) -> Package:
    unknown = set(changes) - _PACKAGE_MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update package fields: {sorted(unknown)}")
    for name, value in changes.items():
        setattr(pkg, name, value)
    pkg.updated_at = utcnow_naive()
    db.commit()
    db.refresh(pkg)
    return pkg


def uninstall_package(db: Session, pkg: Package) -> None:
    db.delete(pkg)
    db.commit()


def package_stats(db: Session, *, recent_limit: int) -> PackageStats:
    total = _count(db, Package)
    by_manager = distribution(db, Package.manager, total=total)
    recent = list(
        db.execute(select(Package).order_by(Package.installed_at.desc()).limit(recent_limit))
        .scalars()
        .all()
    )
    return PackageStats(
        total_packages=total,
        packages_by_manager=by_manager,
        recent_installs=recent,
    )


# Workflows


def apply_workflow_status(wf: Workflow, *, now: datetime) -> None:
    """Fill in the timestamps implied by the workflow's current status."""
    if wf.status == "running" and wf.started_at is None:
        wf.started_at = now
    if wf.status in WORKFLOW_TERMINAL_STATUSES:
        if wf.completed_at is None:
            wf.completed_at = now
        if wf.duration is None and wf.started_at is not None:
            elapsed = (wf.completed_at - wf.started_at).total_seconds()
            wf.duration = max(0, int(elapsed))


def list_workflows(db: Session, *, app_id: str | None = None) -> list[Workflow]:
    stmt = select(Workflow)
    if app_id is not None:
        stmt = stmt.where(Workflow.app_id == app_id)
    stmt = stmt.order_by(Workflow.created_at.desc())
    return list(db.execute(stmt).scalars().all())


def get_workflow(db: Session, workflow_id: str) -> Workflow | None:
    return db.get(Workflow, workflow_id)


def create_workflow(db: Session, *, app_id: str, values: Mapping[str, object]) -> Workflow:
    unknown = set(values) - _WORKFLOW_MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown workflow fields: {sorted(unknown)}")

    now = utcnow_naive()
    wf = Workflow(app_id=app_id, created_at=now, updated_at=now)
    wf.status = "pending"
    for name, value in values.items():
        setattr(wf, name, value)
    apply_workflow_status(wf, now=now)

    db.add(wf)
    db.commit()
    db.refresh(wf)
    return wf


def update_workflow(db: Session, wf: Workflow, changes: Mapping[str, object]) -> Workflow:
    unknown = set(changes) - _WORKFLOW_MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update workflow fields: {sorted(unknown)}")

    now = utcnow_naive()
    previous_status = wf.status
    for name, value in changes.items():
        setattr(wf, name, value)
    if (
        previous_status in WORKFLOW_TERMINAL_STATUSES
        and wf.status not in WORKFLOW_TERMINAL_STATUSES
    ):
        # Restarted after finishing: the previous run's timing no longer applies.
        for name in _WORKFLOW_RUN_FIELDS:
            if name not in changes:
                setattr(wf, name, None)
    apply_workflow_status(wf, now=now)
    wf.updated_at = now

    db.commit()
    db.refresh(wf)
    return wf


def workflow_stats(db: Session, *, recent_limit: int) -> WorkflowStats:
    total = _count(db, Workflow)
    by_status = distribution(db, Workflow.status, total=total)
    by_type = distribution(db, Workflow.type, total=total)
    recent = list(
        db.execute(select(Workflow).order_by(Workflow.created_at.desc()).limit(recent_limit))
        .scalars()
        .all()
    )
    return WorkflowStats(
        total_workflows=total,
        workflows_by_status=by_status,
        workflows_by_type=by_type,
        recent_workflows=recent,
    )


# Stats


def app_stats(db: Session) -> AppStats:
    total = _count(db, App)
    active = _count(db, App, App.status == "online")
    claude = _count(db, App, App.has_claude_code.is_(True))
    platforms = distribution(db, App.platform, total=total)
    return AppStats(
        total_apps=total,
        active_apps=active,
        claude_apps=claude,
        avg_uptime=percentage(active, total),
        platform_distribution=platforms,
    )


__all__ = [
    "AppStats",
    "GroupCount",
    "PackageStats",
    "WorkflowStats",
    "app_stats",
    "apply_workflow_status",
    "create_app_event",
    "create_user",
    "create_workflow",
    "distribution",
    "get_app",
    "get_package",
    "get_user",
    "get_user_by_username",
    "get_workflow",
    "install_package",
    "list_app_packages",
    "list_apps",
    "list_packages",
    "list_recent_events",
    "list_workflows",
    "package_stats",
    "percentage",
    "uninstall_package",
    "update_package",
    "update_workflow",
    "upsert_app",
    "workflow_stats",
]
