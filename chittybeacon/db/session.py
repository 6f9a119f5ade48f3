from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from chittybeacon.core.config import settings


def _engine_options(uri: str) -> dict[str, object]:
    # Request handlers and the test client touch the same SQLite file from
    # different threads.
    if make_url(uri).get_backend_name() == "sqlite":
        return {"pool_pre_ping": True, "connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(
    settings.sqlalchemy_database_uri, **_engine_options(settings.sqlalchemy_database_uri)
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
