# pyright: reportUnusedFunction=false
import os
import sys
import tempfile
from pathlib import Path

import pytest


PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Must happen before chittybeacon.db.session builds the engine.
_TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="chittybeacon-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB_DIR / 'beacon.db'}")
os.environ.setdefault("ENV", "test")


def _ensure_test_schema() -> None:
    from chittybeacon.db.base import Base
    from chittybeacon.db.session import engine

    Base.metadata.create_all(bind=engine)


_ensure_test_schema()


@pytest.fixture(autouse=True)
def _isolate_db() -> None:
    from chittybeacon.db.base import Base
    from chittybeacon.db.session import engine

    tables = list(Base.metadata.sorted_tables)
    if not tables:
        return

    with engine.begin() as conn:
        for t in reversed(tables):
            _ = conn.execute(t.delete())
