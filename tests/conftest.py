import itertools
import os
import tempfile
from datetime import datetime, timezone

# Keep the module-level engine and log files out of the working tree
_tmp_dir = tempfile.mkdtemp(prefix="discount_engine_tests_")
os.environ.setdefault("DATABASE_PATH", os.path.join(_tmp_dir, "test.db"))
os.environ.setdefault("DISCOUNT_ENGINE_LOG_DIR", os.path.join(_tmp_dir, "logs"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from discount_engine.core.database import Base, get_db
import discount_engine.models  # noqa: F401
from discount_engine.schemas.discount import Discount

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_discount():
    """Factory for Discount records with sequential ids."""
    ids = itertools.count(1)

    def _make(**fields):
        fields.setdefault("id", next(ids))
        return Discount(**fields)

    return _make


@pytest.fixture
def engine():
    """In-memory SQLite DB for fast testing."""
    _engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(_engine)
    yield _engine
    Base.metadata.drop_all(_engine)


@pytest.fixture
def db_session(engine):
    """Provides a database session bound to the in-memory DB."""
    TestSession = sessionmaker(bind=engine)
    s = TestSession()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client(engine):
    """FastAPI test client whose get_db points at the in-memory DB."""
    from discount_engine.main import app

    TestSession = sessionmaker(bind=engine)

    def override_get_db():
        s = TestSession()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
