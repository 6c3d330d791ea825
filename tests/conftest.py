"""Root conftest for all tests.

Every test gets its own in-memory SQLite database, patched into
slowburn.db.session so that get_session() (and therefore the API and CLI)
use it transparently.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


@pytest.fixture(scope="function")
def test_engine(monkeypatch):
    """Provides an isolated in-memory SQLite engine with all tables created.

    StaticPool keeps a single connection so the in-memory database survives
    across sessions opened by get_session().
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    from slowburn.db.models import Base

    Base.metadata.create_all(engine)

    import slowburn.db.session as session_module

    monkeypatch.setattr(session_module, "_engine", engine)
    monkeypatch.setattr(
        session_module,
        "_SessionLocal",
        sessionmaker(autocommit=False, autoflush=False, bind=engine),
    )

    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def db_session(test_engine):
    """Session bound to the test engine; committed explicitly by tests."""
    session = sessionmaker(bind=test_engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def store(db_session):
    from slowburn.db.store import ChecklistStore

    return ChecklistStore(db_session)


@pytest.fixture
def reconciler(store):
    from slowburn.checklist.reconciler import ChecklistReconciler

    return ChecklistReconciler(store)


@pytest.fixture
def client(test_engine):
    """FastAPI TestClient running against the test database."""
    from fastapi.testclient import TestClient

    from slowburn.main import app

    return TestClient(app)
