"""
Pytest configuration and fixtures

IMPORTANT: Most tests use transactional rollback isolation.
Nothing created through `db_session` persists to the database.

The suite runs against a throwaway SQLite file unless TEST_DATABASE_URL
points at a PostgreSQL test database. Environment is set before any
application module is imported, because settings are read at import time.
"""
import os
import sys
import tempfile
from pathlib import Path
from uuid import uuid4

_TEST_DIR = tempfile.mkdtemp(prefix="daybook-tests-")
os.environ["DATABASE_URL"] = os.environ.get(
    "TEST_DATABASE_URL", f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
)
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production-0123456789")
os.environ["CACHE_ENABLED"] = "false"
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("DB_POOL_TIMEOUT", "10")
os.environ.setdefault("TEMPLATE_ROLES", "public,admin")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest


@pytest.fixture(scope="session", autouse=True)
def _ensure_db_schema_is_at_head():
    """
    Bring the test database to the latest Alembic revision.

    Tests run against the migrated schema, not `create_all`, so a model
    change without a migration fails here.
    """
    try:
        from alembic import command
        from alembic.config import Config

        api_root = Path(__file__).resolve().parents[1]
        cfg = Config(str(api_root / "alembic.ini"))
        cfg.set_main_option("script_location", str(api_root / "alembic"))
        # Keep the application's logging config (and caplog) intact.
        cfg.attributes["configure_logger"] = False
        command.upgrade(cfg, "head")
    except Exception as e:
        # Tests should fail loudly if migrations cannot be applied.
        raise RuntimeError(f"Failed to upgrade DB to Alembic head: {e}") from e


from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from core.database import Base, SessionLocal, engine, get_db
from core.security import create_access_token
from models import User
from services.template_defaults import default_template_content
from services.template_store import create_template_version


@pytest.fixture(scope="function")
def db_session():
    """
    Create a database session with transactional rollback.

    Service code commits freely: with `create_savepoint` each commit only
    releases a savepoint inside the outer transaction, which is rolled back
    after the test. Nothing persists.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(bind=connection, join_transaction_mode="create_savepoint", expire_on_commit=False)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def committed_db():
    """
    Real, committing sessions for tests that need several connections
    (concurrency). Every table is emptied afterwards.
    """
    sessions = []

    def _open() -> Session:
        session = SessionLocal()
        sessions.append(session)
        return session

    yield _open

    for session in sessions:
        session.close()
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


def make_user(db, role: str = "public", **kwargs) -> User:
    user = User(
        email=f"test_{uuid4()}@example.com",
        display_name=kwargs.pop("display_name", "Test User"),
        role=role,
        **kwargs,
    )
    db.add(user)
    db.commit()
    return user


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def public_user(db_session):
    return make_user(db_session, "public")


@pytest.fixture
def admin_user(db_session):
    return make_user(db_session, "admin", display_name="Admin")


@pytest.fixture
def public_template(db_session):
    """Version 1 of the public template, active."""
    return create_template_version(db_session, "public", default_template_content("public"), activate=True)


@pytest.fixture
def admin_template(db_session):
    return create_template_version(db_session, "admin", default_template_content("admin"), activate=True)


@pytest.fixture
def client(db_session):
    """TestClient whose requests share the test's rolled-back session."""
    from main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
