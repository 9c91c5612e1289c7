"""
Engine, session factory and the request-scoped session dependency.

PostgreSQL in production. SQLite backs local runs and the test suite;
there every transaction starts with BEGIN IMMEDIATE so two hydrations of
the same day serialize on the write lock (waiting up to DB_POOL_TIMEOUT
seconds) instead of failing on a read-to-write upgrade.
"""
from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool
from core.config import settings
import logging
from typing import Iterator

logger = logging.getLogger(__name__)

DATABASE_URL = settings.database_url


def _sqlite_engine(url: str):
    eng = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": settings.DB_POOL_TIMEOUT},
        echo=settings.DEBUG,
    )

    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_conn, connection_record):
        # SQLAlchemy issues BEGIN itself (see below); pysqlite must not.
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(eng, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return eng


def _postgres_engine(url: str):
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_pre_ping=True,
        connect_args={
            "connect_timeout": settings.DB_POOL_TIMEOUT,
            # A hydration that hits this rolls back as a whole.
            "options": f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}",
        },
        echo=settings.DEBUG,
    )


engine = _sqlite_engine(DATABASE_URL) if DATABASE_URL.startswith("sqlite") else _postgres_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    """
    Request-scoped session.

    Services commit their own units of work (a hydration, a toggle, an
    activation). Anything left open when the handler raises is rolled back
    here; a clean return commits stragglers such as audit rows.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_db_connection() -> bool:
    """True when a connection can be opened and answers SELECT 1."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection check failed: {e}")
        return False
