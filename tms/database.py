"""
Database Configuration and Session Management

SQLAlchemy engine, session factory and declarative base.
PostgreSQL in deployments, SQLite for local runs and the test suite.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.pool import QueuePool
from tms.config import get_settings
import logging

logger = logging.getLogger(__name__)

settings = get_settings()

engine_kwargs = {
    "poolclass": QueuePool,
    "pool_size": settings.DATABASE_POOL_SIZE,
    "max_overflow": settings.DATABASE_MAX_OVERFLOW,
    "pool_pre_ping": True,
    "echo": settings.DEBUG,
}

# Requests are served from a worker thread, SQLite must allow that
if settings.DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(settings.DATABASE_URL, **engine_kwargs)

# expire_on_commit=False keeps attributes readable after commit
# (the tenant loaded by the middleware outlives its session)
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False
)

Base = declarative_base()


@event.listens_for(engine, "connect")
def configure_connection(dbapi_connection, connection_record):
    """Set connection-level configuration on new connections."""
    cursor = dbapi_connection.cursor()
    if settings.DATABASE_URL.startswith("postgresql"):
        cursor.execute("SET TIME ZONE 'UTC'")
    cursor.close()
    logger.debug("New database connection established")


def get_db() -> Session:
    """
    Dependency function that provides a database session.

    The session is closed after the request completes.
    Tenant scoping is the caller's job: every query filters on tenant_id.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Create all tables.

    Used in development and by the test suite. Deployments run migrations.
    """
    # Register every model on Base.metadata before create_all
    import tms.models  # noqa: F401

    logger.warning("init_db() called - creating tables directly")
    Base.metadata.create_all(bind=engine)
