"""
Database configuration and session management
Handles engine creation, session scoping and health checks
"""

import logging
import time
from contextlib import contextmanager
from typing import Generator

import sentry_sdk
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from quizcraft.core.config import settings

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite connections are shared across worker threads"""
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_timeout=10,
    )


def create_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, expire_on_commit=False)


engine = create_db_engine(settings.get_database_url(), echo=settings.DB_ECHO)

# Create SessionLocal class
SessionLocal = create_session_factory(engine)


def init_db(bind: Engine = engine) -> None:
    """Initialize database, create tables if they don't exist"""
    try:
        # Import all models here to ensure they're registered
        from quizcraft import models  # noqa: F401

        Base.metadata.create_all(bind=bind)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        if settings.SENTRY_DSN:
            sentry_sdk.capture_exception(e)
        raise


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Transactional scope around a series of operations
    Commits on success, rolls back on any error
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class DatabaseHealthCheck:
    """Database health check utility"""

    @staticmethod
    def check_connection(bind: Engine = engine) -> dict:
        """Check database connection health"""
        start_time = time.time()
        try:
            with bind.connect() as conn:
                conn.execute(text("SELECT 1"))
            return {"status": "healthy", "response_time": time.time() - start_time}
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return {
                "status": "unhealthy",
                "error": str(e),
                "response_time": time.time() - start_time,
            }
