# resolve/db/database.py
"""
Database Configuration

SQLAlchemy engine, session factory, and base class configuration.
"""
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from resolve.core.config import settings
from resolve.core.logger import logger


def _build_engine(url: str):
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads.
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_recycle=3600,
    )


engine = _build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/items/")
        def read_items(db: Session = Depends(get_db)):
            return db.query(Item).all()
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error("Database session error: %s", e)
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    One commit for everything written inside the block; rollback on any error.
    Lost optimistic-version races and outbox dedupe collisions become 409s.
    """
    from resolve.utils.exceptions import ConflictError

    try:
        yield db
        db.commit()
    except StaleDataError as e:
        db.rollback()
        logger.warning("Optimistic concurrency conflict: %s", e)
        raise ConflictError() from e
    except IntegrityError as e:
        db.rollback()
        logger.warning("Integrity conflict: %s", e.orig)
        raise ConflictError("A conflicting write was already applied.") from e
    except Exception:
        db.rollback()
        raise


def init_db() -> None:
    """Create all tables. Called on application startup."""
    from resolve.db import models  # noqa: F401

    logger.info("Initializing database...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized successfully")
