"""
Database engine, session factory and schema setup.

The engine is created lazily so importing the app never opens a connection.
`init_db` is idempotent and safe to run from every process at startup.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


class DatabaseManager:
    """Owns the engine and session factory for one database URL."""

    def __init__(self, database_url: Optional[str] = None) -> None:
        self._database_url = database_url
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            settings = get_settings()
            url = self._database_url or settings.database_url
            kwargs = {"pool_pre_ping": True}
            if url and not url.startswith("sqlite"):
                kwargs["pool_size"] = settings.database_pool_size
                kwargs["max_overflow"] = settings.database_max_overflow
            self._engine = create_engine(url, **kwargs)
        return self._engine

    @property
    def SessionLocal(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                autocommit=False, autoflush=False, bind=self.engine
            )
        return self._session_factory

    @contextmanager
    def db_session(self) -> Iterator[Session]:
        """Session scope for code running outside a request (tasks, scripts)."""
        db = self.SessionLocal()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def init_db(self) -> None:
        """Create missing tables. Existing tables are left untouched."""
        import app.models  # noqa: F401  (register mappers on Base.metadata)

        Base.metadata.create_all(bind=self.engine, checkfirst=True)
        logger.info("Database schema ensured")


db_manager = DatabaseManager()


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a request-scoped session."""
    db = db_manager.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    db_manager.init_db()
