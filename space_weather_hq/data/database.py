"""engine and session management for the hourly space weather store."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from space_weather_hq.config import DatabaseConfig
from space_weather_hq.data.schema import Base

logger = logging.getLogger(__name__)


def engine_options(connection_string: str) -> Dict[str, Any]:
    """create_engine kwargs for a url; sqlite has no connection pool sizing."""
    options: Dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    if make_url(connection_string).get_backend_name() != "sqlite":
        options.update(pool_size=5, max_overflow=10)
    return options


class Database:
    """owns the engine and hands out transactional sessions.

    connects lazily: the first session, create or drop call opens the engine.
    """

    def __init__(self, connection_string: Optional[str] = None):
        self.connection_string = connection_string or DatabaseConfig.get_connection_string()
        self.engine = None
        self.session_factory = None

    @property
    def backend(self) -> str:
        return make_url(self.connection_string).get_backend_name()

    def connect(self) -> None:
        """open the engine and verify it with a trivial query."""
        try:
            self.engine = create_engine(self.connection_string, **engine_options(self.connection_string))
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.error(f"failed to connect to {self.backend} database: {e}")
            raise

        self.session_factory = sessionmaker(bind=self.engine)
        logger.info(f"connected to {self.backend} database")

    def _ensure_engine(self) -> None:
        if self.engine is None or self.session_factory is None:
            self.connect()

    def create_tables(self) -> List[str]:
        """create the hourly and ingestion-log tables if missing; returns the table names."""
        self._ensure_engine()
        Base.metadata.create_all(self.engine)
        tables = self.table_names()
        logger.info(f"space weather tables ready: {', '.join(tables)}")
        return tables

    def drop_tables(self) -> None:
        """drop every space weather table, stored buckets included."""
        self._ensure_engine()
        Base.metadata.drop_all(self.engine)
        logger.warning("space weather tables dropped")

    def table_names(self) -> List[str]:
        self._ensure_engine()
        existing = set(inspect(self.engine).get_table_names())
        return [name for name in Base.metadata.tables if name in existing]

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """session that commits when the block succeeds and rolls back when it raises."""
        self._ensure_engine()
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"database session rolled back: {e}")
            raise
        finally:
            session.close()

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("database connection closed")


_db_instance: Optional[Database] = None


def get_database() -> Database:
    """process-wide database built from DatabaseConfig."""
    global _db_instance
    if _db_instance is None:
        _db_instance = Database()
    return _db_instance


def init_database(drop_existing: bool = False, db: Optional[Database] = None) -> List[str]:
    """create the schema (optionally dropping it first) and return the table names."""
    db = db or get_database()
    if drop_existing:
        db.drop_tables()
    return db.create_tables()
