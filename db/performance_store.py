"""
Performance Store
SQLAlchemy-backed storage for rank observations.
"""

import os
from contextlib import contextmanager
from datetime import date, timedelta
from typing import Any, Dict, Generator, List, Optional

from dotenv import load_dotenv
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from db.models import Base, PerformanceTracking
from runner.logging_setup import get_logger

# Load environment
load_dotenv()

logger = get_logger("performance_store")


class PerformanceStore:
    """Reads and writes PerformanceTracking rows."""

    def __init__(self, database_url: str, echo: bool = False):
        """
        Initialize store.

        Args:
            database_url: SQLAlchemy URL (e.g. postgresql+psycopg://..., sqlite:///:memory:)
            echo: Log SQL statements
        """
        engine_kwargs: Dict[str, Any] = {"echo": echo}

        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection, otherwise each session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        elif not database_url.startswith("sqlite"):
            engine_kwargs["pool_pre_ping"] = True
            engine_kwargs["pool_recycle"] = 3600

        self.engine = create_engine(database_url, **engine_kwargs)
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine
        )
        logger.info(f"Performance store initialized ({self.engine.url.get_backend_name()})")

    @classmethod
    def from_env(cls) -> "PerformanceStore":
        """
        Build a store from DATABASE_URL.

        Raises:
            RuntimeError: If DATABASE_URL is not set
        """
        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL not set in environment")
        return cls(database_url)

    def create_tables(self) -> None:
        """Create missing tables."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions. Commits on success,
        rolls back and re-raises on error.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            session.close()

    def create_performance_tracking(self, record: Dict[str, Any]) -> PerformanceTracking:
        """
        Insert one rank observation.

        Args:
            record: Column values (owner_id, keyword, position, url, clicks,
                    impressions, ctr, device, country, date, saved_topic_id)

        Returns:
            The persisted PerformanceTracking row
        """
        row = PerformanceTracking(**record)
        with self.get_session() as session:
            session.add(row)
            session.flush()
            logger.debug(f"Saved {row!r}")
        return row

    def get_performance_tracking_by_keyword(
        self,
        keyword: str,
        owner_id: str,
        lookback_days: Optional[int] = 30,
        today: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[PerformanceTracking]:
        """
        Prior observations for a keyword, most recent first.

        Args:
            keyword: Tracked keyword
            owner_id: Account
            lookback_days: Only rows dated within this many days (None = all)
            today: Reference date (default: date.today())
            limit: Maximum rows returned (None = no limit)

        Returns:
            List of PerformanceTracking rows
        """
        stmt = select(PerformanceTracking).where(
            PerformanceTracking.keyword == keyword,
            PerformanceTracking.owner_id == owner_id,
        )

        if lookback_days is not None:
            since = (today or date.today()) - timedelta(days=lookback_days)
            stmt = stmt.where(PerformanceTracking.date >= since.isoformat())

        stmt = stmt.order_by(PerformanceTracking.date.desc(), PerformanceTracking.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)

        with self.get_session() as session:
            return list(session.scalars(stmt).all())

    def get_performance_tracking_by_owner(self, owner_id: str, limit: int = 100) -> List[PerformanceTracking]:
        """Most recent observations across all of an owner's keywords."""
        stmt = (
            select(PerformanceTracking)
            .where(PerformanceTracking.owner_id == owner_id)
            .order_by(PerformanceTracking.date.desc(), PerformanceTracking.id.desc())
            .limit(limit)
        )

        with self.get_session() as session:
            return list(session.scalars(stmt).all())
