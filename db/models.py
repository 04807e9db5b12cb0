"""
Database models for serp-rank-tracker using SQLAlchemy 2.0 style.

Models:
- PerformanceTracking: One stored rank observation for a keyword
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class PerformanceTracking(Base):
    """
    Rank observation in the analytics format shared with search-console imports.

    Attributes:
        id: Primary key
        owner_id: Account the observation belongs to
        saved_topic_id: Optional saved topic the keyword was tracked under
        keyword: Tracked keyword
        position: Rank in basis points (rank * 100); 0 when not found
        url: Ranking URL (empty when not found)
        clicks: Always 0 for scraped observations
        impressions: Always 0 for scraped observations
        ctr: Always 0.0 for scraped observations
        device: 'desktop' or 'mobile'
        country: Location name or 'US'
        date: Observation date (YYYY-MM-DD)
        created_at: Record creation timestamp
    """

    __tablename__ = "performance_tracking"

    # Primary Key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Ownership
    owner_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    saved_topic_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Observation
    keyword: Mapped[str] = mapped_column(String(500), nullable=False)
    position: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
        comment="Basis points: rank * 100"
    )
    url: Mapped[str] = mapped_column(String(2048), nullable=False, default="")

    # Search-console placeholders (not obtainable from scraping)
    clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    impressions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ctr: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    # Context
    device: Mapped[str] = mapped_column(String(20), nullable=False, default="desktop")
    country: Mapped[str] = mapped_column(String(100), nullable=False, default="US")
    date: Mapped[str] = mapped_column(String(10), nullable=False, comment="YYYY-MM-DD")

    # Metadata
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_performance_tracking_keyword_owner_date", "keyword", "owner_id", "date"),
    )

    @property
    def rank(self) -> int:
        """Position decoded from basis points."""
        return self.position // 100

    def __repr__(self) -> str:
        """String representation of PerformanceTracking."""
        return f"<PerformanceTracking(id={self.id}, keyword='{self.keyword}', rank={self.rank}, date='{self.date}')>"
