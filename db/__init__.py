"""
Database module for serp-rank-tracker.

This module handles:
- SQLAlchemy models
- Rank observation storage and history lookups
"""

from db.models import Base, PerformanceTracking
from db.performance_store import PerformanceStore

__version__ = "0.1.0"

__all__ = [
    "Base",
    "PerformanceTracking",
    "PerformanceStore",
]
